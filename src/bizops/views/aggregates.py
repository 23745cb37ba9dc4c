"""Derived-view aggregators for the dashboard, finance and client views.

Every function here is pure: it reads already-synchronized tuples and
returns fresh values. Nothing is cached; callers recompute whenever a source
collection changes.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable
from datetime import date

from pydantic import BaseModel, Field

from src.bizops.board.tasks import task_stage_counts
from src.bizops.pipeline.stages import stage_counts
from src.bizops.schemas import (
    Client,
    Opportunity,
    OpportunityStage,
    Project,
    ProjectStatus,
    TaskStage,
    Transaction,
    TransactionType,
)
from src.bizops.sync.reducers import name_sort_key
from src.bizops.views.calendar import parse_day


class FinancialTotals(BaseModel):
    """Income, expense and their difference over a set of transactions."""

    income: float = 0.0
    expense: float = 0.0
    balance: float = 0.0


class DashboardSummary(BaseModel):
    """Headline numbers for the dashboard view."""

    totals: FinancialTotals
    projects_won: int = 0
    projects_lost: int = 0
    opportunities_won: int = 0
    opportunities_won_value: float = 0.0
    pipeline_counts: dict[OpportunityStage, int] = Field(default_factory=dict)
    upcoming_deliveries: list[Project] = Field(default_factory=list)


# ── Finance ─────────────────────────────────────────────────────────────────


def financial_totals(
    transactions: Iterable[Transaction],
    start: date | None = None,
    end: date | None = None,
) -> FinancialTotals:
    """Sum income and expense, optionally within ``[start, end]`` (inclusive).

    With a date filter, transactions whose date cannot be parsed are skipped.
    """
    income = 0.0
    expense = 0.0
    for txn in transactions:
        if start is not None or end is not None:
            day = parse_day(txn.date)
            if day is None:
                continue
            if start is not None and day < start:
                continue
            if end is not None and day > end:
                continue
        if txn.type == TransactionType.INCOME:
            income += txn.amount
        else:
            expense += txn.amount
    return FinancialTotals(income=income, expense=expense, balance=income - expense)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def transactions_in_month(
    transactions: Iterable[Transaction], year: int, month: int
) -> tuple[Transaction, ...]:
    start, end = month_bounds(year, month)
    return tuple(
        t for t in transactions if (day := parse_day(t.date)) is not None and start <= day <= end
    )


def month_totals(transactions: Iterable[Transaction], year: int, month: int) -> FinancialTotals:
    start, end = month_bounds(year, month)
    return financial_totals(transactions, start, end)


# ── Projects / pipeline ─────────────────────────────────────────────────────


def upcoming_deliveries(projects: Iterable[Project], limit: int = 5) -> list[Project]:
    """Active projects ordered by deadline (ISO string order), first ``limit``."""
    active = [p for p in projects if p.status == ProjectStatus.ACTIVE]
    return sorted(active, key=lambda p: p.deadline)[:limit]


def dashboard_summary(
    transactions: Iterable[Transaction],
    projects: Iterable[Project],
    opportunities: Iterable[Opportunity],
    upcoming_limit: int = 5,
) -> DashboardSummary:
    projects = list(projects)
    opportunities = list(opportunities)
    won = [o for o in opportunities if o.status == OpportunityStage.CLOSED_WON]
    return DashboardSummary(
        totals=financial_totals(transactions),
        projects_won=sum(1 for p in projects if p.status == ProjectStatus.WON),
        projects_lost=sum(1 for p in projects if p.status == ProjectStatus.LOST),
        opportunities_won=len(won),
        opportunities_won_value=sum(o.value for o in won),
        pipeline_counts=stage_counts(opportunities),
        upcoming_deliveries=upcoming_deliveries(projects, upcoming_limit),
    )


def project_task_counts(project: Project) -> dict[TaskStage, int]:
    """Badge counts for a project's task board columns."""
    return task_stage_counts(project.tasks)


# ── Clients ─────────────────────────────────────────────────────────────────


def search_clients(clients: Iterable[Client], query: str) -> tuple[Client, ...]:
    """Clients whose name contains ``query`` (accent- and case-insensitive)."""
    needle = name_sort_key(query.strip())
    return tuple(c for c in clients if needle in name_sort_key(c.name))
