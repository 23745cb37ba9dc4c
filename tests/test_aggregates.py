"""Unit tests for derived-view aggregators and calendar bucketing.

Tests cover:
- financial_totals: income/expense/balance, inclusive date window, bad dates skipped
- dashboard_summary: won/lost projects, won opportunity count/value, upcoming deliveries
- month_grid: whole weeks, Sunday start, adjacent-month days flagged
- bucket_by_day / transaction_calendar / project_deadline_calendar
- search_clients: case- and accent-insensitive substring
"""

from __future__ import annotations

import calendar
from datetime import date

import pytest

from src.bizops.schemas import Client, Opportunity, Project, TaskStage, Transaction
from src.bizops.views.aggregates import (
    dashboard_summary,
    financial_totals,
    month_totals,
    project_task_counts,
    search_clients,
    transactions_in_month,
    upcoming_deliveries,
)
from src.bizops.views.calendar import (
    bucket_by_day,
    month_grid,
    project_deadline_calendar,
    shift_month,
    transaction_calendar,
)


# ── Helpers ────────────────────────────────────────────────────────────────


def _txn(txn_id: str, type_: str, amount: float, day: str = "2024-03-10") -> Transaction:
    return Transaction(id=txn_id, type=type_, amount=amount, date=day)


def _project(project_id: str, status: str = "active", deadline: str = "") -> Project:
    return Project(id=project_id, name=f"Project {project_id}", status=status, deadline=deadline)


def _opp(opp_id: str, status: str, value: float) -> Opportunity:
    return Opportunity(id=opp_id, title=opp_id, status=status, value=value)


# ── Finance ─────────────────────────────────────────────────────────────────


class TestFinancialTotals:
    """Tests for income/expense/balance."""

    def test_totals(self):
        totals = financial_totals([
            _txn("a", "income", 1000),
            _txn("b", "expense", 300),
            _txn("c", "income", 200),
        ])

        assert totals.income == 1200
        assert totals.expense == 300
        assert totals.balance == 900

    def test_empty(self):
        totals = financial_totals([])
        assert (totals.income, totals.expense, totals.balance) == (0, 0, 0)

    def test_window_is_inclusive(self):
        txns = [
            _txn("a", "income", 100, "2024-03-01"),
            _txn("b", "income", 10, "2024-03-31"),
            _txn("c", "income", 1, "2024-04-01"),
        ]
        totals = financial_totals(txns, date(2024, 3, 1), date(2024, 3, 31))
        assert totals.income == 110

    def test_unparseable_dates_skipped_in_window(self):
        txns = [_txn("a", "expense", 50, "not-a-date"), _txn("b", "expense", 5, "2024-03-02")]
        assert financial_totals(txns, date(2024, 3, 1), date(2024, 3, 31)).expense == 5
        assert financial_totals(txns).expense == 55

    def test_month_helpers(self):
        txns = [
            _txn("a", "income", 100, "2024-02-29"),
            _txn("b", "expense", 40, "2024-02-01T10:00:00"),
            _txn("c", "income", 7, "2024-03-01"),
        ]
        assert [t.id for t in transactions_in_month(txns, 2024, 2)] == ["a", "b"]
        assert month_totals(txns, 2024, 2).balance == 60


# ── Dashboard ───────────────────────────────────────────────────────────────


class TestDashboard:
    """Tests for the dashboard summary."""

    def test_summary(self):
        summary = dashboard_summary(
            transactions=[_txn("a", "income", 1000), _txn("b", "expense", 250)],
            projects=[
                _project("p1", "won"),
                _project("p2", "lost"),
                _project("p3", "won"),
                _project("p4", "active", "2024-05-01"),
            ],
            opportunities=[
                _opp("o1", "closed_won", 3000),
                _opp("o2", "closed_won", 2000),
                _opp("o3", "closed_lost", 999),
                _opp("o4", "lead", 100),
            ],
        )

        assert summary.totals.balance == 750
        assert summary.projects_won == 2
        assert summary.projects_lost == 1
        assert summary.opportunities_won == 2
        assert summary.opportunities_won_value == 5000
        assert [p.id for p in summary.upcoming_deliveries] == ["p4"]

    def test_upcoming_deliveries_sorted_and_limited(self):
        projects = [
            _project(str(i), "active", f"2024-0{9 - i}-01") for i in range(7)
        ] + [_project("done", "completed", "2024-01-01")]

        upcoming = upcoming_deliveries(projects)

        assert len(upcoming) == 5
        assert [p.deadline for p in upcoming] == sorted(p.deadline for p in upcoming)
        assert all(p.status.value == "active" for p in upcoming)

    def test_project_task_counts_cover_every_column(self):
        project = Project(
            id="p1",
            name="Portal",
            tasks=[
                {"id": "t1", "title": "A", "status": "backlog"},
                {"id": "t2", "title": "B", "status": "backlog"},
                {"id": "t3", "title": "C", "status": "revisao"},
            ],
        )

        assert project_task_counts(project) == {
            TaskStage.BACKLOG: 2,
            TaskStage.IN_PROGRESS: 0,
            TaskStage.DONE: 0,
            TaskStage.REVIEW: 1,
        }


# ── Calendar ────────────────────────────────────────────────────────────────


class TestMonthGrid:
    """Tests for the month grid."""

    def test_thirty_day_month_not_starting_on_sunday(self):
        # April 2024 starts on a Monday and has 30 days.
        days = month_grid(2024, 4)

        assert len(days) % 7 == 0
        assert days[0].day == date(2024, 3, 31)
        assert days[0].day.weekday() == calendar.SUNDAY
        assert days[-1].day.weekday() == calendar.SATURDAY
        assert sum(1 for d in days if d.in_month) == 30
        assert not days[0].in_month

    def test_month_starting_on_sunday(self):
        # September 2024 starts on a Sunday.
        days = month_grid(2024, 9)
        assert days[0].day == date(2024, 9, 1)
        assert days[0].in_month

    @pytest.mark.parametrize("year, month", [(2024, 2), (2023, 2), (2024, 12), (2026, 8)])
    def test_whole_weeks(self, year, month):
        days = month_grid(year, month)
        assert len(days) % 7 == 0
        assert len({d.day for d in days}) == len(days)

    def test_monday_week_start(self):
        days = month_grid(2024, 4, week_start=calendar.MONDAY)
        assert days[0].day == date(2024, 4, 1)

    def test_shift_month(self):
        assert shift_month(2024, 1, -1) == (2023, 12)
        assert shift_month(2024, 12, 1) == (2025, 1)
        assert shift_month(2024, 5, 0) == (2024, 5)


class TestBucketing:
    """Tests for day buckets."""

    def test_transaction_calendar(self):
        txns = [
            _txn("a", "income", 1, "2024-04-10"),
            _txn("b", "expense", 1, "2024-04-10"),
            _txn("c", "income", 1, "2024-03-31"),
            _txn("d", "income", 1, "2024-06-01"),
            _txn("e", "income", 1, "garbage"),
        ]

        buckets = transaction_calendar(txns, 2024, 4)

        assert [t.id for t in buckets[date(2024, 4, 10)]] == ["a", "b"]
        assert [t.id for t in buckets[date(2024, 3, 31)]] == ["c"]
        assert all(date(2024, 6, 1) != day for day in buckets)
        assert sum(len(v) for v in buckets.values()) == 3

    def test_project_deadline_calendar(self):
        buckets = project_deadline_calendar(
            [_project("p1", deadline="2024-04-15"), _project("p2", deadline="")], 2024, 4
        )
        assert [p.id for p in buckets[date(2024, 4, 15)]] == ["p1"]

    def test_every_grid_day_present(self):
        days = month_grid(2024, 4)
        buckets = bucket_by_day([], lambda item: item, days)
        assert list(buckets) == [d.day for d in days]


# ── Clients ─────────────────────────────────────────────────────────────────


class TestSearchClients:
    """Tests for client search."""

    def test_substring_case_and_accent_insensitive(self):
        clients = [
            Client(id="1", name="Ana Silva"),
            Client(id="2", name="José Álvares"),
            Client(id="3", name="Bruno"),
        ]

        assert [c.id for c in search_clients(clients, "silva")] == ["1"]
        assert [c.id for c in search_clients(clients, "JOSE")] == ["2"]
        assert [c.id for c in search_clients(clients, "  ")] == ["1", "2", "3"]
