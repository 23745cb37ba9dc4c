"""Derived views -- pure aggregations over synchronized collections."""

from src.bizops.views.aggregates import (
    DashboardSummary,
    FinancialTotals,
    dashboard_summary,
    financial_totals,
    month_totals,
    search_clients,
    transactions_in_month,
    upcoming_deliveries,
)
from src.bizops.views.calendar import (
    CalendarDay,
    bucket_by_day,
    month_grid,
    project_deadline_calendar,
    shift_month,
    transaction_calendar,
)

__all__ = [
    "CalendarDay",
    "DashboardSummary",
    "FinancialTotals",
    "bucket_by_day",
    "dashboard_summary",
    "financial_totals",
    "month_grid",
    "month_totals",
    "project_deadline_calendar",
    "search_clients",
    "shift_month",
    "transaction_calendar",
    "transactions_in_month",
    "upcoming_deliveries",
]
