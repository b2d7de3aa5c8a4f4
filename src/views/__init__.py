"""View derivation package."""

from src.views.engine import (
    CSV_FILENAME,
    CSV_HEADER,
    EmptyExportError,
    by_category,
    derive_view,
    exceeds_budget,
    filter_expenses,
    format_amount,
    period_total,
    sort_expenses,
    to_csv,
    total,
)

__all__ = [
    "CSV_FILENAME",
    "CSV_HEADER",
    "EmptyExportError",
    "by_category",
    "derive_view",
    "exceeds_budget",
    "filter_expenses",
    "format_amount",
    "period_total",
    "sort_expenses",
    "to_csv",
    "total",
]
