"""
View Engine

Pure derivations over the cached expense records. No I/O, no state.

DESIGN DECISION: The store gives no ordering guarantee, so every order the
user sees is imposed here. Sorting is stable: records with equal keys keep
their input order in both directions.
"""

from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal, localcontext
from operator import attrgetter
from typing import Optional

from src.models.expense import (
    Expense,
    ExpenseCategory,
    ExpenseView,
    SortDirection,
    SortKey,
    ViewState,
    period_key,
)


CSV_HEADER = "Description,Category,Date,Amount"
CSV_FILENAME = "expenses.csv"

_CENTS = Decimal("0.01")


class EmptyExportError(Exception):
    """There are no records to export."""

    def __init__(self):
        super().__init__("Nothing to export")


def total(records: Iterable[Expense]) -> Decimal:
    """Sum of all amounts."""
    return sum((record.amount for record in records), Decimal("0"))


def by_category(records: Iterable[Expense]) -> dict[ExpenseCategory, Decimal]:
    """
    Subtotal per category.

    Categories whose subtotal is zero are left out, including those with
    only zero-amount records. Keys follow the category enumeration order.
    """
    subtotals = {category: Decimal("0") for category in ExpenseCategory}
    for record in records:
        subtotals[record.category] += record.amount
    return {category: amount for category, amount in subtotals.items() if amount != 0}


def filter_expenses(
    records: Iterable[Expense],
    category: Optional[ExpenseCategory] = None,
) -> list[Expense]:
    """Keep records of one category; None keeps everything."""
    if category is None:
        return list(records)
    return [record for record in records if record.category == category]


def sort_expenses(
    records: Iterable[Expense],
    key: SortKey = SortKey.DATE,
    direction: SortDirection = SortDirection.DESC,
) -> list[Expense]:
    """Stable sort by date or amount."""
    # sorted() stays stable with reverse=True
    return sorted(
        records,
        key=attrgetter(key.value),
        reverse=direction == SortDirection.DESC,
    )


def period_total(records: Iterable[Expense], period: str) -> Decimal:
    """Total of the records dated in a calendar month ('YYYY-MM')."""
    return total(record for record in records if period_key(record.date) == period)


def exceeds_budget(
    current_period_total: Decimal,
    new_amount: Decimal,
    budget: Optional[Decimal],
) -> bool:
    """
    True iff a budget is set and the new amount takes the period over it.

    Reaching the budget exactly does not exceed it.
    """
    if budget is None:
        return False
    return current_period_total + new_amount > budget


def format_amount(amount: Decimal) -> str:
    """Two decimal places, half-up, at any magnitude."""
    if amount.is_zero():
        amount = abs(amount)
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        return str(amount.quantize(_CENTS, rounding=ROUND_HALF_UP))


def _quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def to_csv(records: Sequence[Expense]) -> str:
    """
    Serialize records in the order given.

    Format:
        Description,Category,Date,Amount
        "Lunch, with ""team"" at noon",Food,2024-03-01,50.00

    The description is always quoted and inner quotes are doubled.

    Raises:
        EmptyExportError: when there is nothing to export. A header-only
            file is never produced.
    """
    if not records:
        raise EmptyExportError()

    lines = [CSV_HEADER]
    for record in records:
        lines.append(",".join([
            _quote(record.description),
            record.category.value,
            record.date.isoformat(),
            format_amount(record.amount),
        ]))
    return "\n".join(lines) + "\n"


def derive_view(
    records: Sequence[Expense],
    view_state: ViewState,
    budget: Optional[Decimal] = None,
    budget_period: Optional[str] = None,
) -> ExpenseView:
    """Build everything the presentation layer renders from the cached records."""
    visible = sort_expenses(
        filter_expenses(records, view_state.category),
        view_state.sort_key,
        view_state.sort_direction,
    )
    return ExpenseView(
        records=tuple(visible),
        total=total(records),
        visible_total=total(visible),
        category_totals=by_category(records),
        budget=budget,
        budget_period=budget_period,
        period_total=period_total(records, budget_period) if budget_period else Decimal("0"),
    )
