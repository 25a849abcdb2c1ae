"""Cash reconciliation for a daily closing."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .channels import CashDenominationCount, ChannelSalesInput, non_negative


@dataclass(frozen=True, slots=True)
class ReconciliationResult:
    """Figures derived from the entered sales and the physical cash count.

    ``expected_cash_balance`` and ``cash_difference`` may be negative: a
    negative difference is a shortfall, a positive one a surplus.
    """

    total_sales: int
    expected_cash_balance: int
    total_cash_in_box: int
    cash_difference: int


def reconcile(
    inputs: ChannelSalesInput,
    starting_cash_balance: int,
    cash_expenses: int,
    denominations: Optional[CashDenominationCount] = None,
) -> ReconciliationResult:
    """Compute the :class:`ReconciliationResult` for one set of inputs.

    Every channel counts towards ``total_sales``, delivery platforms included.
    Only the cash channel moves the expected register balance.
    """

    starting_cash_balance = non_negative(starting_cash_balance)
    cash_expenses = non_negative(cash_expenses)

    expected_cash_balance = starting_cash_balance + inputs.cash - cash_expenses
    total_cash_in_box = denominations.total() if denominations is not None else 0

    return ReconciliationResult(
        total_sales=inputs.total(),
        expected_cash_balance=expected_cash_balance,
        total_cash_in_box=total_cash_in_box,
        cash_difference=total_cash_in_box - expected_cash_balance,
    )


__all__ = ["ReconciliationResult", "reconcile"]
