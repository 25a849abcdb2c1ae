"""Domain models used by the cierre_caja backend.

The classes defined here are lightweight data containers that do not know
anything about persistence or transport concerns.  :class:`DailyClosingRecord`
is the single authority for its delivery aggregate: ``total_delivery_sales``
is always recomputed from the entries the record owns.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from .channels import (
    DEFAULT_DELIVERY_CHANNELS,
    CashDenominationCount,
    Channel,
    ChannelSalesInput,
    DeliveryChannel,
    non_negative,
)
from .reconciliation import ReconciliationResult, reconcile


@dataclass(frozen=True, slots=True)
class DeliveryChannelSaleEntry:
    """Sales made through one delivery platform on the closing day."""

    channel_id: str
    service_name: str
    sales_amount: int


def delivery_entries_from(
    sales: ChannelSalesInput,
    delivery_channels: Iterable[DeliveryChannel] = DEFAULT_DELIVERY_CHANNELS,
) -> tuple[DeliveryChannelSaleEntry, ...]:
    """Return one entry per delivery channel with a positive amount.

    Channels with no sales produce no entry.
    """

    return tuple(
        DeliveryChannelSaleEntry(channel.id, channel.label, sales.amount(channel.id))
        for channel in delivery_channels
        if sales.amount(channel.id) > 0
    )


@dataclass(frozen=True)
class DailyClosingRecord:
    """One day's consolidated cash-register closing.

    Attributes:
        id: Opaque identifier assigned by the repository; ``None`` until the
            record has been created.
        closing_date: Calendar day the closing belongs to.
        delivery_entries: Positive delivery sales owned by the record.
            Entries with a zero or negative amount are dropped.
        total_delivery_sales: Sum of :attr:`delivery_entries`. Not an
            ``__init__`` argument: it is derived on construction.
        total_cash_in_box: Counted cash, only when a denomination count was
            recorded.
        cash_difference: ``total_cash_in_box - expected_cash_balance``, only
            when a denomination count was recorded.
        denomination_counts: The count behind :attr:`total_cash_in_box`.
    """

    closing_date: date
    starting_cash_balance: int = 0
    total_cash_sales: int = 0
    total_card_sales: int = 0
    total_transfer_sales: int = 0
    total_gift_card_sales: int = 0
    cash_expenses: int = 0
    expected_cash_balance: int = 0
    total_cash_in_box: Optional[int] = None
    cash_difference: Optional[int] = None
    notes: Optional[str] = None
    delivery_entries: tuple[DeliveryChannelSaleEntry, ...] = ()
    denomination_counts: Optional[CashDenominationCount] = None
    id: Optional[str] = None
    total_delivery_sales: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        # Monetary inputs are clamped to 0..MAX_AMOUNT rather than rejected.
        for name in (
            "starting_cash_balance",
            "total_cash_sales",
            "total_card_sales",
            "total_transfer_sales",
            "total_gift_card_sales",
            "cash_expenses",
        ):
            object.__setattr__(self, name, non_negative(getattr(self, name)))
        if self.total_cash_in_box is not None:
            object.__setattr__(self, "total_cash_in_box", non_negative(self.total_cash_in_box))

        entries = tuple(
            DeliveryChannelSaleEntry(entry.channel_id, entry.service_name, non_negative(entry.sales_amount))
            for entry in self.delivery_entries
            if non_negative(entry.sales_amount) > 0
        )
        object.__setattr__(self, "delivery_entries", entries)
        object.__setattr__(self, "total_delivery_sales", sum(entry.sales_amount for entry in entries))

        notes = (self.notes or "").strip()
        object.__setattr__(self, "notes", notes or None)

    @property
    def has_cash_count(self) -> bool:
        return self.total_cash_in_box is not None

    @property
    def total_sales(self) -> int:
        return (
            self.total_cash_sales
            + self.total_card_sales
            + self.total_transfer_sales
            + self.total_gift_card_sales
            + self.total_delivery_sales
        )

    def channel_sales(self) -> ChannelSalesInput:
        """Rebuild the per-channel input, matching entries on their channel id."""

        amounts: dict[str, int] = {
            Channel.CASH.value: self.total_cash_sales,
            Channel.CARD.value: self.total_card_sales,
            Channel.TRANSFER.value: self.total_transfer_sales,
            Channel.GIFT_CARD.value: self.total_gift_card_sales,
        }
        for entry in self.delivery_entries:
            amounts[entry.channel_id] = amounts.get(entry.channel_id, 0) + entry.sales_amount
        return ChannelSalesInput(amounts)

    def reconciliation(self) -> ReconciliationResult:
        """Recompute the reconciliation figures from the stored inputs."""

        result = reconcile(
            self.channel_sales(),
            self.starting_cash_balance,
            self.cash_expenses,
            self.denomination_counts,
        )
        if self.denomination_counts is None and self.total_cash_in_box is not None:
            # Counted total stored without its breakdown.
            return ReconciliationResult(
                total_sales=result.total_sales,
                expected_cash_balance=result.expected_cash_balance,
                total_cash_in_box=self.total_cash_in_box,
                cash_difference=self.total_cash_in_box - result.expected_cash_balance,
            )
        return result


def build_record(
    sales: ChannelSalesInput,
    starting_cash_balance: int,
    cash_expenses: int,
    closing_date: date,
    denominations: Optional[CashDenominationCount] = None,
    notes: Optional[str] = None,
    record_id: Optional[str] = None,
    delivery_channels: Iterable[DeliveryChannel] = DEFAULT_DELIVERY_CHANNELS,
) -> DailyClosingRecord:
    """Assemble a persistable record from raw inputs.

    ``denominations`` is ``None`` when no physical count was made; the record
    then carries neither ``total_cash_in_box`` nor ``cash_difference``.
    """

    delivery_channels = tuple(delivery_channels)
    known = {channel.id for channel in delivery_channels}
    primary = {channel.value for channel in Channel}
    unknown = set(sales.amounts) - known - primary
    if unknown:
        raise ValueError(f"Unknown sales channel(s): {', '.join(sorted(unknown))}")

    result = reconcile(sales, starting_cash_balance, cash_expenses, denominations)
    counted = denominations is not None

    return DailyClosingRecord(
        id=record_id,
        closing_date=closing_date,
        starting_cash_balance=starting_cash_balance,
        total_cash_sales=sales.cash,
        total_card_sales=sales.card,
        total_transfer_sales=sales.transfer,
        total_gift_card_sales=sales.gift_card,
        cash_expenses=cash_expenses,
        expected_cash_balance=result.expected_cash_balance,
        total_cash_in_box=result.total_cash_in_box if counted else None,
        cash_difference=result.cash_difference if counted else None,
        notes=notes,
        delivery_entries=delivery_entries_from(sales, delivery_channels),
        denomination_counts=denominations,
    )


__all__ = [
    "DeliveryChannelSaleEntry",
    "DailyClosingRecord",
    "delivery_entries_from",
    "build_record",
]
