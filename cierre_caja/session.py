"""In-memory editing session for one daily closing.

The session only stores what the cashier typed.  Every derived figure is
recomputed from those raw strings on access, so the totals shown can never lag
behind the inputs.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import date
from enum import Enum
from typing import Iterable, Optional

from .channels import (
    DEFAULT_DELIVERY_CHANNELS,
    DENOMINATIONS,
    CashDenominationCount,
    Channel,
    ChannelKey,
    ChannelSalesInput,
    DeliveryChannel,
    channel_key,
)
from .database import ClosingRepository
from .errors import RepositoryError, SubmitInProgress
from .formatting import format_grouped_amount, parse_localized_amount, strip_non_digits
from .models import DailyClosingRecord, build_record
from .reconciliation import ReconciliationResult, reconcile

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    EMPTY = "empty"
    EDITING = "editing"
    SUBMITTING = "submitting"


class ClosingSession:
    """Raw form input for one closing plus the create/update transition.

    A session created with :meth:`for_record` edits an existing record and
    submits as a full-replace update; otherwise submit creates a new record.
    """

    def __init__(
        self,
        repository: ClosingRepository,
        delivery_channels: Iterable[DeliveryChannel] = DEFAULT_DELIVERY_CHANNELS,
        today: Optional[date] = None,
    ) -> None:
        self._repository = repository
        self._delivery_channels = tuple(delivery_channels)
        self._channel_ids = tuple(
            [channel.value for channel in Channel] + [channel.id for channel in self._delivery_channels]
        )
        self._today = today
        self._record_id: Optional[str] = None
        self._submitting = False
        self.last_error: Optional[str] = None
        self._clear()

    @classmethod
    def for_record(
        cls,
        repository: ClosingRepository,
        record: DailyClosingRecord,
        delivery_channels: Iterable[DeliveryChannel] = DEFAULT_DELIVERY_CHANNELS,
    ) -> "ClosingSession":
        """Open an editing session pre-filled from a persisted record."""

        if record.id is None:
            raise ValueError("Only persisted records can be edited")

        # Entries for channels no longer configured stay editable.
        channels = list(delivery_channels)
        known = {channel.id for channel in channels}
        for entry in record.delivery_entries:
            if entry.channel_id not in known:
                channels.append(DeliveryChannel(entry.channel_id, entry.service_name))
                known.add(entry.channel_id)

        session = cls(repository, channels)
        session._record_id = record.id
        session._load(record)
        return session

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        if self._submitting:
            return SessionState.SUBMITTING
        return SessionState.EDITING if self.is_dirty else SessionState.EMPTY

    @property
    def record_id(self) -> Optional[str]:
        return self._record_id

    @property
    def is_dirty(self) -> bool:
        return (
            self._record_id is not None
            or any(self._sales.values())
            or any(self._counts.values())
            or bool(self._starting_cash_balance)
            or bool(self._cash_expenses)
            or bool(self._notes)
            or self._closing_date is not None
        )

    @property
    def can_submit(self) -> bool:
        return not self._submitting

    @property
    def delivery_channels(self) -> tuple[DeliveryChannel, ...]:
        return self._delivery_channels

    @property
    def channel_ids(self) -> tuple[str, ...]:
        """Identifiers accepted by :meth:`set_sales`, primary channels first."""

        return self._channel_ids

    # ------------------------------------------------------------------
    # Field mutation
    # ------------------------------------------------------------------
    def set_sales(self, channel: ChannelKey, raw: str) -> str:
        """Record the raw amount typed for ``channel``; return it re-grouped."""

        key = channel_key(channel)
        if key not in self._channel_ids:
            raise KeyError(f"Unknown sales channel: {key}")
        self._sales[key] = format_grouped_amount(raw)
        return self._sales[key]

    def set_starting_cash_balance(self, raw: str) -> str:
        self._starting_cash_balance = format_grouped_amount(raw)
        return self._starting_cash_balance

    def set_cash_expenses(self, raw: str) -> str:
        self._cash_expenses = format_grouped_amount(raw)
        return self._cash_expenses

    def set_denomination_count(self, face_value: int, raw: str) -> str:
        """Record how many notes/coins of ``face_value`` were counted."""

        if face_value not in DENOMINATIONS:
            raise KeyError(f"Unknown denomination: {face_value}")
        # An explicit "0" is kept: it still marks the cash as counted.
        digits = strip_non_digits(raw)
        self._counts[face_value] = str(parse_localized_amount(digits)) if digits else ""
        return self._counts[face_value]

    def set_closing_date(self, value: Optional[date]) -> None:
        self._closing_date = value

    def set_notes(self, text: Optional[str]) -> None:
        self._notes = (text or "").strip()

    def reset(self) -> None:
        """Discard every unsaved input and go back to :attr:`SessionState.EMPTY`."""

        self._record_id = None
        self.last_error = None
        self._clear()

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------
    def raw_values(self) -> dict[str, str]:
        """Return the raw entries as they would be shown in the form."""

        values = {"starting_cash_balance": self._starting_cash_balance, "cash_expenses": self._cash_expenses}
        values.update(self._sales)
        return values

    @property
    def sales(self) -> ChannelSalesInput:
        return ChannelSalesInput({key: parse_localized_amount(raw) for key, raw in self._sales.items()})

    @property
    def starting_cash_balance(self) -> int:
        return parse_localized_amount(self._starting_cash_balance)

    @property
    def cash_expenses(self) -> int:
        return parse_localized_amount(self._cash_expenses)

    @property
    def has_cash_count(self) -> bool:
        return any(self._counts.values())

    @property
    def denominations(self) -> Optional[CashDenominationCount]:
        if not self.has_cash_count:
            return None
        return CashDenominationCount(
            {face_value: parse_localized_amount(raw) for face_value, raw in self._counts.items()}
        )

    @property
    def closing_date(self) -> date:
        return self._closing_date or self._today or date.today()

    @property
    def result(self) -> ReconciliationResult:
        return reconcile(self.sales, self.starting_cash_balance, self.cash_expenses, self.denominations)

    def build_record(self) -> DailyClosingRecord:
        return build_record(
            self.sales,
            self.starting_cash_balance,
            self.cash_expenses,
            self.closing_date,
            denominations=self.denominations,
            notes=self._notes,
            record_id=self._record_id,
            delivery_channels=self._delivery_channels,
        )

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------
    async def submit(self) -> str:
        """Persist the session and reset it; return the record identifier.

        Repository failures are re-raised unchanged after recording a readable
        cause in :attr:`last_error`; the entered values are kept.
        """

        if self._submitting:
            raise SubmitInProgress("A submit for this closing is already in progress")

        record = self.build_record()
        record_id = self._record_id
        self._submitting = True
        self.last_error = None
        try:
            if record_id is None:
                record_id = await asyncio.to_thread(self._repository.create, record)
            else:
                await asyncio.to_thread(self._repository.update, record_id, record)
        except RepositoryError as exc:
            self.last_error = str(exc) or exc.__class__.__name__
            logger.warning("Submitting daily closing for %s failed: %s", record.closing_date, self.last_error)
            raise
        finally:
            self._submitting = False

        self.reset()
        return record_id

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _clear(self) -> None:
        self._sales: dict[str, str] = {key: "" for key in self._channel_ids}
        self._counts: dict[int, str] = {face_value: "" for face_value in DENOMINATIONS}
        self._starting_cash_balance = ""
        self._cash_expenses = ""
        self._closing_date: Optional[date] = None
        self._notes = ""

    def _load(self, record: DailyClosingRecord) -> None:
        sales = record.channel_sales()
        for key in self._channel_ids:
            self._sales[key] = format_grouped_amount(str(sales.amount(key)))
        self._starting_cash_balance = format_grouped_amount(str(record.starting_cash_balance))
        self._cash_expenses = format_grouped_amount(str(record.cash_expenses))
        if record.denomination_counts is not None:
            for face_value in DENOMINATIONS:
                self._counts[face_value] = str(record.denomination_counts.count(face_value))
        self._closing_date = record.closing_date
        self._notes = record.notes or ""


__all__ = ["SessionState", "ClosingSession"]
