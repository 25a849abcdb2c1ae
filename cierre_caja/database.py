"""SQLite persistence layer for the cierre_caja backend.

The repository provides a small, well-typed API that hides SQL details from the
rest of the code.  It relies on the standard library :mod:`sqlite3` module.
Every write runs inside a single transaction, so a closing record and its
delivery entries are always observed together: a failure half-way through an
update rolls back to the previous summary and entries.
"""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Iterator, Optional, Protocol
from uuid import uuid4

from .channels import CashDenominationCount
from .errors import PermissionDenied, RecordNotFound, RecordRejected, StorageUnavailable
from .models import DailyClosingRecord, DeliveryChannelSaleEntry

logger = logging.getLogger(__name__)

_LIST_PAGE_SIZE = 50


class ClosingRepository(Protocol):
    """Operations the application needs from a daily-closing store.

    Implementations must make :meth:`create`, :meth:`update` and
    :meth:`delete` all-or-nothing, and surface :class:`StorageUnavailable` /
    :class:`PermissionDenied` to the caller without retrying.
    """

    def create(self, record: DailyClosingRecord) -> str:
        ...

    def update(self, record_id: str, record: DailyClosingRecord) -> None:
        ...

    def delete(self, record_id: str) -> None:
        ...

    def get(self, record_id: str) -> DailyClosingRecord:
        ...

    def list(self, descending: bool = True) -> "ClosingListing":
        ...

    def entries_for(self, record_id: str) -> list[DeliveryChannelSaleEntry]:
        ...


class ClosingListing:
    """Lazy, restartable view over the stored records ordered by closing date.

    Each iteration runs the query again, so records created or deleted in the
    meantime are reflected.
    """

    def __init__(self, repository: "SQLiteRepository", descending: bool = True) -> None:
        self._repository = repository
        self._descending = descending

    def __iter__(self) -> Iterator[DailyClosingRecord]:
        return self._repository._iter_records(self._descending)


class SQLiteRepository:
    """Encapsulates all SQLite access for the application."""

    def __init__(self, database_path: Path, *, read_only: bool = False) -> None:
        self._database_path = Path(database_path)
        self._lock = threading.RLock()
        mode = "ro" if read_only else "rwc"
        uri = f"{self._database_path.resolve().as_uri()}?mode={mode}"
        try:
            self._connection = sqlite3.connect(uri, uri=True, check_same_thread=False)
            self._connection.execute("PRAGMA foreign_keys = ON;")
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"Cannot open database {self._database_path}: {exc}") from exc
        self._connection.row_factory = sqlite3.Row

    def close(self) -> None:
        """Close the underlying SQLite connection."""

        with self._lock:
            self._connection.close()

    # ------------------------------------------------------------------
    # Schema management
    # ------------------------------------------------------------------
    def initialise_schema(self) -> None:
        """Create all tables required by the application if they do not exist."""

        with self._guard("initialise schema"):
            self._connection.executescript(
                """
                CREATE TABLE IF NOT EXISTS daily_closes (
                    id TEXT PRIMARY KEY,
                    closing_date TEXT NOT NULL,
                    starting_cash_balance INTEGER NOT NULL CHECK (starting_cash_balance >= 0),
                    total_cash_sales INTEGER NOT NULL CHECK (total_cash_sales >= 0),
                    total_card_sales INTEGER NOT NULL CHECK (total_card_sales >= 0),
                    total_transfer_sales INTEGER NOT NULL CHECK (total_transfer_sales >= 0),
                    total_gift_card_sales INTEGER NOT NULL CHECK (total_gift_card_sales >= 0),
                    cash_expenses INTEGER NOT NULL CHECK (cash_expenses >= 0),
                    total_delivery_sales INTEGER NOT NULL CHECK (total_delivery_sales >= 0),
                    expected_cash_balance INTEGER NOT NULL,
                    total_cash_in_box INTEGER,
                    cash_difference INTEGER,
                    denomination_counts TEXT,
                    notes TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS ix_daily_closes_closing_date
                    ON daily_closes (closing_date);

                CREATE TABLE IF NOT EXISTS delivery_service_sales (
                    id TEXT PRIMARY KEY,
                    daily_close_id TEXT NOT NULL
                        REFERENCES daily_closes (id) ON DELETE CASCADE,
                    position INTEGER NOT NULL,
                    channel_id TEXT NOT NULL CHECK (channel_id <> ''),
                    service_name TEXT NOT NULL,
                    sales_amount INTEGER NOT NULL CHECK (sales_amount > 0),
                    UNIQUE (daily_close_id, channel_id)
                );
                """
            )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def create(self, record: DailyClosingRecord) -> str:
        """Persist ``record`` and its delivery entries; return the new identifier."""

        record_id = uuid4().hex
        now = _utc_now()
        with self._guard("create closing"), self._connection:
            cursor = self._connection.cursor()
            cursor.execute(
                """
                INSERT INTO daily_closes (
                    id, closing_date, starting_cash_balance, total_cash_sales,
                    total_card_sales, total_transfer_sales, total_gift_card_sales,
                    cash_expenses, total_delivery_sales, expected_cash_balance,
                    total_cash_in_box, cash_difference, denomination_counts, notes,
                    created_at, updated_at
                ) VALUES (
                    :id, :closing_date, :starting_cash_balance, :total_cash_sales,
                    :total_card_sales, :total_transfer_sales, :total_gift_card_sales,
                    :cash_expenses, :total_delivery_sales, :expected_cash_balance,
                    :total_cash_in_box, :cash_difference, :denomination_counts, :notes,
                    :created_at, :updated_at
                )
                """,
                {**_summary_params(record), "id": record_id, "created_at": now, "updated_at": now},
            )
            _insert_entries(cursor, record_id, record.delivery_entries)
        logger.info(
            "Created daily closing %s for %s with %d delivery entries",
            record_id,
            record.closing_date.isoformat(),
            len(record.delivery_entries),
        )
        return record_id

    def update(self, record_id: str, record: DailyClosingRecord) -> None:
        """Replace the summary of ``record_id`` and its whole entry set at once."""

        with self._guard("update closing"), self._connection:
            cursor = self._connection.cursor()
            cursor.execute(
                """
                UPDATE daily_closes SET
                    closing_date = :closing_date,
                    starting_cash_balance = :starting_cash_balance,
                    total_cash_sales = :total_cash_sales,
                    total_card_sales = :total_card_sales,
                    total_transfer_sales = :total_transfer_sales,
                    total_gift_card_sales = :total_gift_card_sales,
                    cash_expenses = :cash_expenses,
                    total_delivery_sales = :total_delivery_sales,
                    expected_cash_balance = :expected_cash_balance,
                    total_cash_in_box = :total_cash_in_box,
                    cash_difference = :cash_difference,
                    denomination_counts = :denomination_counts,
                    notes = :notes,
                    updated_at = :updated_at
                WHERE id = :id
                """,
                {**_summary_params(record), "id": record_id, "updated_at": _utc_now()},
            )
            if cursor.rowcount == 0:
                raise RecordNotFound(record_id)
            cursor.execute("DELETE FROM delivery_service_sales WHERE daily_close_id = ?", (record_id,))
            _insert_entries(cursor, record_id, record.delivery_entries)
        logger.info(
            "Updated daily closing %s, replaced delivery entries with %d new ones",
            record_id,
            len(record.delivery_entries),
        )

    def delete(self, record_id: str) -> None:
        """Remove ``record_id``; its delivery entries go with it."""

        with self._guard("delete closing"), self._connection:
            cursor = self._connection.execute("DELETE FROM daily_closes WHERE id = ?", (record_id,))
            if cursor.rowcount == 0:
                raise RecordNotFound(record_id)
        logger.info("Deleted daily closing %s", record_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, record_id: str) -> DailyClosingRecord:
        with self._guard("read closing"):
            row = self._connection.execute(
                "SELECT * FROM daily_closes WHERE id = ?",
                (record_id,),
            ).fetchone()
            if row is None:
                raise RecordNotFound(record_id)
            return _row_to_record(row, self._fetch_entries(record_id))

    def list(self, descending: bool = True) -> ClosingListing:
        """Return the stored records, most recent closing date first by default."""

        return ClosingListing(self, descending)

    def entries_for(self, record_id: str) -> list[DeliveryChannelSaleEntry]:
        with self._guard("read delivery entries"):
            return self._fetch_entries(record_id)

    def _iter_records(self, descending: bool) -> Iterator[DailyClosingRecord]:
        direction = "DESC" if descending else "ASC"
        with self._guard("list closings"):
            cursor = self._connection.execute(
                f"""
                SELECT * FROM daily_closes
                ORDER BY closing_date {direction}, created_at {direction}, id {direction}
                """
            )
        try:
            while True:
                with self._guard("list closings"):
                    rows = cursor.fetchmany(_LIST_PAGE_SIZE)
                    page = [_row_to_record(row, self._fetch_entries(row["id"])) for row in rows]
                if not page:
                    return
                yield from page
        finally:
            # Also runs when the caller stops iterating early.
            with self._guard("list closings"):
                cursor.close()

    def _fetch_entries(self, record_id: str) -> list[DeliveryChannelSaleEntry]:
        rows = self._connection.execute(
            """
            SELECT channel_id, service_name, sales_amount
            FROM delivery_service_sales
            WHERE daily_close_id = ?
            ORDER BY position
            """,
            (record_id,),
        ).fetchall()
        return [
            DeliveryChannelSaleEntry(row["channel_id"], row["service_name"], int(row["sales_amount"]))
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Error translation
    # ------------------------------------------------------------------
    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        """Serialise connection use and translate :mod:`sqlite3` errors.

        ``OverflowError`` is raised by :mod:`sqlite3` when an integer does not
        fit a 64-bit column; it is reported as a rejected record.
        """

        try:
            with self._lock:
                yield
        except sqlite3.IntegrityError as exc:
            raise RecordRejected(f"Could not {action}: {exc}") from exc
        except sqlite3.OperationalError as exc:
            if "readonly" in str(exc).lower() or "read-only" in str(exc).lower():
                raise PermissionDenied(f"Could not {action}: the database is read-only") from exc
            raise StorageUnavailable(f"Could not {action}: {exc}") from exc
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"Could not {action}: {exc}") from exc
        except OverflowError as exc:
            raise RecordRejected(f"Could not {action}: an amount is too large to store") from exc


def _insert_entries(
    cursor: sqlite3.Cursor,
    record_id: str,
    entries: tuple[DeliveryChannelSaleEntry, ...],
) -> None:
    for position, entry in enumerate(entries):
        cursor.execute(
            """
            INSERT INTO delivery_service_sales (
                id, daily_close_id, position, channel_id, service_name, sales_amount
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (uuid4().hex, record_id, position, entry.channel_id, entry.service_name, entry.sales_amount),
        )


def _summary_params(record: DailyClosingRecord) -> dict[str, object]:
    counts = record.denomination_counts
    return {
        "closing_date": date_to_timestamp(record.closing_date),
        "starting_cash_balance": record.starting_cash_balance,
        "total_cash_sales": record.total_cash_sales,
        "total_card_sales": record.total_card_sales,
        "total_transfer_sales": record.total_transfer_sales,
        "total_gift_card_sales": record.total_gift_card_sales,
        "cash_expenses": record.cash_expenses,
        "total_delivery_sales": record.total_delivery_sales,
        "expected_cash_balance": record.expected_cash_balance,
        "total_cash_in_box": record.total_cash_in_box,
        "cash_difference": record.cash_difference,
        "denomination_counts": json.dumps(counts.as_dict()) if counts is not None else None,
        "notes": record.notes,
    }


def _row_to_record(row: sqlite3.Row, entries: list[DeliveryChannelSaleEntry]) -> DailyClosingRecord:
    counts: Optional[CashDenominationCount] = None
    if row["denomination_counts"] is not None:
        payload = json.loads(row["denomination_counts"])
        counts = CashDenominationCount({int(face): int(count) for face, count in payload.items()})

    return DailyClosingRecord(
        id=row["id"],
        closing_date=timestamp_to_date(row["closing_date"]),
        starting_cash_balance=row["starting_cash_balance"],
        total_cash_sales=row["total_cash_sales"],
        total_card_sales=row["total_card_sales"],
        total_transfer_sales=row["total_transfer_sales"],
        total_gift_card_sales=row["total_gift_card_sales"],
        cash_expenses=row["cash_expenses"],
        expected_cash_balance=row["expected_cash_balance"],
        total_cash_in_box=row["total_cash_in_box"],
        cash_difference=row["cash_difference"],
        notes=row["notes"],
        delivery_entries=tuple(entries),
        denomination_counts=counts,
    )


def date_to_timestamp(value: date) -> str:
    """Store a closing date as a UTC timestamp at midnight."""

    return datetime.combine(value, time.min, tzinfo=timezone.utc).isoformat()


def timestamp_to_date(value: str) -> date:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date()


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


__all__ = [
    "ClosingRepository",
    "ClosingListing",
    "SQLiteRepository",
    "date_to_timestamp",
    "timestamp_to_date",
]
