"""High-level application services orchestrating the cierre_caja backend."""
from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from .channels import DEFAULT_DELIVERY_CHANNELS, DeliveryChannel
from .database import ClosingListing, ClosingRepository
from .export import ClosingExporter, DocumentRenderer, ReportTable
from .models import DailyClosingRecord
from .session import ClosingSession


class ClosingService:
    """Coordinates editing sessions, persistence and export of daily closings."""

    def __init__(
        self,
        repository: ClosingRepository,
        exporter: ClosingExporter,
        delivery_channels: Iterable[DeliveryChannel] = DEFAULT_DELIVERY_CHANNELS,
    ) -> None:
        self._repository = repository
        self._exporter = exporter
        self._delivery_channels = tuple(delivery_channels)

    @property
    def delivery_channels(self) -> tuple[DeliveryChannel, ...]:
        return self._delivery_channels

    # ------------------------------------------------------------------
    # Editing sessions
    # ------------------------------------------------------------------
    def new_session(self, today: Optional[date] = None) -> ClosingSession:
        return ClosingSession(self._repository, self._delivery_channels, today=today)

    def edit_session(self, record_id: str) -> ClosingSession:
        """Open a session pre-filled with the stored values of ``record_id``."""

        record = self._repository.get(record_id)
        return ClosingSession.for_record(self._repository, record, self._delivery_channels)

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------
    def list_closings(self) -> ClosingListing:
        return self._repository.list(descending=True)

    def get_closing(self, record_id: str) -> DailyClosingRecord:
        return self._repository.get(record_id)

    def delete_closing(self, record_id: str) -> None:
        self._repository.delete(record_id)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------
    def export_tables(self, record_id: str) -> tuple[DailyClosingRecord, list[ReportTable]]:
        record = self._repository.get(record_id)
        return record, self._exporter.document_tables(record)

    def render_document(self, record_id: str, renderer: DocumentRenderer) -> bytes:
        record = self._repository.get(record_id)
        return self._exporter.render_document(record, renderer)

    def share(self, record_id: str) -> dict[str, str]:
        record = self._repository.get(record_id)
        result = record.reconciliation()
        return {
            "text": self._exporter.share_text(record, result),
            "link": self._exporter.share_link(record, result),
        }
