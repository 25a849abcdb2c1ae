"""Export helpers turning a closing into document tables and share messages."""
from __future__ import annotations

import html
from dataclasses import dataclass
from datetime import date
from typing import Optional, Protocol, Sequence
from urllib.parse import quote

import pandas as pd

from .channels import DENOMINATIONS, Channel
from .formatting import format_currency_display, format_signed_difference, group_thousands
from .models import DailyClosingRecord
from .reconciliation import ReconciliationResult

MONTHS_ES = (
    "enero",
    "febrero",
    "marzo",
    "abril",
    "mayo",
    "junio",
    "julio",
    "agosto",
    "septiembre",
    "octubre",
    "noviembre",
    "diciembre",
)


def format_closing_date(value: date) -> str:
    """Return ``value`` in long Spanish form, e.g. ``19 de octubre de 2026``."""

    return f"{value.day} de {MONTHS_ES[value.month - 1]} de {value.year}"


def describe_difference(amount: int) -> str:
    """Sign-aware wording for a cash difference."""

    if amount < 0:
        return f"{format_signed_difference(amount)} (faltante)"
    if amount > 0:
        return f"{format_signed_difference(amount)} (sobrante)"
    return f"{format_signed_difference(amount)} (cuadrada)"


@dataclass(frozen=True)
class ReportTable:
    """A titled table of the exported document."""

    title: str
    frame: pd.DataFrame

    def to_dict(self) -> dict[str, object]:
        return {
            "title": self.title,
            "columns": list(self.frame.columns),
            "rows": self.frame.to_dict(orient="records"),
        }


class DocumentRenderer(Protocol):
    """Paginated document engine consuming the exported tables."""

    def render(self, title: str, tables: Sequence[ReportTable]) -> bytes:
        ...


class HtmlDocumentRenderer:
    """Render the tables as a printable HTML page, one table per page."""

    def render(self, title: str, tables: Sequence[ReportTable]) -> bytes:
        sections = [
            '<section style="page-break-after: always">'
            f"<h2>{html.escape(table.title)}</h2>"
            f"{table.frame.to_html(index=False, border=0, escape=True)}"
            "</section>"
            for table in tables
        ]
        document = (
            "<!DOCTYPE html><html lang=\"es\"><head><meta charset=\"utf-8\">"
            f"<title>{html.escape(title)}</title></head><body>"
            f"<h1>{html.escape(title)}</h1>{''.join(sections)}</body></html>"
        )
        return document.encode("utf-8")


class ClosingExporter:
    """Build the document tables and share message of a daily closing."""

    def __init__(self, share_url: str = "https://wa.me/") -> None:
        self._share_url = share_url

    def title(self, record: DailyClosingRecord) -> str:
        return f"Cierre de Caja - {format_closing_date(record.closing_date)}"

    # ------------------------------------------------------------------
    # Document
    # ------------------------------------------------------------------
    def document_tables(
        self,
        record: DailyClosingRecord,
        result: Optional[ReconciliationResult] = None,
    ) -> list[ReportTable]:
        """Return the summary, channel and denomination tables, in that order."""

        result = result or record.reconciliation()
        return [
            ReportTable("Resumen", self._summary_frame(record, result)),
            ReportTable("Ventas por Canal", self._channel_frame(record, result)),
            ReportTable("Conteo de Efectivo", self._denomination_frame(record)),
        ]

    def render_document(
        self,
        record: DailyClosingRecord,
        renderer: DocumentRenderer,
        result: Optional[ReconciliationResult] = None,
    ) -> bytes:
        return renderer.render(self.title(record), self.document_tables(record, result))

    def _summary_frame(self, record: DailyClosingRecord, result: ReconciliationResult) -> pd.DataFrame:
        rows = [
            ("Fecha", format_closing_date(record.closing_date)),
            ("Venta Total del Día", format_currency_display(result.total_sales)),
            ("Saldo Anterior en Caja", format_currency_display(record.starting_cash_balance)),
            ("Efectivo del Día", format_currency_display(record.total_cash_sales)),
            ("Gastos en Efectivo", format_currency_display(record.cash_expenses)),
            ("Saldo Esperado en Caja", format_currency_display(result.expected_cash_balance)),
        ]
        if record.has_cash_count:
            rows.append(("Efectivo Contado", format_currency_display(result.total_cash_in_box)))
            rows.append(("Diferencia", describe_difference(result.cash_difference)))
        if record.notes:
            rows.append(("Notas", record.notes))
        return pd.DataFrame(rows, columns=["Concepto", "Monto"])

    def _channel_frame(self, record: DailyClosingRecord, result: ReconciliationResult) -> pd.DataFrame:
        sales = record.channel_sales()
        rows = [(channel.label, format_currency_display(sales.amount(channel))) for channel in Channel]
        rows.extend(
            (entry.service_name, format_currency_display(entry.sales_amount)) for entry in record.delivery_entries
        )
        rows.append(("Total", format_currency_display(result.total_sales)))
        return pd.DataFrame(rows, columns=["Canal", "Monto"])

    def _denomination_frame(self, record: DailyClosingRecord) -> pd.DataFrame:
        columns = ["Denominación", "Cantidad", "Subtotal"]
        counts = record.denomination_counts
        if counts is None:
            return pd.DataFrame([("Sin conteo de efectivo", "", "")], columns=columns)

        rows = [
            (format_currency_display(face_value), group_thousands(counts.count(face_value)),
             format_currency_display(counts.subtotal(face_value)))
            for face_value in DENOMINATIONS
            if counts.count(face_value)
        ]
        rows.append(("Total", "", format_currency_display(counts.total())))
        return pd.DataFrame(rows, columns=columns)

    # ------------------------------------------------------------------
    # Share
    # ------------------------------------------------------------------
    def share_text(
        self,
        record: DailyClosingRecord,
        result: Optional[ReconciliationResult] = None,
    ) -> str:
        result = result or record.reconciliation()
        lines = [
            f"*{self.title(record)}*",
            f"Venta Total: {format_currency_display(result.total_sales)}",
            f"Saldo Esperado: {format_currency_display(result.expected_cash_balance)}",
        ]
        if record.has_cash_count:
            lines.append(f"Efectivo Contado: {format_currency_display(result.total_cash_in_box)}")
            lines.append(f"Diferencia: {describe_difference(result.cash_difference)}")
        lines.extend(
            [
                f"{Channel.CASH.label}: {format_currency_display(record.total_cash_sales)}",
                f"{Channel.CARD.label}: {format_currency_display(record.total_card_sales)}",
                f"{Channel.TRANSFER.label}: {format_currency_display(record.total_transfer_sales)}",
            ]
        )
        return "\n".join(lines)

    def share_link(
        self,
        record: DailyClosingRecord,
        result: Optional[ReconciliationResult] = None,
    ) -> str:
        separator = "&" if "?" in self._share_url else "?"
        return f"{self._share_url}{separator}text={quote(self.share_text(record, result), safe='')}"


__all__ = [
    "MONTHS_ES",
    "format_closing_date",
    "describe_difference",
    "ReportTable",
    "DocumentRenderer",
    "HtmlDocumentRenderer",
    "ClosingExporter",
]
