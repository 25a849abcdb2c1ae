"""FastAPI application exposing the cierre_caja backend."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Annotated, Optional, Union

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, Field

from .channels import DENOMINATIONS, Channel
from .config import configure_logging, load_config
from .database import SQLiteRepository
from .errors import (
    PermissionDenied,
    RecordNotFound,
    RecordRejected,
    RepositoryError,
    StorageUnavailable,
    SubmitInProgress,
)
from .export import ClosingExporter, HtmlDocumentRenderer
from .formatting import format_currency_display, format_signed_difference, parse_closing_date
from .models import DailyClosingRecord
from .reconciliation import ReconciliationResult
from .services import ClosingService
from .session import ClosingSession

logger = logging.getLogger(__name__)

Amount = Union[int, str]


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Initialise shared services once and reuse them across requests."""

    config = load_config()
    configure_logging(config.log_level)
    repository = SQLiteRepository(config.database_file)
    repository.initialise_schema()
    exporter = ClosingExporter(config.share_url)
    closing_service = ClosingService(repository, exporter, config.delivery_channels)

    app.state.config = config
    app.state.repository = repository
    app.state.closings = closing_service
    logger.info("Using database %s", config.database_file)

    yield

    repository.close()


app = FastAPI(lifespan=lifespan, title="cierre_caja backend", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Dependency injection ------------------------------------------------------

def get_closing_service() -> ClosingService:
    service: ClosingService = app.state.closings
    return service


# Error handling ------------------------------------------------------------

_STATUS_BY_ERROR: dict[type[Exception], int] = {
    RecordNotFound: 404,
    PermissionDenied: 403,
    RecordRejected: 422,
    StorageUnavailable: 503,
    SubmitInProgress: 409,
}


@app.exception_handler(RepositoryError)
@app.exception_handler(SubmitInProgress)
async def handle_domain_error(_: Request, exc: Exception) -> JSONResponse:
    status_code = next(
        (status for error_type, status in _STATUS_BY_ERROR.items() if isinstance(exc, error_type)),
        503,
    )
    if status_code >= 500:
        logger.error("Storage failure: %s", exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# Schemas -------------------------------------------------------------------

class ClosingForm(BaseModel):
    """Raw form values; amounts may be typed with separators (``"50.000"``)."""

    closing_date: Optional[str] = Field(default=None, description="ISO or day-first date")
    starting_cash_balance: Amount = ""
    cash_expenses: Amount = ""
    sales: dict[str, Amount] = Field(default_factory=dict, description="Amount per channel id")
    denominations: Optional[dict[int, Amount]] = Field(
        default=None,
        description="Notes/coins counted per face value; omit when cash was not counted",
    )
    notes: Optional[str] = None


def _fill_session(session: ClosingSession, form: ClosingForm) -> None:
    """Overwrite every field of ``session`` with ``form``; missing amounts become zero."""

    try:
        session.set_closing_date(parse_closing_date(form.closing_date, default=session.closing_date))
        session.set_starting_cash_balance(str(form.starting_cash_balance))
        session.set_cash_expenses(str(form.cash_expenses))

        unknown = set(form.sales) - set(session.channel_ids)
        if unknown:
            raise KeyError(f"Unknown sales channel(s): {', '.join(sorted(unknown))}")
        for channel_id in session.channel_ids:
            session.set_sales(channel_id, str(form.sales.get(channel_id, "")))

        counts = form.denominations or {}
        unknown_faces = set(counts) - set(DENOMINATIONS)
        if unknown_faces:
            raise KeyError(f"Unknown denomination(s): {', '.join(str(face) for face in sorted(unknown_faces))}")
        for face_value in DENOMINATIONS:
            raw = counts.get(face_value, "0" if form.denominations is not None else "")
            session.set_denomination_count(face_value, str(raw))
        session.set_notes(form.notes)
    except (KeyError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=str(exc).strip("'\"")) from exc


def _result_payload(result: ReconciliationResult) -> dict[str, object]:
    return {
        "total_sales": result.total_sales,
        "expected_cash_balance": result.expected_cash_balance,
        "total_cash_in_box": result.total_cash_in_box,
        "cash_difference": result.cash_difference,
        "display": {
            "total_sales": format_currency_display(result.total_sales),
            "expected_cash_balance": format_currency_display(result.expected_cash_balance),
            "total_cash_in_box": format_currency_display(result.total_cash_in_box),
            "cash_difference": format_signed_difference(result.cash_difference),
        },
    }


def _record_payload(record: DailyClosingRecord) -> dict[str, object]:
    counts = record.denomination_counts
    return {
        "id": record.id,
        "closing_date": record.closing_date.isoformat(),
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
        "total_sales": record.total_sales,
        "notes": record.notes,
        "delivery_entries": [
            {
                "channel_id": entry.channel_id,
                "service_name": entry.service_name,
                "sales_amount": entry.sales_amount,
            }
            for entry in record.delivery_entries
        ],
        "denominations": counts.as_dict() if counts is not None else None,
    }


# Routes --------------------------------------------------------------------


@app.get("/health")
def health_check() -> dict[str, str]:
    """Return a basic heartbeat payload for monitoring purposes."""

    return {"status": "ok"}


@app.get("/channels")
def list_channels(
    closing_service: Annotated[ClosingService, Depends(get_closing_service)],
) -> dict[str, object]:
    return {
        "primary": [{"id": channel.value, "label": channel.label} for channel in Channel],
        "delivery": [{"id": channel.id, "label": channel.label} for channel in closing_service.delivery_channels],
        "denominations": list(DENOMINATIONS),
    }


@app.post("/reconcile")
def preview_reconciliation(
    form: ClosingForm,
    closing_service: Annotated[ClosingService, Depends(get_closing_service)],
) -> dict[str, object]:
    """Compute the closing figures for raw form values without saving anything."""

    session = closing_service.new_session()
    _fill_session(session, form)
    payload = _result_payload(session.result)
    payload["has_cash_count"] = session.has_cash_count
    payload["values"] = session.raw_values()
    return payload


@app.post("/closings", status_code=201)
async def create_closing(
    form: ClosingForm,
    closing_service: Annotated[ClosingService, Depends(get_closing_service)],
) -> dict[str, object]:
    session = closing_service.new_session()
    _fill_session(session, form)
    record_id = await session.submit()
    record = closing_service.get_closing(record_id)
    return {"closing": _record_payload(record), "result": _result_payload(record.reconciliation())}


@app.get("/closings")
def list_closings(
    closing_service: Annotated[ClosingService, Depends(get_closing_service)],
) -> dict[str, object]:
    closings = [_record_payload(record) for record in closing_service.list_closings()]
    return {"closings": closings, "count": len(closings)}


@app.get("/closings/{record_id}")
def get_closing(
    record_id: str,
    closing_service: Annotated[ClosingService, Depends(get_closing_service)],
) -> dict[str, object]:
    record = closing_service.get_closing(record_id)
    return {"closing": _record_payload(record), "result": _result_payload(record.reconciliation())}


@app.put("/closings/{record_id}")
async def update_closing(
    record_id: str,
    form: ClosingForm,
    closing_service: Annotated[ClosingService, Depends(get_closing_service)],
) -> dict[str, object]:
    """Replace a closing with the submitted form values."""

    session = closing_service.edit_session(record_id)
    _fill_session(session, form)
    await session.submit()
    record = closing_service.get_closing(record_id)
    return {"closing": _record_payload(record), "result": _result_payload(record.reconciliation())}


@app.delete("/closings/{record_id}", status_code=204)
def delete_closing(
    record_id: str,
    closing_service: Annotated[ClosingService, Depends(get_closing_service)],
) -> Response:
    closing_service.delete_closing(record_id)
    return Response(status_code=204)


@app.get("/closings/{record_id}/export")
def export_closing(
    record_id: str,
    closing_service: Annotated[ClosingService, Depends(get_closing_service)],
) -> dict[str, object]:
    record, tables = closing_service.export_tables(record_id)
    return {"id": record.id, "tables": [table.to_dict() for table in tables]}


@app.get("/closings/{record_id}/document", response_class=HTMLResponse)
def closing_document(
    record_id: str,
    closing_service: Annotated[ClosingService, Depends(get_closing_service)],
) -> HTMLResponse:
    document = closing_service.render_document(record_id, HtmlDocumentRenderer())
    return HTMLResponse(content=document.decode("utf-8"))


@app.get("/closings/{record_id}/share")
def share_closing(
    record_id: str,
    closing_service: Annotated[ClosingService, Depends(get_closing_service)],
) -> dict[str, str]:
    return closing_service.share(record_id)
