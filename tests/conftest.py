"""Shared fixtures for the cierre_caja test suite."""
from __future__ import annotations

from datetime import date

import pytest
from fastapi.testclient import TestClient

from cierre_caja.channels import CashDenominationCount, ChannelSalesInput
from cierre_caja.database import SQLiteRepository
from cierre_caja.models import build_record

# Figures of the reference closing used across the suite.
SCENARIO_SALES = {
    "cash": 50000,
    "card": 30000,
    "transfer": 10000,
    "gift_card": 0,
    "pedidos_ya_mix": 5000,
    "uber_eats": 0,
}
SCENARIO_COUNTS = {20000: 2, 10000: 1, 1000: 5}


@pytest.fixture
def repository(tmp_path):
    repo = SQLiteRepository(tmp_path / "closings.db")
    repo.initialise_schema()
    yield repo
    repo.close()


@pytest.fixture
def make_record():
    """Build a record from the reference scenario, with optional overrides."""

    def factory(closing_date=date(2026, 10, 19), counted=True, notes=None, **sales):
        amounts = {**SCENARIO_SALES, **sales}
        return build_record(
            ChannelSalesInput(amounts),
            starting_cash_balance=20000,
            cash_expenses=5000,
            closing_date=closing_date,
            denominations=CashDenominationCount(SCENARIO_COUNTS) if counted else None,
            notes=notes,
        )

    return factory


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("CIERRE_CAJA_DB_FILE", str(tmp_path / "api.db"))
    monkeypatch.delenv("CIERRE_CAJA_DELIVERY_CHANNELS", raising=False)
    from cierre_caja.api import app

    with TestClient(app) as test_client:
        yield test_client
