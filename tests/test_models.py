from datetime import date

import pytest

from cierre_caja.channels import CashDenominationCount, ChannelSalesInput
from cierre_caja.formatting import MAX_AMOUNT
from cierre_caja.models import DailyClosingRecord, DeliveryChannelSaleEntry, build_record, delivery_entries_from
from cierre_caja.reconciliation import reconcile


def test_build_record_keeps_only_positive_delivery_entries(make_record):
    record = make_record(pedidos_ya_wafix=2500)

    assert record.delivery_entries == (
        DeliveryChannelSaleEntry("pedidos_ya_wafix", "Pedidos Ya Wafix", 2500),
        DeliveryChannelSaleEntry("pedidos_ya_mix", "Pedidos Ya Mix", 5000),
    )
    assert record.total_delivery_sales == 7500
    assert record.total_sales == 97500


def test_build_record_copies_reconciliation(make_record):
    record = make_record()

    assert record.id is None
    assert record.expected_cash_balance == 65000
    assert record.total_cash_in_box == 55000
    assert record.cash_difference == -10000
    assert record.has_cash_count


def test_record_without_count_has_no_counted_figures(make_record):
    record = make_record(counted=False)

    assert record.total_cash_in_box is None
    assert record.cash_difference is None
    assert not record.has_cash_count


def test_delivery_aggregate_is_derived_from_entries():
    record = DailyClosingRecord(
        closing_date=date(2026, 10, 19),
        delivery_entries=(
            DeliveryChannelSaleEntry("uber_eats", "Uber Eats", 4000),
            DeliveryChannelSaleEntry("junaeb", "Junaeb", 0),
            DeliveryChannelSaleEntry("pedidos_ya_mix", "Pedidos Ya Mix", 1000),
        ),
    )

    assert record.total_delivery_sales == 5000
    assert [entry.channel_id for entry in record.delivery_entries] == ["uber_eats", "pedidos_ya_mix"]


def test_delivery_aggregate_cannot_be_supplied():
    with pytest.raises(TypeError):
        DailyClosingRecord(closing_date=date(2026, 10, 19), total_delivery_sales=999)


def test_negative_amounts_are_clamped():
    record = DailyClosingRecord(
        closing_date=date(2026, 10, 19),
        starting_cash_balance=-1,
        total_cash_sales=-2000,
        cash_expenses=-5,
        expected_cash_balance=-3000,
    )

    assert record.starting_cash_balance == 0
    assert record.total_cash_sales == 0
    assert record.cash_expenses == 0
    # A negative expected balance is a legitimate result.
    assert record.expected_cash_balance == -3000


def test_amounts_are_capped_at_the_maximum():
    record = DailyClosingRecord(
        closing_date=date(2026, 10, 19),
        total_card_sales=10**30,
        delivery_entries=(DeliveryChannelSaleEntry("junaeb", "Junaeb", 10**25),),
    )
    sales = ChannelSalesInput.of(cash=2**70)
    counts = CashDenominationCount({20000: 10**20})

    assert record.total_card_sales == MAX_AMOUNT
    assert record.total_delivery_sales == MAX_AMOUNT
    assert sales.cash == MAX_AMOUNT
    assert counts.count(20000) == MAX_AMOUNT
    assert counts.total() < 2**63


def test_blank_notes_become_none():
    assert DailyClosingRecord(closing_date=date(2026, 10, 19), notes="   ").notes is None


def test_unknown_channel_is_rejected():
    with pytest.raises(ValueError):
        build_record(ChannelSalesInput({"rappi": 100}), 0, 0, date(2026, 10, 19))


def test_unknown_denomination_is_rejected():
    with pytest.raises(ValueError):
        CashDenominationCount({3000: 1})


def test_channel_sales_rebuilds_inputs(make_record):
    record = make_record(junaeb=700)
    sales = record.channel_sales()

    assert sales.cash == 50000
    assert sales.amount("pedidos_ya_mix") == 5000
    assert sales.amount("junaeb") == 700
    assert sales.amount("uber_eats") == 0


def test_record_reconciliation_matches_engine(make_record):
    record = make_record()

    assert record.reconciliation() == reconcile(
        record.channel_sales(), 20000, 5000, record.denomination_counts
    )


def test_delivery_entries_from_uses_channel_labels():
    entries = delivery_entries_from(ChannelSalesInput({"uber_eats": 10, "junaeb": 0}))

    assert entries == (DeliveryChannelSaleEntry("uber_eats", "Uber Eats", 10),)
