from urllib.parse import unquote

REFERENCE_FORM = {
    "closing_date": "19/10/2026",
    "starting_cash_balance": "20.000",
    "cash_expenses": 5000,
    "sales": {
        "cash": "50.000",
        "card": "30000",
        "transfer": "10.000",
        "pedidos_ya_mix": "5.000",
    },
    "denominations": {"20000": 2, "10000": "1", "1000": 5},
}


def _create(client, form=REFERENCE_FORM):
    response = client.post("/closings", json=form)
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_channels(client):
    payload = client.get("/channels").json()

    assert [channel["id"] for channel in payload["primary"]] == ["cash", "card", "transfer", "gift_card"]
    assert payload["delivery"][0] == {"id": "pedidos_ya_ice_scroll", "label": "Pedidos Ya Ice Scroll"}
    assert payload["denominations"][0] == 20000


def test_reconcile_preview_saves_nothing(client):
    response = client.post("/reconcile", json=REFERENCE_FORM)

    assert response.status_code == 200
    payload = response.json()
    assert payload["total_sales"] == 95000
    assert payload["expected_cash_balance"] == 65000
    assert payload["total_cash_in_box"] == 55000
    assert payload["cash_difference"] == -10000
    assert payload["display"]["cash_difference"] == "-$10.000"
    assert payload["has_cash_count"] is True
    assert payload["values"]["cash"] == "50.000"
    assert client.get("/closings").json()["count"] == 0


def test_create_and_read_closing(client):
    created = _create(client)
    closing = created["closing"]

    assert closing["closing_date"] == "2026-10-19"
    assert closing["total_delivery_sales"] == 5000
    assert closing["total_sales"] == 95000
    assert closing["cash_difference"] == -10000
    assert closing["delivery_entries"] == [
        {"channel_id": "pedidos_ya_mix", "service_name": "Pedidos Ya Mix", "sales_amount": 5000}
    ]
    assert closing["denominations"] == {"20000": 2, "10000": 1, "1000": 5}

    fetched = client.get(f"/closings/{closing['id']}").json()
    assert fetched["closing"] == closing
    assert fetched["result"]["total_cash_in_box"] == 55000


def test_closing_without_count(client):
    form = {key: value for key, value in REFERENCE_FORM.items() if key != "denominations"}

    closing = _create(client, form)["closing"]

    assert closing["total_cash_in_box"] is None
    assert closing["cash_difference"] is None
    assert closing["denominations"] is None


def test_list_is_newest_first(client):
    older = _create(client, {**REFERENCE_FORM, "closing_date": "2026-10-01"})["closing"]
    newer = _create(client)["closing"]

    payload = client.get("/closings").json()

    assert payload["count"] == 2
    assert [closing["id"] for closing in payload["closings"]] == [newer["id"], older["id"]]


def test_update_replaces_closing(client):
    closing = _create(client)["closing"]
    form = {
        **REFERENCE_FORM,
        "sales": {"cash": "60.000", "junaeb": "2.000"},
        "denominations": {"20000": 3, "10000": 1, "5000": 1},
    }

    response = client.put(f"/closings/{closing['id']}", json=form)

    assert response.status_code == 200, response.text
    updated = response.json()["closing"]
    assert updated["id"] == closing["id"]
    assert updated["total_card_sales"] == 0
    assert updated["delivery_entries"] == [{"channel_id": "junaeb", "service_name": "Junaeb", "sales_amount": 2000}]
    assert updated["expected_cash_balance"] == 75000
    assert updated["cash_difference"] == 0
    assert client.get("/closings").json()["count"] == 1


def test_update_keeps_date_when_omitted(client):
    closing = _create(client)["closing"]
    form = {key: value for key, value in REFERENCE_FORM.items() if key != "closing_date"}

    updated = client.put(f"/closings/{closing['id']}", json=form).json()["closing"]

    assert updated["closing_date"] == "2026-10-19"


def test_delete_closing(client):
    closing = _create(client)["closing"]

    assert client.delete(f"/closings/{closing['id']}").status_code == 204
    assert client.get(f"/closings/{closing['id']}").status_code == 404
    assert client.delete(f"/closings/{closing['id']}").status_code == 404
    assert client.get("/closings").json()["count"] == 0


def test_unknown_closing(client):
    assert client.get("/closings/missing").status_code == 404
    assert client.put("/closings/missing", json=REFERENCE_FORM).status_code == 404
    assert client.get("/closings/missing/share").status_code == 404


def test_invalid_form_values(client):
    assert client.post("/closings", json={**REFERENCE_FORM, "sales": {"rappi": 100}}).status_code == 422
    assert client.post("/closings", json={**REFERENCE_FORM, "denominations": {"3000": 1}}).status_code == 422
    assert client.post("/closings", json={**REFERENCE_FORM, "closing_date": "yesterday-ish"}).status_code == 422
    assert client.get("/closings").json()["count"] == 0


def test_oversized_amounts_are_capped(client):
    form = {**REFERENCE_FORM, "sales": {"cash": "9" * 25}, "denominations": {"20000": "9" * 5000}}

    response = client.post("/closings", json=form)

    assert response.status_code == 201, response.text
    closing = response.json()["closing"]
    assert closing["total_cash_sales"] == 999_999_999_999
    assert closing["denominations"] == {"20000": 999_999_999_999}


def test_surplus_display_is_signed(client):
    form = {**REFERENCE_FORM, "denominations": {"20000": 3, "10000": 1}}

    payload = client.post("/reconcile", json=form).json()

    assert payload["cash_difference"] == 5000
    assert payload["display"]["cash_difference"] == "+$5.000"


def test_export_tables(client):
    closing = _create(client)["closing"]

    payload = client.get(f"/closings/{closing['id']}/export").json()

    assert [table["title"] for table in payload["tables"]] == ["Resumen", "Ventas por Canal", "Conteo de Efectivo"]
    assert payload["tables"][2]["columns"] == ["Denominación", "Cantidad", "Subtotal"]
    assert payload["tables"][1]["rows"][-1] == {"Canal": "Total", "Monto": "$95.000"}


def test_document_and_share(client):
    closing = _create(client)["closing"]

    document = client.get(f"/closings/{closing['id']}/document")
    assert document.status_code == 200
    assert document.headers["content-type"].startswith("text/html")
    assert "Conteo de Efectivo" in document.text

    share = client.get(f"/closings/{closing['id']}/share").json()
    assert "Diferencia: -$10.000 (faltante)" in share["text"]
    assert unquote(share["link"].split("text=", 1)[1]) == share["text"]
