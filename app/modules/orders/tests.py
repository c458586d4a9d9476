"""
Tests para pedidos de venta

Validan el requisito de caja abierta y el registro del adelanto como
ingreso en el libro de la apertura activa.
"""

import pytest
from decimal import Decimal
from uuid import uuid4


def dec(value) -> Decimal:
    return Decimal(str(value))


@pytest.fixture
def sample_order_data():
    return {
        "order_date": "2024-05-10",
        "delivery_date": "2024-05-15",
        "notes": "  Entregar en local  ",
        "customer_name": " Juan Pérez ",
        "advance": "5000",
        "items": [
            {"description": "Torta de chocolate", "quantity": 1, "price": "45000"},
            {"description": "Velas", "quantity": 2, "price": "2500"},
        ],
    }


@pytest.fixture
def active_session(client, auth_headers, cash_register, currencies):
    response = client.post(
        "/sales/cash-openings",
        json={
            "cash_register_id": str(cash_register.id),
            "state_id": 1,
            "lines": [{"denomination": "PYG", "quantity": 100000}],
        },
        headers=auth_headers,
    )
    assert response.status_code == 201
    return response.json()


class TestSalesOrders:
    """Pedidos de venta integrados con la caja"""

    def test_order_requires_active_session(self, client, auth_headers, sample_order_data):
        response = client.post("/sales/orders", json=sample_order_data, headers=auth_headers)

        assert response.status_code == 409
        assert response.json()["kind"] == "session_required"
        assert client.get("/sales/orders", headers=auth_headers).json()["total"] == 0

    def test_advance_raises_available_balance(self, client, auth_headers, active_session, sample_order_data):
        response = client.post("/sales/orders", json=sample_order_data, headers=auth_headers)

        assert response.status_code == 201
        order = response.json()
        assert order["session_id"] == active_session["session_id"]
        assert order["customer_name"] == "Juan Pérez"
        assert order["notes"] == "Entregar en local"
        assert dec(order["total"]) == Decimal("50000")
        assert len(order["items"]) == 2

        available = client.get("/sales/cash-audits/available", headers=auth_headers).json()
        assert dec(available["available_balance"]) == Decimal("105000")
        assert dec(available["total_credits"]) == Decimal("5000")

        theoretical = client.get("/sales/cash-closings/available", headers=auth_headers).json()
        assert dec(theoretical["theoretical_balance"]) == Decimal("105000")

        entries = client.get("/sales/cash-audits", headers=auth_headers).json()["audits"][0]["entries"]
        assert len(entries) == 1
        assert entries[0]["sign"] == "CREDIT"
        assert entries[0]["reason"] == "Advance from Juan Pérez"
        assert entries[0]["order_id"] == order["id"]
        assert entries[0]["denomination"] is None

    def test_order_without_advance_posts_nothing(self, client, auth_headers, active_session, sample_order_data):
        sample_order_data["advance"] = "0"
        response = client.post("/sales/orders", json=sample_order_data, headers=auth_headers)

        assert response.status_code == 201
        assert client.get("/sales/cash-audits", headers=auth_headers).json()["total"] == 0

    def test_order_without_items_rejected(self, client, auth_headers, active_session, sample_order_data):
        sample_order_data["items"] = []
        response = client.post("/sales/orders", json=sample_order_data, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["kind"] == "validation"

        available = client.get("/sales/cash-audits/available", headers=auth_headers).json()
        assert dec(available["available_balance"]) == Decimal("100000")

    def test_negative_advance_rejected(self, client, auth_headers, active_session, sample_order_data):
        sample_order_data["advance"] = "-1"
        response = client.post("/sales/orders", json=sample_order_data, headers=auth_headers)
        assert response.status_code == 400

    def test_amounts_beyond_column_precision_rejected(self, client, auth_headers, active_session, sample_order_data):
        sample_order_data["advance"] = "10.005"
        assert client.post("/sales/orders", json=sample_order_data, headers=auth_headers).status_code == 400

        sample_order_data["advance"] = "0"
        sample_order_data["items"][0]["quantity"] = "1e25"
        assert client.post("/sales/orders", json=sample_order_data, headers=auth_headers).status_code == 400
        assert client.get("/sales/orders", headers=auth_headers).json()["total"] == 0

    def test_get_order(self, client, auth_headers, active_session, sample_order_data):
        order_id = client.post("/sales/orders", json=sample_order_data, headers=auth_headers).json()["id"]

        response = client.get(f"/sales/orders/{order_id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["id"] == order_id

    def test_get_unknown_order(self, client, auth_headers):
        response = client.get(f"/sales/orders/{uuid4()}", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["kind"] == "order_not_found"

    def test_list_filters(self, client, auth_headers, active_session, sample_order_data):
        client.post("/sales/orders", json=sample_order_data, headers=auth_headers)
        sample_order_data.update({"customer_name": "María Gómez", "order_date": "2024-06-01", "advance": "0"})
        client.post("/sales/orders", json=sample_order_data, headers=auth_headers)

        assert client.get("/sales/orders", headers=auth_headers).json()["total"] == 2

        by_customer = client.get("/sales/orders?q=maría", headers=auth_headers).json()
        assert by_customer["total"] == 1
        assert by_customer["orders"][0]["customer_name"] == "María Gómez"

        by_date = client.get("/sales/orders?date_from=2024-05-01&date_to=2024-05-31", headers=auth_headers).json()
        assert by_date["total"] == 1
        assert by_date["orders"][0]["customer_name"] == "Juan Pérez"
