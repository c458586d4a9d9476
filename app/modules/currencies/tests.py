"""Tests para el catálogo de tipos de moneda"""

import pytest
from decimal import Decimal

from app.common.errors import CashDeskError, ErrorKind
from app.modules.currencies.service import CurrencyRateResolver


class TestCurrencyRateResolver:

    def test_get_rate(self, db_session, currencies):
        rate = CurrencyRateResolver(db_session).get_rate("USD")
        assert rate.rate == Decimal("7300")
        assert rate.symbol == "US$"

    def test_unknown_code(self, db_session, currencies):
        with pytest.raises(CashDeskError) as exc:
            CurrencyRateResolver(db_session).get_rate("EUR")
        assert exc.value.kind == ErrorKind.VALIDATION

    def test_inactive_code(self, db_session, currencies):
        currencies["USD"].is_active = False
        db_session.commit()

        with pytest.raises(CashDeskError):
            CurrencyRateResolver(db_session).get_rate("USD")

    def test_list_endpoint(self, client, auth_headers, currencies):
        response = client.get("/catalog/currency-types", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [currency["code"] for currency in data["currency_types"]] == ["PYG", "USD"]
