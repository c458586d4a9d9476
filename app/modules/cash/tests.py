"""
Tests para el módulo de caja

Cubren:
- Apertura con fondo en varias monedas y sus validaciones
- Arqueos con control de saldo disponible y tolerancia
- Cierre con saldo teórico, diferencia y cambio de estado
- Propiedad de la apertura y estados inválidos
- Ausencia de residuos después de operaciones rechazadas
"""

import logging
import pytest
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError

from app.common.errors import CashDeskError, ErrorKind
from app.database.database import get_db
from app.modules.cash.models import CashSession, CashClosing, SessionState
from app.modules.cash.services import BalanceSummary, SessionResolver, money
from app.modules.cash.store import SessionStore


def dec(value) -> Decimal:
    return Decimal(str(value))


def open_session(client, headers, register, lines):
    return client.post(
        "/sales/cash-openings",
        json={"cash_register_id": str(register.id), "state_id": 1, "lines": lines},
        headers=headers,
    )


def create_audit(client, headers, lines, reason="Retiro para depósito", session_id=None):
    payload = {"reason": reason, "lines": lines}
    if session_id:
        payload["session_id"] = session_id
    return client.post("/sales/cash-audits", json=payload, headers=headers)


def close_session(client, headers, lines, session_id=None):
    payload = {"lines": lines}
    if session_id:
        payload["session_id"] = session_id
    return client.post("/sales/cash-closings", json=payload, headers=headers)


@pytest.fixture
def opened_session(client, auth_headers, cash_register, currencies):
    """Apertura de 100.000 en moneda base"""
    response = open_session(client, auth_headers, cash_register, [{"denomination": "PYG", "quantity": 100000}])
    assert response.status_code == 201
    return response.json()


# ===== TESTS DE SALDOS =====

class TestBalanceSummary:
    """Fórmulas de saldo disponible y teórico"""

    def test_available_includes_prior_balance(self):
        summary = BalanceSummary(
            total_credits=Decimal("5000"), total_debits=Decimal("30000"),
            opening_amount=Decimal("100000"), prior_balance=Decimal("2000"),
        )
        assert summary.available_balance == Decimal("77000")

    def test_theoretical_excludes_prior_balance(self):
        summary = BalanceSummary(
            total_credits=Decimal("5000"), total_debits=Decimal("30000"),
            opening_amount=Decimal("100000"), prior_balance=Decimal("2000"),
        )
        assert summary.theoretical_balance == Decimal("75000")

    def test_money_rounds_half_up(self):
        assert money(Decimal("10.005")) == Decimal("10.01")
        assert money(Decimal("10.004")) == Decimal("10.00")


# ===== TESTS DEL RESOLVEDOR =====

class FakeStore:
    """Store en memoria para probar la resolución sin base de datos"""

    def __init__(self, sessions):
        self.sessions = {session.id: session for session in sessions}
        self.locked = []

    def find_active_session_id(self, user_id):
        for session in self.sessions.values():
            if session.user_id == user_id and session.is_active:
                return session.id
        return None

    def get_session(self, session_id, lock=False):
        if lock:
            self.locked.append(session_id)
        return self.sessions.get(session_id)


def fake_session(user_id, is_active=True):
    return SimpleNamespace(id=uuid4(), user_id=user_id, is_active=is_active)


class TestSessionResolver:
    """Resolución de la apertura objetivo"""

    def test_defaults_to_active_session(self):
        user_id = uuid4()
        active = fake_session(user_id)
        resolver = SessionResolver(FakeStore([fake_session(user_id, is_active=False), active]))
        assert resolver.resolve(user_id) is active

    def test_without_active_session_requires_session(self):
        resolver = SessionResolver(FakeStore([]))
        with pytest.raises(CashDeskError) as exc:
            resolver.resolve(uuid4())
        assert exc.value.kind == ErrorKind.SESSION_REQUIRED

    def test_unknown_session_not_found(self):
        resolver = SessionResolver(FakeStore([]))
        with pytest.raises(CashDeskError) as exc:
            resolver.resolve(uuid4(), uuid4())
        assert exc.value.kind == ErrorKind.SESSION_NOT_FOUND

    def test_ownership_checked_before_state(self):
        inactive = fake_session(uuid4(), is_active=False)
        resolver = SessionResolver(FakeStore([inactive]))
        with pytest.raises(CashDeskError) as exc:
            resolver.resolve(uuid4(), inactive.id)
        assert exc.value.kind == ErrorKind.OWNERSHIP_MISMATCH

    def test_inactive_session_rejected(self):
        user_id = uuid4()
        inactive = fake_session(user_id, is_active=False)
        resolver = SessionResolver(FakeStore([inactive]))
        with pytest.raises(CashDeskError) as exc:
            resolver.resolve(user_id, inactive.id)
        assert exc.value.kind == ErrorKind.SESSION_INACTIVE

    def test_inactive_allowed_when_not_required(self):
        user_id = uuid4()
        inactive = fake_session(user_id, is_active=False)
        resolver = SessionResolver(FakeStore([inactive]))
        assert resolver.resolve(user_id, inactive.id, require_active=False) is inactive

    def test_mutation_takes_lock(self):
        user_id = uuid4()
        active = fake_session(user_id)
        store = FakeStore([active])
        SessionResolver(store).resolve(user_id, for_mutation=True)
        assert store.locked == [active.id]


# ===== TESTS DE APERTURA =====

class TestCashOpening:
    """Apertura de caja"""

    def test_open_multi_currency(self, client, auth_headers, cash_register, currencies):
        """El monto de apertura es la suma de tasa x cantidad"""
        response = open_session(client, auth_headers, cash_register, [
            {"denomination": "USD", "quantity": 10},
            {"denomination": "PYG", "quantity": 50000},
        ])

        assert response.status_code == 201
        data = response.json()
        assert dec(data["opening_amount"]) == Decimal("123000")
        assert dec(data["subtotal"]) == Decimal("123000")
        assert dec(data["available_balance"]) == Decimal("123000")
        assert data["is_active"] is True
        assert data["state"] == 1
        assert data["username"] == "cajero1"
        assert data["cash_register_description"] == "Caja 1"
        assert [line["denomination"] for line in data["float_lines"]] == ["USD", "PYG"]
        assert dec(data["float_lines"][0]["amount"]) == Decimal("73000")

    def test_lowercase_denomination_accepted(self, client, auth_headers, cash_register, currencies):
        response = open_session(client, auth_headers, cash_register, [{"denomination": " usd ", "quantity": 1}])
        assert response.status_code == 201
        assert dec(response.json()["opening_amount"]) == Decimal("7300")

    def test_zero_quantity_lines_dropped(self, client, auth_headers, cash_register, currencies):
        response = open_session(client, auth_headers, cash_register, [
            {"denomination": "USD", "quantity": 0},
            {"denomination": "PYG", "quantity": 1000},
        ])

        assert response.status_code == 201
        data = response.json()
        assert len(data["float_lines"]) == 1
        assert dec(data["opening_amount"]) == Decimal("1000")

    def test_negative_quantity_aborts_opening(self, client, auth_headers, cash_register, currencies):
        response = open_session(client, auth_headers, cash_register, [
            {"denomination": "PYG", "quantity": 1000},
            {"denomination": "USD", "quantity": -1},
        ])

        assert response.status_code == 400
        assert response.json()["kind"] == "validation"
        assert client.get("/sales/cash-openings", headers=auth_headers).json()["total"] == 0

    def test_unknown_denomination(self, client, auth_headers, cash_register, currencies):
        response = open_session(client, auth_headers, cash_register, [{"denomination": "EUR", "quantity": 5}])

        assert response.status_code == 400
        assert "EUR" in response.json()["detail"]
        assert client.get("/sales/cash-openings", headers=auth_headers).json()["total"] == 0

    def test_quantity_beyond_column_precision(self, client, auth_headers, cash_register, currencies):
        """Cantidades fuera de Numeric(15, 2) se rechazan antes de calcular montos"""
        response = open_session(client, auth_headers, cash_register, [{"denomination": "USD", "quantity": "1e25"}])
        assert response.status_code == 400
        assert response.json()["kind"] == "validation"

        response = open_session(client, auth_headers, cash_register, [{"denomination": "PYG", "quantity": "10.125"}])
        assert response.status_code == 400
        assert client.get("/sales/cash-openings", headers=auth_headers).json()["total"] == 0

    def test_unknown_cash_register(self, client, auth_headers, currencies):
        response = open_session(
            client, auth_headers, SimpleNamespace(id=uuid4()), [{"denomination": "PYG", "quantity": 5}]
        )
        assert response.status_code == 400
        assert response.json()["kind"] == "validation"

    def test_inactive_cash_register(self, client, auth_headers, cash_register, currencies, db_session):
        cash_register.is_active = False
        db_session.commit()

        response = open_session(client, auth_headers, cash_register, [{"denomination": "PYG", "quantity": 5}])
        assert response.status_code == 400

    def test_state_id_must_be_positive(self, client, auth_headers, cash_register, currencies):
        response = client.post(
            "/sales/cash-openings",
            json={"cash_register_id": str(cash_register.id), "state_id": 0, "lines": []},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["kind"] == "validation"

    def test_second_opening_rejected(self, client, auth_headers, cash_register, opened_session):
        response = open_session(client, auth_headers, cash_register, [{"denomination": "PYG", "quantity": 10}])

        assert response.status_code == 409
        assert response.json()["kind"] == "session_already_open"
        assert client.get("/sales/cash-openings", headers=auth_headers).json()["total"] == 1

    def test_users_open_independently(self, client, auth_headers, other_auth_headers, cash_register, opened_session):
        response = open_session(client, other_auth_headers, cash_register, [{"denomination": "PYG", "quantity": 10}])
        assert response.status_code == 201

        mine = client.get("/sales/cash-openings", headers=auth_headers).json()
        assert [session["session_id"] for session in mine["sessions"]] == [opened_session["session_id"]]

    def test_requires_authentication(self, client, cash_register, currencies):
        response = client.get("/sales/cash-openings", headers={"Authorization": "Bearer invalid"})
        assert response.status_code == 401


# ===== TESTS DE ARQUEOS =====

class TestCashAudit:
    """Arqueos de caja"""

    def test_withdrawal_reduces_available(self, client, auth_headers, opened_session):
        response = create_audit(client, auth_headers, [{"denomination": "PYG", "quantity": 30000}])

        assert response.status_code == 201
        data = response.json()
        assert dec(data["total"]) == Decimal("30000")
        assert dec(data["available_balance"]) == Decimal("70000")
        assert data["reason"] == "Retiro para depósito"
        assert len(data["entries"]) == 1
        assert data["entries"][0]["sign"] == "DEBIT"

        available = client.get("/sales/cash-audits/available", headers=auth_headers).json()
        assert dec(available["available_balance"]) == Decimal("70000")
        assert dec(available["total_debits"]) == Decimal("30000")

    def test_withdrawal_over_available_rejected(self, client, auth_headers, opened_session):
        create_audit(client, auth_headers, [{"denomination": "PYG", "quantity": 30000}])

        response = create_audit(client, auth_headers, [{"denomination": "PYG", "quantity": 80000}])

        assert response.status_code == 400
        body = response.json()
        assert body["kind"] == "insufficient_balance"
        assert body["expected"] == 70000
        assert body["provided"] == 80000
        assert body["difference"] == 10000

    def test_rejected_withdrawal_leaves_no_residue(self, client, auth_headers, opened_session):
        create_audit(client, auth_headers, [{"denomination": "PYG", "quantity": 30000}])
        before = client.get("/sales/cash-audits", headers=auth_headers).json()

        create_audit(client, auth_headers, [{"denomination": "PYG", "quantity": 80000}])
        create_audit(client, auth_headers, [{"denomination": "EUR", "quantity": 1}])
        create_audit(client, auth_headers, [{"denomination": "PYG", "quantity": 10}], reason="  ")

        after = client.get("/sales/cash-audits", headers=auth_headers).json()
        assert after == before

    def test_multi_currency_withdrawal_groups_lines(self, client, auth_headers, opened_session):
        response = create_audit(client, auth_headers, [
            {"denomination": "USD", "quantity": 2},
            {"denomination": "PYG", "quantity": 0},
            {"denomination": "PYG", "quantity": 4000},
        ])

        assert response.status_code == 201
        entries = response.json()["entries"]
        assert [entry["denomination"] for entry in entries] == ["USD", "PYG"]
        assert entries[0]["audit_id"] == entries[1]["audit_id"]
        assert entries[0]["reason"] == "Retiro para depósito"
        assert entries[1]["reason"] is None
        assert dec(response.json()["available_balance"]) == Decimal("81400")

    def test_withdrawal_within_tolerance(self, client, auth_headers, opened_session):
        response = create_audit(client, auth_headers, [{"denomination": "PYG", "quantity": "100000.40"}])
        assert response.status_code == 201

    def test_withdrawal_beyond_tolerance(self, client, auth_headers, opened_session):
        response = create_audit(client, auth_headers, [{"denomination": "PYG", "quantity": "100000.60"}])
        assert response.status_code == 400
        assert response.json()["kind"] == "insufficient_balance"

    def test_reason_required(self, client, auth_headers, opened_session):
        response = create_audit(client, auth_headers, [{"denomination": "PYG", "quantity": 10}], reason="")
        assert response.status_code == 400
        assert response.json()["kind"] == "validation"

    def test_sub_cent_quantity_rejected(self, client, auth_headers, opened_session):
        response = create_audit(client, auth_headers, [{"denomination": "PYG", "quantity": "0.004"}])

        assert response.status_code == 400
        assert response.json()["kind"] == "validation"
        assert client.get("/sales/cash-audits", headers=auth_headers).json()["total"] == 0

    def test_lines_required(self, client, auth_headers, opened_session):
        response = create_audit(client, auth_headers, [{"denomination": "PYG", "quantity": 0}])
        assert response.status_code == 400

    def test_without_active_session(self, client, auth_headers, currencies):
        response = create_audit(client, auth_headers, [{"denomination": "PYG", "quantity": 10}])
        assert response.status_code == 409
        assert response.json()["kind"] == "session_required"

    def test_unknown_session(self, client, auth_headers, opened_session):
        response = client.get(f"/sales/cash-audits/available?session={uuid4()}", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["kind"] == "session_not_found"

    def test_other_users_session_forbidden(self, client, auth_headers, other_auth_headers, opened_session):
        response = create_audit(
            client, other_auth_headers, [{"denomination": "PYG", "quantity": 10}],
            session_id=opened_session["session_id"],
        )
        assert response.status_code == 403
        assert response.json()["kind"] == "ownership_mismatch"

        available = client.get("/sales/cash-audits/available", headers=auth_headers).json()
        assert dec(available["available_balance"]) == Decimal("100000")

    def test_history_filtered_by_session(self, client, auth_headers, opened_session):
        create_audit(client, auth_headers, [{"denomination": "PYG", "quantity": 1000}])
        create_audit(client, auth_headers, [{"denomination": "PYG", "quantity": 2000}], reason="Pago proveedor")

        history = client.get(
            f"/sales/cash-audits?session={opened_session['session_id']}", headers=auth_headers
        ).json()

        assert history["total"] == 1
        audit = history["audits"][0]
        assert dec(audit["total"]) == Decimal("3000")
        assert len(audit["entries"]) == 2
        assert audit["reason"] in ("Retiro para depósito", "Pago proveedor")


# ===== TESTS DE CIERRE =====

class TestCashClosing:
    """Cierre de caja"""

    def test_close_records_difference(self, client, auth_headers, opened_session):
        create_audit(client, auth_headers, [{"denomination": "PYG", "quantity": 5000}])

        theoretical = client.get("/sales/cash-closings/available", headers=auth_headers).json()
        assert dec(theoretical["theoretical_balance"]) == Decimal("95000")

        response = close_session(client, auth_headers, [{"denomination": "PYG", "quantity": 94500}])

        assert response.status_code == 201
        data = response.json()
        assert dec(data["counted_total"]) == Decimal("94500")
        assert dec(data["difference"]) == Decimal("-500")
        assert dec(data["theoretical_balance"]) == Decimal("95000")
        assert len(data["lines"]) == 1

        sessions = client.get("/sales/cash-openings", headers=auth_headers).json()["sessions"]
        assert sessions[0]["is_active"] is False
        assert sessions[0]["state"] == 2

    def test_multi_currency_count(self, client, auth_headers, opened_session):
        response = close_session(client, auth_headers, [
            {"denomination": "USD", "quantity": 10},
            {"denomination": "PYG", "quantity": 27000},
        ])
        data = response.json()
        assert dec(data["counted_total"]) == Decimal("100000")
        assert dec(data["difference"]) == Decimal("0")

    def test_second_close_already_closed(self, client, auth_headers, opened_session):
        close_session(client, auth_headers, [{"denomination": "PYG", "quantity": 100000}])

        response = close_session(
            client, auth_headers, [{"denomination": "PYG", "quantity": 1}],
            session_id=opened_session["session_id"],
        )
        assert response.status_code == 409
        assert response.json()["kind"] == "already_closed"

        closings = client.get("/sales/cash-closings?mine=true", headers=auth_headers).json()
        assert closings["total"] == 1
        assert dec(closings["closings"][0]["counted_total"]) == Decimal("100000")

    def test_closed_session_rejects_audits(self, client, auth_headers, opened_session):
        close_session(client, auth_headers, [{"denomination": "PYG", "quantity": 100000}])

        response = create_audit(
            client, auth_headers, [{"denomination": "PYG", "quantity": 10}],
            session_id=opened_session["session_id"],
        )
        assert response.status_code == 409
        assert response.json()["kind"] == "session_inactive"

    def test_close_without_active_session(self, client, auth_headers, currencies):
        response = close_session(client, auth_headers, [{"denomination": "PYG", "quantity": 10}])
        assert response.status_code == 409
        assert response.json()["kind"] == "session_required"

    def test_close_other_users_session(self, client, other_auth_headers, opened_session, auth_headers):
        response = close_session(
            client, other_auth_headers, [{"denomination": "PYG", "quantity": 10}],
            session_id=opened_session["session_id"],
        )
        assert response.status_code == 403
        assert client.get("/sales/cash-openings", headers=auth_headers).json()["sessions"][0]["is_active"] is True

    def test_empty_count_rejected(self, client, auth_headers, opened_session):
        assert close_session(client, auth_headers, []).status_code == 400

        response = close_session(client, auth_headers, [{"denomination": "PYG", "quantity": 0}])
        assert response.status_code == 400
        assert client.get("/sales/cash-openings", headers=auth_headers).json()["sessions"][0]["is_active"] is True
        assert client.get("/sales/cash-closings", headers=auth_headers).json()["total"] == 0

    def test_reopen_after_close(self, client, auth_headers, cash_register, opened_session):
        close_session(client, auth_headers, [{"denomination": "PYG", "quantity": 100000}])

        response = open_session(client, auth_headers, cash_register, [{"denomination": "PYG", "quantity": 500}])
        assert response.status_code == 201
        assert response.json()["session_id"] != opened_session["session_id"]

    def test_closings_filtered_by_owner(self, client, auth_headers, other_auth_headers, cash_register, opened_session):
        open_session(client, other_auth_headers, cash_register, [{"denomination": "PYG", "quantity": 10}])
        close_session(client, auth_headers, [{"denomination": "PYG", "quantity": 100000}])
        close_session(client, other_auth_headers, [{"denomination": "PYG", "quantity": 10}])

        assert client.get("/sales/cash-closings", headers=auth_headers).json()["total"] == 2

        mine = client.get("/sales/cash-closings?mine=true", headers=auth_headers).json()
        assert mine["total"] == 1
        assert mine["closings"][0]["session_id"] == opened_session["session_id"]


# ===== TESTS DE PERSISTENCIA =====

class TestSessionStore:
    """Restricciones únicas de la base traducidas a errores tipados"""

    def test_second_active_session_rejected_by_index(self, db_session, sample_user, cash_register):
        store = SessionStore(db_session)
        with store.transaction():
            first = store.create_session(sample_user.id, cash_register.id, Decimal("100"))
        first_id = first.id

        with pytest.raises(CashDeskError) as exc:
            with store.transaction():
                store.create_session(sample_user.id, cash_register.id, Decimal("5"))
        assert exc.value.kind == ErrorKind.SESSION_ALREADY_OPEN

        sessions = db_session.query(CashSession).filter(CashSession.user_id == sample_user.id).all()
        assert [session.id for session in sessions] == [first_id]
        assert sessions[0].opening_amount == Decimal("100")
        assert sessions[0].state == SessionState.ACTIVE

    def test_second_closing_rejected_by_primary_key(self, db_session, sample_user, cash_register):
        store = SessionStore(db_session)
        user_id = sample_user.id
        with store.transaction():
            session = store.create_session(user_id, cash_register.id, Decimal("100"))
            store.create_closing(session.id, user_id, Decimal("90"), Decimal("-10"))
        session_id = session.id

        # Otro proceso que no ve el cierre en memoria
        db_session.expunge_all()
        with pytest.raises(CashDeskError) as exc:
            with store.transaction():
                store.create_closing(session_id, user_id, Decimal("1"), Decimal("-99"))
        assert exc.value.kind == ErrorKind.ALREADY_CLOSED

        closings = db_session.query(CashClosing).filter(CashClosing.session_id == session_id).all()
        assert len(closings) == 1
        assert closings[0].counted_total == Decimal("90")
        assert closings[0].difference == Decimal("-10")


class TestDatabaseDependency:
    """Registro de errores en get_db"""

    def test_domain_errors_not_logged_as_database_errors(self, caplog):
        gen = get_db()
        next(gen)
        with caplog.at_level(logging.DEBUG, logger="app.database.database"):
            with pytest.raises(CashDeskError):
                gen.throw(CashDeskError(ErrorKind.INSUFFICIENT_BALANCE))
        assert not [record for record in caplog.records if record.name == "app.database.database"]

    def test_persistence_errors_logged(self, caplog):
        gen = get_db()
        next(gen)
        with caplog.at_level(logging.DEBUG, logger="app.database.database"):
            with pytest.raises(SQLAlchemyError):
                gen.throw(SQLAlchemyError("connection lost"))
        assert [record.levelno for record in caplog.records if record.name == "app.database.database"] == [logging.ERROR]
