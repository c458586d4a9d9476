"""
Servicios de negocio para el módulo de caja

Implementa:
- SessionResolver: Ubica la apertura objetivo validando dueño y estado
- BalanceCalculator: Totales del libro y saldos disponible/teórico
- OpeningService: Apertura con fondo en varias monedas
- AuditService: Arqueos (retiros) con control de saldo disponible
- ClosingService: Cierre con conteo, diferencia y cambio de estado
- OrderIntegrationGuard: Requisito de caja abierta y adelantos de pedidos

Cada operación que modifica datos corre en una sola transacción del
SessionStore. El bloqueo de fila de la apertura serializa arqueos y cierres
concurrentes sobre la misma caja.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Sequence
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from app.core.config import settings
from app.common.errors import CashDeskError, ErrorKind
from app.modules.cash.models import CashSession, CashClosing, LedgerSign
from app.modules.cash.schemas import (
    CashLineIn, CashSessionOpen, CashAuditCreate, CashClosingCreate,
    CashSessionOut, CashSessionList, AvailableBalanceOut, TheoreticalBalanceOut,
    CashAuditOut, CashAuditList, CashClosingOut, CashClosingList,
    CurrencyLineOut, LedgerEntryOut
)
from app.modules.cash.store import SessionStore, ZERO
from app.modules.currencies.service import CurrencyRate, CurrencyRateResolver
import logging

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricedLine:
    """Línea de entrada con su tasa resuelta y su monto"""
    currency: CurrencyRate
    quantity: Decimal
    amount: Decimal


@dataclass(frozen=True)
class BalanceSummary:
    """Totales del libro de una apertura"""
    total_credits: Decimal
    total_debits: Decimal
    opening_amount: Decimal
    prior_balance: Decimal

    @property
    def available_balance(self) -> Decimal:
        """Lo que todavía se puede retirar durante la sesión"""
        return self.opening_amount + self.prior_balance + self.total_credits - self.total_debits

    @property
    def theoretical_balance(self) -> Decimal:
        """Lo que debería haber en la caja al cerrar (sin saldo anterior)"""
        return self.opening_amount + self.total_credits - self.total_debits


def _positive_lines(lines: Sequence[CashLineIn]) -> List[CashLineIn]:
    """Descartar cantidades en cero; rechazar cantidades negativas"""
    for line in lines:
        if line.quantity < 0:
            raise CashDeskError(
                ErrorKind.VALIDATION,
                f"La cantidad de {line.denomination} no puede ser negativa"
            )
    return [line for line in lines if line.quantity > 0]


def _price_lines(lines: Sequence[CashLineIn], rates: Dict[str, CurrencyRate]) -> List[PricedLine]:
    return [
        PricedLine(
            currency=rates[line.denomination],
            quantity=line.quantity,
            amount=money(rates[line.denomination].rate * line.quantity),
        )
        for line in lines
    ]


def _session_info(session: CashSession, summary: BalanceSummary) -> dict:
    user = session.user
    return {
        "session_id": session.id,
        "cash_register_id": session.cash_register_id,
        "cash_register_description": session.cash_register.description if session.cash_register else "",
        "opening_date": session.opening_date,
        "user_id": session.user_id,
        "username": user.username if user else "",
        "first_name": user.first_name if user else "",
        "last_name": user.last_name if user else "",
        "opening_amount": money(summary.opening_amount),
        "prior_balance": money(summary.prior_balance),
        "total_credits": money(summary.total_credits),
        "total_debits": money(summary.total_debits),
    }


class SessionResolver:
    """Ubica la apertura sobre la que opera un usuario"""

    def __init__(self, store: SessionStore):
        self.store = store

    def resolve(self, user_id: UUID, session_id: Optional[UUID] = None,
                for_mutation: bool = False, require_active: bool = True) -> CashSession:
        """
        Resolver la apertura objetivo.

        Sin ``session_id`` usa la apertura activa del usuario. Con
        ``for_mutation`` la fila queda bloqueada hasta el fin de la transacción.

        Raises:
            CashDeskError: SESSION_REQUIRED, SESSION_NOT_FOUND,
                OWNERSHIP_MISMATCH o SESSION_INACTIVE
        """
        target_id = session_id
        if target_id is None:
            target_id = self.store.find_active_session_id(user_id)
            if target_id is None:
                raise CashDeskError(ErrorKind.SESSION_REQUIRED)

        session = self.store.get_session(target_id, lock=for_mutation)
        if session is None:
            raise CashDeskError(ErrorKind.SESSION_NOT_FOUND)

        if session.user_id != user_id:
            raise CashDeskError(ErrorKind.OWNERSHIP_MISMATCH)

        if require_active and not session.is_active:
            raise CashDeskError(ErrorKind.SESSION_INACTIVE)

        return session


class BalanceCalculator:
    """Agrega el libro de una apertura"""

    def __init__(self, store: SessionStore):
        self.store = store

    def summarize(self, session: CashSession) -> BalanceSummary:
        credits, debits = self.store.ledger_totals(session.id)
        return BalanceSummary(
            total_credits=abs(credits),
            total_debits=abs(debits),
            opening_amount=Decimal(session.opening_amount or 0),
            prior_balance=Decimal(session.prior_balance or 0),
        )


class _CashService:
    """Dependencias compartidas por los servicios de caja"""

    def __init__(self, db: Session, store: Optional[SessionStore] = None,
                 currencies: Optional[CurrencyRateResolver] = None):
        self.db = db
        self.store = store or SessionStore(db)
        self.currencies = currencies or CurrencyRateResolver(db)
        self.resolver = SessionResolver(self.store)
        self.calculator = BalanceCalculator(self.store)


class OpeningService(_CashService):
    """Servicio para aperturas de caja"""

    def open_session(self, data: CashSessionOpen, user_id: UUID) -> CashSessionOut:
        """
        Abrir una caja con su fondo inicial.

        Cabecera y detalle se escriben en una sola transacción; cualquier
        línea inválida aborta la apertura completa.
        """
        lines = _positive_lines(data.lines)

        with self.store.transaction():
            register = self.store.get_cash_register(data.cash_register_id)
            if not register:
                raise CashDeskError(ErrorKind.VALIDATION, "Selecciona una caja valida")

            if self.store.find_active_session_id(user_id) is not None:
                raise CashDeskError(ErrorKind.SESSION_ALREADY_OPEN)

            rates = self.currencies.get_rates(line.denomination for line in lines)
            priced = _price_lines(lines, rates)
            opening_amount = sum((line.amount for line in priced), ZERO)

            session = self.store.create_session(
                user_id=user_id,
                cash_register_id=register.id,
                opening_amount=opening_amount,
            )
            for line_no, line in enumerate(priced):
                self.store.add_float_line(session.id, line_no, line.currency, line.quantity, line.amount)

        logger.info(
            f"Cash session {session.id} opened by user {user_id} on register {register.id} "
            f"with {opening_amount} ({len(priced)} lines)"
        )
        self.db.refresh(session)
        return self.session_out(session)

    def list_sessions(self, user_id: UUID) -> CashSessionList:
        sessions = [self.session_out(session) for session in self.store.list_sessions(user_id)]
        return CashSessionList(sessions=sessions, total=len(sessions))

    def session_out(self, session: CashSession) -> CashSessionOut:
        summary = self.calculator.summarize(session)
        float_lines = [CurrencyLineOut.model_validate(line) for line in session.float_lines]
        subtotal = (
            sum((line.amount for line in float_lines), ZERO)
            if float_lines else summary.opening_amount
        )
        return CashSessionOut(
            **_session_info(session, summary),
            state=session.state,
            is_active=session.is_active,
            created_at=session.created_at,
            float_lines=float_lines,
            subtotal=money(subtotal),
            available_balance=money(summary.available_balance),
        )


class AuditService(_CashService):
    """Servicio para arqueos (retiros auditados)"""

    def get_available(self, user_id: UUID, session_id: Optional[UUID] = None) -> AvailableBalanceOut:
        """Resumen del saldo disponible; lectura sin bloqueo"""
        session = self.resolver.resolve(user_id, session_id, for_mutation=False)
        summary = self.calculator.summarize(session)
        return AvailableBalanceOut(
            **_session_info(session, summary),
            available_balance=money(summary.available_balance),
        )

    def create_audit(self, data: CashAuditCreate, user_id: UUID) -> CashAuditOut:
        """
        Registrar un retiro de efectivo.

        Valida motivo y cantidades antes de tocar la base, bloquea la apertura,
        recalcula el saldo disponible y escribe un débito por moneda.

        Raises:
            CashDeskError(INSUFFICIENT_BALANCE): si el retiro supera el saldo
                disponible en más de la tolerancia configurada
        """
        reason = (data.reason or "").strip()
        if not reason:
            raise CashDeskError(ErrorKind.VALIDATION, "El motivo del arqueo es obligatorio")

        lines = _positive_lines(data.lines)
        if not lines:
            raise CashDeskError(
                ErrorKind.VALIDATION, "Ingresa al menos una moneda con cantidad mayor a cero"
            )

        with self.store.transaction():
            session = self.resolver.resolve(user_id, data.session_id, for_mutation=True)
            summary = self.calculator.summarize(session)
            available = summary.available_balance

            rates = self.currencies.get_rates(line.denomination for line in lines)
            priced = _price_lines(lines, rates)
            requested = sum((line.amount for line in priced), ZERO)

            if requested - available > settings.CASH_WITHDRAWAL_TOLERANCE:
                raise CashDeskError.insufficient_balance(expected=money(available), provided=requested)

            audit_id = uuid4()
            for line_no, line in enumerate(priced):
                self.store.add_ledger_entry(
                    session_id=session.id,
                    sign=LedgerSign.DEBIT,
                    amount=line.amount,
                    reason=reason if line_no == 0 else None,
                    currency=line.currency,
                    quantity=line.quantity,
                    audit_id=audit_id,
                    line_no=line_no,
                )

        logger.info(
            f"Cash audit {audit_id} on session {session.id} by user {user_id}: "
            f"withdrew {requested} of {available} available"
        )
        return self.audit_out(session)

    def list_audits(self, user_id: UUID, session_id: Optional[UUID] = None) -> CashAuditList:
        audits = [
            self.audit_out(session)
            for session in self.store.list_audited_sessions(user_id, session_id)
        ]
        return CashAuditList(audits=audits, total=len(audits))

    def audit_out(self, session: CashSession) -> CashAuditOut:
        summary = self.calculator.summarize(session)
        entries = [LedgerEntryOut.model_validate(entry) for entry in self.store.list_ledger_entries(session.id)]
        reason = next(
            (entry.reason for entry in entries if entry.sign == "DEBIT" and entry.reason),
            None
        )
        return CashAuditOut(
            **_session_info(session, summary),
            reason=reason,
            total=money(summary.total_debits),
            available_balance=money(summary.available_balance),
            entries=entries,
        )


class ClosingService(_CashService):
    """Servicio para cierres de caja"""

    def get_theoretical(self, user_id: UUID, session_id: Optional[UUID] = None) -> TheoreticalBalanceOut:
        """Resumen del saldo teórico; lectura sin bloqueo"""
        session = self.resolver.resolve(user_id, session_id, for_mutation=False)
        summary = self.calculator.summarize(session)
        return TheoreticalBalanceOut(
            **_session_info(session, summary),
            theoretical_balance=money(summary.theoretical_balance),
        )

    def close_session(self, data: CashClosingCreate, user_id: UUID) -> CashClosingOut:
        """
        Cerrar una apertura.

        Compara el conteo contra el saldo teórico, registra la diferencia
        (contado - teórico) y deja la apertura inactiva. Un segundo cierre de
        la misma apertura falla con ALREADY_CLOSED sin escribir nada.
        """
        if not data.lines:
            raise CashDeskError(
                ErrorKind.VALIDATION, "Ingresa al menos una moneda con cantidad mayor o igual a cero"
            )
        lines = _positive_lines(data.lines)
        if not lines:
            raise CashDeskError(
                ErrorKind.VALIDATION, "Ingresa al menos una moneda con cantidad mayor a cero"
            )

        with self.store.transaction():
            session = self.resolver.resolve(
                user_id, data.session_id, for_mutation=True, require_active=False
            )
            if self.store.has_closing(session.id):
                raise CashDeskError(ErrorKind.ALREADY_CLOSED)
            if not session.is_active:
                raise CashDeskError(ErrorKind.SESSION_INACTIVE)

            summary = self.calculator.summarize(session)
            theoretical = summary.theoretical_balance

            rates = self.currencies.get_rates(line.denomination for line in lines)
            priced = _price_lines(lines, rates)
            counted = sum((line.amount for line in priced), ZERO)
            difference = money(counted - theoretical)

            self.store.create_closing(session.id, user_id, counted, difference)
            self.store.clear_closing_lines(session.id)
            for line_no, line in enumerate(priced):
                self.store.add_closing_line(session.id, line_no, line.currency, line.quantity, line.amount)
            self.store.mark_inactive(session)

        logger.info(
            f"Cash session {session.id} closed by user {user_id}: counted {counted}, "
            f"theoretical {theoretical}, difference {difference}"
        )
        self.db.expire_all()
        return self.closing_out(self.store.get_closing(session.id))

    def list_closings(self, user_id: Optional[UUID] = None,
                      session_id: Optional[UUID] = None) -> CashClosingList:
        closings = [self.closing_out(closing) for closing in self.store.list_closings(user_id, session_id)]
        return CashClosingList(closings=closings, total=len(closings))

    def closing_out(self, closing: CashClosing) -> CashClosingOut:
        summary = self.calculator.summarize(closing.session)
        return CashClosingOut(
            **_session_info(closing.session, summary),
            closing_date=closing.closing_date,
            counted_total=money(closing.counted_total),
            difference=money(closing.difference),
            theoretical_balance=money(summary.theoretical_balance),
            lines=[CurrencyLineOut.model_validate(line) for line in closing.lines],
        )


class OrderIntegrationGuard:
    """
    Punto de integración con pedidos de venta.

    Los pedidos exigen una apertura activa del usuario y registran el
    adelanto como crédito en el libro de esa apertura. No abre transacciones
    propias: corre dentro de la transacción del pedido.
    """

    def __init__(self, store: SessionStore):
        self.store = store

    def require_active_session(self, user_id: UUID) -> UUID:
        session_id = self.store.find_active_session_id(user_id)
        if session_id is None:
            raise CashDeskError(ErrorKind.SESSION_REQUIRED)
        return session_id

    def post_advance(self, session_id: UUID, amount: Decimal, note: str,
                     order_id: Optional[UUID] = None) -> None:
        if amount <= 0:
            raise CashDeskError(ErrorKind.VALIDATION, "El adelanto debe ser mayor a cero")
        self.store.add_ledger_entry(
            session_id=session_id,
            sign=LedgerSign.CREDIT,
            amount=money(amount),
            reason=note,
            order_id=order_id,
        )
        logger.info(f"Advance of {amount} posted to session {session_id} for order {order_id}")
