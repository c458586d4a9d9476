"""
Persistencia de sesiones de caja

SessionStore concentra todo el acceso a la base de datos de las aperturas:
lecturas simples, lectura con bloqueo (SELECT ... FOR UPDATE), altas de
cabecera y detalle, el libro de movimientos y los cierres.

Las operaciones que modifican datos se ejecutan dentro de ``transaction()``,
que confirma al salir sin errores y revierte ante cualquier excepción. El
bloqueo de fila tomado por ``get_session(lock=True)`` se libera con ese mismo
commit o rollback.
"""

from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import case, desc, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.common.errors import CashDeskError, ErrorKind
from app.modules.cash.models import (
    CashRegister, CashSession, CashSessionFloatLine, CashLedgerEntry,
    CashClosing, CashClosingLine, SessionState, LedgerSign
)
from app.modules.currencies.service import CurrencyRate
import logging

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class SessionStore:
    """Acceso a datos de aperturas, movimientos y cierres"""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Unidad de trabajo todo-o-nada sobre la sesión de base de datos"""
        try:
            yield self.db
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    # ===== APERTURAS =====

    def find_active_session_id(self, user_id: UUID) -> Optional[UUID]:
        row = self.db.query(CashSession.id).filter(
            CashSession.user_id == user_id,
            CashSession.state == SessionState.ACTIVE
        ).order_by(desc(CashSession.created_at)).first()
        return row[0] if row else None

    def get_session(self, session_id: UUID, lock: bool = False) -> Optional[CashSession]:
        """
        Obtener una apertura.

        Con ``lock`` toma un bloqueo exclusivo sobre la fila hasta que termine
        la transacción en curso y relee la fila aunque ya esté en memoria.
        """
        query = self.db.query(CashSession).filter(CashSession.id == session_id)
        if lock:
            query = query.with_for_update().populate_existing()
        return query.first()

    def get_cash_register(self, cash_register_id: UUID) -> Optional[CashRegister]:
        return self.db.query(CashRegister).filter(
            CashRegister.id == cash_register_id,
            CashRegister.is_active == True
        ).first()

    def create_session(self, user_id: UUID, cash_register_id: UUID, opening_amount: Decimal) -> CashSession:
        session = CashSession(
            user_id=user_id,
            cash_register_id=cash_register_id,
            opening_amount=opening_amount,
            prior_balance=ZERO,
            state=SessionState.ACTIVE,
        )
        self.db.add(session)
        try:
            self.db.flush()
        except IntegrityError:
            # Índice único parcial: otra apertura activa ganó la carrera
            raise CashDeskError(ErrorKind.SESSION_ALREADY_OPEN)
        return session

    def add_float_line(self, session_id: UUID, line_no: int, currency: CurrencyRate,
                       quantity: Decimal, amount: Decimal) -> CashSessionFloatLine:
        line = CashSessionFloatLine(
            session_id=session_id,
            line_no=line_no,
            currency_type_id=currency.currency_type_id,
            rate=currency.rate,
            quantity=quantity,
            amount=amount,
        )
        self.db.add(line)
        return line

    def mark_inactive(self, session: CashSession) -> None:
        session.state = SessionState.INACTIVE
        self.db.flush()

    def list_sessions(self, user_id: UUID) -> List[CashSession]:
        return self.db.query(CashSession).options(
            selectinload(CashSession.float_lines).selectinload(CashSessionFloatLine.currency_type),
            selectinload(CashSession.cash_register),
            selectinload(CashSession.user)
        ).filter(
            CashSession.user_id == user_id
        ).order_by(desc(CashSession.created_at)).all()

    # ===== LIBRO DE MOVIMIENTOS =====

    def ledger_totals(self, session_id: UUID) -> Tuple[Decimal, Decimal]:
        """Sumar créditos y débitos de una apertura"""
        credits, debits = self.db.query(
            func.coalesce(
                func.sum(case((CashLedgerEntry.sign == LedgerSign.CREDIT, CashLedgerEntry.amount), else_=0)), 0
            ),
            func.coalesce(
                func.sum(case((CashLedgerEntry.sign == LedgerSign.DEBIT, CashLedgerEntry.amount), else_=0)), 0
            ),
        ).filter(CashLedgerEntry.session_id == session_id).one()
        return _to_decimal(credits), _to_decimal(debits)

    def add_ledger_entry(self, session_id: UUID, sign: LedgerSign, amount: Decimal,
                         reason: Optional[str] = None, currency: Optional[CurrencyRate] = None,
                         quantity: Optional[Decimal] = None, audit_id: Optional[UUID] = None,
                         line_no: int = 0, order_id: Optional[UUID] = None) -> CashLedgerEntry:
        entry = CashLedgerEntry(
            session_id=session_id,
            audit_id=audit_id,
            line_no=line_no,
            sign=sign,
            reason=reason,
            currency_type_id=currency.currency_type_id if currency else None,
            rate=currency.rate if currency else None,
            quantity=quantity,
            amount=amount,
            order_id=order_id,
        )
        self.db.add(entry)
        return entry

    def list_ledger_entries(self, session_id: UUID) -> List[CashLedgerEntry]:
        return self.db.query(CashLedgerEntry).options(
            selectinload(CashLedgerEntry.currency_type)
        ).filter(
            CashLedgerEntry.session_id == session_id
        ).order_by(CashLedgerEntry.created_at, CashLedgerEntry.line_no).all()

    def list_audited_sessions(self, user_id: UUID, session_id: Optional[UUID] = None) -> List[CashSession]:
        """Aperturas del usuario que tienen al menos un movimiento"""
        query = self.db.query(CashSession).options(
            selectinload(CashSession.cash_register),
            selectinload(CashSession.user)
        ).filter(
            CashSession.user_id == user_id,
            CashSession.ledger_entries.any()
        )
        if session_id:
            query = query.filter(CashSession.id == session_id)
        return query.order_by(desc(CashSession.created_at)).all()

    # ===== CIERRES =====

    def get_closing(self, session_id: UUID) -> Optional[CashClosing]:
        return self.db.query(CashClosing).options(
            selectinload(CashClosing.lines).selectinload(CashClosingLine.currency_type)
        ).filter(CashClosing.session_id == session_id).first()

    def has_closing(self, session_id: UUID) -> bool:
        return self.db.query(CashClosing.session_id).filter(
            CashClosing.session_id == session_id
        ).first() is not None

    def create_closing(self, session_id: UUID, user_id: UUID, counted_total: Decimal,
                       difference: Decimal) -> CashClosing:
        """
        Insertar la cabecera del cierre.

        Raises:
            CashDeskError(ALREADY_CLOSED): si la apertura ya tiene un cierre
        """
        closing = CashClosing(
            session_id=session_id,
            counted_total=counted_total,
            difference=difference,
            created_by=user_id,
        )
        self.db.add(closing)
        try:
            self.db.flush()
        except IntegrityError as e:
            logger.warning(f"Duplicate closing for session {session_id}: {e.orig}")
            raise CashDeskError(ErrorKind.ALREADY_CLOSED)
        return closing

    def clear_closing_lines(self, session_id: UUID) -> None:
        self.db.query(CashClosingLine).filter(
            CashClosingLine.session_id == session_id
        ).delete(synchronize_session=False)

    def add_closing_line(self, session_id: UUID, line_no: int, currency: CurrencyRate,
                         quantity: Decimal, amount: Decimal) -> CashClosingLine:
        line = CashClosingLine(
            session_id=session_id,
            line_no=line_no,
            currency_type_id=currency.currency_type_id,
            rate=currency.rate,
            quantity=quantity,
            amount=amount,
        )
        self.db.add(line)
        return line

    def list_closings(self, user_id: Optional[UUID] = None,
                      session_id: Optional[UUID] = None) -> List[CashClosing]:
        query = self.db.query(CashClosing).join(CashSession).options(
            selectinload(CashClosing.lines).selectinload(CashClosingLine.currency_type),
            selectinload(CashClosing.session).selectinload(CashSession.cash_register),
            selectinload(CashClosing.session).selectinload(CashSession.user)
        )
        if user_id:
            query = query.filter(CashSession.user_id == user_id)
        if session_id:
            query = query.filter(CashClosing.session_id == session_id)
        return query.order_by(desc(CashClosing.created_at)).all()


def _to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))
