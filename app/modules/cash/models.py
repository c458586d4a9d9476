"""
Modelos SQLAlchemy para el módulo de caja

Este módulo maneja el ciclo de vida de una sesión de caja:
- CashRegister: Cajas físicas (identidad inmutable, descripción editable)
- CashSession: Apertura de caja con fondo inicial en varias monedas
- CashSessionFloatLine: Detalle del fondo inicial por denominación
- CashLedgerEntry: Movimientos de crédito/débito de la sesión (arqueos, adelantos)
- CashClosing / CashClosingLine: Cierre con conteo y diferencia

Reglas:
- Solo una sesión ACTIVA por usuario (índice único parcial)
- Un único cierre por sesión (clave primaria = sesión)
- El libro de movimientos es de solo inserción
"""

from app.database.database import Base
from sqlalchemy import (
    Column, String, Integer, Date, DateTime, ForeignKey, Numeric, Enum, Text, Index, Uuid, text
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import date
from uuid import uuid4
from app.common.mixins import CatalogMixin, TimestampMixin
import enum


# ===== ENUMS =====

class SessionState(enum.IntEnum):
    """Estados de una apertura de caja"""
    ACTIVE = 1      # Apertura vigente
    INACTIVE = 2    # Apertura cerrada


class LedgerSign(enum.Enum):
    """Sentido del movimiento en el libro de la sesión"""
    CREDIT = "C"    # Ingreso de efectivo
    DEBIT = "D"     # Retiro de efectivo


# ===== MODELOS =====

class CashRegister(Base, CatalogMixin):
    """Caja física"""
    __tablename__ = "cash_registers"

    description = Column(String(100), nullable=False)


class CashSession(Base, TimestampMixin):
    """
    Apertura de caja

    El monto de apertura se deriva del detalle del fondo. Solo el cierre
    cambia el estado; las aperturas nunca se eliminan.
    """
    __tablename__ = "cash_sessions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    cash_register_id = Column(Uuid(as_uuid=True), ForeignKey("cash_registers.id"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    opening_date = Column(Date, nullable=False, default=date.today)
    opening_amount = Column(Numeric(15, 2), nullable=False, default=0)
    prior_balance = Column(Numeric(15, 2), nullable=False, default=0)
    state = Column(Integer, nullable=False, default=SessionState.ACTIVE, index=True)

    # Relationships
    cash_register = relationship("CashRegister")
    user = relationship("User")
    float_lines = relationship(
        "CashSessionFloatLine", back_populates="session",
        order_by="CashSessionFloatLine.line_no", cascade="all, delete-orphan"
    )
    ledger_entries = relationship(
        "CashLedgerEntry", back_populates="session",
        order_by=lambda: (CashLedgerEntry.created_at, CashLedgerEntry.line_no)
    )
    closing = relationship("CashClosing", back_populates="session", uselist=False)

    __table_args__ = (
        Index(
            "uq_cash_sessions_active_user", "user_id",
            unique=True,
            postgresql_where=text("state = 1"),
            sqlite_where=text("state = 1"),
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE


class CashSessionFloatLine(Base):
    """Detalle del fondo de apertura; inmutable una vez escrito"""
    __tablename__ = "cash_session_float_lines"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    session_id = Column(Uuid(as_uuid=True), ForeignKey("cash_sessions.id"), nullable=False, index=True)
    line_no = Column(Integer, nullable=False, default=0)
    currency_type_id = Column(Uuid(as_uuid=True), ForeignKey("currency_types.id"), nullable=False)
    rate = Column(Numeric(15, 4), nullable=False)
    quantity = Column(Numeric(15, 2), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)

    session = relationship("CashSession", back_populates="float_lines")
    currency_type = relationship("CurrencyType")

    @property
    def denomination(self):
        return self.currency_type.code if self.currency_type else None


class CashLedgerEntry(Base):
    """
    Movimiento del libro de una sesión

    Un arqueo escribe un débito por cada moneda retirada; solo la primera
    línea del grupo lleva el motivo. Los adelantos de pedidos son créditos
    sin detalle de moneda. El monto siempre es un valor absoluto.
    """
    __tablename__ = "cash_ledger_entries"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    session_id = Column(Uuid(as_uuid=True), ForeignKey("cash_sessions.id"), nullable=False, index=True)
    audit_id = Column(Uuid(as_uuid=True), nullable=True, index=True)  # Agrupa las líneas de un arqueo
    line_no = Column(Integer, nullable=False, default=0)
    sign = Column(Enum(LedgerSign), nullable=False, index=True)
    reason = Column(Text, nullable=True)
    currency_type_id = Column(Uuid(as_uuid=True), ForeignKey("currency_types.id"), nullable=True)
    rate = Column(Numeric(15, 4), nullable=True)
    quantity = Column(Numeric(15, 2), nullable=True)
    amount = Column(Numeric(15, 2), nullable=False)
    order_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    session = relationship("CashSession", back_populates="ledger_entries")
    currency_type = relationship("CurrencyType")

    @property
    def denomination(self):
        return self.currency_type.code if self.currency_type else None

    @property
    def symbol(self):
        return self.currency_type.symbol if self.currency_type else None


class CashClosing(Base):
    """Cierre de una apertura; a lo sumo uno por sesión"""
    __tablename__ = "cash_closings"

    session_id = Column(Uuid(as_uuid=True), ForeignKey("cash_sessions.id"), primary_key=True)
    closing_date = Column(Date, nullable=False, default=date.today)
    counted_total = Column(Numeric(15, 2), nullable=False)
    difference = Column(Numeric(15, 2), nullable=False)  # contado - teórico
    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    session = relationship("CashSession", back_populates="closing")
    lines = relationship(
        "CashClosingLine", back_populates="closing", order_by="CashClosingLine.line_no"
    )


class CashClosingLine(Base):
    """Detalle del conteo de cierre por denominación"""
    __tablename__ = "cash_closing_lines"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    session_id = Column(Uuid(as_uuid=True), ForeignKey("cash_closings.session_id"), nullable=False, index=True)
    line_no = Column(Integer, nullable=False, default=0)
    currency_type_id = Column(Uuid(as_uuid=True), ForeignKey("currency_types.id"), nullable=False)
    rate = Column(Numeric(15, 4), nullable=False)
    quantity = Column(Numeric(15, 2), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)

    closing = relationship("CashClosing", back_populates="lines")
    currency_type = relationship("CurrencyType")

    @property
    def denomination(self):
        return self.currency_type.code if self.currency_type else None
