"""
Esquemas Pydantic para el módulo de caja

Define la validación de datos de entrada y salida para:
- Aperturas de caja con fondo en varias monedas
- Arqueos (retiros auditados)
- Cierres con conteo y diferencia
- Resúmenes de saldo disponible y saldo teórico
"""

from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime
from enum import Enum


# ===== ENUMS =====

class LedgerSign(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


# ===== INPUT =====

class CashLineIn(BaseModel):
    """Línea de conteo: denominación y cantidad"""
    denomination: str = Field(..., min_length=1, max_length=10, description="Código del tipo de moneda")
    quantity: Decimal = Field(..., max_digits=15, decimal_places=2, description="Cantidad de unidades de la moneda")

    @field_validator('denomination')
    @classmethod
    def validate_denomination(cls, v: str) -> str:
        cleaned = v.strip().upper()
        if not cleaned:
            raise ValueError('La denominación no puede estar vacía')
        return cleaned


class CashSessionOpen(BaseModel):
    """Esquema para abrir una caja"""
    cash_register_id: UUID = Field(..., description="ID de la caja física")
    state_id: int = Field(..., gt=0, description="Estado solicitado para la apertura")
    lines: List[CashLineIn] = Field(default=[], description="Detalle del fondo inicial")


class CashAuditCreate(BaseModel):
    """Esquema para registrar un arqueo (retiro de efectivo)"""
    session_id: Optional[UUID] = Field(None, description="Apertura objetivo; por defecto la activa del usuario")
    reason: str = Field(default="", max_length=500, description="Motivo del retiro")
    lines: List[CashLineIn] = Field(default=[], description="Monedas retiradas")


class CashClosingCreate(BaseModel):
    """Esquema para cerrar una caja"""
    session_id: Optional[UUID] = Field(None, description="Apertura objetivo; por defecto la activa del usuario")
    lines: List[CashLineIn] = Field(default=[], description="Conteo final por moneda")


# ===== OUTPUT =====

class CurrencyLineOut(BaseModel):
    """Línea de detalle valorizada"""
    currency_type_id: UUID = Field(description="ID del tipo de moneda")
    denomination: Optional[str] = Field(None, description="Código de la moneda")
    rate: Decimal = Field(description="Tasa aplicada")
    quantity: Decimal = Field(description="Cantidad")
    amount: Decimal = Field(description="Monto = tasa x cantidad")

    model_config = {"from_attributes": True}


class SessionInfo(BaseModel):
    """Datos de cabecera comunes de una apertura"""
    session_id: UUID = Field(description="ID de la apertura")
    cash_register_id: UUID = Field(description="ID de la caja")
    cash_register_description: str = Field(description="Descripción de la caja")
    opening_date: date = Field(description="Fecha de apertura")
    user_id: UUID = Field(description="Usuario dueño de la apertura")
    username: str = Field(description="Usuario")
    first_name: str = Field(description="Nombre")
    last_name: str = Field(description="Apellido")
    opening_amount: Decimal = Field(description="Monto de apertura")
    prior_balance: Decimal = Field(description="Saldo anterior")
    total_credits: Decimal = Field(description="Total de créditos")
    total_debits: Decimal = Field(description="Total de débitos")


class CashSessionOut(SessionInfo):
    """Apertura hidratada con su fondo y saldos"""
    state: int = Field(description="Estado de la apertura (1 = activa)")
    is_active: bool = Field(description="Si la apertura sigue activa")
    created_at: Optional[datetime] = Field(None, description="Fecha de grabación")
    float_lines: List[CurrencyLineOut] = Field(default=[], description="Detalle del fondo")
    subtotal: Decimal = Field(description="Suma del detalle del fondo")
    available_balance: Decimal = Field(description="Saldo disponible para retiros")


class CashSessionList(BaseModel):
    sessions: List[CashSessionOut]
    total: int


class AvailableBalanceOut(SessionInfo):
    """Resumen del saldo disponible para arqueos"""
    available_balance: Decimal = Field(description="Apertura + saldo anterior + créditos - débitos")


class TheoreticalBalanceOut(SessionInfo):
    """Resumen del saldo teórico para cierre"""
    theoretical_balance: Decimal = Field(description="Apertura + créditos - débitos")


class LedgerEntryOut(BaseModel):
    """Movimiento del libro de la sesión"""
    id: UUID
    audit_id: Optional[UUID] = None
    sign: LedgerSign
    reason: Optional[str] = None
    currency_type_id: Optional[UUID] = None
    denomination: Optional[str] = None
    symbol: Optional[str] = None
    rate: Optional[Decimal] = None
    quantity: Optional[Decimal] = None
    amount: Decimal
    order_id: Optional[UUID] = None
    created_at: Optional[datetime] = None

    @field_validator('sign', mode='before')
    @classmethod
    def parse_sign(cls, v):
        return getattr(v, 'name', v)

    model_config = {"from_attributes": True}


class CashAuditOut(SessionInfo):
    """Historial de arqueos de una apertura"""
    reason: Optional[str] = Field(None, description="Motivo del primer arqueo registrado")
    total: Decimal = Field(description="Total retirado (débitos)")
    available_balance: Decimal = Field(description="Saldo disponible luego de los movimientos")
    entries: List[LedgerEntryOut] = Field(default=[], description="Movimientos de la apertura")


class CashAuditList(BaseModel):
    audits: List[CashAuditOut]
    total: int


class CashClosingOut(SessionInfo):
    """Cierre de caja con su detalle y los componentes del saldo teórico"""
    closing_date: date = Field(description="Fecha de cierre")
    counted_total: Decimal = Field(description="Total contado")
    difference: Decimal = Field(description="Contado - teórico")
    theoretical_balance: Decimal = Field(description="Saldo teórico al cierre")
    lines: List[CurrencyLineOut] = Field(default=[], description="Detalle del conteo")


class CashClosingList(BaseModel):
    closings: List[CashClosingOut]
    total: int
