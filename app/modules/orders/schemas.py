from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime


class SalesOrderItemCreate(BaseModel):
    """Esquema para una línea del pedido"""
    description: str = Field(..., min_length=1, max_length=200, description="Descripción del ítem")
    quantity: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2, description="Cantidad")
    price: Decimal = Field(..., ge=0, max_digits=15, decimal_places=2, description="Precio unitario")


class SalesOrderCreate(BaseModel):
    """Esquema para crear pedido de venta"""
    order_date: date = Field(..., description="Fecha del pedido")
    delivery_date: Optional[date] = Field(None, description="Fecha de entrega")
    notes: Optional[str] = Field(None, max_length=500, description="Observación")
    customer_name: str = Field(..., min_length=1, max_length=200, description="Cliente")
    advance: Decimal = Field(default=Decimal("0"), ge=0, max_digits=15, decimal_places=2, description="Adelanto en efectivo")
    items: List[SalesOrderItemCreate] = Field(default=[], description="Líneas del pedido")

    @field_validator('customer_name')
    @classmethod
    def validate_customer_name(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError('El cliente no puede estar vacío')
        return cleaned

    @field_validator('notes')
    @classmethod
    def normalize_notes(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class SalesOrderItemOut(BaseModel):
    id: UUID
    description: str
    quantity: Decimal
    price: Decimal
    subtotal: Decimal

    model_config = {"from_attributes": True}


class SalesOrderOut(BaseModel):
    """Esquema de salida para pedido de venta"""
    id: UUID = Field(description="ID del pedido")
    order_date: date = Field(description="Fecha del pedido")
    delivery_date: Optional[date] = Field(None, description="Fecha de entrega")
    notes: Optional[str] = Field(None, description="Observación")
    customer_name: str = Field(description="Cliente")
    advance: Decimal = Field(description="Adelanto")
    session_id: UUID = Field(description="Apertura de caja asociada")
    created_by: UUID = Field(description="Usuario que registró el pedido")
    state: int = Field(description="Estado del pedido")
    created_at: datetime = Field(description="Fecha de grabación")
    items: List[SalesOrderItemOut] = Field(default=[], description="Líneas")
    total: Decimal = Field(description="Total del pedido")

    model_config = {"from_attributes": True}


class SalesOrderList(BaseModel):
    orders: List[SalesOrderOut]
    total: int
    limit: int
    offset: int
