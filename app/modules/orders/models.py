"""
Modelos SQLAlchemy para pedidos de venta

Un pedido siempre queda asociado a la apertura de caja activa del usuario que
lo registra. El adelanto, si existe, se registra como crédito en el libro de
esa apertura.
"""

from app.database.database import Base
from sqlalchemy import Column, String, Integer, Date, ForeignKey, Numeric, Text, Uuid
from sqlalchemy.orm import relationship
from uuid import uuid4
from app.common.mixins import TimestampMixin
import enum


class OrderState(enum.IntEnum):
    """Estados de pedido"""
    PENDING = 1
    DELIVERED = 2
    CANCELLED = 3


class SalesOrder(Base, TimestampMixin):
    """Cabecera del pedido de venta"""
    __tablename__ = "sales_orders"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    order_date = Column(Date, nullable=False)
    delivery_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    customer_name = Column(String(200), nullable=False)
    advance = Column(Numeric(15, 2), nullable=False, default=0)
    session_id = Column(Uuid(as_uuid=True), ForeignKey("cash_sessions.id"), nullable=False, index=True)
    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    state = Column(Integer, nullable=False, default=OrderState.PENDING)

    items = relationship(
        "SalesOrderItem", back_populates="order",
        order_by="SalesOrderItem.line_no", cascade="all, delete-orphan"
    )

    @property
    def total(self):
        return sum((item.subtotal for item in self.items), 0)


class SalesOrderItem(Base):
    """Línea del pedido de venta"""
    __tablename__ = "sales_order_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    order_id = Column(Uuid(as_uuid=True), ForeignKey("sales_orders.id"), nullable=False, index=True)
    line_no = Column(Integer, nullable=False, default=0)
    description = Column(String(200), nullable=False)
    quantity = Column(Numeric(15, 2), nullable=False)
    price = Column(Numeric(15, 2), nullable=False)

    order = relationship("SalesOrder", back_populates="items")

    @property
    def subtotal(self):
        return self.quantity * self.price
