"""
Servicio de pedidos de venta

Un pedido solo se registra si el usuario tiene una apertura de caja activa.
Cabecera, líneas y adelanto se escriben en una única transacción.
"""

from datetime import date
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import desc, or_
from sqlalchemy.orm import Session, selectinload

from app.common.errors import CashDeskError, ErrorKind
from app.modules.cash.services import OrderIntegrationGuard
from app.modules.cash.store import SessionStore
from app.modules.orders.models import SalesOrder, SalesOrderItem, OrderState
from app.modules.orders.schemas import SalesOrderCreate
import logging

logger = logging.getLogger(__name__)


class SalesOrderService:
    """Servicio para gestión de pedidos de venta"""

    def __init__(self, db: Session, store: Optional[SessionStore] = None):
        self.db = db
        self.store = store or SessionStore(db)
        self.guard = OrderIntegrationGuard(self.store)

    def create_order(self, order_data: SalesOrderCreate, user_id: UUID) -> SalesOrder:
        """
        Crear pedido de venta

        Args:
            order_data: Cabecera, líneas y adelanto
            user_id: Usuario que registra el pedido

        Returns:
            SalesOrder: Pedido creado con sus líneas

        Raises:
            CashDeskError: SESSION_REQUIRED si el usuario no tiene caja abierta,
                VALIDATION si el pedido no tiene líneas
        """
        if not order_data.items:
            raise CashDeskError(ErrorKind.VALIDATION, "El pedido debe contener al menos un item")

        with self.store.transaction():
            session_id = self.guard.require_active_session(user_id)

            order = SalesOrder(
                order_date=order_data.order_date,
                delivery_date=order_data.delivery_date,
                notes=order_data.notes,
                customer_name=order_data.customer_name,
                advance=order_data.advance,
                session_id=session_id,
                created_by=user_id,
                state=OrderState.PENDING,
            )
            self.db.add(order)
            self.db.flush()

            for line_no, item in enumerate(order_data.items):
                self.db.add(SalesOrderItem(
                    order_id=order.id,
                    line_no=line_no,
                    description=item.description.strip(),
                    quantity=item.quantity,
                    price=item.price,
                ))

            if order_data.advance > 0:
                self.guard.post_advance(
                    session_id,
                    order_data.advance,
                    f"Advance from {order_data.customer_name}",
                    order_id=order.id,
                )

        logger.info(f"Sales order {order.id} created by user {user_id} on session {session_id}")
        return self.get_order(order.id)

    def get_order(self, order_id: UUID) -> SalesOrder:
        order = self.db.query(SalesOrder).options(
            selectinload(SalesOrder.items)
        ).filter(SalesOrder.id == order_id).first()

        if not order:
            raise CashDeskError(ErrorKind.ORDER_NOT_FOUND)
        return order

    def list_orders(self, search: Optional[str] = None, date_from: Optional[date] = None,
                    date_to: Optional[date] = None, limit: int = 20, offset: int = 0) -> Dict[str, Any]:
        """Obtener lista de pedidos con filtros opcionales"""
        query = self.db.query(SalesOrder).options(selectinload(SalesOrder.items))

        if search and search.strip():
            term = f"%{search.strip()}%"
            query = query.filter(or_(
                SalesOrder.customer_name.ilike(term),
                SalesOrder.notes.ilike(term)
            ))
        if date_from:
            query = query.filter(SalesOrder.order_date >= date_from)
        if date_to:
            query = query.filter(SalesOrder.order_date <= date_to)

        total = query.count()
        orders = query.order_by(desc(SalesOrder.order_date), desc(SalesOrder.created_at)) \
            .offset(offset).limit(limit).all()

        return {
            "orders": orders,
            "total": total,
            "limit": limit,
            "offset": offset
        }
