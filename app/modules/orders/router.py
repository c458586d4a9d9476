from fastapi import APIRouter, Query, status
from typing import Optional
from uuid import UUID
from datetime import date

from app.core.config import settings
from app.dependencies.dbDependecies import db_dependency
from app.dependencies.userDependencies import user_dependency
from app.modules.orders.schemas import SalesOrderCreate, SalesOrderOut, SalesOrderList
from app.modules.orders.service import SalesOrderService

orders_router = APIRouter(prefix="/sales/orders", tags=["Sales Orders"])


@orders_router.post("", response_model=SalesOrderOut, status_code=status.HTTP_201_CREATED)
def create_sales_order(
    order_data: SalesOrderCreate,
    current_user: user_dependency,
    db: db_dependency,
):
    """
    Crear pedido de venta.

    Requiere una apertura de caja activa (409 si no existe). Si el pedido
    trae adelanto, se registra como ingreso en el libro de la apertura.
    """
    return SalesOrderService(db).create_order(order_data, user_id=current_user.id)


@orders_router.get("", response_model=SalesOrderList)
def list_sales_orders(
    current_user: user_dependency,
    db: db_dependency,
    q: Optional[str] = Query(None, description="Buscar por cliente u observación"),
    date_from: Optional[date] = Query(None, description="Fecha desde"),
    date_to: Optional[date] = Query(None, description="Fecha hasta"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="Límite de resultados"),
    offset: int = Query(0, ge=0, description="Offset para paginación"),
):
    """Listar pedidos de venta con filtros opcionales."""
    return SalesOrderService(db).list_orders(
        search=q, date_from=date_from, date_to=date_to, limit=limit, offset=offset
    )


@orders_router.get("/{order_id}", response_model=SalesOrderOut)
def get_sales_order(
    order_id: UUID,
    current_user: user_dependency,
    db: db_dependency,
):
    """Obtener un pedido de venta."""
    return SalesOrderService(db).get_order(order_id)
