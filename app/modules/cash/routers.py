"""
Routers FastAPI para el módulo de caja

Define los endpoints REST para:
- Aperturas de caja (/sales/cash-openings)
- Arqueos (/sales/cash-audits)
- Cierres (/sales/cash-closings)

Todos requieren un usuario autenticado; las operaciones siempre actúan sobre
aperturas del propio usuario.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.database.database import get_db
from app.dependencies.userDependencies import user_dependency
from app.modules.cash.services import OpeningService, AuditService, ClosingService
from app.modules.cash.schemas import (
    CashSessionOpen, CashSessionOut, CashSessionList,
    CashAuditCreate, CashAuditOut, CashAuditList, AvailableBalanceOut,
    CashClosingCreate, CashClosingOut, CashClosingList, TheoreticalBalanceOut
)


# ===== CASH OPENINGS ROUTER =====

cash_openings_router = APIRouter(prefix="/sales/cash-openings", tags=["Cash"])


@cash_openings_router.get("", response_model=CashSessionList)
def list_cash_openings(
    current_user: user_dependency,
    db: Session = Depends(get_db)
):
    """Listar las aperturas del usuario autenticado, más recientes primero."""
    return OpeningService(db).list_sessions(user_id=current_user.id)


@cash_openings_router.post("", response_model=CashSessionOut, status_code=status.HTTP_201_CREATED)
def open_cash_session(
    session_data: CashSessionOpen,
    current_user: user_dependency,
    db: Session = Depends(get_db)
):
    """
    Abrir caja con fondo inicial en varias monedas.

    - **cash_register_id**: Caja física
    - **state_id**: Estado solicitado (la apertura siempre nace activa)
    - **lines**: Denominación y cantidad del fondo

    Validaciones:
    - Solo una apertura activa por usuario
    - Cantidades no negativas y denominaciones existentes
    """
    return OpeningService(db).open_session(session_data, user_id=current_user.id)


# ===== CASH AUDITS ROUTER =====

cash_audits_router = APIRouter(prefix="/sales/cash-audits", tags=["Cash"])


@cash_audits_router.get("/available", response_model=AvailableBalanceOut)
def get_available_balance(
    current_user: user_dependency,
    session: Optional[UUID] = Query(None, description="Apertura; por defecto la activa"),
    db: Session = Depends(get_db)
):
    """Saldo disponible para retiros: apertura + saldo anterior + créditos - débitos."""
    return AuditService(db).get_available(user_id=current_user.id, session_id=session)


@cash_audits_router.get("", response_model=CashAuditList)
def list_cash_audits(
    current_user: user_dependency,
    session: Optional[UUID] = Query(None, description="Filtrar por apertura"),
    db: Session = Depends(get_db)
):
    """Historial de arqueos de las aperturas del usuario."""
    return AuditService(db).list_audits(user_id=current_user.id, session_id=session)


@cash_audits_router.post("", response_model=CashAuditOut, status_code=status.HTTP_201_CREATED)
def create_cash_audit(
    audit_data: CashAuditCreate,
    current_user: user_dependency,
    db: Session = Depends(get_db)
):
    """
    Registrar un retiro de efectivo sobre la apertura.

    - **session_id**: Apertura (opcional, por defecto la activa)
    - **reason**: Motivo obligatorio
    - **lines**: Monedas y cantidades retiradas

    Responde 400 con `expected`, `provided` y `difference` si el retiro
    supera el saldo disponible.
    """
    return AuditService(db).create_audit(audit_data, user_id=current_user.id)


# ===== CASH CLOSINGS ROUTER =====

cash_closings_router = APIRouter(prefix="/sales/cash-closings", tags=["Cash"])


@cash_closings_router.get("/available", response_model=TheoreticalBalanceOut)
def get_theoretical_balance(
    current_user: user_dependency,
    session: Optional[UUID] = Query(None, description="Apertura; por defecto la activa"),
    db: Session = Depends(get_db)
):
    """Saldo teórico de cierre: apertura + créditos - débitos."""
    return ClosingService(db).get_theoretical(user_id=current_user.id, session_id=session)


@cash_closings_router.get("", response_model=CashClosingList)
def list_cash_closings(
    current_user: user_dependency,
    mine: bool = Query(False, description="Solo cierres del usuario autenticado"),
    session: Optional[UUID] = Query(None, description="Filtrar por apertura"),
    db: Session = Depends(get_db)
):
    """Historial de cierres."""
    return ClosingService(db).list_closings(
        user_id=current_user.id if mine else None,
        session_id=session
    )


@cash_closings_router.post("", response_model=CashClosingOut, status_code=status.HTTP_201_CREATED)
def close_cash_session(
    closing_data: CashClosingCreate,
    current_user: user_dependency,
    db: Session = Depends(get_db)
):
    """
    Cerrar la apertura con el conteo final.

    - Calcula el saldo teórico y la diferencia (contado - teórico)
    - Marca la apertura como inactiva
    - 409 si la apertura ya fue cerrada
    """
    return ClosingService(db).close_session(closing_data, user_id=current_user.id)
