"""
Módulo de caja - conciliación de sesiones de caja

ENTIDADES PRINCIPALES:
- CashRegister: Caja física
- CashSession: Apertura con fondo inicial en varias monedas
- CashLedgerEntry: Libro de créditos/débitos de la apertura
- CashClosing: Cierre con conteo final y diferencia

FUNCIONALIDADES:
- Apertura de caja con detalle por denominación
- Arqueos (retiros) con control de saldo disponible
- Cierre con cálculo de saldo teórico y diferencia
- Requisito de caja abierta para pedidos de venta y registro de adelantos

REGLAS DE NEGOCIO:
- Solo una apertura activa por usuario
- Un usuario solo opera sobre sus propias aperturas
- Arqueos y cierres bloquean la fila de la apertura durante la transacción
- Una apertura se cierra una única vez
"""

from .models import (
    CashRegister, CashSession, CashSessionFloatLine, CashLedgerEntry,
    CashClosing, CashClosingLine, SessionState, LedgerSign
)

from .services import (
    SessionResolver, BalanceCalculator, BalanceSummary,
    OpeningService, AuditService, ClosingService, OrderIntegrationGuard
)

from .routers import (
    cash_openings_router, cash_audits_router, cash_closings_router
)

__all__ = [
    # Models
    "CashRegister", "CashSession", "CashSessionFloatLine", "CashLedgerEntry",
    "CashClosing", "CashClosingLine", "SessionState", "LedgerSign",

    # Services
    "SessionResolver", "BalanceCalculator", "BalanceSummary",
    "OpeningService", "AuditService", "ClosingService", "OrderIntegrationGuard",

    # Routers
    "cash_openings_router", "cash_audits_router", "cash_closings_router"
]
