"""
Typed errors for the cash desk services.

Services raise ``CashDeskError`` with an ``ErrorKind``; the HTTP layer maps the
kind to a status code through ``STATUS_BY_KIND`` and never inspects messages.
"""
from decimal import Decimal
from enum import Enum
from typing import Any, Dict

from fastapi import Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
import logging

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    SESSION_REQUIRED = "session_required"
    SESSION_ALREADY_OPEN = "session_already_open"
    SESSION_NOT_FOUND = "session_not_found"
    OWNERSHIP_MISMATCH = "ownership_mismatch"
    SESSION_INACTIVE = "session_inactive"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    ALREADY_CLOSED = "already_closed"
    ORDER_NOT_FOUND = "order_not_found"


STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.SESSION_REQUIRED: status.HTTP_409_CONFLICT,
    ErrorKind.SESSION_ALREADY_OPEN: status.HTTP_409_CONFLICT,
    ErrorKind.SESSION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.OWNERSHIP_MISMATCH: status.HTTP_403_FORBIDDEN,
    ErrorKind.SESSION_INACTIVE: status.HTTP_409_CONFLICT,
    ErrorKind.INSUFFICIENT_BALANCE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.ALREADY_CLOSED: status.HTTP_409_CONFLICT,
    ErrorKind.ORDER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
}

DEFAULT_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.SESSION_REQUIRED: "No tienes una apertura de caja activa",
    ErrorKind.SESSION_ALREADY_OPEN: "Ya tienes una apertura de caja activa",
    ErrorKind.SESSION_NOT_FOUND: "Apertura no encontrada",
    ErrorKind.OWNERSHIP_MISMATCH: "No puedes operar sobre una apertura de otro usuario",
    ErrorKind.SESSION_INACTIVE: "La apertura seleccionada no esta activa",
    ErrorKind.INSUFFICIENT_BALANCE: "El monto a retirar supera el saldo disponible",
    ErrorKind.ALREADY_CLOSED: "La apertura ya fue cerrada",
    ErrorKind.ORDER_NOT_FOUND: "Pedido no encontrado",
}


class CashDeskError(Exception):
    """Error raised by the cash desk services, tagged with its kind"""

    def __init__(self, kind: ErrorKind, message: str = None, **context: Any):
        self.kind = kind
        self.message = message or DEFAULT_MESSAGES.get(kind, kind.value)
        self.context = context
        super().__init__(self.message)

    @classmethod
    def insufficient_balance(cls, expected: Decimal, provided: Decimal) -> "CashDeskError":
        return cls(
            ErrorKind.INSUFFICIENT_BALANCE,
            expected=expected,
            provided=provided,
            difference=provided - expected,
        )

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "kind": self.kind.value}
        for key, value in self.context.items():
            body[key] = float(value) if isinstance(value, Decimal) else value
        return body


def _request_context(request: Request) -> str:
    user_id = getattr(request.state, "user_id", None)
    return f"{request.method} {request.url.path} user={user_id}"


async def cash_desk_error_handler(request: Request, exc: CashDeskError) -> JSONResponse:
    level = logging.INFO if exc.kind == ErrorKind.VALIDATION else logging.WARNING
    logger.log(level, f"{exc.kind.value} on {_request_context(request)}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def persistence_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(f"Persistence failure on {_request_context(request)}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc.orig) if getattr(exc, "orig", None) is not None else str(exc)},
    )
