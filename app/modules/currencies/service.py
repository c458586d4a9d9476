from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable
from uuid import UUID
from sqlalchemy.orm import Session
from app.common.errors import CashDeskError, ErrorKind
from app.modules.currencies.models import CurrencyType


@dataclass(frozen=True)
class CurrencyRate:
    """Tasa vigente de una denominación"""
    currency_type_id: UUID
    code: str
    rate: Decimal
    name: str
    symbol: str


class CurrencyRateResolver:
    """Resuelve la tasa de cambio, nombre y símbolo de una denominación"""

    def __init__(self, db: Session):
        self.db = db

    def get_rate(self, code: str) -> CurrencyRate:
        """
        Obtener la tasa de una denominación por su código

        Raises:
            CashDeskError(VALIDATION): si la denominación no existe o está inactiva
        """
        currency = self.db.query(CurrencyType).filter(
            CurrencyType.code == code,
            CurrencyType.is_active == True
        ).first()

        if not currency:
            raise CashDeskError(ErrorKind.VALIDATION, f"Tipo de moneda no encontrado: {code}")

        return CurrencyRate(
            currency_type_id=currency.id,
            code=currency.code,
            rate=Decimal(currency.rate),
            name=currency.name,
            symbol=currency.symbol or "",
        )

    def get_rates(self, codes: Iterable[str]) -> Dict[str, CurrencyRate]:
        """Resolver cada denominación distinta una sola vez"""
        rates: Dict[str, CurrencyRate] = {}
        for code in codes:
            if code not in rates:
                rates[code] = self.get_rate(code)
        return rates

    def list_currency_types(self) -> Dict[str, object]:
        currency_types = self.db.query(CurrencyType).filter(
            CurrencyType.is_active == True
        ).order_by(CurrencyType.code).all()
        return {"currency_types": currency_types, "total": len(currency_types)}
