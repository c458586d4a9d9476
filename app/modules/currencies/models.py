"""
Modelos SQLAlchemy para tipos de moneda

Cada tipo de moneda (denominación) tiene una tasa de cambio hacia la moneda
base de contabilidad. Es información de referencia, de solo lectura para las
operaciones de caja.
"""

from app.database.database import Base
from sqlalchemy import Column, String, Numeric
from app.common.mixins import CatalogMixin


class CurrencyType(Base, CatalogMixin):
    """Denominación con su tasa de cambio, nombre y símbolo"""
    __tablename__ = "currency_types"

    code = Column(String(10), nullable=False, unique=True, index=True)  # Ej: USD, PYG
    name = Column(String(100), nullable=False)
    rate = Column(Numeric(15, 4), nullable=False)
    symbol = Column(String(10), nullable=False, default="")
