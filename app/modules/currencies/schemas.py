from pydantic import BaseModel, Field
from decimal import Decimal
from typing import List
from uuid import UUID


class CurrencyTypeOut(BaseModel):
    """Esquema de salida para tipo de moneda"""
    id: UUID = Field(description="ID del tipo de moneda")
    code: str = Field(description="Código de la denominación")
    name: str = Field(description="Nombre de la denominación")
    rate: Decimal = Field(description="Tasa de cambio a la moneda base")
    symbol: str = Field(description="Símbolo")

    model_config = {"from_attributes": True}


class CurrencyTypeList(BaseModel):
    currency_types: List[CurrencyTypeOut]
    total: int
