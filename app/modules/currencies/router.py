from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database.database import get_db
from app.dependencies.userDependencies import user_dependency
from app.modules.currencies.schemas import CurrencyTypeList
from app.modules.currencies.service import CurrencyRateResolver

currency_router = APIRouter(prefix="/catalog/currency-types", tags=["Currencies"])


@currency_router.get("", response_model=CurrencyTypeList)
def list_currency_types(
    current_user: user_dependency,
    db: Session = Depends(get_db)
):
    """Listar tipos de moneda activos con su tasa vigente."""
    return CurrencyRateResolver(db).list_currency_types()
