"""
Fixtures compartidos para los tests de la API de caja.

Cada test corre contra una base SQLite en memoria recién creada; la
dependencia ``get_db`` de la aplicación se reemplaza por sesiones sobre esa
misma conexión.
"""
import os

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app as fastapi_app
from app.database.database import Base, get_db
from app.modules.auth.models import User
from app.modules.auth.utils import create_access_token
from app.modules.cash.models import CashRegister
from app.modules.currencies.models import CurrencyType

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.create_all(bind=test_engine)
    fastapi_app.dependency_overrides[get_db] = override_get_db
    yield
    fastapi_app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    with TestClient(fastapi_app) as test_client:
        yield test_client


@pytest.fixture
def sample_user(db_session):
    user = User(username="cajero1", first_name="Ana", last_name="Benítez")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def other_user(db_session):
    user = User(username="cajero2", first_name="Luis", last_name="Ortiz")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def cash_register(db_session):
    register = CashRegister(description="Caja 1")
    db_session.add(register)
    db_session.commit()
    db_session.refresh(register)
    return register


@pytest.fixture
def currencies(db_session):
    """USD a 7300 y guaraní como moneda base"""
    usd = CurrencyType(code="USD", name="Dólar", rate=Decimal("7300"), symbol="US$")
    pyg = CurrencyType(code="PYG", name="Guaraní", rate=Decimal("1"), symbol="Gs")
    db_session.add_all([usd, pyg])
    db_session.commit()
    return {"USD": usd, "PYG": pyg}


@pytest.fixture
def auth_headers(sample_user):
    return {"Authorization": f"Bearer {create_access_token(sample_user.id)}"}


@pytest.fixture
def other_auth_headers(other_user):
    return {"Authorization": f"Bearer {create_access_token(other_user.id)}"}
