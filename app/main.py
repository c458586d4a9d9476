from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
import logging

# Import database components
from app.database.database import engine, Base

# Import middleware and error handlers
from app.common.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from app.common.errors import (
    CashDeskError, ErrorKind, cash_desk_error_handler, persistence_error_handler
)

# Import routers
from app.modules.currencies.router import currency_router
from app.modules.cash.routers import (
    cash_openings_router,
    cash_audits_router,
    cash_closings_router
)
from app.modules.orders.router import orders_router

# Import models for table creation
import app.modules.auth.models
import app.modules.currencies.models
import app.modules.cash.models
import app.modules.orders.models

from app.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="Cash Desk API",
    description="Cash session reconciliation API: openings, audits and closings built with FastAPI and PostgreSQL",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Add middleware (order matters!)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Add your frontend URLs
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Error handlers
app.add_exception_handler(CashDeskError, cash_desk_error_handler)
app.add_exception_handler(SQLAlchemyError, persistence_error_handler)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    logger.info(f"Invalid request body on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": jsonable_encoder(exc.errors()),
            "kind": ErrorKind.VALIDATION.value
        },
    )


# Include routers
app.include_router(currency_router)
app.include_router(cash_openings_router)
app.include_router(cash_audits_router)
app.include_router(cash_closings_router)
app.include_router(orders_router)

# Create database tables (only for development - use migrations in production)
if settings.ENVIRONMENT == "development":
    Base.metadata.create_all(bind=engine)

@app.get("/")
async def read_root():
    return {
        "message": "Cash Desk API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}

@app.on_event("startup")
async def startup_event():
    logger.info("Cash Desk API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")
    logger.info(f"Withdrawal tolerance: {settings.CASH_WITHDRAWAL_TOLERANCE}")

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Cash Desk API shutting down...")
