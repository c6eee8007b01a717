"""
FastAPI Application Entry Point.

This is the main application file for the Tuition Center Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from tuition_backend.app.core.config import settings
from tuition_backend.app.api.v1.router import router as api_v1_router
from tuition_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from tuition_backend.app.core.redis_client import ping_redis
from tuition_backend.app.db.session import engine, Base
from tuition_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from tuition_backend.app.models.center import Center
from tuition_backend.app.models.user import User
from tuition_backend.app.models.audit_log import AuditLog
from tuition_backend.app.models.student import Student
from tuition_backend.app.models.fee_heading import FeeHeading
from tuition_backend.app.models.fee_structure import FeeStructure, FeeStructureItem
from tuition_backend.app.models.student_fee_assignment import StudentFeeAssignment
from tuition_backend.app.models.invoice import Invoice
from tuition_backend.app.models.invoice_item import InvoiceItem
from tuition_backend.app.models.invoice_generation_log import InvoiceGenerationLog
from tuition_backend.app.models.payment import Payment
from tuition_backend.app.models.payment_allocation import PaymentAllocation
from tuition_backend.app.models.ledger_account import LedgerAccount
from tuition_backend.app.models.ledger_entry import LedgerEntry
from tuition_backend.app.models.expense_category import ExpenseCategory
from tuition_backend.app.models.expense import Expense

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    Creates database tables on startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Multi-tenant tuition center backend: fees, invoices, payments and ledger",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    redis_ok = await ping_redis()
    return {
        "status": "healthy" if redis_ok else "degraded",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if redis_ok else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to Tuition Center Backend API",
        "docs": "/docs",
        "health": "/health",
    }
