"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from tuition_backend.app.api.v1.endpoints import (
    auth, admin, students, fee_catalog, invoices, payments, expenses, ledger, parent
)

router = APIRouter()

# Include authentication endpoints
router.include_router(auth.router)

# Include admin endpoints
router.include_router(admin.router)

# Center staff
router.include_router(students.router)
router.include_router(fee_catalog.router)
router.include_router(invoices.router)
router.include_router(payments.router)
router.include_router(payments.finance_router)
router.include_router(expenses.router)
router.include_router(ledger.router)
router.include_router(ledger.balances_router)

# Parents
router.include_router(parent.router)
