"""
Security guards for role-based access control.

Guards resolve to a CallerContext so endpoints hand the caller identity
straight to domain services.
"""

from typing import List
from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from tuition_backend.app.models.enums import UserRole, FINANCE_ROLES
from tuition_backend.app.core.dependencies import get_current_user
from tuition_backend.app.core.tenancy import CallerContext, TenantScope
from tuition_backend.app.db.session import get_db


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/invoices")
        async def list_invoices(ctx: CallerContext = Depends(require_role(FINANCE_ROLES))):
            ...

    Raises:
        HTTPException 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> CallerContext:
        user_role_str = current_user.get("role")

        try:
            user_role = UserRole(user_role_str)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid role in token"
            )

        if user_role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        return CallerContext.from_token_payload(current_user)

    return role_checker


def require_admin(current_user: dict = Depends(get_current_user)) -> CallerContext:
    """Dependency for admin-only endpoints."""
    if current_user.get("role") != UserRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )

    return CallerContext.from_token_payload(current_user)


require_finance_staff = require_role(FINANCE_ROLES)
require_parent = require_role([UserRole.PARENT])


async def finance_scope(
    ctx: CallerContext = Depends(require_finance_staff),
    db: AsyncSession = Depends(get_db),
) -> TenantScope:
    """Tenant scope for finance staff endpoints."""
    return TenantScope(db, ctx)


async def parent_scope(
    ctx: CallerContext = Depends(require_parent),
    db: AsyncSession = Depends(get_db),
) -> TenantScope:
    """Tenant scope for parent endpoints."""
    return TenantScope(db, ctx)
