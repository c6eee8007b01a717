"""
Audit logging service for tracking security events, admin actions and
financial operations.

Audit rows are flushed, not committed: they become part of the caller's
transaction and disappear with it on rollback.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from tuition_backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    USER_BLOCKED = "USER_BLOCKED"
    USER_UNBLOCKED = "USER_UNBLOCKED"
    USER_CREATED = "USER_CREATED"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"

    CENTER_CREATED = "CENTER_CREATED"
    STUDENT_CREATED = "STUDENT_CREATED"
    PARENT_LINKED = "PARENT_LINKED"

    # Fee catalog
    FEE_HEADING_CREATED = "FEE_HEADING_CREATED"
    FEE_HEADING_UPDATED = "FEE_HEADING_UPDATED"
    FEE_HEADING_DEACTIVATED = "FEE_HEADING_DEACTIVATED"
    FEE_STRUCTURE_CREATED = "FEE_STRUCTURE_CREATED"
    FEE_STRUCTURE_ASSIGNED = "FEE_STRUCTURE_ASSIGNED"
    CUSTOM_FEE_ASSIGNED = "CUSTOM_FEE_ASSIGNED"

    # Invoices
    INVOICES_GENERATED = "INVOICES_GENERATED"
    INVOICES_MARKED_OVERDUE = "INVOICES_MARKED_OVERDUE"
    INVOICE_VOIDED = "INVOICE_VOIDED"

    # Money movement
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    PAYMENT_REVERSED = "PAYMENT_REVERSED"
    EXPENSE_CATEGORY_CREATED = "EXPENSE_CATEGORY_CREATED"
    EXPENSE_RECORDED = "EXPENSE_RECORDED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_username: Optional[str] = None,
    center_id: Optional[int] = None,
    target_user_id: Optional[int] = None,
    target_username: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> AuditLog:
    """
    Add an event to the audit log within the current transaction.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action
        actor_username: Username of actor
        center_id: Center the action belongs to
        target_user_id: ID of user being acted upon (if applicable)
        target_username: Username of target
        metadata: Additional context as JSON
        ip_address: IP address of the request

    Returns:
        Flushed AuditLog instance (committed by the caller)
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_username=actor_username,
        center_id=center_id,
        action=action,
        target_user_id=target_user_id,
        target_username=target_username,
        meta_data=metadata,
        ip_address=ip_address
    )

    db.add(audit_log)
    await db.flush()

    return audit_log


async def log_caller_event(db: AsyncSession, ctx, action: str, metadata: Optional[Dict[str, Any]] = None) -> AuditLog:
    """Log a center-scoped action performed by the caller in `ctx`."""
    return await log_event(
        db=db,
        action=action,
        actor_id=ctx.user_id,
        actor_username=ctx.username,
        center_id=ctx.center_id,
        metadata=metadata
    )


async def log_admin_action(
    db: AsyncSession,
    admin_id: int,
    admin_username: str,
    action: str,
    target_user_id: int,
    target_username: str,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """Log an admin action on a user (create, block, unblock)."""
    return await log_event(
        db=db,
        action=action,
        actor_id=admin_id,
        actor_username=admin_username,
        target_user_id=target_user_id,
        target_username=target_username,
        metadata=metadata
    )


async def log_auth_event(
    db: AsyncSession,
    action: str,
    user_id: Optional[int],
    username: Optional[str],
    ip_address: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    center_id: Optional[int] = None
) -> AuditLog:
    """
    Log an authentication event (login success/failure, logout).

    Args:
        db: Database session
        action: AuditAction.LOGIN_SUCCESS, LOGIN_FAILED or LOGOUT
        user_id: ID of user attempting login
        username: Username attempting login
        ip_address: IP address of login attempt
        metadata: Additional context (e.g., failure reason)
    """
    return await log_event(
        db=db,
        action=action,
        actor_id=user_id,
        actor_username=username,
        center_id=center_id,
        ip_address=ip_address,
        metadata=metadata
    )


async def get_audit_trail(
    db: AsyncSession,
    target_user_id: Optional[int] = None,
    center_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, most recent first.
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if target_user_id:
        query = query.where(AuditLog.target_user_id == target_user_id)

    if center_id:
        query = query.where(AuditLog.center_id == center_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
