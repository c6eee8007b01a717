"""
Admin API Endpoints.

Center onboarding and user management with audit logging. Admins operate
across centers and hold no finance rights of their own.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from typing import List
from tuition_backend.app.db.session import get_db, atomic
from tuition_backend.app.models.center import Center
from tuition_backend.app.models.enums import UserRole
from tuition_backend.app.models.user import User
from tuition_backend.app.schemas.admin import (
    CenterCreate, CenterResponse, UserCreate,
    UserListResponse, UserListItem, BlockUserRequest, UnblockUserRequest,
    AdminActionResponse, AuditTrailResponse, AuditLogResponse
)
from tuition_backend.app.core.guards import require_admin
from tuition_backend.app.core.security import get_password_hash
from tuition_backend.app.core.tenancy import CallerContext
from tuition_backend.app.core.token_revocation import revoke_all_user_tokens, clear_user_token_revocation
from tuition_backend.app.domain.finance.ledger import ensure_default_accounts
from tuition_backend.app.services.audit import log_event, log_admin_action, AuditAction, get_audit_trail

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/centers", response_model=CenterResponse, status_code=status.HTTP_201_CREATED)
async def create_center(
    center_data: CenterCreate,
    admin: CallerContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Onboard a center together with its default chart of accounts.
    """
    code = center_data.code.strip().upper()
    existing = await db.execute(select(Center).where(Center.code == code))
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Center code already registered"
        )

    async with atomic(db):
        center = Center(
            name=center_data.name,
            code=code,
            address=center_data.address,
            contact_number=center_data.contact_number,
            is_active=True
        )
        db.add(center)
        await db.flush()

        await ensure_default_accounts(db, center.id)
        await log_event(
            db=db,
            action=AuditAction.CENTER_CREATED,
            actor_id=admin.user_id,
            actor_username=admin.username,
            center_id=center.id,
            metadata={"code": code}
        )

    await db.refresh(center)
    return center


@router.get("/centers", response_model=List[CenterResponse])
async def list_centers(
    admin: CallerContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """List all centers."""
    result = await db.execute(select(Center).order_by(Center.name))
    return result.scalars().all()


@router.post("/users", response_model=UserListItem, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    admin: CallerContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a user for a center.

    ADMIN accounts cannot be created via API.
    """
    if user_data.role == UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin users cannot be created via API"
        )

    center = await db.get(Center, user_data.center_id)
    if not center:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Center not found"
        )

    result = await db.execute(
        select(User).where(
            or_(User.username == user_data.username, User.email == user_data.email)
        )
    )
    existing_user = result.scalar_one_or_none()
    if existing_user:
        detail = "Username already registered" if existing_user.username == user_data.username else "Email already registered"
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

    async with atomic(db):
        new_user = User(
            email=user_data.email,
            username=user_data.username,
            full_name=user_data.full_name,
            hashed_password=get_password_hash(user_data.password),
            role=user_data.role,
            center_id=center.id,
            is_active=True,
            is_superuser=False
        )
        db.add(new_user)
        await db.flush()

        await log_admin_action(
            db=db,
            admin_id=admin.user_id,
            admin_username=admin.username,
            action=AuditAction.USER_CREATED,
            target_user_id=new_user.id,
            target_username=new_user.username,
            metadata={"role": new_user.role.value, "center_id": center.id}
        )

    await db.refresh(new_user)
    return UserListItem.model_validate(new_user)


@router.get("/users", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    center_id: int = Query(None, description="Filter by center"),
    admin: CallerContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    List users (admin-only), optionally for one center.
    """
    count_query = select(func.count(User.id))
    query = select(User)
    if center_id:
        count_query = count_query.where(User.center_id == center_id)
        query = query.where(User.center_id == center_id)

    total_result = await db.execute(count_query)
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(query.order_by(User.id).offset(offset).limit(page_size))
    users = result.scalars().all()

    return UserListResponse(
        users=[UserListItem.model_validate(user) for user in users],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/users/{user_id}", response_model=UserListItem)
async def get_user(
    user_id: int,
    admin: CallerContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Get detailed information about a specific user (admin-only).
    """
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return UserListItem.model_validate(user)


@router.post("/users/{user_id}/block", response_model=AdminActionResponse)
async def block_user(
    user_id: int,
    request: BlockUserRequest,
    admin: CallerContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Block a user and revoke all their active tokens (admin-only).

    This immediately terminates all user sessions.
    """
    target_user = await db.get(User, user_id)

    if not target_user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    # Prevent blocking another admin
    if target_user.is_superuser or target_user.role == UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot block another admin user"
        )

    if not target_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already blocked"
        )

    async with atomic(db):
        target_user.is_active = False
        audit_log = await log_admin_action(
            db=db,
            admin_id=admin.user_id,
            admin_username=admin.username,
            action=AuditAction.USER_BLOCKED,
            target_user_id=target_user.id,
            target_username=target_user.username,
            metadata={"reason": request.reason} if request.reason else None
        )

    # Revoke all active tokens
    await revoke_all_user_tokens(user_id)

    return AdminActionResponse(
        success=True,
        message=f"User '{target_user.username}' has been blocked",
        user_id=user_id,
        action=AuditAction.USER_BLOCKED,
        audit_log_id=audit_log.id
    )


@router.post("/users/{user_id}/unblock", response_model=AdminActionResponse)
async def unblock_user(
    user_id: int,
    request: UnblockUserRequest,
    admin: CallerContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Unblock a user and clear token revocations (admin-only).

    User will be able to login again and generate new tokens.
    """
    target_user = await db.get(User, user_id)

    if not target_user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    if target_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already active"
        )

    async with atomic(db):
        target_user.is_active = True
        audit_log = await log_admin_action(
            db=db,
            admin_id=admin.user_id,
            admin_username=admin.username,
            action=AuditAction.USER_UNBLOCKED,
            target_user_id=target_user.id,
            target_username=target_user.username,
            metadata={"reason": request.reason} if request.reason else None
        )

    # Clear token revocations (user can now login and get new tokens)
    await clear_user_token_revocation(user_id)

    return AdminActionResponse(
        success=True,
        message=f"User '{target_user.username}' has been unblocked",
        user_id=user_id,
        action=AuditAction.USER_UNBLOCKED,
        audit_log_id=audit_log.id
    )


@router.get("/audit-logs", response_model=AuditTrailResponse)
async def get_audit_logs(
    user_id: int = Query(None, description="Filter by target user ID"),
    center_id: int = Query(None, description="Filter by center"),
    action: str = Query(None, description="Filter by action type"),
    limit: int = Query(100, ge=1, le=500, description="Maximum records to return"),
    admin: CallerContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Get audit trail with optional filtering (admin-only).
    """
    logs = await get_audit_trail(
        db=db,
        target_user_id=user_id,
        center_id=center_id,
        action=action,
        limit=limit
    )

    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )
