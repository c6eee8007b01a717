"""
Authentication API endpoints.

Provides login, logout and user info endpoints. Accounts are created by
admins (see admin endpoints); there is no self-registration.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from tuition_backend.app.db.session import get_db
from tuition_backend.app.models.user import User
from tuition_backend.app.schemas.auth import UserLogin, TokenResponse, UserResponse, LogoutResponse
from tuition_backend.app.core.security import verify_password
from tuition_backend.app.core.jwt import create_access_token
from tuition_backend.app.core.dependencies import get_current_user, security
from tuition_backend.app.core.token_revocation import revoke_token
from tuition_backend.app.services.audit import log_auth_event, AuditAction

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Login user and return JWT token.

    Accepts username or email for login. The password is always checked
    against the stored bcrypt hash. Logs successful and failed login
    attempts for security monitoring.
    """
    ip_address = request.client.host if request.client else None

    # Find user by username or email
    result = await db.execute(
        select(User).where(
            or_(User.username == credentials.username, User.email == credentials.username)
        )
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.hashed_password):
        # Log failed login attempt
        await log_auth_event(
            db=db,
            action=AuditAction.LOGIN_FAILED,
            user_id=user.id if user else None,
            username=credentials.username,
            ip_address=ip_address,
            metadata={"reason": "Invalid password" if user else "User not found"},
            center_id=user.center_id if user else None
        )
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Check if user is active
    if not user.is_active:
        await log_auth_event(
            db=db,
            action=AuditAction.LOGIN_FAILED,
            user_id=user.id,
            username=user.username,
            ip_address=ip_address,
            metadata={"reason": "Account is inactive/blocked"},
            center_id=user.center_id
        )
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user account"
        )

    # Generate JWT token with role and tenant
    jwt_payload = {
        "sub": user.username,
        "user_id": user.id,
        "role": user.role.value,
        "center_id": user.center_id
    }

    access_token = create_access_token(data=jwt_payload)

    # Log successful login
    await log_auth_event(
        db=db,
        action=AuditAction.LOGIN_SUCCESS,
        user_id=user.id,
        username=user.username,
        ip_address=ip_address,
        center_id=user.center_id
    )
    await db.commit()

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        user_id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        center_id=user.center_id
    )


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Revoke the presented token until it would have expired anyway."""
    revoked = await revoke_token(credentials.credentials, current_user["user_id"])

    await log_auth_event(
        db=db,
        action=AuditAction.LOGOUT,
        user_id=current_user["user_id"],
        username=current_user.get("sub"),
        center_id=current_user.get("center_id")
    )
    await db.commit()

    return LogoutResponse(
        success=revoked,
        message="Logged out" if revoked else "Logged out locally; token revocation is unavailable"
    )


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get current authenticated user information.

    Requires valid JWT token in Authorization header.
    """
    result = await db.execute(select(User).where(User.id == current_user["user_id"]))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return UserResponse.model_validate(user)
