"""
Token Revocation System using Redis.

Implements token blacklisting to immediately invalidate JWT tokens
when users log out or are blocked.
"""

import logging

from redis.exceptions import RedisError

from tuition_backend.app.core.config import settings
from tuition_backend.app.core.redis_client import get_redis

logger = logging.getLogger("tuition.auth")

# Redis key prefix for blacklisted tokens
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"
USER_TOKENS_PREFIX = "user:tokens:"


def _token_ttl_seconds() -> int:
    # Tokens expire on their own after this window
    return settings.access_token_expire_minutes * 60


async def revoke_token(token: str, user_id: int) -> bool:
    """
    Revoke a specific JWT token by adding it to the blacklist.

    Args:
        token: The JWT token string to revoke
        user_id: User ID who owns the token

    Returns:
        True if successfully revoked, False otherwise
    """
    redis_client = await get_redis()
    try:
        await redis_client.setex(f"{TOKEN_BLACKLIST_PREFIX}{token}", _token_ttl_seconds(), str(user_id))
        return True
    except RedisError:
        logger.exception("Error revoking token for user %s", user_id)
        return False


async def is_token_revoked(token: str) -> bool:
    """
    Check if a token has been revoked.

    If Redis is unreachable the request is allowed (availability over
    revocation); the failure is logged.
    """
    redis_client = await get_redis()
    try:
        return await redis_client.exists(f"{TOKEN_BLACKLIST_PREFIX}{token}") > 0
    except RedisError:
        logger.warning("Token revocation check skipped: Redis unavailable")
        return False


async def revoke_all_user_tokens(user_id: int) -> bool:
    """
    Revoke all active tokens for a specific user.

    Called when a user is blocked to immediately terminate all sessions.
    """
    redis_client = await get_redis()
    try:
        await redis_client.setex(f"{USER_TOKENS_PREFIX}{user_id}:revoked", _token_ttl_seconds(), "1")
        return True
    except RedisError:
        logger.exception("Error revoking all tokens for user %s", user_id)
        return False


async def are_user_tokens_revoked(user_id: int) -> bool:
    """Check if all tokens for a user have been revoked."""
    redis_client = await get_redis()
    try:
        return await redis_client.exists(f"{USER_TOKENS_PREFIX}{user_id}:revoked") > 0
    except RedisError:
        logger.warning("User revocation check skipped: Redis unavailable")
        return False


async def clear_user_token_revocation(user_id: int) -> bool:
    """
    Clear the global token revocation flag for a user.

    Called when a blocked user is unblocked.
    """
    redis_client = await get_redis()
    try:
        await redis_client.delete(f"{USER_TOKENS_PREFIX}{user_id}:revoked")
        return True
    except RedisError:
        logger.exception("Error clearing token revocation for user %s", user_id)
        return False
