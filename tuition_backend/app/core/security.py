"""
Password hashing utilities.

Credentials are stored as bcrypt hashes and verified on every login.
"""

import bcrypt

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


def get_password_hash(password: str) -> str:
    """
    Hash a plaintext password with a fresh salt.

    Args:
        password: Plaintext password (at most 72 bytes once UTF-8 encoded)

    Returns:
        bcrypt hash as a string suitable for the users table
    """
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > MAX_PASSWORD_BYTES:
        raise ValueError("Password is too long")
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Check a plaintext password against a stored hash.

    Returns False for malformed hashes or over-long passwords instead of raising.
    """
    password_bytes = plain_password.encode("utf-8")
    if len(password_bytes) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))
    except ValueError:
        return False
