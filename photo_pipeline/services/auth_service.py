import secrets
from typing import Optional


class AuthServiceError(Exception):
    """Custom exception for authentication errors"""
    pass


def verify_admin_token(token: Optional[str], expected: Optional[str]) -> bool:
    """
    Compare a bearer token to the configured admin token in constant time.

    An unset admin token means nobody is authorized.
    """
    if not expected or not token:
        return False
    return secrets.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


def require_admin_token(token: Optional[str], expected: Optional[str]) -> None:
    """
    Raise unless the token matches.

    Raises:
        AuthServiceError: If the admin token is unset or doesn't match
    """
    if not expected:
        raise AuthServiceError("Admin token is not configured")
    if not token:
        raise AuthServiceError("Missing bearer token")
    if not verify_admin_token(token, expected):
        raise AuthServiceError("Invalid admin token")
