"""Authentication and authorization for the API.

This module provides JWT-based authentication for API endpoints.
Tokens carry the username as subject and are signed with the secret key
from configuration.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends, HTTPException, Request, status  # type: ignore[import-untyped]
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer  # type: ignore[import-untyped]
from jose import JWTError, jwt  # type: ignore[import-untyped]

from kimai.api.dependencies import get_config, get_storage
from kimai.core.config import ConfigManager
from kimai.core.exceptions import AccessDeniedError
from kimai.core.models import Role, User
from kimai.core.security import UserChecker
from kimai.core.storage import StorageManager

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# Missing credentials are reported by get_current_user, not by the scheme
security = HTTPBearer(auto_error=False)


def create_access_token(
    data: dict[str, Any], secret_key: str, expires_delta: Optional[timedelta] = None
) -> str:
    """Create a JWT access token.

    Args:
        data: Data to encode in the token
        secret_key: Secret key for encoding
        expires_delta: Optional expiration time delta, defaults to 24 hours

    Returns:
        Encoded JWT token string

    Example:
        >>> token = create_access_token(
        ...     data={"sub": "susan_super"},
        ...     secret_key="your-secret-key",
        ...     expires_delta=timedelta(hours=24)
        ... )
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(hours=24))
    to_encode.update({"exp": expire, "iat": now})

    encoded_jwt: str = jwt.encode(to_encode, secret_key, algorithm=ALGORITHM)
    return encoded_jwt


def decode_token(token: str, config: ConfigManager) -> dict[str, Any]:
    """Decode and verify a token.

    Raises:
        HTTPException: If the secret key is missing or the token is invalid or expired
    """
    secret_key = config.get("api.authentication.secret_key")
    if not secret_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="API secret key not configured",
        )
    try:
        payload: dict[str, Any] = jwt.decode(token, secret_key, algorithms=[ALGORITHM])
        return payload
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication credentials: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _fallback_user(storage: StorageManager) -> Optional[User]:
    users = [u for u in storage.load_users() if u.enabled]
    for user in users:
        if user.has_role(Role.SUPER_ADMIN):
            return user
    return users[0] if users else None


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> User:
    """Resolve the user the request acts as.

    With authentication disabled the first enabled super admin (or any
    enabled user) is used.

    Raises:
        HTTPException: 401 for a missing or invalid token or unknown user,
            403 for a disabled account

    Note:
        This is a dependency function for FastAPI endpoints.
        Use with Depends(get_current_user) to protect endpoints.
    """
    config = get_config(request)
    storage = get_storage(request)

    if not config.get("api.authentication.enabled", True):
        user = _fallback_user(storage)
        if user is None:
            raise _unauthorized("No user available")
        return user

    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = decode_token(credentials.credentials, config)
    username = payload.get("sub")
    user = storage.get_user_by_username(str(username)) if username else None
    if user is None:
        raise _unauthorized("Unknown user")

    try:
        UserChecker().check_post_auth(user)
    except AccessDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
    return user


def get_token_expiry_seconds(config: ConfigManager) -> int:
    """Get token expiry time in seconds from config."""
    hours: int = config.get("api.authentication.token_expiry_hours", 24)
    return hours * 3600


def create_token_for_user(config: ConfigManager, username: str) -> dict[str, Any]:
    """Create a complete token response.

    Args:
        config: Configuration manager
        username: Username stored as token subject

    Returns:
        Dictionary with access_token, token_type, and expires_in

    Example:
        >>> config = ConfigManager()
        >>> token_data = create_token_for_user(config, "susan_super")
        >>> print(token_data["access_token"])
    """
    secret_key = config.ensure_api_secret_key()
    expiry_hours = config.get("api.authentication.token_expiry_hours", 24)

    access_token = create_access_token(
        data={"sub": username}, secret_key=secret_key, expires_delta=timedelta(hours=expiry_hours)
    )
    logger.info(f"Issued API token for {username}")

    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": get_token_expiry_seconds(config),
    }
