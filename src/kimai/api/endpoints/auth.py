"""Token endpoint exchanging username and password for a JWT."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status  # type: ignore[import-untyped]

from kimai.api.auth import create_token_for_user
from kimai.api.dependencies import get_config, get_storage
from kimai.api.models import TokenRequest, TokenResponse
from kimai.core.config import ConfigManager
from kimai.core.exceptions import AccessDeniedError, AuthenticationError
from kimai.core.security import authenticate
from kimai.core.storage import StorageManager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/token", response_model=TokenResponse)
async def create_token(
    request: TokenRequest,
    config: ConfigManager = Depends(get_config),
    storage: StorageManager = Depends(get_storage),
) -> TokenResponse:
    """Authenticate with username (or email) and password.

    Raises:
        HTTPException: 401 for invalid credentials, 403 for disabled accounts
    """
    try:
        user = authenticate(storage.get_user_by_username(request.username), request.password)
    except AuthenticationError as e:
        logger.info(f"Failed login for {request.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
    except AccessDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)

    return TokenResponse(**create_token_for_user(config, user.username))
