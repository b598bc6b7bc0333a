"""
Authentication middleware for protecting routes with JWT verification.
"""

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from loguru import logger

from app.dependencies import get_credential_store, get_token_service
from app.models.user import CurrentUser
from app.services.credentials import CredentialStore
from app.utils.auth import TokenExpiredError, TokenError, TokenService
from app.utils.errors import UnauthorizedError

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    tokens: TokenService = Depends(get_token_service),
    store: CredentialStore = Depends(get_credential_store)
) -> CurrentUser:
    """
    Dependency to get the current authenticated user from JWT token.

    The token subject is looked up again on every request, so a validly
    signed token for a deleted account is still rejected.

    Args:
        credentials: HTTP Bearer token credentials, None when the header is
            missing or uses another scheme

    Returns:
        CurrentUser scoped to this request

    Raises:
        UnauthorizedError: If authentication fails
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Access token required")

    try:
        token_data = tokens.verify(credentials.credentials)
    except TokenExpiredError:
        raise UnauthorizedError("Token expired")
    except TokenError as e:
        logger.warning(f"Rejected token: {e}")
        raise UnauthorizedError("Invalid token")

    user = await store.find_by_id(token_data.user_id)
    if user is None:
        logger.warning(f"Token subject no longer exists: {token_data.user_id}")
        raise UnauthorizedError("User not found")

    return CurrentUser(id=user.id, email=user.email, name=user.name)
