"""
Authentication routes for user registration, login and session checks.
"""

from fastapi import APIRouter, status, Depends
from loguru import logger

from app.models.user import (
    AuthResponse, CurrentUser, CurrentUserResponse, User, UserCreate, UserLogin, UserPublic
)
from app.services.credentials import CredentialStore
from app.dependencies import get_credential_store, get_token_service
from app.middleware.auth_middleware import get_current_user
from app.utils.auth import TokenService

router = APIRouter(prefix="/api/auth", tags=["authentication"])


def _auth_response(user: User, tokens: TokenService, message: str) -> AuthResponse:
    token = tokens.issue(user.id, user.email, username=user.name)
    return AuthResponse(
        message=message,
        user=UserPublic(id=user.id, name=user.name, email=user.email),
        token=token
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user: UserCreate,
    store: CredentialStore = Depends(get_credential_store),
    tokens: TokenService = Depends(get_token_service)
):
    """
    Register a new user account.

    Args:
        user: User registration data

    Returns:
        The new user and a JWT access token

    Raises:
        ConflictError: If email already exists
    """
    created_user = await store.register(user.name, user.email, user.password)
    return _auth_response(created_user, tokens, "User registered successfully")


@router.post("/login", response_model=AuthResponse)
async def login(
    user: UserLogin,
    store: CredentialStore = Depends(get_credential_store),
    tokens: TokenService = Depends(get_token_service)
):
    """
    Authenticate user and return JWT token.

    Raises:
        UnauthorizedError: If credentials are invalid
    """
    db_user = await store.verify_credentials(user.email, user.password)

    logger.info(f"User logged in: {db_user.email}")

    return _auth_response(db_user, tokens, "Login successful")


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user_info(current_user: CurrentUser = Depends(get_current_user)):
    return CurrentUserResponse(
        user=UserPublic(
            id=current_user.id,
            name=current_user.name,
            email=current_user.email
        )
    )
