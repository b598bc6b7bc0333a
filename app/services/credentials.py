"""
Credential store: registration, login verification and user lookup.

bcrypt is slow on purpose, so hashing and verification are pushed to the
threadpool and never run on the event loop.
"""

import secrets
from typing import Optional

from loguru import logger
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError
from starlette.concurrency import run_in_threadpool

from app.models.user import User, UserCreate
from app.services.database import UserDB
from app.utils.auth import get_password_hash, verify_password
from app.utils.errors import ConflictError, InputValidationError, UnauthorizedError

INVALID_CREDENTIALS = "Invalid email or password"
DUPLICATE_EMAIL = "User with this email already exists"


def _first_error_message(exc: ValidationError) -> str:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error["loc"])
    return f"{field}: {error['msg']}" if field else error["msg"]


class CredentialStore:

    def __init__(self, users: UserDB, bcrypt_rounds: int = 12):
        self.users = users
        self.bcrypt_rounds = bcrypt_rounds
        self._placeholder_hash: Optional[str] = None

    async def _unknown_user_hash(self) -> str:
        # Checked against for unknown emails so both login failures pay for bcrypt
        if self._placeholder_hash is None:
            self._placeholder_hash = await run_in_threadpool(
                get_password_hash, secrets.token_urlsafe(16), self.bcrypt_rounds)
        return self._placeholder_hash

    async def register(self, name: str, email: str, password: str) -> User:
        try:
            data = UserCreate(name=name, email=email, password=password)
        except ValidationError as e:
            raise InputValidationError(_first_error_message(e)) from e

        if await self.users.get_user_by_email(data.email):
            raise ConflictError(DUPLICATE_EMAIL)

        hashed_password = await run_in_threadpool(
            get_password_hash, data.password, self.bcrypt_rounds)

        try:
            user = await self.users.create_user(
                name=data.name,
                email=data.email,
                hashed_password=hashed_password
            )
        except DuplicateKeyError as e:
            # Lost a race with a concurrent registration for the same email
            raise ConflictError(DUPLICATE_EMAIL) from e

        logger.info(f"New user registered: {user.email}")
        return user

    async def verify_credentials(self, email: str, password: str) -> User:
        user = await self.users.get_user_by_email(email)

        if user is None:
            await run_in_threadpool(
                verify_password, password, await self._unknown_user_hash())
            logger.warning(f"Login failed, unknown email: {email}")
            raise UnauthorizedError(INVALID_CREDENTIALS)

        valid = await run_in_threadpool(
            verify_password, password, user.hashed_password)
        if not valid:
            logger.warning(f"Login failed, bad password for: {email}")
            raise UnauthorizedError(INVALID_CREDENTIALS)

        return user

    async def find_by_id(self, user_id: str) -> Optional[User]:
        return await self.users.get_user_by_id(user_id)
