"""
Password hashing and JWT token helpers.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import bcrypt
import jwt

from app.models.user import TokenData

# bcrypt only reads the first 72 bytes of its input
BCRYPT_MAX_PASSWORD_BYTES = 72


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenExpiredError(TokenError):
    pass


class TokenMalformedError(TokenError):
    pass


class TokenSignatureError(TokenError):
    pass


def get_password_hash(password: str, rounds: int = 12) -> str:
    """Hash a password with a fresh random salt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a plaintext password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8")
        )
    except ValueError:
        # Over-long input or a corrupt stored hash never verifies
        return False


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """
    Issues and verifies signed, time-limited identity tokens.

    Expiry is absolute: ``exp`` is fixed at ``iat + expire_minutes`` when the
    token is minted and is never extended.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expire_minutes: int = 10080,
        clock: Callable[[], datetime] = _utcnow
    ):
        if not secret_key:
            raise ValueError("JWT secret key is not configured")

        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expires_delta = timedelta(minutes=expire_minutes)
        self.clock = clock

    def issue(self, user_id: str, email: str, username: Optional[str] = None) -> str:
        issued_at = self.clock()
        claims = {
            "sub": user_id,
            "email": email,
            "iat": issued_at,
            "exp": issued_at + self.expires_delta
        }
        if username:
            claims["username"] = username

        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenData:
        """
        Decode and validate a token.

        Raises:
            TokenExpiredError: the token is past its ``exp``
            TokenSignatureError: the signature does not match the secret
            TokenMalformedError: anything else wrong with the token
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "iat"]}
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Token expired") from e
        except jwt.InvalidSignatureError as e:
            raise TokenSignatureError("Invalid token signature") from e
        except jwt.InvalidTokenError as e:
            raise TokenMalformedError("Malformed token") from e

        user_id = payload.get("sub")
        email = payload.get("email")
        if not isinstance(user_id, str) or not isinstance(email, str):
            raise TokenMalformedError("Malformed token")

        return TokenData(
            user_id=user_id,
            email=email,
            username=payload.get("username"),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        )
