"""
Client-side session cache.

Holds the token and user returned by login/registration and decides where a
client should be routed. This only gates navigation; the server's signature
check is the actual security boundary.
"""

import json
import os
import time
from typing import Any, Callable, Dict, Optional

import jwt
from loguru import logger

PROTECTED_ROUTES = {"/", "/my-stuff"}
PUBLIC_ROUTES = {"/login", "/register"}


class SessionStore:

    def __init__(self, path: Optional[str] = None, clock: Callable[[], float] = time.time):
        self.path = path
        self.clock = clock
        self.token: Optional[str] = None
        self.user: Optional[Dict[str, Any]] = None

        if path:
            self._load()

    def _load(self) -> None:
        if not os.path.exists(self.path):
            return

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self.token = data.get("token")
            self.user = data.get("user")
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"Discarding unreadable session file {self.path}: {e}")
            self.clear()

    def _persist(self) -> None:
        if not self.path:
            return

        if self.token is None:
            if os.path.exists(self.path):
                os.remove(self.path)
            return

        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({"token": self.token, "user": self.user}, f)

    def save(self, token: str, user: Dict[str, Any]) -> None:
        self.token = token
        self.user = user
        self._persist()

    def clear(self) -> None:
        self.token = None
        self.user = None
        self._persist()

    def token_expiry(self) -> Optional[float]:
        """The ``exp`` claim of the cached token, read without verification."""
        if not self.token:
            return None

        try:
            payload = jwt.decode(self.token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            return None

        exp = payload.get("exp")
        return float(exp) if isinstance(exp, (int, float)) else None

    def is_authenticated(self) -> bool:
        exp = self.token_expiry()
        return exp is not None and exp > self.clock()

    def initialize(self) -> bool:
        """Drop a stale or half-written session. Returns whether one survives."""
        if self.token and self.user and self.is_authenticated():
            return True

        self.clear()
        return False

    def auth_header(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def resolve_route(self, path: str) -> str:
        """Where a client asking for ``path`` should end up."""
        authenticated = self.is_authenticated()

        if path in PROTECTED_ROUTES:
            return path if authenticated else "/login"

        if path in PUBLIC_ROUTES:
            return "/" if authenticated else path

        return "/"
