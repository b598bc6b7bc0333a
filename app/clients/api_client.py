"""
HTTP client for the board API that keeps its session in a SessionStore.
"""

import mimetypes
import os
from typing import Any, Dict, List, Optional

import requests
from loguru import logger

from app.clients.session import SessionStore


class ClientError(Exception):

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


class ClassifiedsClient:

    def __init__(self, base_url: str, session: Optional[SessionStore] = None, http=None):
        self.base_url = base_url.rstrip("/")
        self.session = session or SessionStore()
        self.http = http or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _handle(self, response, authenticated: bool = False) -> Any:
        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code >= 400:
            message = None
            if isinstance(data, dict):
                message = data.get("message")
            message = message or f"Request failed ({response.status_code})"

            if authenticated and response.status_code == 401:
                logger.warning("Session rejected by server, logging out")
                self.session.clear()

            raise ClientError(response.status_code, message)

        return data

    def _store_session(self, data: Dict[str, Any]) -> Dict[str, Any]:
        self.session.save(data["token"], data["user"])
        return data["user"]

    def register(self, name: str, email: str, password: str) -> Dict[str, Any]:
        response = self.http.post(
            self._url("/api/auth/register"),
            json={"name": name, "email": email, "password": password}
        )
        return self._store_session(self._handle(response))

    def login(self, email: str, password: str) -> Dict[str, Any]:
        response = self.http.post(
            self._url("/api/auth/login"),
            json={"email": email, "password": password}
        )
        return self._store_session(self._handle(response))

    def logout(self) -> None:
        self.session.clear()

    def me(self) -> Dict[str, Any]:
        response = self.http.get(
            self._url("/api/auth/me"),
            headers=self.session.auth_header()
        )
        return self._handle(response, authenticated=True)["user"]

    def list_posts(
        self,
        q: Optional[str] = None,
        post_type: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        params = {}
        if q:
            params["q"] = q
        if post_type:
            params["type"] = post_type
        if user_id:
            params["userId"] = user_id

        response = self.http.get(self._url("/api/posts"), params=params)
        return self._handle(response)

    def my_posts(self) -> List[Dict[str, Any]]:
        if not self.session.user:
            raise ClientError(401, "Not logged in")
        return self.list_posts(user_id=self.session.user["id"])

    def create_post(self, post_type: str, content: str, image_path: Optional[str] = None) -> Dict[str, Any]:
        form = {"type": post_type, "content": content}
        headers = self.session.auth_header()

        if image_path is None:
            response = self.http.post(self._url("/api/posts"), data=form, headers=headers)
        else:
            content_type = mimetypes.guess_type(image_path)[0] or "application/octet-stream"
            with open(image_path, "rb") as f:
                files = {"image": (os.path.basename(image_path), f, content_type)}
                response = self.http.post(
                    self._url("/api/posts"), data=form, files=files, headers=headers)

        return self._handle(response, authenticated=True)["data"]

    def delete_post(self, post_id: str) -> None:
        response = self.http.delete(
            self._url(f"/api/posts/{post_id}"),
            headers=self.session.auth_header()
        )
        self._handle(response, authenticated=True)
