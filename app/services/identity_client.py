# app/services/identity_client.py
from abc import ABC, abstractmethod

import requests

from app.domain.errors import Unauthenticated, ValidationError
from app.domain.models import User
from app.utils.retry import http_retry
from app.utils.settings import AUTH_SERVICE_URL, HTTP_TIMEOUT_SECONDS
from app.utils.logging import get_logger

logger = get_logger(__name__)


class IdentityProvider(ABC):
    @abstractmethod
    def current_user(self) -> User | None:
        """Zalogowany użytkownik bieżącej sesji albo None."""

    @abstractmethod
    def authenticate(self, email: str, password: str) -> User:
        """Logowanie, błąd -> Unauthenticated."""


class AuthApiClient(IdentityProvider):
    """Klient /api/auth, trzyma zalogowanego użytkownika dla sesji."""

    def __init__(self, base_url: str | None = None, timeout: int = HTTP_TIMEOUT_SECONDS):
        self.base_url = (base_url or AUTH_SERVICE_URL).rstrip("/")
        self.timeout = timeout
        self._user: User | None = None

    def current_user(self) -> User | None:
        return self._user

    def logout(self) -> None:
        self._user = None

    @http_retry()
    def _post(self, url: str, body: dict) -> requests.Response:
        return requests.post(url, json=body, timeout=self.timeout)

    def authenticate(self, email: str, password: str) -> User:
        if not email.strip() or not password:
            raise ValidationError("Email and password are required")

        url = f"{self.base_url}/api/auth/login"
        logger.info(f"AuthApiClient POST {url}")
        try:
            resp = self._post(url, {"email": email.strip(), "password": password})
        except requests.RequestException as e:
            raise Unauthenticated("Login service unavailable, please try again") from e

        body = resp.json() if resp.content else {}
        if resp.status_code != 200 or not body.get("success", True):
            raise Unauthenticated(body.get("error") or "Invalid email or password")

        data = body.get("data", body)
        self._user = User(user_id=data["userId"], email=data.get("email", email), name=data.get("name", ""))
        return self._user
