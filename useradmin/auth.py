"""Session token handling for the administration console."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, MutableMapping, Optional

from .api_client import APIClient, APIError
from .models import Credentials

logger = logging.getLogger("useradmin.auth")

TOKEN_STORAGE_KEY = "auth_token"
_ISSUED_AT_KEY = "auth_token_issued_at"


class TokenStorage:
    """Keep the session token in a per-browser mapping such as the request session."""

    def __init__(
        self,
        backend: MutableMapping[str, Any],
        *,
        ttl: Optional[timedelta] = None,
    ) -> None:
        self._backend = backend
        self._ttl = ttl

    def get(self) -> Optional[str]:
        token = self._backend.get(TOKEN_STORAGE_KEY)
        if not isinstance(token, str) or not token:
            return None
        if self._ttl is not None and self._is_expired():
            logger.info("Stored session token expired; clearing it")
            self.clear()
            return None
        return token

    def set(self, token: str) -> None:
        self._backend[TOKEN_STORAGE_KEY] = token
        self._backend[_ISSUED_AT_KEY] = self._now().isoformat()

    def clear(self) -> None:
        self._backend.pop(TOKEN_STORAGE_KEY, None)
        self._backend.pop(_ISSUED_AT_KEY, None)

    def _is_expired(self) -> bool:
        assert self._ttl is not None
        raw = self._backend.get(_ISSUED_AT_KEY)
        try:
            issued_at = datetime.fromisoformat(str(raw))
        except ValueError:
            return True
        return issued_at + self._ttl <= self._now()

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)


class AuthService:
    """Exchange credentials for a bearer token and gate access on its presence."""

    def __init__(self, client: APIClient, storage: TokenStorage) -> None:
        self._client = client
        self._storage = storage

    def login(self, credentials: Credentials) -> Dict[str, Any]:
        try:
            payload = self._client.post(
                "/login",
                {"email": credentials.email, "password": credentials.password},
            )
        except APIError:
            logger.warning("Login failed for %s", credentials.email)
            raise

        token = payload.get("token") if isinstance(payload, dict) else None
        if not isinstance(token, str) or not token:
            logger.warning("Login response for %s did not include a token", credentials.email)
            raise APIError("Login response did not include a token")

        self._storage.set(token)
        logger.info("Signed in %s", credentials.email)
        return payload

    def logout(self) -> None:
        self._storage.clear()

    def get_token(self) -> Optional[str]:
        return self._storage.get()

    def is_authenticated(self) -> bool:
        return self.get_token() is not None


__all__ = ["AuthService", "TOKEN_STORAGE_KEY", "TokenStorage"]
