"""Thin HTTP client for the remote user directory API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

logger = logging.getLogger("useradmin.api")

NO_RESPONSE_STATUS = 0
REQUEST_SETUP_STATUS = -1
UNEXPECTED_STATUS = -2


class APIError(Exception):
    """Base class for failures talking to the remote API."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class APIStatusError(APIError):
    """The server responded with a non-success status code."""

    def __init__(self, message: str, *, status_code: int, payload: object = None) -> None:
        super().__init__(message, status_code=status_code)
        self.payload = payload


class APIConnectionError(APIError):
    """The request was sent but no response was received."""


class APIRequestError(APIError):
    """The request could not be constructed locally."""


@dataclass(frozen=True)
class ErrorDetails:
    """User-facing summary of a failed remote call."""

    message: str
    status: int


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("API base URL must not be empty")
    return cleaned.rstrip("/")


def _build_endpoint(base_url: str, path: str) -> str:
    if not path.startswith("/"):
        path = "/" + path
    return f"{base_url}{path}"


def _extract_error_message(payload: object, default: str) -> str:
    if isinstance(payload, dict):
        for key in ("error", "message", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    return default


class APIClient:
    """Issue JSON requests against the remote API and classify failures."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        verify: str | bool = True,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_url = _normalize_base_url(base_url)
        self._api_key = api_key.strip() if api_key else None
        self._timeout = timeout
        self._verify = verify
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["x-api-key"] = self._api_key
        return headers

    def _client(self) -> httpx.Client:
        return httpx.Client(
            headers=self._headers(),
            timeout=self._timeout,
            verify=self._verify,
            transport=self._transport,
        )

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (``None`` when empty)."""

        url = _build_endpoint(self._base_url, path)

        try:
            with self._client() as client:
                response = client.request(method, url, params=params, json=json)
        except (httpx.UnsupportedProtocol, httpx.LocalProtocolError, httpx.InvalidURL) as exc:
            raise APIRequestError(f"Could not build request for {method} {path}: {exc}") from exc
        except httpx.RequestError as exc:
            raise APIConnectionError(f"No response from {method} {path}: {exc}") from exc
        except (TypeError, ValueError) as exc:
            raise APIRequestError(f"Could not encode request for {method} {path}: {exc}") from exc

        if response.is_error:
            try:
                parsed: object = response.json()
            except ValueError:
                parsed = response.text
            default = f"Request failed with status {response.status_code}"
            raise APIStatusError(
                _extract_error_message(parsed, default),
                status_code=response.status_code,
                payload=parsed,
            )

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as exc:
            raise APIError(
                f"{method} {path} returned an invalid response",
                status_code=response.status_code,
            ) from exc

    def get(self, path: str, *, params: Optional[Mapping[str, Any]] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, payload: Any) -> Any:
        return self.request("POST", path, json=payload)

    def put(self, path: str, payload: Any) -> Any:
        return self.request("PUT", path, json=payload)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)


def describe_api_error(error: BaseException) -> ErrorDetails:
    """Classify ``error`` into a message and status suitable for display."""

    if isinstance(error, APIStatusError):
        logger.error("Remote API responded with %s: %s", error.status_code, error.payload)
        return ErrorDetails(message=error.message or "An error occurred", status=error.status_code)
    if isinstance(error, APIConnectionError):
        logger.error("No response received: %s", error)
        return ErrorDetails(message="No response from server", status=NO_RESPONSE_STATUS)
    if isinstance(error, APIRequestError):
        logger.error("Error setting up the request: %s", error)
        return ErrorDetails(message="Error setting up the request", status=REQUEST_SETUP_STATUS)
    if isinstance(error, APIError):
        logger.error("Remote API error: %s", error)
        status = error.status_code if error.status_code is not None else UNEXPECTED_STATUS
        return ErrorDetails(message=error.message, status=status)
    logger.error("Unexpected error: %r", error)
    return ErrorDetails(message="An unexpected error occurred", status=UNEXPECTED_STATUS)


__all__ = [
    "APIClient",
    "APIConnectionError",
    "APIError",
    "APIRequestError",
    "APIStatusError",
    "ErrorDetails",
    "describe_api_error",
]
