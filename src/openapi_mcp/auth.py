"""Authentication providers.

The router consumes any object satisfying the ``AuthProvider`` protocol:

- ``get_auth_headers()`` is awaited before every request and may raise when
  credentials are unavailable;
- ``handle_auth_error(error)`` is awaited on a 401/403 response and returns
  True to retry the request once with fresh headers. It may raise to report
  an unrecoverable condition; that error reaches the caller verbatim.

The providers below are independent implementations of that protocol.
"""

from __future__ import annotations

import asyncio
import base64
import inspect
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol, Union, runtime_checkable

import httpx

from .errors import AuthenticationError
from .logging import get_logger

__all__ = [
    "AuthProvider",
    "StaticAuthProvider",
    "BearerTokenAuthProvider",
    "RedmineAuthProvider",
    "auth_provider_from_value",
    "is_auth_error",
]

log = get_logger(__name__)

TokenFn = Callable[[], Union[str, Awaitable[str]]]

AUTH_ERROR_STATUSES = frozenset({401, 403})


@runtime_checkable
class AuthProvider(Protocol):
    async def get_auth_headers(self) -> Dict[str, str]: ...

    async def handle_auth_error(self, error: httpx.HTTPStatusError) -> bool: ...


def is_auth_error(error: BaseException) -> bool:
    """True for HTTP 401/403 responses."""
    return isinstance(error, httpx.HTTPStatusError) and error.response.status_code in AUTH_ERROR_STATUSES


class StaticAuthProvider:
    """Fixed headers; cannot recover from auth errors."""

    def __init__(self, headers: Optional[Mapping[str, str]] = None):
        self._headers = dict(headers or {})

    async def get_auth_headers(self) -> Dict[str, str]:
        return dict(self._headers)

    async def handle_auth_error(self, error: httpx.HTTPStatusError) -> bool:
        return False


class BearerTokenAuthProvider:
    """``Authorization: Bearer <token>`` from a static token or a token function.

    With ``token_fn`` the token is fetched lazily and re-fetched once after a
    401, in which case the request is retried. Concurrent refreshes are
    serialized so one failure does not trigger several refreshes.
    """

    def __init__(self, token: Optional[str] = None, *, token_fn: Optional[TokenFn] = None):
        if token is None and token_fn is None:
            raise ValueError("BearerTokenAuthProvider needs a token or a token_fn")
        self._token = token
        self._token_fn = token_fn
        self._lock = asyncio.Lock()

    async def _fetch(self) -> str:
        if self._token_fn is None:
            raise AuthenticationError("No token function configured to refresh the bearer token")
        token = self._token_fn()
        if inspect.isawaitable(token):
            token = await token
        if not token:
            raise AuthenticationError("Token function returned an empty token")
        return str(token)

    async def get_auth_headers(self) -> Dict[str, str]:
        async with self._lock:
            if self._token is None:
                self._token = await self._fetch()
            return {"Authorization": f"Bearer {self._token}"}

    async def handle_auth_error(self, error: httpx.HTTPStatusError) -> bool:
        if self._token_fn is None or error.response.status_code != 401:
            return False
        used = error.request.headers.get("Authorization", "").removeprefix("Bearer ").strip()
        async with self._lock:
            if self._token is not None and self._token != used:
                # another call already refreshed since this request was sent
                return True
            self._token = await self._fetch()
            log.info("Refreshed bearer token after 401")
            return self._token != used


class RedmineAuthProvider:
    """Redmine API key authentication via the ``X-Redmine-API-Key`` header.

    An admin key may impersonate another user with ``switch_user``. Redmine
    does not issue refreshable tokens, so 401/403 responses raise an
    ``AuthenticationError`` explaining what to check.
    """

    def __init__(self, api_key: Optional[str] = None, switch_user: Optional[str] = None):
        self._api_key: Optional[str] = None
        self._switch_user: Optional[str] = None
        if api_key:
            self.set_api_key(api_key)
        if switch_user:
            self.set_switch_user(switch_user)

    def set_api_key(self, api_key: str) -> None:
        self._api_key = api_key

    def set_switch_user(self, username: str) -> None:
        self._switch_user = username

    async def get_auth_headers(self) -> Dict[str, str]:
        if not self._api_key:
            raise AuthenticationError(
                "Redmine API key not set. Please set your API key using set_api_key().",
                hint=(
                    "Open your Redmine profile page, click 'API access key', "
                    "copy the generated key and pass it to set_api_key()."
                ),
            )
        headers = {
            "X-Redmine-API-Key": self._api_key,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self._switch_user:
            headers["X-Redmine-Switch-User"] = self._switch_user
        return headers

    async def handle_auth_error(self, error: httpx.HTTPStatusError) -> bool:
        status = error.response.status_code
        if status == 401:
            raise AuthenticationError(
                "Redmine authentication failed (401 Unauthorized).",
                status_code=401,
                hint=(
                    "Check that the API key is valid, the REST API is enabled "
                    "(Administration -> Settings -> API), and the key belongs to an "
                    "active user with API access."
                ),
            )
        if status == 403:
            raise AuthenticationError(
                "Redmine access denied (403 Forbidden).",
                status_code=403,
                hint=(
                    "Check the user may access this resource, that impersonation "
                    "uses an admin key, and that the account is not locked."
                ),
            )
        return False

    def get_auth_status(self) -> Dict[str, Any]:
        return {
            "has_api_key": bool(self._api_key),
            "api_key_preview": f"{self._api_key[:8]}..." if self._api_key else None,
            "switch_user": self._switch_user,
        }

    def clear_auth(self) -> None:
        self._api_key = None
        self._switch_user = None


def auth_provider_from_value(value: Any) -> Optional[AuthProvider]:
    """Coerce a loose auth value into a provider.

    - ``None`` -> ``None``
    - an ``AuthProvider`` -> itself
    - ``dict`` -> static headers
    - ``(user, password)`` -> HTTP basic
    - ``str`` -> bearer token
    - callable -> bearer token function (refreshed on 401)
    """
    if value is None:
        return None
    if isinstance(value, AuthProvider):
        return value
    if isinstance(value, Mapping):
        return StaticAuthProvider(value)
    if isinstance(value, (tuple, list)) and len(value) == 2:
        user, password = value
        token = base64.b64encode(f"{user}:{password}".encode()).decode()
        return StaticAuthProvider({"Authorization": f"Basic {token}"})
    if isinstance(value, str):
        return BearerTokenAuthProvider(value)
    if callable(value):
        return BearerTokenAuthProvider(token_fn=value)
    raise TypeError(f"Unsupported auth value: {type(value).__name__}")

