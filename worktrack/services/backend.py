from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from ..core.config import AppSettings, settings as default_settings
from ..core.errors import AuthenticationFailed, BackendError, BackendUnavailable, SessionExpired
from ..schemas.auth import Invitation, User

logger = logging.getLogger(__name__)

Cookies = Mapping[str, str]


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        return payload["message"]
    return response.reason_phrase or f"HTTP {response.status_code}"


def _raise_for_status(response: httpx.Response, context: str) -> None:
    if response.status_code < 400:
        return
    message = _error_message(response)
    path = response.request.url.path if response.request else context
    if response.status_code == 401:
        logger.info("Backend refused credentials during %s", context)
        raise SessionExpired(message, path=path)
    if response.status_code >= 500:
        logger.error("Backend error %s during %s", response.status_code, context)
    else:
        logger.warning("Backend request error %s during %s", response.status_code, context)
    raise BackendError(response.status_code, message, path=path)


def _cookie_jar(response: httpx.Response, previous: Cookies | None = None) -> dict[str, str]:
    jar = dict(previous or {})
    for name, value in response.cookies.items():
        jar[name] = value
    return jar


class BackendClient:
    """Thin ``httpx`` wrapper around the WorkTrack REST API."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: AppSettings | None = None) -> "BackendClient":
        cfg = settings or default_settings
        return cls(cfg.API_BASE_URL, timeout=cfg.API_TIMEOUT_SECONDS)

    def _client(self, cookies: Cookies | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            cookies=dict(cookies or {}),
            headers={"Accept": "application/json"},
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        cookies: Cookies | None = None,
        params: Mapping[str, Any] | None = None,
        json: Any | None = None,
    ) -> httpx.Response:
        try:
            async with self._client(cookies) as client:
                return await client.request(method, path, params=params, json=json)
        except httpx.HTTPError as exc:
            logger.error("Backend unreachable for %s %s: %s", method, path, exc)
            raise BackendUnavailable(path=path) from exc

    async def login(self, username: str, password: str) -> tuple[User, dict[str, str]]:
        response = await self._request("POST", "/api/login", json={"username": username, "password": password})
        if response.status_code == 401:
            logger.info("Login rejected for %s", username)
            raise AuthenticationFailed(path="/api/login")
        _raise_for_status(response, "login")
        return User.model_validate(response.json()), _cookie_jar(response)

    async def logout(self, cookies: Cookies) -> None:
        response = await self._request("POST", "/api/logout", cookies=cookies)
        if response.status_code == 401:
            return
        _raise_for_status(response, "logout")

    async def current_user(self, cookies: Cookies) -> User:
        response = await self._request("GET", "/api/user", cookies=cookies)
        _raise_for_status(response, "current user")
        return User.model_validate(response.json())

    async def change_password(self, cookies: Cookies, current_password: str, new_password: str) -> str:
        response = await self._request(
            "POST",
            "/api/change-password",
            cookies=cookies,
            json={"currentPassword": current_password, "newPassword": new_password},
        )
        _raise_for_status(response, "change password")
        return _error_message(response)

    async def get_json(self, path: str, cookies: Cookies, params: Mapping[str, Any] | None = None) -> Any:
        response = await self._request("GET", path, cookies=cookies, params=params)
        _raise_for_status(response, f"GET {path}")
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def send(self, method: str, path: str, cookies: Cookies, json: Any | None = None) -> Any:
        """Write call (POST/PATCH) on behalf of a session; returns the decoded body, if any."""

        response = await self._request(method, path, cookies=cookies, json=json)
        _raise_for_status(response, f"{method} {path}")
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning("Non-JSON body from %s %s", method, path)
            return None

    async def get_invitation(self, token: str) -> Invitation:
        response = await self._request("GET", f"/api/invitation/{token}")
        if response.status_code >= 400:
            raise BackendError(response.status_code, _error_message(response), path="/api/invitation")
        return Invitation.model_validate(response.json())

    async def accept_invitation(self, token: str, new_password: str) -> None:
        response = await self._request("POST", f"/api/invitation/{token}", json={"newPassword": new_password})
        if response.status_code >= 400:
            raise BackendError(response.status_code, _error_message(response), path="/api/invitation")
