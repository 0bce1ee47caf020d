"""Explicit application state for the signed-in user.

The state is an immutable value. ``login``, ``logout`` and ``password_changed``
are pure transitions returning a new state; handlers persist the result in
Starlette's signed session cookie with ``store_state``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Mapping

from fastapi import Request
from pydantic import ValidationError

from .middlewares import principal_ctx_var
from .schemas.auth import User

logger = logging.getLogger(__name__)

SESSION_KEY = "auth"
TOASTS_KEY = "toasts"


@dataclass(frozen=True)
class Session:
    user: User
    backend_cookies: Mapping[str, str] = field(default_factory=dict)

    @property
    def requires_password_change(self) -> bool:
        return self.user.needs_password_change

    @property
    def principal(self) -> str:
        return f"user:{self.user.id}"


@dataclass(frozen=True)
class AppState:
    session: Session | None = None

    @classmethod
    def anonymous(cls) -> "AppState":
        return cls()

    @property
    def authenticated(self) -> bool:
        return self.session is not None


def login(state: AppState, user: User, backend_cookies: Mapping[str, str] | None = None) -> AppState:
    return replace(state, session=Session(user=user, backend_cookies=dict(backend_cookies or {})))


def logout(state: AppState) -> AppState:
    return replace(state, session=None)


def password_changed(state: AppState) -> AppState:
    if state.session is None:
        return state
    user = state.session.user.model_copy(update={"needs_password_change": False})
    return replace(state, session=replace(state.session, user=user))


def _dump(state: AppState) -> dict[str, Any] | None:
    if state.session is None:
        return None
    return {
        "user": state.session.user.model_dump(by_alias=True),
        "cookies": dict(state.session.backend_cookies),
    }


def _load(payload: Any) -> AppState:
    if not isinstance(payload, dict):
        return AppState.anonymous()
    try:
        user = User.model_validate(payload.get("user") or {})
    except ValidationError:
        logger.warning("Discarding unreadable session payload")
        return AppState.anonymous()
    cookies = payload.get("cookies") or {}
    if not isinstance(cookies, dict):
        cookies = {}
    return login(AppState.anonymous(), user, {str(k): str(v) for k, v in cookies.items()})


def load_state(request: Request) -> AppState:
    state = _load(request.session.get(SESSION_KEY))
    if state.session is not None:
        request.state.principal = state.session.principal
        principal_ctx_var.set(state.session.principal)
    return state


def store_state(request: Request, state: AppState) -> None:
    payload = _dump(state)
    if payload is None:
        request.session.pop(SESSION_KEY, None)
    else:
        request.session[SESSION_KEY] = payload
        request.state.principal = state.session.principal if state.session else None


def clear_state(request: Request) -> None:
    store_state(request, logout(load_state(request)))


def push_toast(request: Request, title: str, description: str = "", variant: str = "default") -> None:
    toasts = list(request.session.get(TOASTS_KEY) or [])
    toasts.append({"title": title, "description": description, "variant": variant})
    request.session[TOASTS_KEY] = toasts


def pop_toasts(request: Request) -> list[dict[str, str]]:
    toasts = request.session.pop(TOASTS_KEY, None) or []
    return [toast for toast in toasts if isinstance(toast, dict)]
