from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from fastapi import Request

from ..core.config import settings, settings_for
from ..core.jinja import get_templates, resolve_locale
from ..schemas.auth import User
from ..session import load_state, pop_toasts

VIEWPORT_COOKIE = "viewport_width"
VIEWPORT_HEADERS = ("sec-ch-viewport-width", "viewport-width")


class DeviceClass(str, Enum):
    MOBILE = "mobile"
    DESKTOP = "desktop"


def device_class(width: int | None, breakpoint: int | None = None) -> DeviceClass:
    """Mobile below the breakpoint; an unknown width is treated as desktop."""

    limit = settings.MOBILE_BREAKPOINT if breakpoint is None else breakpoint
    if width is None or width >= limit:
        return DeviceClass.DESKTOP
    return DeviceClass.MOBILE


def _parse_width(raw: str | None) -> int | None:
    if not raw:
        return None
    try:
        width = int(float(raw.strip()))
    except ValueError:
        return None
    return width if width > 0 else None


def viewport_width(request: Request) -> int | None:
    for header in VIEWPORT_HEADERS:
        width = _parse_width(request.headers.get(header))
        if width is not None:
            return width
    return _parse_width(request.cookies.get(VIEWPORT_COOKIE))


@dataclass(frozen=True)
class NavLink:
    href: str
    label: str
    icon: str
    active: bool = False


SIDEBAR_LINKS = (
    ("/", "Dashboard", "dashboard"),
    ("/timesheet", "Consuntivi", "time"),
    ("/expenses", "Note Spese", "money-euro"),
    ("/trips", "Trasferte", "flight"),
    ("/timeoff", "Ferie e Permessi", "calendar"),
    ("/sickleave", "Malattie", "medicine"),
    ("/reports", "Report", "file-chart"),
)
SETTINGS_LINKS = (("/settings", "Impostazioni", "settings"),)
BOTTOM_MAIN_LINKS = (
    ("/", "Dashboard", "dashboard"),
    ("/timesheet", "Consuntivi", "time"),
    ("/expenses", "Spese", "money-euro"),
    ("/trips", "Trasferte", "flight"),
)
BOTTOM_MORE_LINKS = (
    ("/timeoff", "Ferie", "calendar"),
    ("/sickleave", "Malattia", "medicine"),
    ("/reports", "Report", "file-chart"),
)
ADMIN_LINK = ("/admin", "Admin", "admin")


@dataclass(frozen=True)
class Navigation:
    device: DeviceClass
    sidebar: list[NavLink] = field(default_factory=list)
    settings: list[NavLink] = field(default_factory=list)
    bottom_main: list[NavLink] = field(default_factory=list)
    bottom_more: list[NavLink] = field(default_factory=list)

    @property
    def show_bottom_nav(self) -> bool:
        return self.device is DeviceClass.MOBILE

    @property
    def show_sidebar(self) -> bool:
        return self.device is DeviceClass.DESKTOP


def _links(entries, current_path: str) -> list[NavLink]:
    return [NavLink(href, label, icon, active=href == current_path) for href, label, icon in entries]


def build_navigation(user: User | None, current_path: str, device: DeviceClass) -> Navigation:
    if user is None:
        return Navigation(device=device)
    extra = (ADMIN_LINK,) if user.is_admin else ()
    if device is DeviceClass.MOBILE:
        return Navigation(
            device=device,
            bottom_main=_links(BOTTOM_MAIN_LINKS, current_path),
            bottom_more=_links(BOTTOM_MORE_LINKS + extra, current_path),
        )
    return Navigation(
        device=device,
        sidebar=_links(SIDEBAR_LINKS + extra, current_path),
        settings=_links(SETTINGS_LINKS, current_path),
    )


def layout_context(request: Request) -> dict[str, Any]:
    """Context shared by every full page: session, navigation and the toast queue."""

    cfg = settings_for(request)
    if "session" not in request.scope:
        return {"current_session": None, "navigation": Navigation(DeviceClass.DESKTOP), "locale": cfg.DEFAULT_LOCALE}
    state = load_state(request)
    user = state.session.user if state.session else None
    device = device_class(viewport_width(request), cfg.MOBILE_BREAKPOINT)
    return {
        "app_name": cfg.APP_NAME,
        "breakpoint": cfg.MOBILE_BREAKPOINT,
        "current_session": state.session,
        "current_user": user,
        "device": device,
        "navigation": build_navigation(user, request.url.path, device),
        "locale": resolve_locale(request.headers.get("accept-language"), cfg.DEFAULT_LOCALE),
        "pop_toasts": lambda: pop_toasts(request),
    }


templates = get_templates([layout_context])
