"""Route table of the UI.

Every page path is listed here once. Routers register their handlers
against these constants and the tests iterate over ``PROTECTED_PATHS``
to check the gate.
"""

from __future__ import annotations

from urllib.parse import urlsplit

LOGIN = "/auth"
LOGOUT = "/logout"
CHANGE_PASSWORD = "/change-password"
INVITATION = "/invitation/{token}"

DASHBOARD = "/"
TIMESHEET = "/timesheet"
EXPENSES = "/expenses"
TRIPS = "/trips"
TIMEOFF = "/timeoff"
SICKLEAVE = "/sickleave"
REPORTS = "/reports"
REPORTS_PDF = "/reports/export.pdf"
SETTINGS = "/settings"
ADMIN = "/admin"
ADMIN_USERS = "/admin/users"
ADMIN_USER_ROLE = "/admin/users/{user_id}/role"
ADMIN_USER_RESET_PASSWORD = "/admin/users/{user_id}/reset-password"
ADMIN_DECISION = "/admin/{tab}/{item_id}/{decision}"

PROTECTED_PATHS = (
    DASHBOARD,
    TIMESHEET,
    EXPENSES,
    TRIPS,
    TIMEOFF,
    SICKLEAVE,
    REPORTS,
    SETTINGS,
    ADMIN,
)

def safe_next(target: str | None, default: str = DASHBOARD) -> str:
    """Only same-site relative paths are accepted as post-login destinations."""

    if not target:
        return default
    parts = urlsplit(target)
    if parts.scheme or parts.netloc or not target.startswith("/") or target.startswith("//"):
        return default
    if parts.path == LOGIN:
        return default
    return target
