"""Administrator pages: the approval queues and user management."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import BaseModel, ValidationError

from .. import routing
from ..core.errors import BackendError, SessionExpired
from ..deps.session import get_session_repository, require_admin
from ..schemas.auth import ROLES, NewUserForm, RoleForm, UserOut, form_errors
from ..schemas.records import Expense, LeaveRequest, SickLeave, TimeEntry, Trip, parse_records
from ..services.reporting import EXPENSE_CATEGORIES
from ..services.repository import SessionRepository
from ..session import Session, push_toast
from ..views.components import Column
from ..views.status import approval_badge
from ..views.layout import templates
from .ui import LEAVE_TYPE_LABELS

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])

ADMIN_API = "/api/admin"
USERS_TAB = "users"
ROLE_LABELS = {"admin": "Amministratore", "employee": "Dipendente"}

DECISIONS = {
    "approve": ("Richiesta approvata", "La richiesta è stata approvata con successo"),
    "reject": ("Richiesta rifiutata", "La richiesta è stata rifiutata con successo"),
}


@dataclass(frozen=True)
class AdminTab:
    label: str
    model: type[BaseModel] | None = None
    columns: tuple[Column, ...] = ()
    row: Callable[[Any], dict[str, Any]] | None = None


ADMIN_TABS: dict[str, AdminTab] = {
    "timeEntries": AdminTab(
        "Timesheet",
        TimeEntry,
        (Column("date", "Data", "date"), Column("hours", "Ore", "number"), Column("project", "Progetto")),
        lambda entry: {"date": entry.date, "hours": entry.hours, "project": f"#{entry.project_id}"},
    ),
    "expenses": AdminTab(
        "Spese",
        Expense,
        (Column("date", "Data", "date"), Column("category", "Categoria"), Column("amount", "Importo", "currency")),
        lambda expense: {
            "date": expense.date,
            "category": EXPENSE_CATEGORIES.get(expense.category, expense.category),
            "amount": expense.amount,
        },
    ),
    "trips": AdminTab(
        "Viaggi",
        Trip,
        (Column("destination", "Destinazione"), Column("start_date", "Data inizio", "date"), Column("end_date", "Data fine", "date")),
        lambda trip: {"destination": trip.destination, "start_date": trip.start_date, "end_date": trip.end_date},
    ),
    "leaveRequests": AdminTab(
        "Permessi",
        LeaveRequest,
        (Column("type", "Tipo"), Column("start_date", "Data inizio", "date"), Column("end_date", "Data fine", "date")),
        lambda leave: {
            "type": LEAVE_TYPE_LABELS.get(leave.type, leave.type),
            "start_date": leave.start_date,
            "end_date": leave.end_date,
        },
    ),
    "sickLeaves": AdminTab(
        "Malattie",
        SickLeave,
        (Column("protocol_number", "Protocollo"), Column("start_date", "Data inizio", "date"), Column("end_date", "Data fine", "date")),
        lambda leave: {"protocol_number": leave.protocol_number, "start_date": leave.start_date, "end_date": leave.end_date},
    ),
    USERS_TAB: AdminTab("Utenti"),
}
DEFAULT_TAB = "timeEntries"


def _backend(request: Request):
    return request.app.state.repository.backend


def _back_to(tab: str) -> RedirectResponse:
    return RedirectResponse(url=f"{routing.ADMIN}?tab={tab}", status_code=status.HTTP_302_FOUND)


def _user_name(users: dict[int, UserOut], user_id: int | None) -> str:
    user = users.get(user_id) if user_id is not None else None
    return user.display_name if user else f"User #{user_id}"


def _queue_rows(tab: AdminTab, payload: Any, users: dict[int, UserOut]) -> List[dict[str, Any]]:
    rows = []
    for record in parse_records(tab.model, payload):
        row = tab.row(record)
        row.update(
            {
                "id": record.id,
                "user": _user_name(users, record.user_id),
                "status": record.status,
                "pending": record.status == "pending",
            }
        )
        rows.append(row)
    return rows


@router.get(routing.ADMIN, response_class=HTMLResponse)
async def admin_page(
    request: Request,
    tab: str = DEFAULT_TAB,
    repo: SessionRepository = Depends(get_session_repository),
):
    selected = tab if tab in ADMIN_TABS else DEFAULT_TAB
    users_result = await repo.fetch(f"{ADMIN_API}/{USERS_TAB}")
    users = parse_records(UserOut, users_result.unwrap_or([]))
    context: dict[str, Any] = {
        "tabs": ADMIN_TABS,
        "selected": selected,
        "approval_badge": approval_badge,
        "role_labels": ROLE_LABELS,
        "roles": ROLES,
        "rows": [],
        "error": None,
    }
    if selected == USERS_TAB:
        context["users"] = users
        if not users_result.ok:
            context["error"] = users_result.error
    else:
        admin_tab = ADMIN_TABS[selected]
        result = await repo.fetch(f"{ADMIN_API}/{selected}")
        context["columns"] = admin_tab.columns
        context["rows"] = _queue_rows(admin_tab, result.unwrap_or([]), {user.id: user for user in users})
        if not result.ok:
            context["error"] = result.error
    return templates.TemplateResponse(request, "admin.html", context)


# ---------- User management ----------
# Registered before the generic decision route, which would otherwise match these paths.


@router.post(routing.ADMIN_USERS)
async def create_user(
    request: Request,
    session: Session = Depends(require_admin),
    username: str = Form(""),
    full_name: str = Form(""),
    password: str = Form(""),
    role: str = Form("employee"),
):
    try:
        form = NewUserForm(username=username, full_name=full_name, password=password, role=role)
    except ValidationError as exc:
        push_toast(request, "Errore", list(form_errors(exc).values())[0], variant="destructive")
        return _back_to(USERS_TAB)

    try:
        await _backend(request).send("POST", f"{ADMIN_API}/users", session.backend_cookies, json=form.payload())
    except SessionExpired:
        raise
    except BackendError as exc:
        push_toast(request, "Errore", exc.message, variant="destructive")
        return _back_to(USERS_TAB)

    request.app.state.repository.invalidate(path_prefix=f"{ADMIN_API}/users")
    logger.info("User created", extra={"extra_data": {"username": form.username, "role": form.role}})
    push_toast(request, "Utente creato", "L'utente è stato creato con successo")
    return _back_to(USERS_TAB)


@router.post(routing.ADMIN_USER_ROLE)
async def change_role(
    request: Request,
    user_id: int,
    session: Session = Depends(require_admin),
    role: str = Form(""),
):
    try:
        form = RoleForm(role=role)
    except ValidationError as exc:
        push_toast(request, "Errore", list(form_errors(exc).values())[0], variant="destructive")
        return _back_to(USERS_TAB)

    try:
        await _backend(request).send(
            "PATCH", f"{ADMIN_API}/users/{user_id}/role", session.backend_cookies, json={"role": form.role}
        )
    except SessionExpired:
        raise
    except BackendError as exc:
        push_toast(request, "Errore", exc.message, variant="destructive")
        return _back_to(USERS_TAB)

    request.app.state.repository.invalidate(path_prefix=f"{ADMIN_API}/users")
    logger.info("User role changed", extra={"extra_data": {"user_id": user_id, "role": form.role}})
    push_toast(request, "Ruolo aggiornato", "Il ruolo dell'utente è stato aggiornato con successo")
    return _back_to(USERS_TAB)


@router.post(routing.ADMIN_USER_RESET_PASSWORD)
async def reset_password(request: Request, user_id: int, session: Session = Depends(require_admin)):
    try:
        body = await _backend(request).send("POST", f"{ADMIN_API}/users/{user_id}/reset-password", session.backend_cookies)
    except SessionExpired:
        raise
    except BackendError as exc:
        push_toast(request, "Errore", exc.message, variant="destructive")
        return _back_to(USERS_TAB)

    temporary = body.get("temporaryPassword") if isinstance(body, dict) else None
    logger.info("User password reset", extra={"extra_data": {"user_id": user_id}})
    if temporary:
        push_toast(request, "Password resettata", f"La nuova password temporanea è: {temporary}")
    else:
        push_toast(request, "Password resettata", "La password è stata resettata")
    return _back_to(USERS_TAB)


# ---------- Approval queue ----------


@router.post(routing.ADMIN_DECISION)
async def decide(
    request: Request,
    tab: str,
    item_id: int,
    decision: str,
    session: Session = Depends(require_admin),
):
    if tab not in ADMIN_TABS or tab == USERS_TAB or decision not in DECISIONS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pagina non trovata")

    try:
        await _backend(request).send("PATCH", f"{ADMIN_API}/{tab}/{item_id}/{decision}", session.backend_cookies)
    except SessionExpired:
        raise
    except BackendError as exc:
        push_toast(request, "Errore", exc.message, variant="destructive")
        return _back_to(tab)

    # The decision changes lists of other users too, so every scope goes.
    dropped = request.app.state.repository.invalidate()
    logger.info(
        "Admin decision recorded",
        extra={"extra_data": {"decision": decision, "tab": tab, "item_id": item_id, "cache_entries_dropped": dropped}},
    )
    title, description = DECISIONS[decision]
    push_toast(request, title, description)
    return _back_to(tab)
