from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError

from .. import routing
from ..core.errors import AuthenticationFailed, BackendError, SessionExpired
from ..deps.session import require_session
from ..schemas.auth import ChangePasswordForm, InvitationForm, LoginForm, form_errors
from ..session import (
    AppState,
    Session,
    load_state,
    login,
    logout,
    password_changed,
    push_toast,
    store_state,
)
from ..views.layout import templates

logger = logging.getLogger(__name__)

router = APIRouter()


def _backend(request: Request):
    return request.app.state.repository.backend


def _render_login(request: Request, *, next: str, username: str = "", errors=None, error: str = "", status_code=200):
    context = {"next": next, "username": username, "errors": errors or {}, "error": error}
    return templates.TemplateResponse(request, "auth.html", context, status_code=status_code)


@router.get(routing.LOGIN, response_class=HTMLResponse)
def login_page(request: Request, next: str = routing.DASHBOARD):
    target = routing.safe_next(next)
    if load_state(request).authenticated:
        return RedirectResponse(url=target, status_code=status.HTTP_302_FOUND)
    return _render_login(request, next=target)


@router.post(routing.LOGIN, response_class=HTMLResponse)
async def login_submit(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    next: str = Form(routing.DASHBOARD),
):
    target = routing.safe_next(next)
    try:
        form = LoginForm(username=username, password=password)
    except ValidationError as exc:
        return _render_login(
            request,
            next=target,
            username=username,
            errors=form_errors(exc),
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    try:
        user, cookies = await _backend(request).login(form.username, form.password)
    except AuthenticationFailed as exc:
        return _render_login(
            request,
            next=target,
            username=form.username,
            error=exc.message,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    except BackendError as exc:
        return _render_login(
            request,
            next=target,
            username=form.username,
            error=exc.message,
            status_code=status.HTTP_502_BAD_GATEWAY,
        )

    state = login(AppState.anonymous(), user, cookies)
    store_state(request, state)
    logger.info("User signed in", extra={"extra_data": {"principal": state.session.principal}})
    push_toast(request, "Accesso effettuato", f"Benvenuto, {user.display_name}")
    return RedirectResponse(url=target, status_code=status.HTTP_302_FOUND)


@router.api_route(routing.LOGOUT, methods=["GET", "POST"])
async def logout_action(request: Request):
    state = load_state(request)
    if state.session is not None:
        session = state.session
        try:
            await _backend(request).logout(session.backend_cookies)
        except BackendError as exc:
            logger.warning("Backend logout failed: %s", exc.message)
        dropped = request.app.state.repository.invalidate(scope=session.principal)
        logger.info(
            "User signed out",
            extra={"extra_data": {"principal": session.principal, "cache_entries_dropped": dropped}},
        )
    store_state(request, logout(state))
    return RedirectResponse(url=routing.LOGIN, status_code=status.HTTP_302_FOUND)


@router.post(routing.CHANGE_PASSWORD)
async def change_password(
    request: Request,
    session: Session = Depends(require_session),
    current_password: str = Form(""),
    new_password: str = Form(""),
    confirm_password: str = Form(""),
    next: str = Form(routing.SETTINGS),
):
    target = routing.safe_next(next, default=routing.SETTINGS)
    try:
        form = ChangePasswordForm(
            current_password=current_password,
            new_password=new_password,
            confirm_password=confirm_password,
        )
    except ValidationError as exc:
        message = list(form_errors(exc).values())[0]
        push_toast(request, "Errore", message, variant="destructive")
        return RedirectResponse(url=target, status_code=status.HTTP_302_FOUND)

    try:
        await _backend(request).change_password(session.backend_cookies, form.current_password, form.new_password)
    except SessionExpired:
        raise
    except BackendError as exc:
        push_toast(request, "Errore", exc.message, variant="destructive")
        return RedirectResponse(url=target, status_code=status.HTTP_302_FOUND)

    store_state(request, password_changed(load_state(request)))
    push_toast(request, "Password aggiornata", "Password aggiornata con successo")
    return RedirectResponse(url=target, status_code=status.HTTP_302_FOUND)


def _render_invitation(request: Request, token: str, status_code: int = 200, **context):
    base = {"token": token, "invitation": None, "errors": {}, "error": "", "success": False}
    base.update(context)
    return templates.TemplateResponse(request, "invitation.html", base, status_code=status_code)


def _invitation_status(exc: BackendError) -> int:
    return exc.status_code if 400 <= exc.status_code < 500 else status.HTTP_502_BAD_GATEWAY


@router.get(routing.INVITATION, response_class=HTMLResponse)
async def invitation_page(request: Request, token: str):
    try:
        invitation = await _backend(request).get_invitation(token)
    except BackendError as exc:
        logger.info("Invitation lookup failed (%s)", exc.status_code)
        return _render_invitation(request, token, _invitation_status(exc), error=exc.message or "Invito non valido")
    return _render_invitation(request, token, invitation=invitation)


@router.post(routing.INVITATION, response_class=HTMLResponse)
async def invitation_submit(
    request: Request,
    token: str,
    new_password: str = Form(""),
    confirm_password: str = Form(""),
):
    backend = _backend(request)
    try:
        invitation = await backend.get_invitation(token)
    except BackendError as exc:
        return _render_invitation(request, token, _invitation_status(exc), error=exc.message or "Invito non valido")

    try:
        form = InvitationForm(new_password=new_password, confirm_password=confirm_password)
    except ValidationError as exc:
        return _render_invitation(
            request,
            token,
            status.HTTP_400_BAD_REQUEST,
            invitation=invitation,
            errors=form_errors(exc),
        )

    try:
        await backend.accept_invitation(token, form.new_password)
    except BackendError as exc:
        return _render_invitation(request, token, _invitation_status(exc), invitation=invitation, error=exc.message)

    logger.info("Invitation accepted", extra={"extra_data": {"username": invitation.user.username}})
    return _render_invitation(request, token, invitation=invitation, success=True)
