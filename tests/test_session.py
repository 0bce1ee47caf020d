from starlette.requests import Request

from worktrack.schemas.auth import User
from worktrack.session import (
    AppState,
    load_state,
    login,
    logout,
    password_changed,
    pop_toasts,
    push_toast,
    store_state,
)


def _request(session=None):
    return Request({"type": "http", "method": "GET", "path": "/", "headers": [], "session": session if session is not None else {}})


USER = User(id=5, username="lverdi", full_name="Luca Verdi", needs_password_change=True)


def test_login_and_logout_are_pure():
    anonymous = AppState.anonymous()
    signed = login(anonymous, USER, {"connect.sid": "abc"})
    assert not anonymous.authenticated
    assert signed.authenticated
    assert signed.session.principal == "user:5"
    assert signed.session.backend_cookies == {"connect.sid": "abc"}
    assert logout(signed) == AppState.anonymous()
    assert signed.authenticated


def test_password_changed_clears_flag():
    signed = login(AppState.anonymous(), USER)
    assert signed.session.requires_password_change
    updated = password_changed(signed)
    assert not updated.session.requires_password_change
    assert signed.session.requires_password_change
    assert password_changed(AppState.anonymous()) == AppState.anonymous()


def test_state_round_trips_through_session_cookie():
    request = _request()
    store_state(request, login(AppState.anonymous(), USER, {"connect.sid": "abc"}))
    assert request.session["auth"]["user"]["fullName"] == "Luca Verdi"
    restored = load_state(_request(dict(request.session)))
    assert restored.session.user == USER
    assert restored.session.backend_cookies == {"connect.sid": "abc"}


def test_corrupt_payload_loads_anonymous():
    assert not load_state(_request({"auth": {"user": {"username": "x"}}})).authenticated
    assert not load_state(_request({"auth": "garbage"})).authenticated


def test_storing_anonymous_state_removes_payload():
    request = _request({"auth": {"user": {"id": 1, "username": "a"}}})
    store_state(request, AppState.anonymous())
    assert "auth" not in request.session


def test_toast_queue_is_drained_once():
    request = _request()
    push_toast(request, "Salvato", "Tutto ok")
    push_toast(request, "Errore", variant="destructive")
    toasts = pop_toasts(request)
    assert [toast["title"] for toast in toasts] == ["Salvato", "Errore"]
    assert toasts[1]["variant"] == "destructive"
    assert pop_toasts(request) == []
