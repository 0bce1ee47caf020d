import json
from datetime import date

import httpx
import pytest

from fastapi.testclient import TestClient

from conftest import ADMIN, sign_in
from worktrack import create_app, routing
from worktrack.core.config import AppSettings
from worktrack.services.repository import QueryCache


@pytest.mark.parametrize("path", routing.PROTECTED_PATHS + (routing.REPORTS_PDF,))
def test_guarded_paths_redirect_to_login(client, path):
    response = client.get(path, follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"].startswith("/auth?next=")


def test_redirect_keeps_query_string(client):
    response = client.get("/reports?type=expense", follow_redirects=False)
    assert response.headers["location"] == "/auth?next=/reports%3Ftype%3Dexpense"


def test_partials_answer_401_json(client):
    response = client.get("/ui/widgets/project-status")
    assert response.status_code == 401
    assert response.json()["code"] == "http_error"


@pytest.mark.parametrize(
    "path,marker",
    [
        ("/", "Benvenuto, Mario Rossi"),
        ("/timesheet", "Nessun consuntivo registrato"),
        ("/expenses", "Nessuna nota spese registrata"),
        ("/trips", "Nessuna trasferta registrata"),
        ("/timeoff", "Nessuna richiesta di ferie o permesso"),
        ("/sickleave", "Nessun periodo di malattia registrato"),
        ("/reports", "Report Attività"),
        ("/settings", "Cambia password"),
    ],
)
def test_guarded_views_render_with_session(signed_in, path, marker):
    response = signed_in.get(path)
    assert response.status_code == 200
    assert marker in response.text


def test_unknown_path_renders_not_found(client):
    response = client.get("/does-not-exist")
    assert response.status_code == 404
    assert "Pagina non trovata" in response.text


def test_admin_requires_admin_role(signed_in):
    response = signed_in.get("/admin")
    assert response.status_code == 403
    assert "Accesso negato" in response.text


def test_admin_lists_users(client, fake_backend):
    fake_backend.user = dict(ADMIN)
    fake_backend.password = "adminpw"
    fake_backend.lists["/api/admin/users"] = [
        {"id": 1, "username": "admin", "fullName": "Anna Bianchi", "role": "admin", "email": "anna@example.com"},
        {"id": 7, "username": "mrossi", "fullName": "Mario Rossi", "role": "employee"},
    ]
    assert sign_in(client, "admin", "adminpw").status_code == 302
    response = client.get("/admin?tab=users")
    assert response.status_code == 200
    assert response.text.count("data-row") == 2
    assert "anna@example.com" in response.text
    assert 'href="/admin"' in response.text


def test_login_page_and_invalid_credentials(client):
    assert "Accedi" in client.get("/auth").text
    response = sign_in(client, password="sbagliata")
    assert response.status_code == 401
    assert "Credenziali non valide" in response.text


def test_login_form_validation(client, fake_backend):
    response = sign_in(client, username="ab", password="123")
    assert response.status_code == 400
    assert "almeno 3 caratteri" in response.text
    assert "almeno 6 caratteri" in response.text
    assert fake_backend.count("/api/login") == 0


def test_login_redirects_to_next_and_auth_bounces(client):
    response = sign_in(client, next="/expenses")
    assert response.headers["location"] == "/expenses"
    again = client.get("/auth?next=/trips", follow_redirects=False)
    assert again.status_code == 302
    assert again.headers["location"] == "/trips"


def test_login_ignores_offsite_next(client):
    response = sign_in(client, next="https://evil.example/")
    assert response.headers["location"] == "/"


def test_logout_clears_session_and_cache(signed_in, app, fake_backend):
    signed_in.get("/trips")
    assert len(app.state.repository.cache) == 1
    response = signed_in.post("/logout", follow_redirects=False)
    assert response.headers["location"] == "/auth"
    assert len(app.state.repository.cache) == 0
    assert fake_backend.count("/api/logout") == 1
    assert signed_in.get("/", follow_redirects=False).status_code == 302


def test_backend_401_expires_session(signed_in, fake_backend):
    fake_backend.overrides["/api/trips"] = lambda request: httpx.Response(401)
    response = signed_in.get("/trips", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "/auth?next=/trips"
    assert signed_in.get("/", follow_redirects=False).status_code == 302


def test_failed_fetch_renders_empty_state(signed_in, fake_backend):
    fake_backend.overrides["/api/expenses"] = lambda request: httpx.Response(500, json={"message": "down"})
    response = signed_in.get("/expenses")
    assert response.status_code == 200
    assert "Nessuna nota spese registrata" in response.text


def test_records_page_search(signed_in, fake_backend):
    fake_backend.lists["/api/trips"] = [
        {"id": 1, "destination": "Milano", "startDate": "2024-05-27", "endDate": "2024-05-29", "status": "approved"},
        {"id": 2, "destination": "Roma", "startDate": "2024-06-03", "endDate": "2024-06-04"},
    ]
    response = signed_in.get("/trips?q=mil")
    assert response.text.count("data-row") == 1
    assert "27/05/2024" in response.text
    assert "Approvato" in response.text


def test_dashboard_widgets_load_as_partials(signed_in, fake_backend):
    fake_backend.lists["/api/projects"] = [{"id": 1, "name": "Portale", "status": "in_progress", "progress": 40}]
    page = signed_in.get("/")
    assert 'data-src="/ui/widgets/project-status"' in page.text
    partial = signed_in.get("/ui/widgets/project-status")
    assert partial.status_code == 200
    assert "Completamento: 40%" in partial.text
    assert signed_in.get("/ui/widgets/recent-timesheet").text.count("Nessun consuntivo recente.") == 1
    assert signed_in.get("/ui/widgets/unknown").status_code == 404


def test_mobile_viewport_renders_bottom_nav(signed_in):
    mobile = signed_in.get("/", headers={"Sec-CH-Viewport-Width": "390"})
    assert 'class="bottom-nav"' in mobile.text
    assert 'class="sidebar"' not in mobile.text
    desktop = signed_in.get("/", headers={"Sec-CH-Viewport-Width": "1280"})
    assert 'class="bottom-nav"' not in desktop.text
    assert 'class="sidebar"' in desktop.text


def test_login_toast_is_shown_once(client):
    sign_in(client)
    assert "Accesso effettuato" in client.get("/").text
    assert "Accesso effettuato" not in client.get("/").text


def test_forced_password_change_flow(client, fake_backend):
    fake_backend.user["needsPasswordChange"] = True
    sign_in(client)
    page = client.get("/")
    assert "Cambio password obbligatorio" in page.text

    mismatch = client.post(
        "/change-password",
        data={"current_password": "secret1", "new_password": "nuova123", "confirm_password": "diversa1", "next": "/"},
    )
    assert "Le password non corrispondono" in mismatch.text
    assert "Cambio password obbligatorio" in mismatch.text

    response = client.post(
        "/change-password",
        data={"current_password": "secret1", "new_password": "nuova123", "confirm_password": "nuova123", "next": "/"},
    )
    assert response.status_code == 200
    assert "Password aggiornata con successo" in response.text
    assert "Cambio password obbligatorio" not in response.text
    assert fake_backend.password == "nuova123"


def test_change_password_wrong_current(signed_in):
    response = signed_in.post(
        "/change-password",
        data={"current_password": "wrong12", "new_password": "nuova123", "confirm_password": "nuova123"},
    )
    assert response.url.path == "/settings"
    assert "Password corrente non valida" in response.text


def test_report_pdf_download(signed_in, fake_backend):
    fake_backend.lists["/api/expenses"] = [{"id": 1, "date": "2024-01-10", "amount": "12.5", "category": "meal"}]
    response = signed_in.get("/reports/export.pdf?type=expense&period=year-to-date")
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")
    assert "report-expense-year-to-date.pdf" in response.headers["content-disposition"]


def test_invitation_flow(client, fake_backend):
    accepted = {}

    def invitation(request):
        if request.method == "POST":
            accepted["body"] = request.content
            return httpx.Response(200, json={"message": "ok"})
        return httpx.Response(200, json={"user": {"username": "nuovo", "fullName": "Nuovo Utente"}})

    fake_backend.overrides["/api/invitation/tok123"] = invitation
    page = client.get("/invitation/tok123")
    assert "Benvenuto, Nuovo Utente" in page.text

    short = client.post("/invitation/tok123", data={"new_password": "abc", "confirm_password": "abc"})
    assert short.status_code == 400

    done = client.post("/invitation/tok123", data={"new_password": "segreta1", "confirm_password": "segreta1"})
    assert done.status_code == 200
    assert "Password impostata" in done.text
    assert b"segreta1" in accepted["body"]


def test_invalid_invitation(client, fake_backend):
    fake_backend.overrides["/api/invitation/bad"] = lambda request: httpx.Response(404, json={"message": "Invito non trovato"})
    response = client.get("/invitation/bad")
    assert response.status_code == 404
    assert "Invito non trovato" in response.text


def test_responses_carry_request_id_and_security_headers(client):
    response = client.get("/auth", headers={"X-Request-ID": "req-1"})
    assert response.headers["X-Request-ID"] == "req-1"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert "Sec-CH-Viewport-Width" in response.headers["Accept-CH"]


def test_report_pdf_with_typographic_project_name(signed_in, fake_backend):
    today = date.today().isoformat()
    fake_backend.lists["/api/projects"] = [{"id": 3, "name": "Dell’Acqua – fase 2"}]
    fake_backend.lists["/api/time-entries"] = [{"id": 1, "date": today, "projectId": 3, "hours": 4}]
    response = signed_in.get("/reports/export.pdf?type=activity&period=year-to-date")
    assert response.status_code == 200
    assert response.content.startswith(b"%PDF")


def test_reports_page_shows_work_type_distribution(signed_in, fake_backend):
    today = date.today().isoformat()
    fake_backend.lists["/api/activity-types"] = [
        {"id": 1, "name": "Sviluppo", "category": "work"},
        {"id": 2, "name": "Ferie", "category": "leave"},
    ]
    fake_backend.lists["/api/time-entries"] = [
        {"id": 1, "date": today, "projectId": 3, "activityTypeId": 1, "hours": 4},
        {"id": 2, "date": today, "projectId": 3, "activityTypeId": 2, "hours": 8},
    ]
    response = signed_in.get("/reports?type=activity&period=year-to-date")
    assert "Distribuzione per tipo di attività" in response.text
    assert response.text.count("type-row") == 1
    assert "Sviluppo" in response.text


def test_reload_refetches_page_data(signed_in, fake_backend):
    fake_backend.lists["/api/trips"] = [{"id": 1, "destination": "Milano", "startDate": "2024-05-27", "endDate": "2024-05-29"}]
    assert "Milano" in signed_in.get("/trips").text
    fake_backend.lists["/api/trips"].append(
        {"id": 2, "destination": "Napoli", "startDate": "2024-06-10", "endDate": "2024-06-12"}
    )
    reloaded = signed_in.get("/trips")
    assert "Napoli" in reloaded.text
    assert fake_backend.count("/api/trips") == 2


def test_widgets_reuse_data_loaded_by_the_page(signed_in, fake_backend):
    signed_in.get("/")
    assert fake_backend.count("/api/time-entries") == 1
    signed_in.get("/ui/widgets/recent-timesheet")
    signed_in.get("/ui/widgets/expense-reports")
    assert fake_backend.count("/api/time-entries") == 1
    assert fake_backend.count("/api/expenses") == 1


def test_create_app_uses_given_settings(backend_client):
    app = create_app(
        settings=AppSettings(MOBILE_BREAKPOINT=1000, ANNUAL_VACATION_DAYS=30),
        backend=backend_client,
        cache=QueryCache(),
    )
    with TestClient(app) as client:
        sign_in(client)
        response = client.get("/", headers={"Sec-CH-Viewport-Width": "900"})
    assert 'class="bottom-nav"' in response.text
    assert 'data-breakpoint="1000"' in response.text
    assert "Su 30 giorni annuali" in response.text
    assert "30 giorni" in response.text


def test_password_forms_have_distinct_field_ids(client, fake_backend):
    fake_backend.user["needsPasswordChange"] = True
    sign_in(client)
    page = client.get("/settings").text
    assert page.count('id="settings-current_password"') == 1
    assert page.count('id="dialog-current_password"') == 1
    assert 'for="dialog-new_password"' in page


def _sign_in_admin(client, fake_backend):
    fake_backend.user = dict(ADMIN)
    fake_backend.password = "adminpw"
    assert sign_in(client, "admin", "adminpw").status_code == 302


def test_admin_queue_lists_pending_requests(client, fake_backend):
    _sign_in_admin(client, fake_backend)
    fake_backend.lists["/api/admin/users"] = [{"id": 7, "username": "mrossi", "fullName": "Mario Rossi"}]
    fake_backend.lists["/api/admin/expenses"] = [
        {"id": 4, "userId": 7, "date": "2024-03-04", "amount": "42.5", "category": "meal", "status": "pending"},
        {"id": 5, "userId": 8, "date": "2024-03-05", "amount": "10", "category": "meal", "status": "approved"},
    ]
    response = client.get("/admin?tab=expenses")
    assert response.status_code == 200
    assert "Pannello Amministratore" in response.text
    assert response.text.count("data-row") == 2
    assert "Mario Rossi" in response.text
    assert "User #8" in response.text
    assert response.text.count('action="/admin/expenses/4/approve"') == 1
    assert 'action="/admin/expenses/5/approve"' not in response.text


def test_admin_approve_patches_backend_and_clears_cache(client, app, fake_backend):
    _sign_in_admin(client, fake_backend)
    seen = {}

    def approve(request):
        seen["method"] = request.method
        return httpx.Response(204)

    fake_backend.overrides["/api/admin/timeEntries/12/approve"] = approve
    client.get("/admin")
    assert len(app.state.repository.cache) > 0
    response = client.post("/admin/timeEntries/12/approve", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "/admin?tab=timeEntries"
    assert seen == {"method": "PATCH"}
    assert len(app.state.repository.cache) == 0
    assert "La richiesta è stata approvata con successo" in client.get(response.headers["location"]).text


def test_admin_reject_failure_shows_error(client, fake_backend):
    _sign_in_admin(client, fake_backend)
    fake_backend.overrides["/api/admin/trips/3/reject"] = lambda request: httpx.Response(
        404, json={"message": "Richiesta non trovata"}
    )
    response = client.post("/admin/trips/3/reject")
    assert response.url.path == "/admin"
    assert "Richiesta non trovata" in response.text


def test_admin_decision_rejects_unknown_targets(client, fake_backend):
    _sign_in_admin(client, fake_backend)
    assert client.post("/admin/projects/1/approve").status_code == 404
    assert client.post("/admin/trips/1/archive").status_code == 404
    assert not [call for call in fake_backend.calls if call[0] == "PATCH"]


def test_admin_actions_require_admin_role(signed_in, fake_backend):
    assert signed_in.post("/admin/expenses/4/approve").status_code == 403
    assert signed_in.post("/admin/users", data={"username": "nuovo"}).status_code == 403
    assert not [call for call in fake_backend.calls if call[1].startswith("/api/admin")]


def test_admin_creates_user(client, fake_backend):
    _sign_in_admin(client, fake_backend)
    created = {}

    def users(request):
        if request.method == "POST":
            created.update(json.loads(request.content))
            return httpx.Response(201, json={"id": 9, "username": "lverdi"})
        return httpx.Response(200, json=[])

    fake_backend.overrides["/api/admin/users"] = users
    response = client.post(
        "/admin/users",
        data={"username": "lverdi", "full_name": "Luca Verdi", "password": "segreta1", "role": "employee"},
    )
    assert created == {"username": "lverdi", "fullName": "Luca Verdi", "password": "segreta1", "role": "employee"}
    assert response.url.path == "/admin"
    assert "L&#39;utente è stato creato con successo" in response.text


def test_admin_create_user_validation(client, fake_backend):
    _sign_in_admin(client, fake_backend)
    response = client.post("/admin/users", data={"username": "lv", "full_name": "Luca Verdi", "password": "segreta1"})
    assert "Username deve essere almeno 3 caratteri." in response.text
    assert not [call for call in fake_backend.calls if call == ("POST", "/api/admin/users")]


def test_admin_changes_role(client, fake_backend):
    _sign_in_admin(client, fake_backend)
    seen = {}

    def role(request):
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": 7, "role": "admin"})

    fake_backend.overrides["/api/admin/users/7/role"] = role
    response = client.post("/admin/users/7/role", data={"role": "admin"})
    assert seen == {"method": "PATCH", "body": {"role": "admin"}}
    assert "Il ruolo dell&#39;utente è stato aggiornato con successo" in response.text


def test_admin_resets_password(client, fake_backend):
    _sign_in_admin(client, fake_backend)
    fake_backend.overrides["/api/admin/users/7/reset-password"] = lambda request: httpx.Response(
        200, json={"temporaryPassword": "tmp-4821"}
    )
    response = client.post("/admin/users/7/reset-password")
    assert "La nuova password temporanea è: tmp-4821" in response.text
