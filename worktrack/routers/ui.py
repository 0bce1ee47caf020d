from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Callable, Iterable, List
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse, Response

from .. import routing
from ..core.config import settings_for
from ..core.jinja import resolve_locale, to_date
from ..deps.session import get_session_repository, require_session
from ..schemas.records import ActivityType, Expense, LeaveRequest, Project, SickLeave, TimeEntry, Trip, parse_records
from ..services.dashboard import build_summary
from ..services.report_export import render_report_pdf
from ..services.reporting import EXPENSE_CATEGORIES, REPORT_PERIODS, REPORT_TYPES, build_report, resolve_period
from ..services.repository import SessionRepository
from ..session import Session
from ..views import components
from ..views.components import Column
from ..views.layout import templates

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_session)])

TIME_ENTRIES = "/api/time-entries"
EXPENSES = "/api/expenses"
TRIPS = "/api/trips"
LEAVE_REQUESTS = "/api/leave-requests"
SICK_LEAVES = "/api/sickleaves"
PROJECTS = "/api/projects"
ACTIVITY_TYPES = "/api/activity-types"

LEAVE_TYPE_LABELS = {
    "vacation": "Ferie",
    "personal_leave": "Permesso",
    "time_off": "Permesso",
    "sick_leave": "Malattia",
}


def _today(request: Request) -> date:
    zone = settings_for(request).TZ
    return datetime.now(ZoneInfo(zone)).date() if zone else date.today()


async def _records(repo: SessionRepository, path: str, model) -> list[Any]:
    """Fetch and validate one list; a failed fetch reads as an empty list."""

    result = await repo.fetch(path)
    return parse_records(model, result.unwrap_or([]))


def _newest_first(records: Iterable[Any], attr: str = "date") -> list[Any]:
    return sorted(records, key=lambda record: to_date(getattr(record, attr)) or date.min, reverse=True)


def _locale(request: Request) -> str:
    return resolve_locale(request.headers.get("accept-language"))


# ---------- Dashboard ----------


@router.get(routing.DASHBOARD, response_class=HTMLResponse)
async def dashboard_page(request: Request, repo: SessionRepository = Depends(get_session_repository)):
    cfg = settings_for(request)
    entries_raw, expenses_raw, leave_raw, trips_raw = await repo.fetch_many(
        TIME_ENTRIES, EXPENSES, LEAVE_REQUESTS, TRIPS
    )
    summary = build_summary(
        entries=parse_records(TimeEntry, entries_raw.unwrap_or([])),
        expenses=parse_records(Expense, expenses_raw.unwrap_or([])),
        requests=parse_records(LeaveRequest, leave_raw.unwrap_or([])),
        trips=parse_records(Trip, trips_raw.unwrap_or([])),
        today=_today(request),
        allowance=cfg.ANNUAL_VACATION_DAYS,
    )
    locale = _locale(request)
    cards = [
        components.summary_card("Ore questo mese", summary.hours_label, "time", info_text="Ore registrate nel mese corrente"),
        components.summary_card("Spese questo mese", summary.expenses_label, "money-euro", info_text="Totale note spese del mese"),
        components.summary_card(
            "Ferie rimanenti",
            summary.vacation_label,
            "calendar",
            info_text=f"Su {cfg.ANNUAL_VACATION_DAYS} giorni annuali",
        ),
        components.summary_card("Prossima trasferta", summary.trip_label, "flight", info_text=summary.trip_info),
    ]
    context = {
        "summary": summary,
        "cards": cards,
        "activity_table": components.activity_table(
            summary.recent_activities,
            limit=5,
            show_view_all=True,
            view_all_href=routing.TIMESHEET,
            locale=locale,
        ),
        "upcoming": components.upcoming_events(summary.upcoming),
        "quick_actions": components.quick_actions(),
        "widgets": [
            components.widget_placeholder("recent-timesheet", "Consuntivi Recenti"),
            components.widget_placeholder("expense-reports", "Note Spese Recenti"),
            components.widget_placeholder("project-status", "Stato Progetti"),
        ],
    }
    return templates.TemplateResponse(request, "dashboard.html", context)


# ---------- Lazily loaded widgets ----------


async def _recent_timesheet(repo: SessionRepository, locale: str):
    entries = _newest_first(await _records(repo, TIME_ENTRIES, TimeEntry))
    return components.recent_timesheet(entries, locale=locale)


async def _expense_reports(repo: SessionRepository, locale: str):
    expenses = _newest_first(await _records(repo, EXPENSES, Expense))
    return components.expense_reports(expenses, locale=locale)


async def _project_status(repo: SessionRepository, locale: str):
    return components.project_status(await _records(repo, PROJECTS, Project), locale=locale)


WIDGETS: dict[str, Callable] = {
    "recent-timesheet": _recent_timesheet,
    "expense-reports": _expense_reports,
    "project-status": _project_status,
}


@router.get("/ui/widgets/{name}", response_class=HTMLResponse)
async def widget_partial(name: str, request: Request, repo: SessionRepository = Depends(get_session_repository)):
    renderer = WIDGETS.get(name)
    if renderer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Widget non trovato")
    return HTMLResponse(await renderer(repo, _locale(request)))


# ---------- Record lists ----------


def _records_page(
    request: Request,
    *,
    title: str,
    subtitle: str,
    columns: List[Column],
    rows: List[Any],
    empty_message: str,
    search_key: str | None = None,
    q: str | None = None,
):
    table = components.records_table(
        columns,
        rows,
        empty_message=empty_message,
        search=q,
        search_key=search_key,
        locale=_locale(request),
    )
    context = {"title": title, "subtitle": subtitle, "table": table}
    return templates.TemplateResponse(request, "records.html", context)


@router.get(routing.TIMESHEET, response_class=HTMLResponse)
async def timesheet_page(request: Request, q: str | None = None, repo: SessionRepository = Depends(get_session_repository)):
    entries = _newest_first(await _records(repo, TIME_ENTRIES, TimeEntry))
    projects = {project.id: project.name for project in await _records(repo, PROJECTS, Project)}
    rows = [
        {
            "date": entry.date,
            "project": projects.get(entry.project_id, f"Project ID: {entry.project_id}"),
            "description": entry.description or "",
            "hours": entry.hours,
            "status": entry.status,
        }
        for entry in entries
    ]
    return _records_page(
        request,
        title="Consuntivi",
        subtitle="Le ore registrate sui progetti",
        columns=[
            Column("date", "Data", "date"),
            Column("project", "Progetto"),
            Column("description", "Descrizione"),
            Column("hours", "Ore", "number"),
            Column("status", "Stato", "status"),
        ],
        rows=rows,
        empty_message="Nessun consuntivo registrato",
        search_key="description",
        q=q,
    )


@router.get(routing.EXPENSES, response_class=HTMLResponse)
async def expenses_page(request: Request, q: str | None = None, repo: SessionRepository = Depends(get_session_repository)):
    expenses = _newest_first(await _records(repo, EXPENSES, Expense))
    rows = [
        {
            "date": expense.date,
            "description": expense.description or "",
            "category": EXPENSE_CATEGORIES.get(expense.category, expense.category),
            "amount": expense.amount,
            "status": expense.status,
        }
        for expense in expenses
    ]
    return _records_page(
        request,
        title="Note Spese",
        subtitle="Rimborsi spese e giustificativi",
        columns=[
            Column("date", "Data", "date"),
            Column("description", "Descrizione"),
            Column("category", "Categoria"),
            Column("amount", "Importo", "currency"),
            Column("status", "Stato", "status"),
        ],
        rows=rows,
        empty_message="Nessuna nota spese registrata",
        search_key="description",
        q=q,
    )


@router.get(routing.TRIPS, response_class=HTMLResponse)
async def trips_page(request: Request, q: str | None = None, repo: SessionRepository = Depends(get_session_repository)):
    trips = _newest_first(await _records(repo, TRIPS, Trip), attr="start_date")
    return _records_page(
        request,
        title="Trasferte",
        subtitle="Viaggi di lavoro pianificati e svolti",
        columns=[
            Column("destination", "Destinazione"),
            Column("start_date", "Partenza", "date"),
            Column("end_date", "Rientro", "date"),
            Column("purpose", "Motivo"),
            Column("status", "Stato", "status"),
        ],
        rows=trips,
        empty_message="Nessuna trasferta registrata",
        search_key="destination",
        q=q,
    )


@router.get(routing.TIMEOFF, response_class=HTMLResponse)
async def timeoff_page(request: Request, q: str | None = None, repo: SessionRepository = Depends(get_session_repository)):
    requests = _newest_first(await _records(repo, LEAVE_REQUESTS, LeaveRequest), attr="start_date")
    rows = [
        {
            "type": LEAVE_TYPE_LABELS.get(leave.type, leave.type),
            "start_date": leave.start_date,
            "end_date": leave.end_date,
            "reason": leave.reason or "",
            "status": leave.status,
        }
        for leave in requests
    ]
    return _records_page(
        request,
        title="Ferie e Permessi",
        subtitle="Richieste di ferie e permessi",
        columns=[
            Column("type", "Tipo"),
            Column("start_date", "Dal", "date"),
            Column("end_date", "Al", "date"),
            Column("reason", "Motivo"),
            Column("status", "Stato", "status"),
        ],
        rows=rows,
        empty_message="Nessuna richiesta di ferie o permesso",
        search_key="reason",
        q=q,
    )


@router.get(routing.SICKLEAVE, response_class=HTMLResponse)
async def sickleave_page(request: Request, q: str | None = None, repo: SessionRepository = Depends(get_session_repository)):
    leaves = _newest_first(await _records(repo, SICK_LEAVES, SickLeave), attr="start_date")
    return _records_page(
        request,
        title="Malattie",
        subtitle="Periodi di malattia e protocolli INPS",
        columns=[
            Column("start_date", "Dal", "date"),
            Column("end_date", "Al", "date"),
            Column("protocol_number", "Protocollo"),
            Column("note", "Note"),
            Column("status", "Stato", "status"),
        ],
        rows=leaves,
        empty_message="Nessun periodo di malattia registrato",
        search_key="protocol_number",
        q=q,
    )


# ---------- Reports ----------


async def _report(request: Request, repo: SessionRepository, report_type: str | None, period_key: str | None):
    period = resolve_period(period_key, _today(request))
    kind = report_type if report_type in REPORT_TYPES else "activity"
    if kind == "expense":
        return build_report(kind, period, expenses=await _records(repo, EXPENSES, Expense))
    if kind == "leave":
        return build_report(kind, period, requests=await _records(repo, LEAVE_REQUESTS, LeaveRequest))
    projects, entries, kinds = await repo.fetch_many(PROJECTS, TIME_ENTRIES, ACTIVITY_TYPES)
    return build_report(
        kind,
        period,
        projects=parse_records(Project, projects.unwrap_or([])),
        entries=parse_records(TimeEntry, entries.unwrap_or([])),
        activity_types=parse_records(ActivityType, kinds.unwrap_or([])),
    )


@router.get(routing.REPORTS, response_class=HTMLResponse)
async def reports_page(
    request: Request,
    type: str | None = None,
    period: str | None = None,
    repo: SessionRepository = Depends(get_session_repository),
):
    report = await _report(request, repo, type, period)
    top = max((row["value"] for row in report["rows"]), default=0)
    context = {
        "report": report,
        "report_types": REPORT_TYPES,
        "report_periods": REPORT_PERIODS,
        "bar_max": top,
    }
    return templates.TemplateResponse(request, "reports.html", context)


@router.get(routing.REPORTS_PDF)
async def reports_pdf(
    request: Request,
    type: str | None = None,
    period: str | None = None,
    session: Session = Depends(require_session),
    repo: SessionRepository = Depends(get_session_repository),
):
    report = await _report(request, repo, type, period)
    content = render_report_pdf(report, owner=session.user.display_name, tz=settings_for(request).TZ)
    filename = f"report-{report['type']}-{report['period'].key}.pdf"
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------- Settings ----------


@router.get(routing.SETTINGS, response_class=HTMLResponse)
async def settings_page(request: Request, session: Session = Depends(require_session)):
    return templates.TemplateResponse(request, "settings.html", {"user": session.user})

