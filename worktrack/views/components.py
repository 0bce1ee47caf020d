"""Display components.

Every component is a stateless function from data plus display options to
HTML ``Markup``. Lists may be truncated with ``limit`` (order is preserved),
each component has a fixed empty-state message, and widgets that are still
loading render a spinner placeholder instead of rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from markupsafe import Markup

from ..core.jinja import component_templates
from ..schemas.records import Activity, Expense, Project, TimeEntry
from .status import approval_badge, event_badge, project_badge

EMPTY_ACTIVITIES = "Nessuna attività registrata"
EMPTY_PROJECTS = "Nessun progetto attivo."
EMPTY_TIMESHEET = "Nessun consuntivo recente."
EMPTY_EXPENSES = "Nessuna nota spese recente."
EMPTY_EVENTS = "Nessun evento programmato"
EMPTY_RECORDS = "Nessun dato disponibile"


def _render(component: str, **context: Any) -> Markup:
    template = component_templates().env.get_template(f"components/{component}.html")
    return Markup(template.render(**context))


def take(items: Iterable[Any], limit: int | None) -> list[Any]:
    """First ``min(limit, len(items))`` items in their original order; ``None`` keeps all."""

    values = list(items)
    if limit is None:
        return values
    return values[: max(limit, 0)]


def _coerce(model, items: Iterable[Any]) -> list[Any]:
    return [item if isinstance(item, model) else model.model_validate(item) for item in items]


@dataclass(frozen=True)
class Trend:
    value: str
    positive: bool = True


def stats_card(
    title: str,
    value: str,
    icon: str,
    *,
    trend: Trend | None = None,
    footnote: str | None = None,
    tone: str = "primary",
) -> Markup:
    return _render("stats_card", title=title, value=value, icon=icon, trend=trend, footnote=footnote, tone=tone)


CHANGE_STYLES = {
    "positive": ("green", "up"),
    "negative": ("red", "down"),
    "neutral": ("grey", None),
}


def summary_card(
    title: str,
    value: str,
    icon: str,
    *,
    change_value: str | None = None,
    change_type: str = "neutral",
    info_text: str | None = None,
) -> Markup:
    color, arrow = CHANGE_STYLES.get(change_type, CHANGE_STYLES["neutral"])
    return _render(
        "summary_card",
        title=title,
        value=value,
        icon=icon,
        change_value=change_value,
        change_color=color,
        change_arrow=arrow,
        info_text=info_text,
    )


def activity_table(
    activities: Sequence[Activity | dict],
    *,
    caption: str = "Attività Recenti",
    limit: int | None = None,
    show_view_all: bool = False,
    view_all_href: str | None = None,
    locale: str | None = None,
) -> Markup:
    rows = take(_coerce(Activity, activities), limit)
    return _render(
        "activity_table",
        caption=caption,
        rows=[(row, approval_badge(row.status)) for row in rows],
        show_view_all=show_view_all,
        view_all_href=view_all_href,
        empty_message=EMPTY_ACTIVITIES,
        locale=locale,
    )


def project_status(
    projects: Sequence[Project | dict],
    *,
    limit: int | None = 2,
    loading: bool = False,
    locale: str | None = None,
) -> Markup:
    rows = [] if loading else take(_coerce(Project, projects), limit)
    return _render(
        "project_status",
        loading=loading,
        rows=[(row, project_badge(row.status)) for row in rows],
        empty_message=EMPTY_PROJECTS,
        locale=locale,
    )


def recent_timesheet(
    entries: Sequence[TimeEntry | dict],
    *,
    limit: int | None = 5,
    loading: bool = False,
    locale: str | None = None,
) -> Markup:
    rows = [] if loading else take(_coerce(TimeEntry, entries), limit)
    return _render(
        "recent_timesheet",
        loading=loading,
        rows=[(row, approval_badge(row.status)) for row in rows],
        empty_message=EMPTY_TIMESHEET,
        locale=locale,
    )


EXPENSE_CATEGORY_ICONS = {
    "restaurant": ("restaurant", "warning"),
    "meal": ("restaurant", "warning"),
    "transport": ("car", "primary-light"),
    "travel": ("car", "primary-light"),
    "hotel": ("hotel", "success"),
    "accommodation": ("hotel", "success"),
    "office": ("briefcase", "success"),
}


def expense_reports(
    expenses: Sequence[Expense | dict],
    *,
    limit: int | None = 3,
    loading: bool = False,
    locale: str | None = None,
) -> Markup:
    rows = [] if loading else take(_coerce(Expense, expenses), limit)
    return _render(
        "expense_reports",
        loading=loading,
        rows=[
            (row, approval_badge(row.status), EXPENSE_CATEGORY_ICONS.get(row.category, ("receipt", "success")))
            for row in rows
        ],
        empty_message=EMPTY_EXPENSES,
        locale=locale,
    )


@dataclass(frozen=True)
class UpcomingEvent:
    id: int
    date: str
    title: str
    description: str
    status: str = "pending"


def upcoming_events(events: Sequence[UpcomingEvent], *, limit: int | None = None) -> Markup:
    rows = take(events, limit)
    return _render(
        "upcoming_events",
        rows=[(row, event_badge(row.status)) for row in rows],
        empty_message=EMPTY_EVENTS,
    )


@dataclass(frozen=True)
class QuickAction:
    name: str
    icon: str
    path: str
    tone: str


QUICK_ACTIONS = (
    QuickAction("Inserisci Ore", "time", "/timesheet", "primary"),
    QuickAction("Nuova Spesa", "money-euro", "/expenses", "success"),
    QuickAction("Pianifica Trasferta", "flight", "/trips", "primary-light"),
    QuickAction("Richiedi Ferie", "calendar", "/timeoff", "warning"),
    QuickAction("Genera Report", "file-chart", "/reports", "error"),
)


def quick_actions(actions: Sequence[QuickAction] = QUICK_ACTIONS) -> Markup:
    return _render("quick_actions", actions=list(actions))


@dataclass(frozen=True)
class Column:
    key: str
    label: str
    kind: str = "text"  # text, date, number, currency, status


def _cell_text(row: Any, key: str) -> str:
    value = row.get(key) if isinstance(row, dict) else getattr(row, key, None)
    return "" if value is None else str(value)


def records_table(
    columns: Sequence[Column],
    rows: Sequence[Any],
    *,
    empty_message: str = EMPTY_RECORDS,
    search: str | None = None,
    search_key: str | None = None,
    search_placeholder: str = "Cerca...",
    locale: str | None = None,
) -> Markup:
    needle = (search or "").strip().casefold()
    visible = list(rows)
    if needle and search_key:
        visible = [row for row in visible if needle in _cell_text(row, search_key).casefold()]
    cells = [
        [
            (column, row.get(column.key) if isinstance(row, dict) else getattr(row, column.key, None))
            for column in columns
        ]
        for row in visible
    ]
    return _render(
        "records_table",
        columns=list(columns),
        rows=cells,
        empty_message=empty_message,
        search=search or "",
        search_key=search_key,
        search_placeholder=search_placeholder,
        approval_badge=approval_badge,
        locale=locale,
    )


def widget_placeholder(name: str, title: str) -> Markup:
    """Spinner shown until ``static/app.js`` swaps in ``/ui/widgets/<name>``."""

    return _render("widget_placeholder", widget=name, title=title)
