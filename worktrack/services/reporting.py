from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List

from ..core.jinja import MONTH_NAMES_IT, to_date
from ..schemas.records import ActivityType, Expense, LeaveRequest, Project, TimeEntry
from .dashboard import inclusive_days

TWOPLACES = Decimal("0.01")
HOUR_PLACES = Decimal("0.1")

REPORT_TYPES = {
    "activity": "Report Attività",
    "expense": "Report Note Spese",
    "leave": "Report Ferie e Permessi",
}
REPORT_PERIODS = {
    "current-month": "Mese corrente",
    "last-month": "Mese precedente",
    "last-3-months": "Ultimi 3 mesi",
    "year-to-date": "Anno corrente",
}
DEFAULT_REPORT_TYPE = "activity"
DEFAULT_PERIOD = "current-month"

EXPENSE_CATEGORIES = {
    "travel": "Viaggi",
    "meal": "Pasti",
    "accommodation": "Alloggio",
    "other": "Altro",
}
LEAVE_TYPES = {
    "vacation": "Ferie",
    "sick_leave": "Malattia",
    "personal_leave": "Permessi",
}


def _quantize_currency(value: Decimal) -> Decimal:
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP) if value else Decimal("0.00")


def _quantize_hours(value: Decimal) -> Decimal:
    return value.quantize(HOUR_PLACES, rounding=ROUND_HALF_UP) if value else Decimal("0")


def _shift_month(day: date, months: int) -> date:
    index = day.year * 12 + day.month - 1 + months
    return date(index // 12, index % 12 + 1, 1)


def _month_end(day: date) -> date:
    return date(day.year, day.month, calendar.monthrange(day.year, day.month)[1])


@dataclass(frozen=True)
class ReportPeriod:
    key: str
    start: date
    end: date
    label: str

    def contains(self, value: Any) -> bool:
        day = to_date(value)
        return day is not None and self.start <= day <= self.end

    def overlaps(self, start: Any, end: Any) -> bool:
        first, last = to_date(start), to_date(end)
        if first is None or last is None:
            return False
        return first <= self.end and last >= self.start


def _month_label(day: date) -> str:
    return f"{MONTH_NAMES_IT[day.month - 1]} {day.year}"


def resolve_period(key: str | None, today: date) -> ReportPeriod:
    """Date range for a period key; unknown keys mean the current month."""

    key = key if key in REPORT_PERIODS else DEFAULT_PERIOD
    month_start = today.replace(day=1)
    if key == "last-month":
        start = _shift_month(month_start, -1)
        return ReportPeriod(key, start, _month_end(start), _month_label(start))
    if key == "last-3-months":
        start = _shift_month(month_start, -2)
        label = f"Ultimi 3 mesi ({MONTH_NAMES_IT[start.month - 1][:3]} - {_month_label(today)})"
        return ReportPeriod(key, start, _month_end(today), label)
    if key == "year-to-date":
        return ReportPeriod(key, date(today.year, 1, 1), today, f"Anno {today.year} ad oggi")
    return ReportPeriod(key, month_start, _month_end(today), _month_label(today))


def _hours_by(entries: Iterable[TimeEntry], attr: str) -> Dict[int | None, Decimal]:
    totals: Dict[int | None, Decimal] = {}
    for entry in entries:
        key = getattr(entry, attr)
        totals[key] = totals.get(key, Decimal("0")) + entry.hours
    return totals


def _hour_rows(named: Iterable[Any], totals: Dict[int | None, Decimal]) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for item in named:
        hours = _quantize_hours(totals.get(item.id, Decimal("0")))
        if hours > 0:
            rows.append({"name": item.name, "value": hours})
    rows.sort(key=lambda row: row["value"], reverse=True)
    return rows


def activity_report(
    projects: Iterable[Project],
    entries: Iterable[TimeEntry],
    period: ReportPeriod,
    activity_types: Iterable[ActivityType] = (),
) -> Dict[str, Any]:
    """Hours per project and per work activity type for the entries inside ``period``.

    Projects and types without hours are left out.
    """

    in_period = [entry for entry in entries if period.contains(entry.date)]
    rows = _hour_rows(projects, _hours_by(in_period, "project_id"))
    work_types = [kind for kind in activity_types if kind.category == "work"]
    type_rows = _hour_rows(work_types, _hours_by(in_period, "activity_type_id"))

    total = sum((entry.hours for entry in in_period), Decimal("0"))
    return {
        "rows": rows,
        "type_rows": type_rows,
        "total": _quantize_hours(total),
        "count": len(in_period),
        "unit": "hours",
    }


def expense_report(expenses: Iterable[Expense], period: ReportPeriod) -> Dict[str, Any]:
    in_period = [expense for expense in expenses if period.contains(expense.date)]
    rows: List[Dict[str, Any]] = []
    for key, label in EXPENSE_CATEGORIES.items():
        amount = sum((expense.amount for expense in in_period if expense.category == key), Decimal("0"))
        if amount > 0:
            rows.append({"name": label, "value": _quantize_currency(amount)})

    total = sum((expense.amount for expense in in_period), Decimal("0"))
    return {
        "rows": rows,
        "total": _quantize_currency(total),
        "count": len(in_period),
        "unit": "currency",
    }


def leave_report(requests: Iterable[LeaveRequest], period: ReportPeriod) -> Dict[str, Any]:
    """Days per leave type, counted inclusively; rejected requests do not count."""

    counted = [
        request
        for request in requests
        if request.status != "rejected" and period.overlaps(request.start_date, request.end_date)
    ]
    rows: List[Dict[str, Any]] = []
    for key, label in LEAVE_TYPES.items():
        days = sum(inclusive_days(r.start_date, r.end_date) for r in counted if r.type == key)
        if days > 0:
            rows.append({"name": label, "value": days})

    return {
        "rows": rows,
        "total": sum(row["value"] for row in rows),
        "count": len(counted),
        "unit": "days",
    }


def build_report(
    report_type: str | None,
    period: ReportPeriod,
    *,
    projects: Iterable[Project] = (),
    entries: Iterable[TimeEntry] = (),
    activity_types: Iterable[ActivityType] = (),
    expenses: Iterable[Expense] = (),
    requests: Iterable[LeaveRequest] = (),
) -> Dict[str, Any]:
    kind = report_type if report_type in REPORT_TYPES else DEFAULT_REPORT_TYPE
    if kind == "expense":
        data = expense_report(expenses, period)
    elif kind == "leave":
        data = leave_report(requests, period)
    else:
        data = activity_report(projects, entries, period, activity_types)
    data.update({"type": kind, "title": REPORT_TYPES[kind], "period": period})
    return data


__all__ = [
    "REPORT_PERIODS",
    "REPORT_TYPES",
    "ReportPeriod",
    "activity_report",
    "build_report",
    "expense_report",
    "leave_report",
    "resolve_period",
]
