"""Dashboard figures computed from the backend lists."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from ..core.config import settings
from ..core.jinja import fmt_currency, fmt_day_month, fmt_number, to_date
from ..schemas.records import Activity, Expense, LeaveRequest, TimeEntry, Trip
from ..views.components import UpcomingEvent

RECENT_ACTIVITY_LIMIT = 5
UPCOMING_EVENT_LIMIT = 4

LEAVE_TITLES = {"vacation": "Ferie", "sick_leave": "Malattia"}
WEEKDAY_LABELS = ("Lun", "Mar", "Mer", "Gio", "Ven", "Sab", "Dom")


@dataclass(frozen=True)
class DayHours:
    day: date
    label: str
    hours: Decimal

    @property
    def percent(self) -> int:
        """Bar length relative to an eight-hour day, capped at 100."""

        return min(100, int(self.hours * 100 / 8)) if self.hours else 0


@dataclass(frozen=True)
class DashboardSummary:
    month_hours: Decimal = Decimal("0")
    month_expenses: Decimal = Decimal("0")
    remaining_vacation_days: int = 0
    next_trip: Optional[Trip] = None
    week: List[DayHours] = field(default_factory=list)
    recent_activities: List[Activity] = field(default_factory=list)
    upcoming: List[UpcomingEvent] = field(default_factory=list)

    @property
    def week_hours(self) -> Decimal:
        return sum((day.hours for day in self.week), Decimal("0"))

    @property
    def hours_label(self) -> str:
        return f"{fmt_number(self.month_hours)}h"

    @property
    def expenses_label(self) -> str:
        return fmt_currency(self.month_expenses)

    @property
    def vacation_label(self) -> str:
        return f"{self.remaining_vacation_days} giorni"

    @property
    def trip_label(self) -> str:
        return self.next_trip.destination if self.next_trip else "Nessuna programmata"

    @property
    def trip_info(self) -> str:
        if self.next_trip is None:
            return "Nessuna trasferta in arrivo"
        return "Confermata" if self.next_trip.status == "approved" else "Conferma richiesta"


def _in_month(value: str, today: date) -> bool:
    day = to_date(value)
    return day is not None and day.year == today.year and day.month == today.month and day <= today


def inclusive_days(start: str, end: str) -> int:
    first, last = to_date(start), to_date(end)
    if first is None or last is None or last < first:
        return 0
    return (last - first).days + 1


def remaining_vacation_days(requests: Iterable[LeaveRequest], allowance: int | None = None) -> int:
    total = settings.ANNUAL_VACATION_DAYS if allowance is None else allowance
    used = sum(
        inclusive_days(request.start_date, request.end_date)
        for request in requests
        if request.type == "vacation" and request.status != "rejected"
    )
    return total - used


def week_hours(entries: Iterable[TimeEntry], today: date) -> list[DayHours]:
    """Hours per day of the Monday-based week containing ``today``."""

    monday = today - timedelta(days=today.weekday())
    totals = {monday + timedelta(days=offset): Decimal("0") for offset in range(7)}
    for entry in entries:
        day = to_date(entry.date)
        if day in totals:
            totals[day] += entry.hours
    return [DayHours(day, WEEKDAY_LABELS[day.weekday()], hours) for day, hours in totals.items()]


def recent_activities(entries: Iterable[TimeEntry], limit: int = RECENT_ACTIVITY_LIMIT) -> list[Activity]:
    ordered = sorted(entries, key=lambda entry: to_date(entry.date) or date.min, reverse=True)
    return [Activity.from_time_entry(entry) for entry in ordered[:limit]]


def next_trip(trips: Iterable[Trip], today: date) -> Trip | None:
    future = [trip for trip in trips if (to_date(trip.start_date) or date.min) > today]
    future.sort(key=lambda trip: to_date(trip.start_date))
    return future[0] if future else None


def _period_text(start: str, end: str, note: str | None) -> str:
    text = f"{fmt_day_month(start)} - {fmt_day_month(end)}"
    return f"{text} - {note}" if note else text


def _event_status(status: str) -> str:
    return "confirmed" if status == "approved" else "pending"


def upcoming_events(
    trip: Trip | None,
    requests: Iterable[LeaveRequest],
    today: date,
    limit: int = UPCOMING_EVENT_LIMIT,
) -> list[UpcomingEvent]:
    events: list[UpcomingEvent] = []
    if trip is not None:
        events.append(
            UpcomingEvent(
                id=trip.id,
                date=trip.start_date,
                title=f"Trasferta {trip.destination}",
                description=_period_text(trip.start_date, trip.end_date, trip.purpose),
                status=_event_status(trip.status),
            )
        )
    for request in requests:
        if (to_date(request.start_date) or date.min) <= today:
            continue
        events.append(
            UpcomingEvent(
                id=request.id,
                date=request.start_date,
                title=LEAVE_TITLES.get(request.type, "Permesso"),
                description=_period_text(request.start_date, request.end_date, request.reason),
                status=_event_status(request.status),
            )
        )
    events.sort(key=lambda event: to_date(event.date) or date.min)
    return events[:limit]


def build_summary(
    entries: list[TimeEntry],
    expenses: list[Expense],
    requests: list[LeaveRequest],
    trips: list[Trip],
    today: date,
    allowance: int | None = None,
) -> DashboardSummary:
    month_entries = [entry for entry in entries if _in_month(entry.date, today)]
    trip = next_trip(trips, today)
    return DashboardSummary(
        month_hours=sum((entry.hours for entry in month_entries), Decimal("0")),
        month_expenses=sum(
            (expense.amount for expense in expenses if _in_month(expense.date, today)), Decimal("0")
        ),
        remaining_vacation_days=remaining_vacation_days(requests, allowance),
        next_trip=trip,
        week=week_hours(entries, today),
        recent_activities=recent_activities(month_entries),
        upcoming=upcoming_events(trip, requests, today),
    )


__all__ = ["DashboardSummary", "DayHours", "build_summary", "inclusive_days", "remaining_vacation_days"]
