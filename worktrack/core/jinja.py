"""Jinja2 environment and the formatting filters shared by pages and components.

Dates follow the viewer's locale convention. The locale comes from the first
``Accept-Language`` tag and falls back to ``DEFAULT_LOCALE`` (Italian), so a
backend date such as ``2024-01-05`` is shown as ``05/01/2024``.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Any, Callable, Sequence
from zoneinfo import ZoneInfo

from fastapi.templating import Jinja2Templates
from jinja2 import FileSystemLoader

from .config import AppSettings, settings

_LOCAL_TZ = ZoneInfo(settings.TZ) if settings.TZ else None

DATE_FORMATS = {
    "it": "%d/%m/%Y",
    "en-us": "%m/%d/%Y",
    "en": "%d/%m/%Y",
    "de": "%d.%m.%Y",
    "fr": "%d/%m/%Y",
    "es": "%d/%m/%Y",
    "nl": "%d-%m-%Y",
    "ja": "%Y/%m/%d",
    "zh": "%Y/%m/%d",
}

MONTH_ABBREVIATIONS_IT = ("GEN", "FEB", "MAR", "APR", "MAG", "GIU", "LUG", "AGO", "SET", "OTT", "NOV", "DIC")
MONTH_NAMES_IT = (
    "gennaio",
    "febbraio",
    "marzo",
    "aprile",
    "maggio",
    "giugno",
    "luglio",
    "agosto",
    "settembre",
    "ottobre",
    "novembre",
    "dicembre",
)


def resolve_locale(accept_language: str | None, default: str | None = None) -> str:
    """Pick the first language tag from an ``Accept-Language`` header."""

    fallback = default or settings.DEFAULT_LOCALE
    if not accept_language:
        return fallback
    for part in accept_language.split(","):
        tag = part.split(";", 1)[0].strip()
        if tag and tag != "*":
            return tag
    return fallback


def _date_format_for(locale: str | None) -> str:
    tag = (locale or settings.DEFAULT_LOCALE).replace("_", "-").lower()
    if tag in DATE_FORMATS:
        return DATE_FORMATS[tag]
    language = tag.split("-", 1)[0]
    return DATE_FORMATS.get(language, DATE_FORMATS["it"])


def to_date(value: Any) -> date | None:
    """Normalise ISO strings, dates and datetimes to a calendar date."""

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        return value
    elif isinstance(value, str) and value:
        text = value.strip().replace("Z", "+00:00")
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is not None and _LOCAL_TZ:
        dt = dt.astimezone(_LOCAL_TZ)
    return dt.date()


def fmt_date(value: Any, locale: str | None = None) -> str:
    """Format a date with the locale's day/month/year ordering."""

    day = to_date(value)
    return day.strftime(_date_format_for(locale)) if day else ""


def fmt_optional_date(value: Any, locale: str | None = None, placeholder: str = "-") -> str:
    return fmt_date(value, locale) or placeholder


def fmt_day_month(value: Any) -> str:
    day = to_date(value)
    return day.strftime("%d/%m") if day else ""


def fmt_month_abbr(value: Any) -> str:
    day = to_date(value)
    return MONTH_ABBREVIATIONS_IT[day.month - 1] if day else ""


def fmt_month_year(value: Any) -> str:
    day = to_date(value)
    return f"{MONTH_NAMES_IT[day.month - 1]} {day.year}" if day else ""


def to_number(value: Any) -> Decimal:
    """Backend numerics may arrive as strings; anything unparsable counts as zero."""

    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        cleaned = value.strip().replace("€", "").replace(",", ".")
        if not cleaned:
            return Decimal("0")
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return Decimal("0")
    return Decimal("0")


def fmt_number(value: Any) -> str:
    """Render a number without trailing zeros (``2`` stays ``2``, ``2.50`` is ``2.5``)."""

    number = to_number(value)
    if number == number.to_integral_value():
        return str(int(number))
    return format(number.normalize(), "f")


def fmt_currency(value: Any) -> str:
    number = to_number(value)
    return f"€{number:.2f}"


def get_templates(context_processors: Sequence[Callable[..., dict[str, Any]]] = ()) -> Jinja2Templates:
    """Create a ``Jinja2Templates`` instance with our standard filters registered."""

    templates = Jinja2Templates(
        directory=str(settings.templates_dir),
        context_processors=list(context_processors),
    )
    env = templates.env
    env.filters["fmt_date"] = fmt_date
    env.filters["fmt_optional_date"] = fmt_optional_date
    env.filters["fmt_day_month"] = fmt_day_month
    env.filters["fmt_month_abbr"] = fmt_month_abbr
    env.filters["fmt_month_year"] = fmt_month_year
    env.filters["fmt_number"] = fmt_number
    env.filters["fmt_currency"] = fmt_currency
    return templates


@lru_cache(maxsize=1)
def component_templates() -> Jinja2Templates:
    """Templates used to render components outside of a request."""

    return get_templates()


def configure_templates(cfg: AppSettings, *targets: Jinja2Templates) -> None:
    """Apply an app's settings: its template directory is searched first, dates use its timezone."""

    global _LOCAL_TZ
    _LOCAL_TZ = ZoneInfo(cfg.TZ) if cfg.TZ else None
    first = str(cfg.templates_dir)
    for templates in (*targets, component_templates()):
        searchpath = list(getattr(templates.env.loader, "searchpath", []))
        if searchpath[:1] == [first]:
            continue
        templates.env.loader = FileSystemLoader([first] + [path for path in searchpath if path != first])
