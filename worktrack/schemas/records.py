"""Read-only DTOs received from the WorkTrack backend."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from ..core.jinja import to_number

logger = logging.getLogger(__name__)


class BackendRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True)

    id: int
    user_id: Optional[int] = None
    status: str = "pending"

    @field_validator("status", mode="before")
    @classmethod
    def status_text(cls, value: Any) -> Any:
        return "pending" if value in (None, "") else str(value)


class Project(BackendRecord):
    name: str
    description: Optional[str] = None
    client: Optional[str] = None
    status: str = "planning"
    progress: int = 0
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    @field_validator("progress", mode="before")
    @classmethod
    def clamp_progress(cls, value: Any) -> int:
        number = int(to_number(value))
        return max(0, min(100, number))


class ActivityType(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int
    name: str
    category: str = "work"
    description: Optional[str] = None


class TimeEntry(BackendRecord):
    date: str
    project_id: Optional[int] = None
    activity_type_id: Optional[int] = None
    description: Optional[str] = None
    hours: Decimal = Decimal("0")

    @field_validator("hours", mode="before")
    @classmethod
    def hours_number(cls, value: Any) -> Decimal:
        return to_number(value)


class Expense(BackendRecord):
    date: str
    amount: Decimal = Decimal("0")
    category: str = "other"
    description: Optional[str] = None
    trip_id: Optional[int] = None

    @field_validator("amount", mode="before")
    @classmethod
    def amount_number(cls, value: Any) -> Decimal:
        return to_number(value)


class Trip(BackendRecord):
    destination: str
    start_date: str
    end_date: str
    purpose: Optional[str] = None


class LeaveRequest(BackendRecord):
    start_date: str
    end_date: str
    type: str = "vacation"
    reason: Optional[str] = None


class SickLeave(BackendRecord):
    start_date: str
    end_date: str
    protocol_number: str = ""
    note: Optional[str] = None


class Activity(BaseModel):
    """Row shape of the activity table."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int
    date: str
    activity: str = ""
    hours: Decimal = Decimal("0")
    status: str = "pending"

    @field_validator("hours", mode="before")
    @classmethod
    def hours_number(cls, value: Any) -> Decimal:
        return to_number(value)

    @field_validator("activity", mode="before")
    @classmethod
    def activity_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @classmethod
    def from_time_entry(cls, entry: TimeEntry) -> "Activity":
        return cls(id=entry.id, date=entry.date, activity=entry.description or "", hours=entry.hours, status=entry.status)


def parse_records(model: type[BaseModel], payload: Any) -> list[Any]:
    """Validate a backend list; anything that is not a list yields no records."""

    if not isinstance(payload, list):
        return []
    records = []
    for item in payload:
        try:
            records.append(model.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping malformed %s record: %s", model.__name__, exc.error_count())
    return records
