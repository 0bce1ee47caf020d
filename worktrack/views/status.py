from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StatusBadge:
    color: str
    label: str

    @property
    def css_class(self) -> str:
        return f"badge badge-{self.color}"


PENDING_BADGE = StatusBadge("yellow", "In Attesa")

APPROVAL_BADGES = {
    "pending": PENDING_BADGE,
    "approved": StatusBadge("green", "Approvato"),
    "rejected": StatusBadge("red", "Rifiutato"),
}

PROJECT_BADGES = {
    "planning": StatusBadge("blue", "Pianificazione"),
    "in_progress": StatusBadge("green", "In corso"),
    "completed": StatusBadge("grey", "Completato"),
    "on_hold": StatusBadge("orange", "In sospeso"),
    "cancelled": StatusBadge("red", "Annullato"),
}

EVENT_BADGES = {
    "pending": PENDING_BADGE,
    "confirmed": StatusBadge("green", "Confermato"),
    "urgent": StatusBadge("red", "Urgente"),
    "info": StatusBadge("blue", "Informativo"),
}


def approval_badge(status: object) -> StatusBadge:
    """Badge for time entries, expenses, trips and leave; unknown values look pending."""

    return APPROVAL_BADGES.get(str(status or ""), PENDING_BADGE)


def project_badge(status: object) -> StatusBadge:
    return PROJECT_BADGES.get(str(status or ""), PENDING_BADGE)


def event_badge(status: object) -> StatusBadge:
    return EVENT_BADGES.get(str(status or ""), PENDING_BADGE)
