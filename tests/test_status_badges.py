import pytest

from worktrack.views.status import (
    APPROVAL_BADGES,
    PENDING_BADGE,
    PROJECT_BADGES,
    approval_badge,
    event_badge,
    project_badge,
)


@pytest.mark.parametrize(
    "status,color,label",
    [
        ("approved", "green", "Approvato"),
        ("rejected", "red", "Rifiutato"),
        ("pending", "yellow", "In Attesa"),
    ],
)
def test_approval_badges(status, color, label):
    badge = approval_badge(status)
    assert (badge.color, badge.label) == (color, label)
    assert badge.css_class == f"badge badge-{color}"


@pytest.mark.parametrize("status", ["archived", "", None, 3])
def test_unknown_statuses_look_pending(status):
    assert approval_badge(status) == PENDING_BADGE
    assert project_badge(status) == PENDING_BADGE
    assert event_badge(status) == PENDING_BADGE


@pytest.mark.parametrize(
    "status,color,label",
    [
        ("planning", "blue", "Pianificazione"),
        ("in_progress", "green", "In corso"),
        ("completed", "grey", "Completato"),
        ("on_hold", "orange", "In sospeso"),
        ("cancelled", "red", "Annullato"),
    ],
)
def test_project_badges(status, color, label):
    badge = project_badge(status)
    assert (badge.color, badge.label) == (color, label)


@pytest.mark.parametrize(
    "status,color",
    [("confirmed", "green"), ("urgent", "red"), ("info", "blue"), ("pending", "yellow")],
)
def test_event_badges(status, color):
    assert event_badge(status).color == color


def test_every_enumerated_status_has_a_distinct_label():
    labels = [badge.label for badge in APPROVAL_BADGES.values()] + [b.label for b in PROJECT_BADGES.values()]
    assert len(labels) == len(set(labels))
