"""Deficient item document vocabulary."""

from enum import Enum
from typing import Any


class DeficiencyState(str, Enum):
    """Deficient item workflow states."""

    REQUIRES_ACTION = "requires-action"
    GO_BACK = "go-back"
    REQUIRES_PROGRESS_UPDATE = "requires-progress-update"
    PENDING = "pending"
    DEFERRED = "deferred"
    OVERDUE = "overdue"
    INCOMPLETE = "incomplete"
    COMPLETED = "completed"
    CLOSED = "closed"


# Attributes of a deficiency that shadow its inspection item
PROXY_ATTRS: tuple[str, ...] = (
    "itemInspectorNotes",
    "itemMainInputSelection",
    "itemPhotosData",
    "itemAdminEdits",
    "sectionSubtitle",
)

# Attributes recomputed on every sync beside the proxies
DERIVED_ATTRS: tuple[str, ...] = ("itemScore", "itemDataLastUpdatedDate")


def default_deficiency(state: str = DeficiencyState.REQUIRES_ACTION.value) -> dict[str, Any]:
    """Fresh deficiency record with every workflow field unset."""
    return {
        "createdAt": None,
        "updatedAt": None,
        "startDates": None,
        "currentStartDate": None,
        "stateHistory": None,
        "state": state,
        "dueDates": None,
        "currentDueDate": None,
        "plansToFix": None,
        "currentPlanToFix": None,
        "responsibilityGroups": None,
        "currentResponsibilityGroup": None,
        "progressNotes": None,
        "reasonsIncomplete": None,
        "currentReasonIncomplete": None,
        "completedPhotos": None,
        "itemDataLastUpdatedDate": None,
        "sectionTitle": None,
        "sectionSubtitle": None,
        "sectionType": None,
        "itemAdminEdits": None,
        "itemInspectorNotes": None,
        "itemTitle": None,
        "itemMainInputType": None,
        "itemScore": None,
        "itemMainInputSelection": None,
        "itemPhotosData": None,
        "willRequireProgressNote": None,
    }
