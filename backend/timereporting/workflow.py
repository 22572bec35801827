"""Workflow guard for time entry status transitions.

``evaluate`` is a pure function of the entry's current status and the
requested operation. It never raises for expected conditions; callers turn a
rejected :class:`GuardDecision` into a ``BusinessRuleError``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, Optional

from .models import TimeEntryStatus


class Operation(str, enum.Enum):
    UPDATE = "update"
    REPLACE_TAGS = "replace_tags"
    MOVE = "move"
    DELETE = "delete"
    SUBMIT = "submit"
    APPROVE = "approve"
    DECLINE = "decline"


EDIT_OPERATIONS = frozenset({Operation.UPDATE, Operation.REPLACE_TAGS, Operation.MOVE, Operation.DELETE})

EDITABLE_STATUSES = frozenset({TimeEntryStatus.NOT_REPORTED, TimeEntryStatus.DECLINED})

_EDIT_VERBS: Dict[Operation, str] = {
    Operation.UPDATE: "update",
    Operation.REPLACE_TAGS: "update tags of",
    Operation.MOVE: "move",
    Operation.DELETE: "delete",
}


@dataclass(frozen=True)
class GuardDecision:
    allowed: bool
    resulting_status: Optional[TimeEntryStatus] = None
    reason: Optional[str] = None

    @classmethod
    def allow(cls, status: TimeEntryStatus) -> "GuardDecision":
        return cls(allowed=True, resulting_status=status)

    @classmethod
    def reject(cls, reason: str) -> "GuardDecision":
        return cls(allowed=False, reason=reason)


def _evaluate_edit(status: TimeEntryStatus, operation: Operation) -> GuardDecision:
    verb = _EDIT_VERBS[operation]
    if status in EDITABLE_STATUSES:
        return GuardDecision.allow(status)
    if status is TimeEntryStatus.SUBMITTED:
        return GuardDecision.reject(
            f"Cannot {verb} time entry in SUBMITTED status. "
            "Entry is read-only pending decision (APPROVED or DECLINED)."
        )
    return GuardDecision.reject(
        f"Cannot {verb} time entry in APPROVED status. Approved entries are immutable."
    )


def _evaluate_submit(status: TimeEntryStatus) -> GuardDecision:
    if status in EDITABLE_STATUSES:
        return GuardDecision.allow(TimeEntryStatus.SUBMITTED)
    if status is TimeEntryStatus.SUBMITTED:
        return GuardDecision.reject("Time entry is already SUBMITTED. Cannot submit again.")
    return GuardDecision.reject(
        "Time entry is already APPROVED. Approved entries cannot be resubmitted and are immutable."
    )


def _evaluate_decision(status: TimeEntryStatus, operation: Operation) -> GuardDecision:
    if status is TimeEntryStatus.SUBMITTED:
        target = TimeEntryStatus.APPROVED if operation is Operation.APPROVE else TimeEntryStatus.DECLINED
        return GuardDecision.allow(target)
    past = "approved" if operation is Operation.APPROVE else "declined"
    if status is TimeEntryStatus.APPROVED:
        if operation is Operation.APPROVE:
            return GuardDecision.reject("Time entry is already APPROVED.")
        return GuardDecision.reject(
            "Time entry is already APPROVED. Approved entries cannot be declined."
        )
    return GuardDecision.reject(
        f"Time entry must be in SUBMITTED status to be {past}. Current status: {status.value}"
    )


def evaluate(status: TimeEntryStatus | str, operation: Operation) -> GuardDecision:
    current = TimeEntryStatus(status)
    if operation in EDIT_OPERATIONS:
        return _evaluate_edit(current, operation)
    if operation is Operation.SUBMIT:
        return _evaluate_submit(current)
    return _evaluate_decision(current, operation)


def can_edit(status: TimeEntryStatus | str) -> bool:
    return TimeEntryStatus(status) in EDITABLE_STATUSES
