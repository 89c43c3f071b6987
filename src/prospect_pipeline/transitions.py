"""
Transition Validation

Pure functions deciding whether a status change is legal and computing the
record changes that go with it. No I/O and no clock access: the caller
passes ``now`` in.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from .errors import IllegalTransition, InvalidState, Result, ValidationError
from .models import Prospect
from .states import (
    EVENT_TARGETS,
    STAGE_TIMESTAMP_FIELDS,
    VALID_TRANSITIONS,
    ProspectEvent,
    ProspectStatus,
)


def can_transition(current: ProspectStatus, requested: ProspectStatus) -> bool:
    """Check if ``requested`` is one edge away from ``current``."""
    return requested in VALID_TRANSITIONS.get(current, frozenset())


def possible_next_statuses(current: ProspectStatus) -> List[ProspectStatus]:
    """All statuses reachable in one step, in declaration order."""
    targets = VALID_TRANSITIONS.get(current, frozenset())
    return [status for status in ProspectStatus if status in targets]


def validate_transition(current: ProspectStatus, requested: ProspectStatus) -> Result[None]:
    """
    Validate a status change.

    Succeeds only if ``requested`` is reachable from ``current`` by exactly
    one edge of the transition table. NOT_ELIGIBLE is reachable from every
    non-terminal status.

    Returns:
        Result carrying IllegalTransition on failure
    """
    if current == requested:
        return Result.fail(IllegalTransition(
            current.value,
            requested.value,
            f"Status is already '{current.value}'",
        ))

    if current.is_terminal:
        return Result.fail(IllegalTransition(
            current.value,
            requested.value,
            f"'{current.value}' is terminal; no further transitions are allowed",
        ))

    if not can_transition(current, requested):
        return Result.fail(IllegalTransition(current.value, requested.value))

    return Result.ok()


def next_status_for_event(
    current: ProspectStatus,
    event: ProspectEvent,
) -> Optional[ProspectStatus]:
    """
    Status an external event moves the prospect into.

    Returns None when the event's target is not a legal next step from
    ``current`` (stale or duplicate events are ignored, not errors).
    """
    target = EVENT_TARGETS.get(event)
    if target is None or not can_transition(current, target):
        return None
    return target


def can_pre_qualify(prospect: Prospect) -> Result[None]:
    """
    Check a KYC submission can be approved.

    Requires status KYC_SUBMITTED and at least one accreditation basis.
    """
    if prospect.status != ProspectStatus.KYC_SUBMITTED:
        return Result.fail(InvalidState(
            "approve KYC",
            prospect.status.value,
            ProspectStatus.KYC_SUBMITTED.value,
        ))

    if not [b for b in prospect.accreditation_bases if b and b.strip()]:
        return Result.fail(ValidationError(
            "No accreditation basis selected",
            field="accreditation_bases",
        ))

    return Result.ok()


def stage_fields(
    prospect: Prospect,
    new_status: ProspectStatus,
    now: datetime,
) -> Dict[str, Any]:
    """
    Record changes implied by entering ``new_status``.

    Stamps the stage timestamp the first time only and opens a new document
    cycle on every entry into DOCUMENTS_PENDING.
    """
    changes: Dict[str, Any] = {"status": new_status, "updated_at": now}

    timestamp_field = STAGE_TIMESTAMP_FIELDS[new_status]
    if getattr(prospect, timestamp_field) is None:
        changes[timestamp_field] = now

    if new_status == ProspectStatus.DOCUMENTS_PENDING:
        changes["document_cycle"] = prospect.document_cycle + 1

    return changes


def apply_transition(
    prospect: Prospect,
    requested: ProspectStatus,
    now: datetime,
    **extra: Any,
) -> Result[Prospect]:
    """
    Validate and apply a status change to a copy of ``prospect``.

    Nothing is changed on failure; ``extra`` fields are only applied on success.
    """
    check = validate_transition(prospect.status, requested)
    if not check.is_ok:
        return Result.fail(check.error)

    changes = stage_fields(prospect, requested, now)
    changes.update(extra)
    return Result.ok(prospect.copy(**changes))
