"""
Opportunity status state machine.

    open        -> in_progress, stale, closed
    in_progress -> completed, abandoned, closed
    abandoned   -> open, closed
    stale       -> closed
    completed, closed: terminal

Completing an opportunity that never went through ``in_progress`` is
accepted but reported as a DataIntegrityWarning.
"""

import warnings
from datetime import datetime, timedelta
from typing import Optional, Union

from contribux.enums import OpportunityStatus
from contribux.exceptions import DataIntegrityWarning, InvalidTransition
from contribux.logging import get_logger

logger = get_logger(__name__)

S = OpportunityStatus

ALLOWED_TRANSITIONS: dict[OpportunityStatus, frozenset[OpportunityStatus]] = {
    S.OPEN: frozenset({S.IN_PROGRESS, S.STALE, S.CLOSED}),
    S.IN_PROGRESS: frozenset({S.COMPLETED, S.ABANDONED, S.CLOSED}),
    S.ABANDONED: frozenset({S.OPEN, S.CLOSED}),
    S.STALE: frozenset({S.CLOSED}),
    S.COMPLETED: frozenset(),
    S.CLOSED: frozenset(),
}

# Accepted with a DataIntegrityWarning.
UNSTARTED_COMPLETION_SOURCES = frozenset({S.OPEN, S.STALE, S.ABANDONED})


def _status(value: Union[str, OpportunityStatus]) -> OpportunityStatus:
    return value if isinstance(value, OpportunityStatus) else OpportunityStatus(value)


def can_transition(current: Union[str, OpportunityStatus], target: Union[str, OpportunityStatus]) -> bool:
    current, target = _status(current), _status(target)
    return target in ALLOWED_TRANSITIONS[current] or (
        target == S.COMPLETED and current in UNSTARTED_COMPLETION_SOURCES
    )


def transition(
    current: Union[str, OpportunityStatus],
    target: Union[str, OpportunityStatus],
    opportunity_id: Optional[int] = None,
) -> OpportunityStatus:
    """
    Validate a status change and return the new status.

    Raises:
        InvalidTransition: The change is not allowed
    """
    current, target = _status(current), _status(target)
    if target in ALLOWED_TRANSITIONS[current]:
        return target
    if target == S.COMPLETED and current in UNSTARTED_COMPLETION_SOURCES:
        message = f"opportunity {opportunity_id} completed from '{current.value}' without being started"
        logger.warning(
            "completion_without_start",
            opportunity_id=opportunity_id,
            from_status=current.value,
        )
        warnings.warn(message, DataIntegrityWarning, stacklevel=2)
        return target
    raise InvalidTransition(current.value, target.value)


def staleness_target(
    status: Union[str, OpportunityStatus],
    last_activity: datetime,
    now: datetime,
    stale_after: timedelta,
    close_stale_after: timedelta,
) -> Optional[OpportunityStatus]:
    """
    Status the staleness job should move an opportunity to, if any.

    Open opportunities idle longer than ``stale_after`` become stale; stale
    ones idle longer than ``close_stale_after`` close.
    """
    status = _status(status)
    idle = now - last_activity
    if status == S.OPEN and idle > stale_after:
        return S.STALE
    if status == S.STALE and idle > close_stale_after:
        return S.CLOSED
    return None


__all__ = [
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "transition",
    "staleness_target",
]
