"""
Rotation trigger. Stateless time check plus idempotency guard.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from overwhelm.domain.constraints import AssignmentPolicy


def is_boundary(now: datetime, policy: AssignmentPolicy) -> bool:
    return now.minute % policy.rotation_interval_minutes == 0


def rotated_recently(
    now: datetime,
    last_rotation_timestamps: Iterable[datetime],
    policy: AssignmentPolicy,
) -> bool:
    window_start = now - timedelta(minutes=policy.rotation_guard_minutes)
    return any(ts > window_start for ts in last_rotation_timestamps)


def is_rotation_due(
    now: datetime,
    last_rotation_timestamps: Iterable[datetime],
    policy: Optional[AssignmentPolicy] = None,
) -> bool:
    """
    True iff now sits on a rotation boundary (:00 / :30 by default) and no
    rotation was recorded in the guard window (last 5 minutes).
    """
    policy = policy or AssignmentPolicy()
    if not is_boundary(now, policy):
        return False
    return not rotated_recently(now, last_rotation_timestamps, policy)


def next_rotation_at(now: datetime, policy: Optional[AssignmentPolicy] = None) -> datetime:
    """Start of the next rotation cycle strictly after now."""
    policy = policy or AssignmentPolicy()
    interval = policy.rotation_interval_minutes
    cycle_start = now.replace(
        minute=(now.minute // interval) * interval, second=0, microsecond=0
    )
    return cycle_start + timedelta(minutes=interval)
