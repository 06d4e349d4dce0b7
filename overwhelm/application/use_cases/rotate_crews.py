"""
Rotate crews use case. Scheduler check -> danger -> anchor -> plan -> guarded atomic write.
Also the out-of-cycle emergency evacuation.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import numpy as np

from overwhelm.application.config import DEFAULT_POLICY
from overwhelm.application.use_cases.anchor_state import current_anchor_state, save_anchor_state
from overwhelm.core.danger import classify
from overwhelm.core.rotation_planner import plan_evacuation, plan_rotation
from overwhelm.core.scheduler import is_rotation_due
from overwhelm.domain.constraints import AssignmentPolicy
from overwhelm.domain.models import AnchorDesignation, AnchorState, RotationPlan
from overwhelm.infrastructure.store import CrewStore
from overwhelm.infrastructure.zone_loader import build_signal

log = logging.getLogger("overwhelm.rotation")

EVACUATION_SIGNAL_DESCRIPTION = "Emergency evacuation ordered"


@dataclass
class RotationOutcome:
    success: bool
    rotated: bool
    rotations: int
    degraded: bool
    message: str
    plan: Optional[RotationPlan] = None


def run_rotation(
    store: CrewStore,
    now: Optional[datetime] = None,
    policy: Optional[AssignmentPolicy] = None,
    rng: Optional[np.random.Generator] = None,
    force: bool = False,
) -> RotationOutcome:
    """
    force skips the boundary check only. The write is always guarded by the
    last rotation timestamp, so a second attempt in the same window is a no-op.
    Store read/write failures propagate (StoreUnavailableError).
    """
    policy = policy or DEFAULT_POLICY
    now = now or datetime.now(timezone.utc)
    guard = timedelta(minutes=policy.rotation_guard_minutes)

    if not force:
        recent = store.read_rotation_timestamps(now - guard)
        if not is_rotation_due(now, recent, policy):
            return RotationOutcome(True, False, 0, False, "No rotation needed at this time")

    crews = store.read_current_assignments()
    if not crews:
        return RotationOutcome(True, False, 0, False, "No active crews to rotate", plan=RotationPlan())

    zones = store.read_zone_catalog()
    zones_by_id = {z.zone_id: z for z in zones}
    danger = classify(store.read_danger_signals(now), now)
    state = current_anchor_state(store, crews, zones_by_id, now, policy)

    plan = plan_rotation(crews, zones, danger, state.designation, policy, rng)

    if not store.write_rotation_plan(plan, now, guard):
        log.info("Rotation skipped: already applied within %s", guard)
        return RotationOutcome(True, False, 0, plan.degraded, "Rotation already applied for this boundary", plan)

    _follow_anchor(store, state, plan)

    moved = len(plan.moved)
    if plan.degraded:
        log.warning("Rotation applied in degraded mode: %d of %d crews moved", moved, len(plan.entries))
    else:
        log.info("Rotation applied: %d of %d crews moved", moved, len(plan.entries))
    return RotationOutcome(
        success=True,
        rotated=True,
        rotations=moved,
        degraded=plan.degraded,
        message=f"Rotated {moved} of {len(plan.entries)} crews",
        plan=plan,
    )


def _follow_anchor(store: CrewStore, state: AnchorState, plan: RotationPlan) -> None:
    """Persist the anchor's new zone when the applied plan moved it."""
    anchor = state.designation
    if anchor is None:
        return
    entry = plan.entry_for(anchor.crew_id)
    if entry is None or not entry.moved:
        return
    moved_anchor = AnchorDesignation(
        crew_id=anchor.crew_id,
        zone_id=entry.to_zone_id,
        estimated_size=anchor.estimated_size,
        score=anchor.score,
    )
    save_anchor_state(store, AnchorState(designation=moved_anchor, evaluated_at=state.evaluated_at))


def evacuate_zones(
    store: CrewStore,
    zone_ids: Iterable[int],
    now: Optional[datetime] = None,
    policy: Optional[AssignmentPolicy] = None,
    rng: Optional[np.random.Generator] = None,
) -> RotationOutcome:
    """
    Move every crew out of zone_ids right now, outside the rotation schedule.

    The moves are written as one rotation with no guard window, then each zone
    gets a critical "system" signal so scheduled rotations and next zone
    lookups keep away from it. Unknown zones -> ValueError; nowhere safe to go
    -> NoSafeZoneError. Store failures propagate.
    """
    policy = policy or DEFAULT_POLICY
    now = now or datetime.now(timezone.utc)
    zone_ids = sorted(set(zone_ids))
    if not zone_ids:
        raise ValueError("At least one zone is required")

    zones = store.read_zone_catalog()
    zones_by_id = {z.zone_id: z for z in zones}
    unknown = [zid for zid in zone_ids if zid not in zones_by_id]
    if unknown:
        raise ValueError(f"Unknown zones {unknown}")

    crews = store.read_current_assignments()
    danger = classify(store.read_danger_signals(now), now)
    plan = plan_evacuation(crews, zones, zone_ids, danger, rng)
    if plan.is_empty:
        return RotationOutcome(True, False, 0, False, "No crews in danger zones", plan)

    state = current_anchor_state(store, crews, zones_by_id, now, policy)
    if not store.write_rotation_plan(plan, now, timedelta(0)):
        log.warning("Emergency evacuation not applied: a later rotation is already recorded")
        return RotationOutcome(False, False, 0, False, "Evacuation conflicted with a newer rotation", plan)

    for zone_id in zone_ids:
        store.report_danger_signal(
            build_signal(zone_id, "critical", now, description=EVACUATION_SIGNAL_DESCRIPTION, source="system")
        )
    _follow_anchor(store, state, plan)

    moved = len(plan.moved)
    return RotationOutcome(
        success=True,
        rotated=True,
        rotations=moved,
        degraded=False,
        message=f"Emergency evacuation: moved {moved} crews to safety",
        plan=plan,
    )
