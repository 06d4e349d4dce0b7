"""
Next zone use case. One crew asks where to go before the next scheduled rotation.
Read-only: the answer is advice, the rotation write stays with run_rotation.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import numpy as np

from overwhelm.application.config import DEFAULT_POLICY
from overwhelm.application.use_cases.anchor_state import current_anchor_state
from overwhelm.core.danger import classify
from overwhelm.core.geo import distance_km, estimate_walk_minutes
from overwhelm.core.occupancy import build_occupancy
from overwhelm.core.rotation_planner import ANCHOR_HOLD_REASON, suggest_next_zone
from overwhelm.core.scheduler import next_rotation_at
from overwhelm.domain.constraints import AssignmentPolicy
from overwhelm.domain.models import Zone
from overwhelm.infrastructure.store import CrewStore


@dataclass
class NextZoneSuggestion:
    crew_id: int
    current_zone: Zone
    zone: Zone
    reason: str  # internal; may name the anchor, never serialized
    walk_minutes: int
    next_rotation: datetime

    @property
    def crew_name(self) -> str:
        return f"Crew {self.crew_id}"

    @property
    def moves(self) -> bool:
        return self.zone.zone_id != self.current_zone.zone_id


def suggest_crew_next_zone(
    store: CrewStore,
    crew_id: int,
    current_zone_id: int,
    now: Optional[datetime] = None,
    policy: Optional[AssignmentPolicy] = None,
    rng: Optional[np.random.Generator] = None,
) -> NextZoneSuggestion:
    """
    The anchor crew holds its zone. Any other crew gets the best nearby zone
    (see suggest_next_zone). Unknown crew id or zone -> ValueError.
    """
    policy = policy or DEFAULT_POLICY
    now = now or datetime.now(timezone.utc)
    if not policy.crew_id_in_bounds(crew_id):
        raise ValueError(f"Crew id {crew_id} outside 1..{policy.max_crews}")

    zones = store.read_zone_catalog()
    zones_by_id = {z.zone_id: z for z in zones}
    current = zones_by_id.get(current_zone_id)
    if current is None or not current.active:
        raise ValueError(f"Unknown zone {current_zone_id}")

    crews = store.read_current_assignments()
    anchor = current_anchor_state(store, crews, zones_by_id, now, policy).designation
    if anchor is not None and anchor.crew_id == crew_id:
        zone, reason = current, ANCHOR_HOLD_REASON
    else:
        danger = classify(store.read_danger_signals(now), now)
        occupancy = build_occupancy(crews, policy)
        zone, reason = suggest_next_zone(current, zones, occupancy, danger, policy, rng)

    return NextZoneSuggestion(
        crew_id=crew_id,
        current_zone=current,
        zone=zone,
        reason=reason,
        walk_minutes=estimate_walk_minutes(distance_km(current.center, zone.center)),
        next_rotation=next_rotation_at(now, policy),
    )
