"""
Assign participant use case. Orchestrates store reads + assignment engine. No FastAPI.

Critical path: store reads fail the request. The size write that follows an
assignment is best effort and runs outside the request (record_crew_size).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import numpy as np

from overwhelm.application.config import DEFAULT_POLICY
from overwhelm.application.use_cases.anchor_state import current_anchor_state
from overwhelm.core.assignment_engine import assign
from overwhelm.core.geo import estimate_walk_minutes, zone_distance_km
from overwhelm.core.occupancy import build_occupancy
from overwhelm.core.scheduler import next_rotation_at
from overwhelm.domain.constraints import AssignmentPolicy
from overwhelm.domain.errors import LocationRequiredError, OutOfRangeError, StoreUnavailableError
from overwhelm.domain.models import AssignmentDecision, Participant
from overwhelm.infrastructure.store import CrewStore

log = logging.getLogger("overwhelm.assignment")


@dataclass
class ParticipantAssignment:
    decision: AssignmentDecision
    zone_name: str
    next_rotation: datetime
    walk_minutes: Optional[int] = None

    @property
    def crew_name(self) -> str:
        return f"Crew {self.decision.crew_id}"


def assign_participant(
    store: CrewStore,
    participant: Participant,
    now: Optional[datetime] = None,
    policy: Optional[AssignmentPolicy] = None,
    rng: Optional[np.random.Generator] = None,
) -> ParticipantAssignment:
    """
    Flow: location policy -> catalog + snapshot -> walking-radius gate
          -> anchor state -> engine -> ParticipantAssignment.
    """
    policy = policy or DEFAULT_POLICY
    now = now or datetime.now(timezone.utc)

    if policy.location_required and not participant.has_coords:
        raise LocationRequiredError()

    zones = store.read_zone_catalog()
    zones_by_id = {z.zone_id: z for z in zones}
    crews = store.read_current_assignments()

    if participant.has_coords:
        nearby = store.find_nearby_zones(
            participant.lat, participant.lng, policy.walking_radius_km * 1000.0
        )
        assignable = [zid for zid, _ in nearby if zid in zones_by_id and zones_by_id[zid].assignable]
        if not assignable:
            raise OutOfRangeError()

    occupancy = build_occupancy(crews, policy)
    anchor = current_anchor_state(store, crews, zones_by_id, now, policy).designation

    decision = assign(participant, zones_by_id, occupancy, anchor, policy, rng)
    zone = zones_by_id.get(decision.zone_id)
    walk_minutes = None
    if zone is not None and participant.has_coords:
        walk_minutes = estimate_walk_minutes(zone_distance_km(participant.coords, zone))
    return ParticipantAssignment(
        decision=decision,
        zone_name=zone.name if zone else f"Zone {decision.zone_id}",
        next_rotation=next_rotation_at(now, policy),
        walk_minutes=walk_minutes,
    )


def record_crew_size(
    store: CrewStore,
    decision: AssignmentDecision,
    now: Optional[datetime] = None,
    policy: Optional[AssignmentPolicy] = None,
) -> bool:
    """
    Best-effort size write after an assignment. Returns True when something was written.
    - CreateCrew: write the new crew record.
    - Existing crew: write only when the estimate drifted more than the noise threshold.
    Store failures are logged and swallowed.
    """
    policy = policy or DEFAULT_POLICY
    now = now or datetime.now(timezone.utc)
    try:
        if decision.creates_crew:
            store.upsert_crew_assignment(decision.crew_id, decision.zone_id, decision.estimated_size, now)
            return True

        current = next(
            (c for c in store.read_current_assignments() if c.crew_id == decision.crew_id),
            None,
        )
        if current is None:
            store.upsert_crew_assignment(decision.crew_id, decision.zone_id, decision.estimated_size, now)
            return True
        if abs(current.estimated_size - decision.estimated_size) > policy.size_update_threshold:
            store.upsert_crew_assignment(decision.crew_id, current.zone_id, decision.estimated_size, now)
            return True
        return False
    except StoreUnavailableError as e:
        log.warning("Crew size update failed for crew %s: %s", decision.crew_id, e)
        return False
