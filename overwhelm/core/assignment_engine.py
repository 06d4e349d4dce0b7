"""
Assignment engine. New participant -> crew/zone decision. Pure: reads a snapshot, returns an intent.

Decision order:
  1. Location policy (strict mode fails closed without coordinates).
  2. Geographic gate: local zone within 0.5 km wins; anchor farther than 1 km is never forced.
  3. Anchor boost within 0.2 km, then the size-dependent funnel.
  4. Support crew: local zone crew under cap, else a new crew there, else least-loaded crew.
"""

import logging
from typing import Dict, Optional, Tuple

import numpy as np

from overwhelm.core.geo import nearest_zone, zone_distance_km
from overwhelm.core.occupancy import Occupancy
from overwhelm.domain.constraints import AssignmentPolicy
from overwhelm.domain.errors import LocationRequiredError, NoAssignableCrewError
from overwhelm.domain.models import (
    AnchorDesignation,
    AssignmentDecision,
    CreateCrew,
    CrewRecord,
    Participant,
    UseExistingCrew,
    Zone,
)

log = logging.getLogger("overwhelm.assignment")


def funnel_phase(anchor_size: int, policy: AssignmentPolicy) -> str:
    if anchor_size < policy.anchor_size_min:
        return "build"
    if anchor_size < policy.anchor_size_target:
        return "growth"
    return "sustain"


def funnel_probability(anchor_size: int, policy: Optional[AssignmentPolicy] = None) -> float:
    """Probability of routing to the anchor: 1.0 build, 0.5 growth, max(0.1, 300/S) sustain."""
    policy = policy or AssignmentPolicy()
    phase = funnel_phase(anchor_size, policy)
    if phase == "build":
        return 1.0
    if phase == "growth":
        return policy.growth_probability
    return max(policy.sustain_floor, policy.sustain_numerator / anchor_size)


def resolve_local_zone(
    participant: Participant,
    zones_by_id: Dict[int, Zone],
    policy: AssignmentPolicy,
) -> Optional[Zone]:
    """
    Declared preferred zone when it is assignable; otherwise the nearest
    assignable zone within walking radius of the participant, if any.
    """
    if participant.preferred_zone_id is not None:
        zone = zones_by_id.get(participant.preferred_zone_id)
        if zone is not None and zone.assignable:
            return zone
        log.warning("Ignoring preferred zone %s: unknown or not assignable", participant.preferred_zone_id)
    if participant.coords is None:
        return None
    return nearest_zone(participant.coords, zones_by_id.values(), max_km=policy.walking_radius_km)


def decide_anchor_routing(
    participant: Participant,
    local_zone: Optional[Zone],
    anchor: Optional[AnchorDesignation],
    zones_by_id: Dict[int, Zone],
    policy: AssignmentPolicy,
    rng: np.random.Generator,
) -> Tuple[bool, str]:
    """(route_to_anchor, reason). Local override is checked before the far-from-anchor rule."""
    if anchor is None:
        return False, "no anchor"

    anchor_zone = zones_by_id.get(anchor.zone_id)
    coords = participant.coords
    if coords is not None:
        if local_zone is not None and local_zone.zone_id != anchor.zone_id:
            if zone_distance_km(coords, local_zone) < policy.local_radius_km:
                return False, "local zone"
        if anchor_zone is not None:
            d_anchor = zone_distance_km(coords, anchor_zone)
            if d_anchor > policy.far_from_anchor_km:
                return False, "far from anchor"
            if d_anchor < policy.anchor_boost_radius_km:
                return True, "at anchor zone"

    phase = funnel_phase(anchor.estimated_size, policy)
    p = funnel_probability(anchor.estimated_size, policy)
    if p >= 1.0:
        return True, f"funnel {phase}"
    return bool(rng.random() < p), f"funnel {phase}"


def _existing(crew: CrewRecord, policy: AssignmentPolicy, reason: str) -> AssignmentDecision:
    return AssignmentDecision(
        intent=UseExistingCrew(crew_id=crew.crew_id, zone_id=crew.zone_id),
        estimated_size=min(crew.estimated_size + 1, policy.max_crew_size),
        reason=reason,
    )


def _to_anchor(anchor: AnchorDesignation, occupancy: Occupancy, reason: str) -> AssignmentDecision:
    return AssignmentDecision(
        intent=UseExistingCrew(crew_id=anchor.crew_id, zone_id=anchor.zone_id),
        estimated_size=occupancy.crew_size(anchor.crew_id) + 1,
        joined_anchor=True,
        reason=reason,
    )


def select_support_crew(
    local_zone: Optional[Zone],
    anchor: Optional[AnchorDesignation],
    occupancy: Occupancy,
    policy: AssignmentPolicy,
) -> AssignmentDecision:
    """
    1. Existing non-anchor crew in the local zone under the support cap (lowest crew_id).
    2. Otherwise open a new crew in the local zone if a crew id is free.
    3. Otherwise the least-loaded non-anchor crew (ties -> lowest crew_id).
    4. Otherwise the anchor, if any.
    """
    anchor_id = anchor.crew_id if anchor else None
    support = [
        c for c in sorted(occupancy.crews.values(), key=lambda c: c.crew_id)
        if c.crew_id != anchor_id
    ]

    if local_zone is not None:
        for crew in support:
            if crew.zone_id == local_zone.zone_id and crew.estimated_size < policy.support_crew_size_cap:
                return _existing(crew, policy, "local crew")
        new_id = occupancy.free_crew_id(policy)
        if new_id is not None:
            return AssignmentDecision(
                intent=CreateCrew(crew_id=new_id, zone_id=local_zone.zone_id),
                estimated_size=1,
                reason="new crew in local zone",
            )

    if support:
        crew = min(support, key=lambda c: (c.estimated_size, c.crew_id))
        return _existing(crew, policy, "least loaded crew")

    if anchor is not None:
        return _to_anchor(anchor, occupancy, "no support crew available")

    raise NoAssignableCrewError("No crew available and no zone to open a new crew in")


def assign(
    participant: Participant,
    zones_by_id: Dict[int, Zone],
    occupancy: Occupancy,
    anchor: Optional[AnchorDesignation],
    policy: Optional[AssignmentPolicy] = None,
    rng: Optional[np.random.Generator] = None,
) -> AssignmentDecision:
    """
    Decide crew and zone for one new participant. No side effects: the caller
    applies the returned intent (CreateCrew / UseExistingCrew).
    """
    policy = policy or AssignmentPolicy()
    rng = rng if rng is not None else np.random.default_rng()

    if policy.location_required and not participant.has_coords:
        raise LocationRequiredError()

    if anchor is not None and anchor.crew_id not in occupancy.crews:
        anchor = None

    local_zone = resolve_local_zone(participant, zones_by_id, policy)
    to_anchor, reason = decide_anchor_routing(
        participant, local_zone, anchor, zones_by_id, policy, rng
    )
    if to_anchor:
        return _to_anchor(anchor, occupancy, reason)

    decision = select_support_crew(local_zone, anchor, occupancy, policy)
    log.debug("Support assignment crew=%s zone=%s (%s)", decision.crew_id, decision.zone_id, reason)
    return decision
