"""
Rotation planner. Current crews + zones + danger -> full crew -> zone plan for one boundary.

Anchor holds its zone unless that zone is critical. Crews in high/critical zones always
move; on top of that ceil(U[0.4, 0.6] * |others|) crews move at random. Never raises on
missing targets: the crew stays and the plan is flagged degraded.

Also: single-crew next zone lookup and out-of-cycle emergency evacuation plans.
"""

import logging
import math
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

import numpy as np

from overwhelm.core.danger import danger_zone_ids
from overwhelm.core.geo import distance_km
from overwhelm.core.occupancy import Occupancy
from overwhelm.domain.constraints import AssignmentPolicy
from overwhelm.domain.errors import NoSafeZoneError
from overwhelm.domain.models import (
    AnchorDesignation,
    CrewRecord,
    RotationEntry,
    RotationPlan,
    Zone,
)

log = logging.getLogger("overwhelm.rotation")

ANCHOR_EMERGENCY_REASON = "anchor emergency relocation"
ANCHOR_HOLD_REASON = "anchor holds position"
EVACUATION_REASON = "danger evacuation"
ROTATION_REASON = "scheduled rotation"
CRITICAL_FALLBACK_REASON = "critical fallback"
STAY_REASON = "stayed"
NO_TARGET_REASON = "no available zone"
NO_SAFE_ZONE_REASON = "no safe zone"
EMERGENCY_EVACUATION_REASON = "emergency evacuation"
NEXT_ZONE_REASON = "best nearby zone"
NEXT_ZONE_FALLBACK_REASON = "random nearby zone"


def _entry(crew: CrewRecord, to_zone_id: int, reason: str) -> RotationEntry:
    return RotationEntry(
        crew_id=crew.crew_id,
        from_zone_id=crew.zone_id,
        to_zone_id=to_zone_id,
        estimated_size=crew.estimated_size,
        reason=reason,
    )


def _prefer(pool: List[Zone], predicate: Callable[[Zone], bool]) -> List[Zone]:
    """Narrow pool to zones matching predicate, unless that leaves nothing."""
    subset = [z for z in pool if predicate(z)]
    return subset or pool


def safe_zones(zones_by_id: Dict[int, Zone], danger: Dict[int, str]) -> List[Zone]:
    """Active, non-avoid, non-critical zones sorted by zone_id."""
    safe = [
        z for _, z in sorted(zones_by_id.items())
        if z.assignable and danger.get(z.zone_id) != "critical"
    ]
    if not safe:
        raise NoSafeZoneError("No active non-critical zone available")
    return safe


def nearest_safe_primary(
    crew: CrewRecord,
    zones_by_id: Dict[int, Zone],
    danger: Dict[int, str],
) -> Optional[Zone]:
    """Closest active primary zone (not avoid, not critical) other than the crew's own."""
    origin = zones_by_id.get(crew.zone_id)
    candidates = [
        z for _, z in sorted(zones_by_id.items())
        if z.assignable
        and z.kind == "primary"
        and z.zone_id != crew.zone_id
        and danger.get(z.zone_id) != "critical"
    ]
    if not candidates:
        return None
    if origin is None:
        return candidates[0]
    return min(candidates, key=lambda z: (distance_km(origin.center, z.center), z.zone_id))


def _plan_anchor(
    crew: CrewRecord,
    zones_by_id: Dict[int, Zone],
    danger: Dict[int, str],
    targeted: Set[int],
    plan: RotationPlan,
) -> RotationEntry:
    if danger.get(crew.zone_id) != "critical":
        targeted.add(crew.zone_id)
        return _entry(crew, crew.zone_id, ANCHOR_HOLD_REASON)

    target = nearest_safe_primary(crew, zones_by_id, danger)
    if target is None:
        log.warning("Anchor crew %s in critical zone %s and no safe primary zone exists", crew.crew_id, crew.zone_id)
        plan.degraded = True
        targeted.add(crew.zone_id)
        return _entry(crew, crew.zone_id, NO_SAFE_ZONE_REASON)

    log.warning("Anchor crew %s relocating %s -> %s", crew.crew_id, crew.zone_id, target.zone_id)
    targeted.add(target.zone_id)
    return _entry(crew, target.zone_id, ANCHOR_EMERGENCY_REASON)


def pick_target(
    crew: CrewRecord,
    safe: List[Zone],
    zones_by_id: Dict[int, Zone],
    danger: Dict[int, str],
    targeted: Set[int],
    must_move: bool,
    policy: AssignmentPolicy,
    rng: np.random.Generator,
) -> Tuple[Optional[Zone], bool]:
    """
    (target, used_critical_fallback).

    Pool: safe zones not yet targeted this cycle, other than the crew's own.
    A crew already in a critical zone may fall back to another critical zone
    when the safe pool is exhausted. Within the pool prefer, in order: zones
    without high danger, zones within walking radius, secondary zones. Pick
    uniformly from what is left.
    """
    pool = [z for z in safe if z.zone_id not in targeted and z.zone_id != crew.zone_id]
    fallback = False
    if not pool and must_move and danger.get(crew.zone_id) == "critical":
        pool = [
            z for _, z in sorted(zones_by_id.items())
            if z.assignable
            and danger.get(z.zone_id) == "critical"
            and z.zone_id not in targeted
            and z.zone_id != crew.zone_id
        ]
        fallback = bool(pool)
    if not pool:
        return None, False

    dangerous = danger_zone_ids(danger)
    pool = _prefer(pool, lambda z: z.zone_id not in dangerous)
    origin = zones_by_id.get(crew.zone_id)
    if origin is not None:
        pool = _prefer(pool, lambda z: distance_km(origin.center, z.center) <= policy.walking_radius_km)
    pool = _prefer(pool, lambda z: z.kind == "secondary")

    return pool[int(rng.integers(0, len(pool)))], fallback


def plan_rotation(
    assignments: Iterable[CrewRecord],
    zones: Iterable[Zone],
    danger: Dict[int, str],
    anchor: Optional[AnchorDesignation] = None,
    policy: Optional[AssignmentPolicy] = None,
    rng: Optional[np.random.Generator] = None,
) -> RotationPlan:
    """
    1. Split active crews into anchor and others.
    2. Anchor: no-op, or emergency relocation when its zone is critical.
    3. move_fraction ~ U[min, max]; quota = ceil(move_fraction * |others|).
    4. Others sorted: danger zone first, then larger first, then crew_id.
       Danger crews always move; the quota counts discretionary moves that found a
       target, so a crew with no free target passes its slot down the list.
    5. Targets spread out (one crew per target zone per cycle), avoid critical zones.
    6. Crews that do not move get an explicit no-op entry.
    """
    policy = policy or AssignmentPolicy()
    rng = rng if rng is not None else np.random.default_rng()
    zones_by_id = {z.zone_id: z for z in zones}
    crews = sorted((c for c in assignments if c.estimated_size > 0), key=lambda c: c.crew_id)

    plan = RotationPlan()
    if not crews:
        return plan

    anchor_id = anchor.crew_id if anchor else None
    anchor_crew = next((c for c in crews if c.crew_id == anchor_id), None)
    others = [c for c in crews if c is not anchor_crew]

    targeted: Set[int] = set()
    if anchor_crew is not None:
        plan.entries.append(_plan_anchor(anchor_crew, zones_by_id, danger, targeted, plan))

    plan.move_fraction = float(rng.uniform(policy.min_move_fraction, policy.max_move_fraction))
    quota = math.ceil(plan.move_fraction * len(others))

    dangerous = danger_zone_ids(danger)
    prioritized = sorted(
        others,
        key=lambda c: (c.zone_id not in dangerous, -c.estimated_size, c.crew_id),
    )

    try:
        safe = safe_zones(zones_by_id, danger)
    except NoSafeZoneError as e:
        if prioritized:
            log.warning("Rotation degraded: %s; %d crews stay in place", e, len(prioritized))
            plan.degraded = True
        plan.entries.extend(_entry(c, c.zone_id, NO_SAFE_ZONE_REASON) for c in prioritized)
        return plan

    discretionary_left = quota
    for crew in prioritized:
        must_move = crew.zone_id in dangerous
        if not must_move and discretionary_left <= 0:
            plan.entries.append(_entry(crew, crew.zone_id, STAY_REASON))
            continue

        target, fallback = pick_target(
            crew, safe, zones_by_id, danger, targeted, must_move, policy, rng
        )
        if target is None:
            if must_move:
                log.warning("Crew %s stays in danger zone %s: no target available", crew.crew_id, crew.zone_id)
                plan.degraded = True
            plan.entries.append(_entry(crew, crew.zone_id, NO_TARGET_REASON))
            continue

        # A quota slot is spent only by a move that actually happens.
        if not must_move:
            discretionary_left -= 1
        targeted.add(target.zone_id)
        if fallback:
            log.warning("Crew %s moved to critical zone %s as least-bad option", crew.crew_id, target.zone_id)
            plan.degraded = True
            reason = CRITICAL_FALLBACK_REASON
        else:
            reason = EVACUATION_REASON if must_move else ROTATION_REASON
        plan.entries.append(_entry(crew, target.zone_id, reason))

    return plan


def suggest_next_zone(
    current: Zone,
    zones: Iterable[Zone],
    occupancy: Occupancy,
    danger: Dict[int, str],
    policy: Optional[AssignmentPolicy] = None,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[Zone, str]:
    """
    Next zone for one crew between scheduled rotations.

    1. Best candidate within next_zone_radius_km, scored 1/(d + 0.1) + 1/(occupancy + 1):
       closer and emptier zones win, ties go to the lowest zone_id.
    2. Otherwise a random candidate within next_zone_fallback_radius_km.
    3. Otherwise stay in the current zone.
    Candidates: active, non-avoid, non-critical zones other than the current one.
    """
    policy = policy or AssignmentPolicy()
    rng = rng if rng is not None else np.random.default_rng()
    candidates = [
        (z, distance_km(current.center, z.center))
        for z in sorted(zones, key=lambda z: z.zone_id)
        if z.assignable and z.zone_id != current.zone_id and danger.get(z.zone_id) != "critical"
    ]

    best: Optional[Zone] = None
    best_score = -math.inf
    for zone, d in candidates:
        if d > policy.next_zone_radius_km:
            continue
        score = 1.0 / (d + 0.1) + 1.0 / (occupancy.zone_total(zone.zone_id) + 1)
        if score > best_score:
            best, best_score = zone, score
    if best is not None:
        return best, NEXT_ZONE_REASON

    nearby = [z for z, d in candidates if d <= policy.next_zone_fallback_radius_km]
    if nearby:
        return nearby[int(rng.integers(0, len(nearby)))], NEXT_ZONE_FALLBACK_REASON
    return current, STAY_REASON


def plan_evacuation(
    assignments: Iterable[CrewRecord],
    zones: Iterable[Zone],
    evacuate_zone_ids: Iterable[int],
    danger: Dict[int, str],
    rng: Optional[np.random.Generator] = None,
) -> RotationPlan:
    """
    Out-of-cycle plan moving every active crew out of the given zones.

    Only endangered crews get entries; everyone else keeps their zone.
    Targets are safe zones outside the evacuated set, spread evenly: each crew
    (largest first) goes to a random zone among the least used so far.
    Raises NoSafeZoneError when there is nowhere to go.
    """
    rng = rng if rng is not None else np.random.default_rng()
    zones_by_id = {z.zone_id: z for z in zones}
    evacuated = set(evacuate_zone_ids)
    endangered = sorted(
        (c for c in assignments if c.estimated_size > 0 and c.zone_id in evacuated),
        key=lambda c: (-c.estimated_size, c.crew_id),
    )

    plan = RotationPlan()
    if not endangered:
        return plan

    targets = [z for z in safe_zones(zones_by_id, danger) if z.zone_id not in evacuated]
    if not targets:
        raise NoSafeZoneError("No safe zone outside the evacuated zones")

    load = {z.zone_id: 0 for z in targets}
    for crew in endangered:
        least = min(load.values())
        pool = [z for z in targets if load[z.zone_id] == least]
        target = pool[int(rng.integers(0, len(pool)))]
        load[target.zone_id] += 1
        plan.entries.append(_entry(crew, target.zone_id, EMERGENCY_EVACUATION_REASON))

    log.warning("Emergency evacuation of zones %s: %d crews", sorted(evacuated), len(plan.entries))
    return plan
