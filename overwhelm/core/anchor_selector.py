"""
Anchor selector. Scores crews in primary zones and re-derives the anchor on a fixed cadence.
Pure logic: the previous anchor comes in as a parameter and the new one goes out as a value.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional

from overwhelm.domain.constraints import AssignmentPolicy
from overwhelm.domain.models import AnchorDesignation, AnchorState, CrewRecord, Zone

log = logging.getLogger("overwhelm.anchor")


def score_anchor_candidate(
    crew: CrewRecord,
    zone: Zone,
    previous_anchor_id: Optional[int],
    policy: AssignmentPolicy,
) -> int:
    """
    Size band: 50 in [min, target], 40 above target, 30 in [200, min), else 20.
    +40 strategic landmark, +20 stability when already anchor.
    """
    size = crew.estimated_size
    if policy.anchor_size_min <= size <= policy.anchor_size_target:
        score = 50
    elif size > policy.anchor_size_target:
        score = 40
    elif size >= 200:
        score = 30
    else:
        score = 20

    if zone.name in policy.strategic_zone_names:
        score += 40
    if previous_anchor_id is not None and crew.crew_id == previous_anchor_id:
        score += 20
    return score


def select_anchor(
    crews: Iterable[CrewRecord],
    zones_by_id: Dict[int, Zone],
    previous_anchor_id: Optional[int],
    policy: Optional[AssignmentPolicy] = None,
) -> Optional[AnchorDesignation]:
    """
    1. Candidates: crews in primary zones with size above the candidate floor.
    2. None when no candidate ("no anchor" is a valid steady state).
    3. Score each candidate.
    4. Highest score wins; ties go to the lowest crew_id.
    """
    policy = policy or AssignmentPolicy()
    best: Optional[AnchorDesignation] = None
    for crew in sorted(crews, key=lambda c: c.crew_id):
        zone = zones_by_id.get(crew.zone_id)
        if zone is None or zone.kind != "primary":
            continue
        if crew.estimated_size <= policy.anchor_candidate_min_size:
            continue
        score = score_anchor_candidate(crew, zone, previous_anchor_id, policy)
        if best is None or score > best.score:
            best = AnchorDesignation(
                crew_id=crew.crew_id,
                zone_id=crew.zone_id,
                estimated_size=crew.estimated_size,
                score=score,
            )
    return best


def refresh_designation(
    designation: Optional[AnchorDesignation],
    crews_by_id: Dict[int, CrewRecord],
    zones_by_id: Dict[int, Zone],
) -> Optional[AnchorDesignation]:
    """
    Re-read the anchor crew from current state. None when the crew went idle
    or no longer sits in a primary zone.
    """
    if designation is None:
        return None
    crew = crews_by_id.get(designation.crew_id)
    if crew is None or crew.estimated_size <= 0:
        return None
    zone = zones_by_id.get(crew.zone_id)
    if zone is None or zone.kind != "primary":
        return None
    return AnchorDesignation(
        crew_id=crew.crew_id,
        zone_id=crew.zone_id,
        estimated_size=crew.estimated_size,
        score=designation.score,
    )


def reevaluation_due(state: AnchorState, now: datetime, policy: AssignmentPolicy) -> bool:
    if state.evaluated_at is None:
        return True
    return now - state.evaluated_at >= timedelta(minutes=policy.anchor_reevaluation_minutes)


def resolve_anchor(
    crews: Iterable[CrewRecord],
    zones_by_id: Dict[int, Zone],
    previous: Optional[AnchorState],
    now: datetime,
    policy: Optional[AssignmentPolicy] = None,
) -> AnchorState:
    """
    Current anchor for this call, derived from authoritative crew/zone state.

    - Previous anchor gone (idle, or zone no longer primary): select again now.
    - Cadence not elapsed: keep the previous anchor (with refreshed zone/size).
    - Cadence elapsed but the anchor is still below anchor_size_min: keep it,
      an anchor that has not built critical mass is never replaced.
    - Otherwise: select again, the previous anchor gets the stability bonus.
    """
    policy = policy or AssignmentPolicy()
    previous = previous or AnchorState()
    crews = list(crews)
    crews_by_id = {c.crew_id: c for c in crews}

    current = refresh_designation(previous.designation, crews_by_id, zones_by_id)
    previous_id = previous.designation.crew_id if previous.designation else None

    if current is None:
        if previous.designation is not None:
            log.info("Anchor crew %s no longer eligible, selecting again", previous_id)
        elif not reevaluation_due(previous, now, policy):
            return AnchorState(designation=None, evaluated_at=previous.evaluated_at)
        chosen = select_anchor(crews, zones_by_id, previous_id, policy)
        _log_change(previous.designation, chosen)
        return AnchorState(designation=chosen, evaluated_at=now)

    if not reevaluation_due(previous, now, policy):
        return AnchorState(designation=current, evaluated_at=previous.evaluated_at)

    if current.estimated_size < policy.anchor_size_min:
        return AnchorState(designation=current, evaluated_at=now)

    chosen = select_anchor(crews, zones_by_id, current.crew_id, policy)
    _log_change(current, chosen)
    return AnchorState(designation=chosen, evaluated_at=now)


def _log_change(
    before: Optional[AnchorDesignation],
    after: Optional[AnchorDesignation],
) -> None:
    before_id = before.crew_id if before else None
    after_id = after.crew_id if after else None
    if before_id != after_id:
        log.info("Anchor changed: crew %s -> crew %s", before_id, after_id)
