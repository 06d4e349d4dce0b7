"""
API router. Calls application only. No business logic.
"""

from datetime import timedelta

from fastapi import APIRouter, BackgroundTasks, Header, HTTPException, Request

from overwhelm.api.schemas import (
    CrewAssignmentSchema,
    CrewResponse,
    CrewSummarySchema,
    EvacuationRequest,
    NextZoneResponse,
    NextZoneSchema,
    RotationEntrySchema,
    RotationResponse,
    SignalRequest,
    SignalResponse,
    ZoneStatsSchema,
    ZoneStatusSchema,
    ZonesResponse,
)
from overwhelm.application.use_cases.assign_participant import assign_participant, record_crew_size
from overwhelm.application.use_cases.next_zone import suggest_crew_next_zone
from overwhelm.application.use_cases.rotate_crews import RotationOutcome, evacuate_zones, run_rotation
from overwhelm.application.use_cases.zone_status import get_zone_status, report_danger
from overwhelm.core.geo import format_walk_time
from overwhelm.domain.errors import (
    LocationRequiredError,
    NoAssignableCrewError,
    NoSafeZoneError,
    OutOfRangeError,
    StoreUnavailableError,
)
from overwhelm.domain.models import Participant

router = APIRouter()


def _check_cron_auth(request: Request, authorization: str | None) -> None:
    secret = request.app.state.cron_secret
    if not secret or authorization != f"Bearer {secret}":
        raise HTTPException(status_code=401, detail="Unauthorized")


def _rotation_response(outcome: RotationOutcome, request: Request) -> RotationResponse:
    entries = outcome.plan.entries if outcome.plan else []
    return RotationResponse(
        success=outcome.success,
        rotated=outcome.rotated,
        rotations=outcome.rotations,
        degraded=outcome.degraded,
        message=outcome.message,
        plan=[
            RotationEntrySchema(
                crew_id=e.crew_id,
                from_zone_id=e.from_zone_id,
                to_zone_id=e.to_zone_id,
                estimated_size=e.estimated_size,
                reason=e.reason,
            )
            for e in entries
        ],
        timestamp=request.app.state.clock(),
    )


@router.get("/crew", response_model=CrewResponse)
def get_crew(
    request: Request,
    background_tasks: BackgroundTasks,
    lat: float | None = None,
    lng: float | None = None,
    zone: int | None = None,
) -> CrewResponse:
    """
    GET /crew?lat=&lng=&zone=
    Assigns the caller to a crew. The crew size write runs after the response.
    """
    state = request.app.state
    now = state.clock()
    participant = Participant(lat=lat, lng=lng, preferred_zone_id=zone)
    try:
        result = assign_participant(state.store, participant, now=now, policy=state.policy, rng=state.rng)
    except (LocationRequiredError, OutOfRangeError) as e:
        raise HTTPException(status_code=403, detail=str(e))
    except NoAssignableCrewError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Failed to assign crew: {e}")

    background_tasks.add_task(record_crew_size, state.store, result.decision, now, state.policy)

    decision = result.decision
    return CrewResponse(
        crew=CrewAssignmentSchema(
            crewId=decision.crew_id,
            crewName=result.crew_name,
            estimatedSize=decision.estimated_size,
            zoneId=decision.zone_id,
            zoneName=result.zone_name,
            nextRotation=result.next_rotation,
            walkMinutes=result.walk_minutes,
            walkTime=format_walk_time(result.walk_minutes) if result.walk_minutes is not None else None,
        ),
        timestamp=now,
    )


@router.get("/crew/next", response_model=NextZoneResponse)
def get_crew_next_zone(request: Request, crewId: int, currentZone: int) -> NextZoneResponse:
    """
    GET /crew/next?crewId=&currentZone=
    Where this crew should head next. The answer never says why a crew holds.
    """
    state = request.app.state
    now = state.clock()
    try:
        result = suggest_crew_next_zone(
            state.store, crewId, currentZone, now=now, policy=state.policy, rng=state.rng
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Failed to get next zone: {e}")

    message = f"Move to {result.zone.name}" if result.moves else "Hold position"
    return NextZoneResponse(
        crew=NextZoneSchema(
            crewId=result.crew_id,
            crewName=result.crew_name,
            zoneId=result.zone.zone_id,
            zoneName=result.zone.name,
            nextRotation=result.next_rotation,
            walkMinutes=result.walk_minutes,
            walkTime=format_walk_time(result.walk_minutes),
            message=message,
        ),
        timestamp=now,
    )


@router.get("/zones", response_model=ZonesResponse)
def get_zones(request: Request) -> ZonesResponse:
    """GET /zones: public zone status (crews, totals, active danger)."""
    state = request.app.state
    now = state.clock()
    try:
        report = get_zone_status(state.store, now=now, policy=state.policy)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Failed to fetch zones: {e}")

    return ZonesResponse(
        zones=[
            ZoneStatusSchema(
                id=s.zone.zone_id,
                name=s.zone.name,
                type=s.zone.kind,
                center_lat=s.zone.lat,
                center_lng=s.zone.lng,
                crews=[
                    CrewSummarySchema(id=c.crew_id, name=f"Crew {c.crew_id}", size=c.estimated_size)
                    for c in s.crews
                ],
                totalParticipants=s.total,
                danger=s.danger,
            )
            for s in report.zones
        ],
        stats=ZoneStatsSchema(
            totalCrews=report.active_crews,
            totalParticipants=report.total_participants,
            activeZones=report.zones_occupied,
            nextRotation=report.next_rotation,
        ),
        timestamp=now,
    )


@router.get("/cron/rotate", response_model=RotationResponse)
def get_cron_rotate(request: Request, authorization: str | None = Header(default=None)) -> RotationResponse:
    """
    GET /cron/rotate: called by the scheduler every minute.
    Rotates only on a boundary and only once per guard window.
    """
    _check_cron_auth(request, authorization)
    state = request.app.state
    try:
        outcome = run_rotation(state.store, now=state.clock(), policy=state.policy, rng=state.rng)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Rotation failed: {e}")
    return _rotation_response(outcome, request)


@router.post("/cron/rotate", response_model=RotationResponse)
def post_cron_rotate(request: Request, authorization: str | None = Header(default=None)) -> RotationResponse:
    """POST /cron/rotate: manual trigger, skips the boundary check."""
    _check_cron_auth(request, authorization)
    state = request.app.state
    try:
        outcome = run_rotation(state.store, now=state.clock(), policy=state.policy, rng=state.rng, force=True)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Manual rotation failed: {e}")
    return _rotation_response(outcome, request)


@router.post("/signals", response_model=SignalResponse)
def post_signal(request: Request, body: SignalRequest) -> SignalResponse:
    """POST /signals: external severity report for one zone."""
    state = request.app.state
    try:
        signal = report_danger(
            state.store,
            zone_id=body.zone_id,
            severity=body.severity,
            now=state.clock(),
            ttl=timedelta(minutes=body.ttl_minutes),
            description=body.description,
            source=body.source,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return SignalResponse(zone_id=signal.zone_id, severity=signal.severity, expires_at=signal.expires_at)


@router.post("/evacuate", response_model=RotationResponse)
def post_evacuate(
    request: Request,
    body: EvacuationRequest,
    authorization: str | None = Header(default=None),
) -> RotationResponse:
    """POST /evacuate: move every crew out of the given zones now (bearer CRON_SECRET)."""
    _check_cron_auth(request, authorization)
    state = request.app.state
    try:
        outcome = evacuate_zones(state.store, body.zone_ids, now=state.clock(), policy=state.policy, rng=state.rng)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NoSafeZoneError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Evacuation failed: {e}")
    return _rotation_response(outcome, request)
