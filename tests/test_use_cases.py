from datetime import timedelta

import numpy as np
import pytest

from overwhelm.application.use_cases.assign_participant import assign_participant, record_crew_size
from overwhelm.application.use_cases.next_zone import suggest_crew_next_zone
from overwhelm.application.use_cases.rotate_crews import evacuate_zones, run_rotation
from overwhelm.application.use_cases.zone_status import get_zone_status, report_danger
from overwhelm.core.geo import distance_km, estimate_walk_minutes, zone_distance_km
from overwhelm.core.rotation_planner import (
    ANCHOR_EMERGENCY_REASON,
    ANCHOR_HOLD_REASON,
    EMERGENCY_EVACUATION_REASON,
    NEXT_ZONE_REASON,
)
from overwhelm.domain.errors import LocationRequiredError, OutOfRangeError, StoreUnavailableError
from overwhelm.domain.models import (
    AssignmentDecision,
    CreateCrew,
    CrewRecord,
    Participant,
    UseExistingCrew,
)
from overwhelm.infrastructure.memory_store import InMemoryCrewStore

NEAR_CITY_HALL = Participant(lat=34.0545, lng=-118.2420)


class FlakyWriteStore(InMemoryCrewStore):
    def upsert_crew_assignment(self, crew_id, zone_id, estimated_size, now):
        raise StoreUnavailableError("write timed out")


class NoAnchorStateStore(InMemoryCrewStore):
    def read_anchor_state(self):
        raise StoreUnavailableError("anchor table unavailable")

    def write_anchor_state(self, state):
        raise StoreUnavailableError("anchor table unavailable")


def _seed(store, now, rows) -> None:
    for crew_id, zone_id, size in rows:
        store.upsert_crew_assignment(crew_id, zone_id, size, now - timedelta(minutes=40))


# --- assign_participant / record_crew_size ---


def test_first_participant_creates_a_crew(store, zones_by_id, now, rng) -> None:
    result = assign_participant(store, NEAR_CITY_HALL, now=now, rng=rng)

    assert result.decision.intent == CreateCrew(crew_id=1, zone_id=1)
    assert result.crew_name == "Crew 1"
    assert result.zone_name == "City Hall South Lawn"
    assert result.next_rotation == now + timedelta(minutes=30)
    assert result.walk_minutes == estimate_walk_minutes(zone_distance_km(NEAR_CITY_HALL.coords, zones_by_id[1]))
    assert result.walk_minutes <= 2

    assert record_crew_size(store, result.decision, now)
    assert store.read_current_assignments() == [CrewRecord(1, 1, 1)]


def test_missing_location_is_rejected(store, now, rng) -> None:
    with pytest.raises(LocationRequiredError):
        assign_participant(store, Participant(preferred_zone_id=1), now=now, rng=rng)


def test_far_away_participant_is_out_of_range(store, now, rng) -> None:
    with pytest.raises(OutOfRangeError):
        assign_participant(store, Participant(lat=40.7128, lng=-74.0060), now=now, rng=rng)


def test_only_avoid_zone_in_range_is_out_of_range(zones, now, rng) -> None:
    avoid_only = [z for z in zones if z.kind == "avoid" or z.zone_id == 10]
    store = InMemoryCrewStore(avoid_only)
    # On top of the avoid zone, ~19 km from Westwood.
    with pytest.raises(OutOfRangeError):
        assign_participant(store, Participant(lat=34.0441, lng=-118.2466), now=now, rng=rng)


def test_assignment_survives_anchor_state_outage(zones, now, rng) -> None:
    store = NoAnchorStateStore(zones)
    _seed(store, now, [(1, 1, 300)])
    result = assign_participant(store, NEAR_CITY_HALL, now=now, rng=rng)
    # Anchor recomputed from scratch: crew 1 is in its build phase.
    assert result.decision.joined_anchor
    assert result.decision.intent == UseExistingCrew(crew_id=1, zone_id=1)


def test_size_write_failure_is_swallowed(zones, now) -> None:
    store = FlakyWriteStore(zones)
    decision = AssignmentDecision(intent=CreateCrew(crew_id=1, zone_id=1), estimated_size=1)
    assert record_crew_size(store, decision, now) is False


def test_small_size_drift_is_not_written(store, now) -> None:
    _seed(store, now, [(3, 2, 40)])
    decision = AssignmentDecision(intent=UseExistingCrew(crew_id=3, zone_id=2), estimated_size=44)
    assert not record_crew_size(store, decision, now)

    drifted = AssignmentDecision(intent=UseExistingCrew(crew_id=3, zone_id=2), estimated_size=46)
    assert record_crew_size(store, drifted, now)
    assert store.read_current_assignments() == [CrewRecord(3, 2, 46)]


def test_size_write_keeps_current_zone(store, now) -> None:
    # Crew rotated since the decision was made; the write must not undo the rotation.
    _seed(store, now, [(3, 5, 40)])
    stale = AssignmentDecision(intent=UseExistingCrew(crew_id=3, zone_id=2), estimated_size=60)
    assert record_crew_size(store, stale, now)
    assert store.read_current_assignments() == [CrewRecord(3, 5, 60)]


# --- run_rotation ---


def test_rotation_not_due_off_boundary(store, now, rng) -> None:
    _seed(store, now, [(1, 1, 600), (2, 4, 30)])
    outcome = run_rotation(store, now=now + timedelta(minutes=15), rng=rng)
    assert outcome.success
    assert not outcome.rotated
    assert outcome.message == "No rotation needed at this time"


def test_rotation_with_no_crews(store, now, rng) -> None:
    outcome = run_rotation(store, now=now, rng=rng)
    assert outcome.success
    assert not outcome.rotated
    assert outcome.plan.is_empty
    assert store.read_rotation_timestamps(now - timedelta(minutes=5)) == []


def test_rotation_runs_once_per_boundary(store, now) -> None:
    _seed(store, now, [(1, 1, 600), (2, 4, 30), (3, 5, 20), (4, 6, 25)])

    first = run_rotation(store, now=now, rng=np.random.default_rng(1))
    assert first.rotated
    assert first.message == f"Rotated {first.rotations} of 4 crews"
    assert first.plan.entry_for(1).to_zone_id == 1

    again = run_rotation(store, now=now + timedelta(minutes=1), rng=np.random.default_rng(2))
    assert not again.rotated

    forced = run_rotation(store, now=now + timedelta(minutes=2), rng=np.random.default_rng(3), force=True)
    assert forced.success
    assert not forced.rotated
    assert forced.message == "Rotation already applied for this boundary"


def test_rotation_applies_plan_to_store(store, now) -> None:
    _seed(store, now, [(1, 1, 600), (2, 4, 30), (3, 5, 20), (4, 6, 25)])
    outcome = run_rotation(store, now=now, rng=np.random.default_rng(5))

    current = {c.crew_id: c.zone_id for c in store.read_current_assignments()}
    for entry in outcome.plan.entries:
        assert current[entry.crew_id] == entry.to_zone_id


def test_critical_anchor_zone_relocates_and_persists_anchor(store, now, rng) -> None:
    _seed(store, now, [(1, 1, 600), (2, 4, 30)])
    report_danger(store, zone_id=1, severity="critical", now=now - timedelta(minutes=1))

    outcome = run_rotation(store, now=now, rng=rng)

    entry = outcome.plan.entry_for(1)
    assert entry.reason == ANCHOR_EMERGENCY_REASON
    assert entry.to_zone_id == 2  # Grand Park, nearest safe primary
    assert store.read_anchor_state().designation.zone_id == 2


# --- zone status / danger reports ---


def test_zone_status_report(store, now) -> None:
    _seed(store, now, [(1, 1, 600), (2, 1, 30), (3, 4, 20)])
    report_danger(store, zone_id=4, severity="high", now=now)

    report = get_zone_status(store, now=now)

    assert report.active_crews == 3
    assert report.total_participants == 650
    assert report.zones_occupied == 2
    by_id = {s.zone.zone_id: s for s in report.zones}
    assert by_id[1].total == 630
    assert [c.crew_id for c in by_id[1].crews] == [1, 2]
    assert by_id[4].danger == "high"
    assert by_id[1].danger is None
    kinds = [s.zone.kind for s in report.zones]
    assert kinds == sorted(kinds)


def test_report_danger_validates_input(store, now) -> None:
    with pytest.raises(ValueError):
        report_danger(store, zone_id=99, severity="high", now=now)
    with pytest.raises(ValueError):
        report_danger(store, zone_id=1, severity="high", now=now, source="rumor")
    with pytest.raises(ValueError):
        report_danger(store, zone_id=1, severity="severe", now=now)

    signal = report_danger(store, zone_id=1, severity="medium", now=now)
    assert signal.expires_at == now + timedelta(hours=2)
    assert store.read_danger_signals(now) == [signal]


# --- emergency evacuation ---


def test_evacuation_moves_crews_and_marks_zone_critical(store, now, rng) -> None:
    _seed(store, now, [(1, 1, 600), (2, 4, 30), (3, 1, 40)])
    at = now + timedelta(minutes=7)

    outcome = evacuate_zones(store, [1], now=at, rng=rng)

    assert outcome.success and outcome.rotated
    assert outcome.rotations == 2
    assert outcome.message == "Emergency evacuation: moved 2 crews to safety"
    assert sorted(e.crew_id for e in outcome.plan.entries) == [1, 3]
    assert {e.reason for e in outcome.plan.entries} == {EMERGENCY_EVACUATION_REASON}

    current = {c.crew_id: c.zone_id for c in store.read_current_assignments()}
    assert current[2] == 4
    assert 1 not in current.values()

    signals = store.read_danger_signals(at)
    assert [(s.zone_id, s.severity, s.source) for s in signals] == [(1, "critical", "system")]
    assert store.read_anchor_state().designation.zone_id == current[1]
    assert store.read_rotation_timestamps(at - timedelta(minutes=1)) == [at]


def test_evacuation_applies_right_after_a_rotation(store, now) -> None:
    _seed(store, now, [(1, 1, 600), (2, 4, 30), (3, 5, 20)])
    assert run_rotation(store, now=now, rng=np.random.default_rng(1)).rotated

    zone_of_2 = {c.crew_id: c.zone_id for c in store.read_current_assignments()}[2]
    outcome = evacuate_zones(store, [zone_of_2], now=now + timedelta(minutes=1), rng=np.random.default_rng(2))

    assert outcome.rotated
    assert outcome.plan.entry_for(2).to_zone_id != zone_of_2


def test_evacuation_of_empty_zone_changes_nothing(store, now, rng) -> None:
    _seed(store, now, [(1, 1, 600)])

    outcome = evacuate_zones(store, [6], now=now, rng=rng)

    assert outcome.success
    assert not outcome.rotated
    assert outcome.message == "No crews in danger zones"
    assert store.read_danger_signals(now) == []
    assert store.read_rotation_timestamps(now - timedelta(minutes=5)) == []


def test_evacuation_validates_zones(store, now, rng) -> None:
    with pytest.raises(ValueError):
        evacuate_zones(store, [], now=now, rng=rng)
    with pytest.raises(ValueError):
        evacuate_zones(store, [1, 99], now=now, rng=rng)


# --- next zone ---


def test_anchor_crew_holds_its_zone(store, now, rng) -> None:
    _seed(store, now, [(1, 1, 600), (2, 4, 30)])

    suggestion = suggest_crew_next_zone(store, crew_id=1, current_zone_id=1, now=now, rng=rng)

    assert not suggestion.moves
    assert suggestion.reason == ANCHOR_HOLD_REASON
    assert suggestion.walk_minutes == 0
    assert suggestion.next_rotation == now + timedelta(minutes=30)


def test_support_crew_gets_best_nearby_zone(store, now, rng) -> None:
    _seed(store, now, [(1, 1, 600), (2, 4, 30)])

    suggestion = suggest_crew_next_zone(store, crew_id=2, current_zone_id=4, now=now, rng=rng)

    # Grand Park: under a kilometre away and empty; City Hall is closer but crowded.
    assert suggestion.zone.name == "Grand Park"
    assert suggestion.reason == NEXT_ZONE_REASON
    assert suggestion.crew_name == "Crew 2"
    assert suggestion.walk_minutes == estimate_walk_minutes(
        distance_km(suggestion.current_zone.center, suggestion.zone.center)
    )


def test_next_zone_avoids_critical_zone(store, now, rng) -> None:
    _seed(store, now, [(1, 1, 600), (2, 4, 30)])
    report_danger(store, zone_id=2, severity="critical", now=now)

    suggestion = suggest_crew_next_zone(store, crew_id=2, current_zone_id=4, now=now, rng=rng)

    assert suggestion.moves
    assert suggestion.zone.zone_id not in (2, 11)


def test_next_zone_validates_input(store, now, rng) -> None:
    with pytest.raises(ValueError):
        suggest_crew_next_zone(store, crew_id=0, current_zone_id=1, now=now, rng=rng)
    with pytest.raises(ValueError):
        suggest_crew_next_zone(store, crew_id=2, current_zone_id=99, now=now, rng=rng)
