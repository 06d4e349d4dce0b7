from datetime import timedelta

from overwhelm.domain.models import (
    AnchorDesignation,
    AnchorState,
    AssignmentRecord,
    CrewRecord,
    DangerSignal,
    RotationEntry,
    RotationPlan,
    Zone,
)
from overwhelm.infrastructure.memory_store import InMemoryCrewStore

GUARD = timedelta(minutes=5)


def _plan() -> RotationPlan:
    return RotationPlan(entries=[RotationEntry(1, 1, 4, 30, "scheduled rotation")])


def test_rotation_write_is_guarded(store, now) -> None:
    store.upsert_crew_assignment(1, 1, 30, now - timedelta(minutes=20))

    assert store.write_rotation_plan(_plan(), now, GUARD)
    assert not store.write_rotation_plan(_plan(), now + timedelta(minutes=2), GUARD)
    assert store.write_rotation_plan(_plan(), now + timedelta(minutes=6), GUARD)
    assert len(store.read_rotation_timestamps(now - GUARD)) == 2


def test_rejected_rotation_writes_nothing(store, now) -> None:
    store.upsert_crew_assignment(1, 1, 30, now - timedelta(minutes=20))
    store.write_rotation_plan(_plan(), now, GUARD)
    before = store.read_history()

    other = RotationPlan(entries=[RotationEntry(1, 4, 6, 30, "scheduled rotation")])
    assert not store.write_rotation_plan(other, now + timedelta(minutes=1), GUARD)
    assert store.read_history() == before
    assert store.read_current_assignments() == [CrewRecord(1, 4, 30)]


def test_upsert_is_idempotent(store, now) -> None:
    store.upsert_crew_assignment(2, 3, 12, now)
    store.upsert_crew_assignment(2, 3, 12, now + timedelta(seconds=1))
    assert len(store.read_history()) == 1

    store.upsert_crew_assignment(2, 3, 19, now + timedelta(seconds=2))
    assert len(store.read_history()) == 2
    assert store.read_current_assignments() == [CrewRecord(2, 3, 19)]


def test_latest_record_per_crew_is_current_and_idle_hidden(zones, now) -> None:
    history = [
        AssignmentRecord(1, 1, 50, now - timedelta(minutes=30)),
        AssignmentRecord(1, 4, 55, now),
        AssignmentRecord(2, 2, 10, now - timedelta(minutes=30)),
        AssignmentRecord(2, 2, 0, now),
    ]
    store = InMemoryCrewStore(zones, history=history)
    assert store.read_current_assignments() == [CrewRecord(1, 4, 55)]


def test_expired_signals_are_not_read(store, now) -> None:
    store.report_danger_signal(DangerSignal(1, "high", now - timedelta(minutes=1)))
    store.report_danger_signal(DangerSignal(2, "low", now + timedelta(minutes=1)))
    assert [s.zone_id for s in store.read_danger_signals(now)] == [2]


def test_anchor_state_round_trip(store, now) -> None:
    assert store.read_anchor_state() == AnchorState()
    state = AnchorState(AnchorDesignation(1, 1, 600, 90), now)
    store.write_anchor_state(state)
    assert store.read_anchor_state() == state


def test_nearby_zones_sorted_by_distance(store) -> None:
    # Next to City Hall South Lawn.
    nearby = store.find_nearby_zones(34.0545, -118.2420, 1000.0)
    ids = [zid for zid, _ in nearby]
    distances = [d for _, d in nearby]

    assert ids[0] == 1
    assert distances == sorted(distances)
    assert all(d <= 1000.0 for d in distances)
    # Westwood and Hollywood are far outside the radius.
    assert 9 not in ids and 10 not in ids


def test_nearby_zones_excludes_inactive(now) -> None:
    zones = [
        Zone(1, "Open", "secondary", 34.0, -118.0),
        Zone(2, "Closed", "secondary", 34.0, -118.001, active=False),
    ]
    store = InMemoryCrewStore(zones)
    assert [zid for zid, _ in store.find_nearby_zones(34.0, -118.0005, 500.0)] == [1]


def test_nearby_zones_empty_catalog() -> None:
    assert InMemoryCrewStore([]).find_nearby_zones(34.0, -118.0, 5000.0) == []
