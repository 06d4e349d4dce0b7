# ==========================================
# IN-MEMORY CREW STORE
# ------------------------------------------
# CrewStore backed by process memory, used by
# the api by default and by the tests.
#
# IMPORTANT:
# State is volatile and resets on restart.
# A database-backed store must keep the same
# atomicity: rotation writes are all-or-nothing
# and guarded by the last rotation timestamp.
# ==========================================

import threading
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
from sklearn.neighbors import BallTree

from overwhelm.core.geo import EARTH_RADIUS_KM
from overwhelm.domain.models import (
    AnchorState,
    AssignmentRecord,
    CrewRecord,
    DangerSignal,
    RotationPlan,
    Zone,
)

EARTH_RADIUS_M = EARTH_RADIUS_KM * 1000.0


class InMemoryCrewStore:
    """CrewStore in memoria. Un lock protege historial, rotaciones y ancla."""

    def __init__(
        self,
        zones: Iterable[Zone],
        history: Optional[Iterable[AssignmentRecord]] = None,
        signals: Optional[Iterable[DangerSignal]] = None,
    ):
        self._lock = threading.Lock()
        self._zones: List[Zone] = sorted(zones, key=lambda z: z.zone_id)
        self._history: List[AssignmentRecord] = list(history or [])
        self._signals: List[DangerSignal] = list(signals or [])
        self._rotations: List[datetime] = []
        self._anchor = AnchorState()
        self._active_zones: List[Zone] = [z for z in self._zones if z.active]
        self._tree: Optional[BallTree] = None
        if self._active_zones:
            X_rad = np.radians(np.array([[z.lat, z.lng] for z in self._active_zones], dtype=float))
            self._tree = BallTree(X_rad, metric="haversine")

    # --- reads ---

    def read_zone_catalog(self) -> List[Zone]:
        return list(self._zones)

    def _current(self) -> Dict[int, AssignmentRecord]:
        latest: Dict[int, AssignmentRecord] = {}
        for record in self._history:
            prev = latest.get(record.crew_id)
            if prev is None or record.assigned_at >= prev.assigned_at:
                latest[record.crew_id] = record
        return latest

    def read_current_assignments(self) -> List[CrewRecord]:
        with self._lock:
            current = self._current()
        return [
            r.as_crew() for _, r in sorted(current.items())
            if r.estimated_size > 0
        ]

    def read_history(self) -> List[AssignmentRecord]:
        with self._lock:
            return list(self._history)

    def read_danger_signals(self, now: datetime) -> List[DangerSignal]:
        with self._lock:
            return [s for s in self._signals if s.expires_at > now]

    def read_rotation_timestamps(self, since: datetime) -> List[datetime]:
        with self._lock:
            return [ts for ts in self._rotations if ts >= since]

    def read_anchor_state(self) -> AnchorState:
        with self._lock:
            return self._anchor

    def find_nearby_zones(self, lat: float, lng: float, radius_m: float) -> List[Tuple[int, float]]:
        if self._tree is None:
            return []
        point = np.radians(np.array([[lat, lng]], dtype=float))
        idx, dist = self._tree.query_radius(
            point, r=radius_m / EARTH_RADIUS_M, return_distance=True, sort_results=True
        )
        return [
            (self._active_zones[int(i)].zone_id, float(d) * EARTH_RADIUS_M)
            for i, d in zip(idx[0], dist[0])
        ]

    # --- writes ---

    def report_danger_signal(self, signal: DangerSignal) -> None:
        with self._lock:
            self._signals.append(signal)

    def write_anchor_state(self, state: AnchorState) -> None:
        with self._lock:
            self._anchor = state

    def upsert_crew_assignment(self, crew_id: int, zone_id: int, estimated_size: int, now: datetime) -> None:
        with self._lock:
            prev = self._current().get(crew_id)
            if prev is not None and prev.zone_id == zone_id and prev.estimated_size == estimated_size:
                return
            self._history.append(AssignmentRecord(crew_id, zone_id, estimated_size, now))

    def write_rotation_plan(self, plan: RotationPlan, now: datetime, guard: timedelta) -> bool:
        with self._lock:
            window_start = now - guard
            if any(ts > window_start for ts in self._rotations):
                return False
            for entry in plan.entries:
                self._history.append(
                    AssignmentRecord(entry.crew_id, entry.to_zone_id, entry.estimated_size, now)
                )
            self._rotations.append(now)
            return True
