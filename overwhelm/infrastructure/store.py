"""
Store protocol. What the use cases need from persistence; transport/schema live elsewhere.
Implementations raise StoreUnavailableError on any read/write failure.
"""

from datetime import datetime, timedelta
from typing import List, Protocol, Tuple

from overwhelm.domain.models import AnchorState, CrewRecord, DangerSignal, RotationPlan, Zone


class CrewStore(Protocol):
    """Protocolo de persistencia para zonas, crews, señales y rotaciones."""

    def read_zone_catalog(self) -> List[Zone]:
        ...

    def read_current_assignments(self) -> List[CrewRecord]:
        """Latest record per crew, estimated_size > 0 only."""
        ...

    def read_danger_signals(self, now: datetime) -> List[DangerSignal]:
        ...

    def report_danger_signal(self, signal: DangerSignal) -> None:
        ...

    def read_rotation_timestamps(self, since: datetime) -> List[datetime]:
        ...

    def write_rotation_plan(self, plan: RotationPlan, now: datetime, guard: timedelta) -> bool:
        """
        Apply the full plan atomically. Check-and-set on the last rotation
        timestamp: returns False (and writes nothing) when a rotation was
        recorded within guard of now.
        """
        ...

    def upsert_crew_assignment(self, crew_id: int, zone_id: int, estimated_size: int, now: datetime) -> None:
        """Idempotent by (crew_id, zone_id): repeating the same write is a no-op."""
        ...

    def find_nearby_zones(self, lat: float, lng: float, radius_m: float) -> List[Tuple[int, float]]:
        """(zone_id, distance_m) of active zones within radius, ascending by distance."""
        ...

    def read_anchor_state(self) -> AnchorState:
        ...

    def write_anchor_state(self, state: AnchorState) -> None:
        ...
