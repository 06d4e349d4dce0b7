"""
Capacity / occupancy tracker. Snapshot of current crew records -> per-crew and per-zone lookups.
Pure transformation. No I/O.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from overwhelm.domain.constraints import AssignmentPolicy
from overwhelm.domain.models import CrewRecord


@dataclass
class ZoneOccupancy:
    zone_id: int
    total: int = 0
    crew_ids: List[int] = field(default_factory=list)


@dataclass
class Occupancy:
    crews: Dict[int, CrewRecord] = field(default_factory=dict)
    zones: Dict[int, ZoneOccupancy] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(z.total for z in self.zones.values())

    def crew_size(self, crew_id: int) -> int:
        crew = self.crews.get(crew_id)
        return crew.estimated_size if crew else 0

    def zone_total(self, zone_id: int) -> int:
        zone = self.zones.get(zone_id)
        return zone.total if zone else 0

    def crews_in_zone(self, zone_id: int) -> List[CrewRecord]:
        zone = self.zones.get(zone_id)
        if zone is None:
            return []
        return [self.crews[cid] for cid in zone.crew_ids]

    def free_crew_id(self, policy: AssignmentPolicy) -> Optional[int]:
        """Lowest crew id in 1..max_crews with no active record. Idle ids are reused."""
        for crew_id in range(1, policy.max_crews + 1):
            if crew_id not in self.crews:
                return crew_id
        return None


def build_occupancy(
    snapshot: Iterable[CrewRecord],
    policy: Optional[AssignmentPolicy] = None,
) -> Occupancy:
    """
    1. Skip idle records (estimated_size == 0).
    2. Index by crew_id; a crew appearing twice is a broken snapshot.
    3. Aggregate per zone: total occupants + crew list (sorted by crew_id).
    With policy, crew ids outside 1..max_crews are rejected.
    """
    occupancy = Occupancy()
    for record in snapshot:
        if record.estimated_size < 0:
            raise ValueError(f"Crew {record.crew_id} has negative size {record.estimated_size}")
        if policy is not None and not policy.crew_id_in_bounds(record.crew_id):
            raise ValueError(f"Crew id {record.crew_id} outside 1..{policy.max_crews}")
        if record.estimated_size == 0:
            continue
        if record.crew_id in occupancy.crews:
            raise ValueError(f"Crew {record.crew_id} appears twice in snapshot")
        occupancy.crews[record.crew_id] = record
        zone = occupancy.zones.setdefault(record.zone_id, ZoneOccupancy(zone_id=record.zone_id))
        zone.total += record.estimated_size
        zone.crew_ids.append(record.crew_id)

    for zone in occupancy.zones.values():
        zone.crew_ids.sort()
    return occupancy
