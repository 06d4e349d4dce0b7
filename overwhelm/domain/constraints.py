"""
Domain policy. Dataclasses only. No FastAPI, no external deps beyond dataclasses/typing.
"""

from dataclasses import dataclass
from typing import Tuple

DEFAULT_STRATEGIC_ZONE_NAMES: Tuple[str, ...] = (
    "City Hall South Lawn",
    "Federal Building",
    "Grand Park",
)


@dataclass(frozen=True)
class AssignmentPolicy:
    max_crews: int = 20
    max_crew_size: int = 200
    support_crew_size_cap: int = 150
    anchor_size_min: int = 500
    anchor_size_target: int = 1000
    rotation_interval_minutes: int = 30
    anchor_reevaluation_minutes: int = 10
    location_required: bool = True
    walking_radius_km: float = 4.8
    # Anchor selector
    anchor_candidate_min_size: int = 100  # strict floor: size must exceed it
    strategic_zone_names: Tuple[str, ...] = DEFAULT_STRATEGIC_ZONE_NAMES
    # Assignment engine geography (km)
    local_radius_km: float = 0.5
    far_from_anchor_km: float = 1.0
    anchor_boost_radius_km: float = 0.2
    # Funnel curve
    growth_probability: float = 0.5
    sustain_numerator: float = 300.0
    sustain_floor: float = 0.1
    # Rotation planner
    min_move_fraction: float = 0.4
    max_move_fraction: float = 0.6
    # Single-crew next zone lookup (km)
    next_zone_radius_km: float = 1.5
    next_zone_fallback_radius_km: float = 2.0
    # Scheduler idempotency window
    rotation_guard_minutes: int = 5
    # Best-effort size write: only persist when the estimate drifted more than this
    size_update_threshold: int = 5

    def __post_init__(self) -> None:
        if self.max_crews < 1:
            raise ValueError("max_crews must be >= 1")
        if self.max_crew_size < 1:
            raise ValueError("max_crew_size must be >= 1")
        if not 0 < self.rotation_interval_minutes <= 60 or 60 % self.rotation_interval_minutes:
            raise ValueError("rotation_interval_minutes must divide 60")
        if not 0.0 <= self.min_move_fraction <= self.max_move_fraction <= 1.0:
            raise ValueError("move fractions must satisfy 0 <= min <= max <= 1")

    def crew_id_in_bounds(self, crew_id: int) -> bool:
        return 1 <= crew_id <= self.max_crews
