"""
Domain models. Dataclasses only. No FastAPI, no external deps beyond dataclasses/typing.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union

ZONE_KINDS = frozenset({"primary", "secondary", "avoid"})

# Ordered low -> critical; classify() collapses duplicates with this rank.
SEVERITY_LEVELS = ("low", "medium", "high", "critical")
SEVERITY_RANK = {name: rank for rank, name in enumerate(SEVERITY_LEVELS)}
DANGER_SEVERITIES = frozenset({"high", "critical"})

SIGNAL_SOURCES = frozenset({"citizen", "news", "social", "system"})


@dataclass(frozen=True)
class Zone:
    zone_id: int
    name: str
    kind: str
    lat: float
    lng: float
    active: bool = True

    def __post_init__(self) -> None:
        if self.kind not in ZONE_KINDS:
            raise ValueError(f"Invalid zone kind {self.kind!r}; allowed: {sorted(ZONE_KINDS)}")

    @property
    def center(self) -> tuple[float, float]:
        return (self.lat, self.lng)

    @property
    def assignable(self) -> bool:
        """Active and not an avoid zone."""
        return self.active and self.kind != "avoid"


@dataclass(frozen=True)
class CrewRecord:
    """Current assignment record of one crew: (zone, size)."""
    crew_id: int
    zone_id: int
    estimated_size: int


@dataclass(frozen=True)
class AssignmentRecord:
    """One row of the append-only crew history. Latest per crew is current."""
    crew_id: int
    zone_id: int
    estimated_size: int
    assigned_at: datetime

    def as_crew(self) -> CrewRecord:
        return CrewRecord(self.crew_id, self.zone_id, self.estimated_size)


@dataclass(frozen=True)
class AnchorDesignation:
    crew_id: int
    zone_id: int
    estimated_size: int
    score: int = 0


@dataclass(frozen=True)
class AnchorState:
    """Persisted anchor pointer plus the time it was last evaluated."""
    designation: Optional[AnchorDesignation] = None
    evaluated_at: Optional[datetime] = None


@dataclass(frozen=True)
class DangerSignal:
    zone_id: int
    severity: str
    expires_at: datetime
    description: str = ""
    source: str = "citizen"

    def __post_init__(self) -> None:
        if self.severity not in SEVERITY_RANK:
            raise ValueError(f"Invalid severity {self.severity!r}; allowed: {list(SEVERITY_LEVELS)}")


@dataclass(frozen=True)
class RotationEntry:
    crew_id: int
    from_zone_id: int
    to_zone_id: int
    estimated_size: int
    reason: str

    @property
    def moved(self) -> bool:
        return self.from_zone_id != self.to_zone_id


@dataclass
class RotationPlan:
    """Full crew -> zone mapping for one rotation boundary, no-ops included."""
    entries: List[RotationEntry] = field(default_factory=list)
    degraded: bool = False
    move_fraction: Optional[float] = None

    @property
    def moved(self) -> List[RotationEntry]:
        return [e for e in self.entries if e.moved]

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def entry_for(self, crew_id: int) -> Optional[RotationEntry]:
        return next((e for e in self.entries if e.crew_id == crew_id), None)


@dataclass(frozen=True)
class Participant:
    lat: Optional[float] = None
    lng: Optional[float] = None
    preferred_zone_id: Optional[int] = None

    @property
    def has_coords(self) -> bool:
        return self.lat is not None and self.lng is not None

    @property
    def coords(self) -> Optional[tuple[float, float]]:
        if not self.has_coords:
            return None
        return (self.lat, self.lng)


# --- Assignment intents: the engine returns one, the caller applies it ---


@dataclass(frozen=True)
class UseExistingCrew:
    crew_id: int
    zone_id: int


@dataclass(frozen=True)
class CreateCrew:
    crew_id: int
    zone_id: int


CrewIntent = Union[UseExistingCrew, CreateCrew]


@dataclass(frozen=True)
class AssignmentDecision:
    intent: CrewIntent
    estimated_size: int
    joined_anchor: bool = False  # internal only; never serialized to participants
    reason: str = ""

    @property
    def crew_id(self) -> int:
        return self.intent.crew_id

    @property
    def zone_id(self) -> int:
        return self.intent.zone_id

    @property
    def creates_crew(self) -> bool:
        return isinstance(self.intent, CreateCrew)
