"""
Zone status use case. Public view: zones with their crews, totals and active danger.
Anchor designation is never part of this view.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from overwhelm.application.config import DEFAULT_POLICY
from overwhelm.core.danger import classify
from overwhelm.core.occupancy import build_occupancy
from overwhelm.core.scheduler import next_rotation_at
from overwhelm.domain.constraints import AssignmentPolicy
from overwhelm.domain.models import SIGNAL_SOURCES, CrewRecord, DangerSignal, Zone
from overwhelm.infrastructure.store import CrewStore
from overwhelm.infrastructure.zone_loader import build_signal


@dataclass
class ZoneStatus:
    zone: Zone
    crews: List[CrewRecord] = field(default_factory=list)
    total: int = 0
    danger: Optional[str] = None


@dataclass
class StatusReport:
    zones: List[ZoneStatus]
    active_crews: int
    total_participants: int
    zones_occupied: int
    next_rotation: datetime


def get_zone_status(
    store: CrewStore,
    now: Optional[datetime] = None,
    policy: Optional[AssignmentPolicy] = None,
) -> StatusReport:
    policy = policy or DEFAULT_POLICY
    now = now or datetime.now(timezone.utc)

    zones = sorted(
        (z for z in store.read_zone_catalog() if z.active),
        key=lambda z: (z.kind, z.name),
    )
    occupancy = build_occupancy(store.read_current_assignments(), policy)
    danger = classify(store.read_danger_signals(now), now)

    statuses = [
        ZoneStatus(
            zone=z,
            crews=occupancy.crews_in_zone(z.zone_id),
            total=occupancy.zone_total(z.zone_id),
            danger=danger.get(z.zone_id),
        )
        for z in zones
    ]
    return StatusReport(
        zones=statuses,
        active_crews=len(occupancy.crews),
        total_participants=occupancy.total,
        zones_occupied=len(occupancy.zones),
        next_rotation=next_rotation_at(now, policy),
    )


def report_danger(
    store: CrewStore,
    zone_id: int,
    severity: str,
    now: Optional[datetime] = None,
    ttl: Optional[timedelta] = None,
    description: str = "",
    source: str = "citizen",
) -> DangerSignal:
    """Record one external severity report. Unknown zone or source -> ValueError."""
    now = now or datetime.now(timezone.utc)
    if source not in SIGNAL_SOURCES:
        raise ValueError(f"Invalid source {source!r}; allowed: {sorted(SIGNAL_SOURCES)}")
    if all(z.zone_id != zone_id for z in store.read_zone_catalog()):
        raise ValueError(f"Unknown zone {zone_id}")
    signal = build_signal(zone_id, severity, now, ttl=ttl, description=description, source=source)
    store.report_danger_signal(signal)
    return signal
