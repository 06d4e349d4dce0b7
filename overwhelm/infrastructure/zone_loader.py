"""
Zone / signal loaders. Raw dict -> domain objects.
"""

from datetime import datetime, timedelta
from typing import Optional

from overwhelm.domain.models import DangerSignal, Zone

DEFAULT_SIGNAL_TTL = timedelta(hours=2)


def load_zones(raw_zones: list[dict]) -> list[Zone]:
    """
    Transform raw zone dicts into list[Zone].
    Acepta "type" o "kind", y "center_lat"/"center_lng" o "lat"/"lng".
    """
    result: list[Zone] = []
    for raw in raw_zones:
        lat = raw.get("center_lat", raw.get("lat"))
        lng = raw.get("center_lng", raw.get("lng"))
        if lat is None or lng is None:
            raise ValueError(f"Zone {raw.get('id')!r} has no center coordinate")
        result.append(
            Zone(
                zone_id=int(raw["id"]),
                name=str(raw.get("name", "")),
                kind=str(raw.get("type", raw.get("kind", "secondary"))),
                lat=float(lat),
                lng=float(lng),
                active=bool(raw.get("active", True)),
            )
        )
    return result


def build_signal(
    zone_id: int,
    severity: str,
    now: datetime,
    ttl: Optional[timedelta] = None,
    description: str = "",
    source: str = "citizen",
) -> DangerSignal:
    """Signal reported now, expiring after ttl (2 hours by default)."""
    return DangerSignal(
        zone_id=int(zone_id),
        severity=severity,
        expires_at=now + (ttl or DEFAULT_SIGNAL_TTL),
        description=description,
        source=source,
    )
