"""
Danger ingestion. External severity reports -> per-zone severity. Pure.
"""

from datetime import datetime
from typing import Dict, Iterable, Set

from overwhelm.domain.models import DANGER_SEVERITIES, SEVERITY_RANK, DangerSignal


def classify(signals: Iterable[DangerSignal], now: datetime) -> Dict[int, str]:
    """Drop expired signals; collapse the rest per zone to the max severity."""
    result: Dict[int, str] = {}
    for signal in signals:
        if signal.expires_at <= now:
            continue
        current = result.get(signal.zone_id)
        if current is None or SEVERITY_RANK[signal.severity] > SEVERITY_RANK[current]:
            result[signal.zone_id] = signal.severity
    return result


def danger_zone_ids(classified: Dict[int, str]) -> Set[int]:
    """Zones at high or critical severity."""
    return {zid for zid, sev in classified.items() if sev in DANGER_SEVERITIES}


def critical_zone_ids(classified: Dict[int, str]) -> Set[int]:
    return {zid for zid, sev in classified.items() if sev == "critical"}
