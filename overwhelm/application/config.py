"""
Default configuration for the assignment/rotation use cases.
Un solo lugar para valores por defecto compartidos entre API, tests y motor.
"""

import os
from typing import Optional

from dotenv import load_dotenv

from overwhelm.domain.constraints import DEFAULT_STRATEGIC_ZONE_NAMES, AssignmentPolicy

DEFAULT_POLICY = AssignmentPolicy()

# Default catalog (Los Angeles downtown + two outlying primaries)
DEFAULT_ZONES: list[dict] = [
    {"id": 1, "name": "City Hall South Lawn", "type": "primary", "center_lat": 34.0537, "center_lng": -118.2427},
    {"id": 2, "name": "Grand Park", "type": "primary", "center_lat": 34.0560, "center_lng": -118.2460},
    {"id": 3, "name": "Pershing Square", "type": "primary", "center_lat": 34.0485, "center_lng": -118.2531},
    {"id": 4, "name": "Little Tokyo", "type": "secondary", "center_lat": 34.0501, "center_lng": -118.2400},
    {"id": 5, "name": "Arts District", "type": "secondary", "center_lat": 34.0403, "center_lng": -118.2352},
    {"id": 6, "name": "Chinatown", "type": "secondary", "center_lat": 34.0623, "center_lng": -118.2383},
    {"id": 7, "name": "Bunker Hill", "type": "secondary", "center_lat": 34.0530, "center_lng": -118.2500},
    {"id": 8, "name": "MacArthur Park", "type": "secondary", "center_lat": 34.0577, "center_lng": -118.2770},
    {"id": 9, "name": "Hollywood", "type": "primary", "center_lat": 34.0928, "center_lng": -118.3287},
    {"id": 10, "name": "Westwood", "type": "primary", "center_lat": 34.0689, "center_lng": -118.4452},
    {"id": 11, "name": "LAPD Central Division", "type": "avoid", "center_lat": 34.0441, "center_lng": -118.2466},
]

_TRUE = {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    return value.strip().lower() in _TRUE


def load_policy_from_env(dotenv_path: Optional[str] = None) -> AssignmentPolicy:
    """
    Policy from environment (after .env). Unset options keep their defaults.
    STRATEGIC_ZONE_NAMES is a comma-separated list.
    """
    load_dotenv(dotenv_path)
    d = DEFAULT_POLICY
    strategic = os.getenv("STRATEGIC_ZONE_NAMES")
    return AssignmentPolicy(
        max_crews=_env_int("MAX_CREWS", d.max_crews),
        max_crew_size=_env_int("MAX_CREW_SIZE", d.max_crew_size),
        support_crew_size_cap=_env_int("SUPPORT_CREW_SIZE_CAP", d.support_crew_size_cap),
        anchor_size_min=_env_int("ANCHOR_SIZE_MIN", d.anchor_size_min),
        anchor_size_target=_env_int("ANCHOR_SIZE_TARGET", d.anchor_size_target),
        rotation_interval_minutes=_env_int("ROTATION_INTERVAL_MINUTES", d.rotation_interval_minutes),
        anchor_reevaluation_minutes=_env_int("ANCHOR_REEVALUATION_MINUTES", d.anchor_reevaluation_minutes),
        location_required=_env_bool("LOCATION_REQUIRED", d.location_required),
        walking_radius_km=_env_float("WALKING_RADIUS_KM", d.walking_radius_km),
        next_zone_radius_km=_env_float("NEXT_ZONE_RADIUS_KM", d.next_zone_radius_km),
        next_zone_fallback_radius_km=_env_float("NEXT_ZONE_FALLBACK_RADIUS_KM", d.next_zone_fallback_radius_km),
        strategic_zone_names=(
            tuple(n.strip() for n in strategic.split(",") if n.strip())
            if strategic else DEFAULT_STRATEGIC_ZONE_NAMES
        ),
    )


def cron_secret() -> Optional[str]:
    return os.getenv("CRON_SECRET") or None
