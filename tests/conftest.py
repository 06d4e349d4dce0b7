from datetime import datetime, timezone

import numpy as np
import pytest

from overwhelm.application.config import DEFAULT_ZONES
from overwhelm.domain.constraints import AssignmentPolicy
from overwhelm.domain.models import Zone
from overwhelm.infrastructure.memory_store import InMemoryCrewStore
from overwhelm.infrastructure.zone_loader import load_zones


@pytest.fixture
def now() -> datetime:
    # On a rotation boundary (:00).
    return datetime(2025, 6, 14, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def policy() -> AssignmentPolicy:
    return AssignmentPolicy()


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(42)


@pytest.fixture
def zones() -> list[Zone]:
    return load_zones(DEFAULT_ZONES)


@pytest.fixture
def zones_by_id(zones) -> dict[int, Zone]:
    return {z.zone_id: z for z in zones}


@pytest.fixture
def line_zones() -> list[Zone]:
    """
    Twelve zones on one parallel, ~0.92 km apart.
    Ids 1-4 primary (1 is strategic), 5-12 secondary.
    """
    result = []
    for i in range(12):
        zone_id = i + 1
        name = "City Hall South Lawn" if zone_id == 1 else f"Zone {zone_id}"
        result.append(
            Zone(
                zone_id=zone_id,
                name=name,
                kind="primary" if zone_id <= 4 else "secondary",
                lat=34.0,
                lng=-118.0 - i * 0.01,
            )
        )
    return result


@pytest.fixture
def store(zones) -> InMemoryCrewStore:
    return InMemoryCrewStore(zones)
