from datetime import timedelta

import pytest

from overwhelm.core.danger import classify, critical_zone_ids, danger_zone_ids
from overwhelm.domain.models import DangerSignal


def test_max_severity_wins_per_zone(now) -> None:
    later = now + timedelta(hours=1)
    signals = [
        DangerSignal(1, "low", later),
        DangerSignal(1, "critical", later),
        DangerSignal(2, "medium", later),
        DangerSignal(2, "high", later),
        DangerSignal(2, "low", later),
    ]
    assert classify(signals, now) == {1: "critical", 2: "high"}


def test_expired_signals_are_dropped(now) -> None:
    signals = [
        DangerSignal(1, "critical", now),
        DangerSignal(1, "low", now + timedelta(minutes=1)),
        DangerSignal(3, "high", now - timedelta(minutes=5)),
    ]
    assert classify(signals, now) == {1: "low"}


def test_no_signals_is_empty(now) -> None:
    assert classify([], now) == {}


def test_danger_sets() -> None:
    classified = {1: "critical", 2: "high", 3: "medium", 4: "low"}
    assert danger_zone_ids(classified) == {1, 2}
    assert critical_zone_ids(classified) == {1}


def test_unknown_severity_is_rejected(now) -> None:
    with pytest.raises(ValueError):
        DangerSignal(1, "extreme", now)
