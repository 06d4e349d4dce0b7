"""
Anchor state use case. Reads the persisted anchor pointer, re-derives it from current
crews/zones, writes it back. Non-critical: store failures degrade to a from-scratch recompute.
"""

import logging
from datetime import datetime
from typing import Dict, List

from overwhelm.core.anchor_selector import resolve_anchor
from overwhelm.domain.constraints import AssignmentPolicy
from overwhelm.domain.errors import StoreUnavailableError
from overwhelm.domain.models import AnchorState, CrewRecord, Zone
from overwhelm.infrastructure.store import CrewStore

log = logging.getLogger("overwhelm.anchor")


def current_anchor_state(
    store: CrewStore,
    crews: List[CrewRecord],
    zones_by_id: Dict[int, Zone],
    now: datetime,
    policy: AssignmentPolicy,
) -> AnchorState:
    try:
        previous = store.read_anchor_state()
    except StoreUnavailableError as e:
        log.warning("Anchor state read failed, recomputing from scratch: %s", e)
        previous = AnchorState()

    state = resolve_anchor(crews, zones_by_id, previous, now, policy)
    if state != previous:
        save_anchor_state(store, state)
    return state


def save_anchor_state(store: CrewStore, state: AnchorState) -> None:
    try:
        store.write_anchor_state(state)
    except StoreUnavailableError as e:
        log.warning("Anchor state write failed: %s", e)
