"""
FastAPI app for the crew assignment / rotation backend.

Endpoints
─────────
GET  /             Health check
GET  /crew         Crew assignment for one participant
GET  /crew/next    Next zone for one crew
GET  /zones        Zone status
GET  /cron/rotate  Scheduled rotation (bearer CRON_SECRET)
POST /cron/rotate  Manual rotation (bearer CRON_SECRET)
POST /signals      Danger signal report
POST /evacuate     Emergency evacuation (bearer CRON_SECRET)
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

import numpy as np
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from overwhelm.api.router import router
from overwhelm.application.config import DEFAULT_ZONES, cron_secret as env_cron_secret, load_policy_from_env
from overwhelm.domain.constraints import AssignmentPolicy
from overwhelm.infrastructure.memory_store import InMemoryCrewStore
from overwhelm.infrastructure.store import CrewStore
from overwhelm.infrastructure.zone_loader import load_zones

# ── Logging ───────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    handlers=[logging.StreamHandler()],
    format='{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","msg":"%(message)s"}',
)
log = logging.getLogger("overwhelm")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def create_app(
    store: Optional[CrewStore] = None,
    policy: Optional[AssignmentPolicy] = None,
    rng: Optional[np.random.Generator] = None,
    cron_secret: Optional[str] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    app = FastAPI(
        title="Overwhelm API",
        description="Crew assignment and zone rotation",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.policy = policy or load_policy_from_env()
    app.state.store = store or InMemoryCrewStore(load_zones(DEFAULT_ZONES))
    app.state.rng = rng if rng is not None else np.random.default_rng()
    app.state.cron_secret = cron_secret or env_cron_secret()
    app.state.clock = clock or _utc_now

    if not app.state.cron_secret:
        log.warning("CRON_SECRET not set; /cron/rotate will reject every request")

    @app.get("/")
    def root():
        return {"message": "Overwhelm API", "status": "ok"}

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
