"""FastAPI application entrypoint for the litigation deadline service."""

from __future__ import annotations

from fastapi import FastAPI

from api.routes.deadlines import router as deadlines_router
from api.routes.geographic import router as geographic_router
from api.routes.jobs import router as jobs_router
from collaborators import get_client
from core.logging_config import configure_logging

configure_logging()

app = FastAPI(
    title="Litigation Deadline Calendar",
    version="0.1.0",
    description=(
        "Calendar, filtering and urgency views over case deadlines, plus "
        "single-flight admission for document triage jobs."
    ),
)

app.include_router(deadlines_router)
app.include_router(jobs_router)
app.include_router(geographic_router)


@app.get("/health")
def healthcheck() -> dict[str, str]:
    """Simple readiness check used by deployment tooling."""

    return {"status": "ok", "service_mode": get_client().mode}
