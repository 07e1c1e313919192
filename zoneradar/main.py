"""FastAPI application setup for the zone scoring service."""

from fastapi import Depends, FastAPI

from .api import get_zone_service, router as api_router
from .domain import HealthResponse
from .zone_service import ZoneScoringService

app = FastAPI(title="Zone Radar")


@app.get("/health", response_model=HealthResponse)
def health(service: ZoneScoringService = Depends(get_zone_service)):
    """Liveness plus whether the upstream credentials are present."""
    return HealthResponse(
        weather_configured=service.weather.is_configured(),
        events_configured=service.events.is_configured(),
    )


# API routes
app.include_router(api_router, prefix="/v1")
