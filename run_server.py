import os

import uvicorn

from zoneradar.config import settings
from utils.logging_utils import get_tagged_logger, setup_logging

logger = get_tagged_logger(__name__, tag="server")


def report_upstreams() -> None:
    """
    Log which upstream credentials are present. Missing keys are not fatal:
    - ZONES_OPENWEATHER_API_KEY absent -> neutral weather boost
    - ZONES_TICKETMASTER_API_KEY absent -> no event boost
    """
    if not settings.openweather_api_key:
        logger.warning("ZONES_OPENWEATHER_API_KEY not set; scores will use neutral weather")
    if not settings.ticketmaster_api_key:
        logger.warning("ZONES_TICKETMASTER_API_KEY not set; scores will ignore events")


if __name__ == "__main__":
    setup_logging(level=settings.log_level, job_name="zoneradar-api")
    report_upstreams()

    uvicorn.run(
        "zoneradar.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=False,
    )
