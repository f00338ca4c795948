import os

import uvicorn

from routewind.config import settings
from utils.logging_utils import get_tagged_logger, setup_logging

logger = get_tagged_logger(__name__, tag="server")


if __name__ == "__main__":
    setup_logging(level=settings.log_level, job_name="routewind-api")
    logger.info(
        "Starting RouteWind",
        extra={"forecast_source": settings.forecast_source, "elevation_source": settings.elevation_source},
    )

    uvicorn.run(
        "routewind.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=False,
    )
