"""
FitCoach Notification Settings API

Serves the settings surface for a single user's scheduler and runs the
periodic re-evaluation loop for the lifetime of the app.

Usage:
    uvicorn fitcoach.api.main:app
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI

from fitcoach import __version__
from fitcoach.api.routes import router
from fitcoach.logging_config import setup_logging
from fitcoach.notifications.config import load_config
from fitcoach.notifications.delivery import InMemoryDeliveryPort
from fitcoach.notifications.scheduler import NotificationScheduler, build_scheduler

logger = logging.getLogger(__name__)


def create_app(
    scheduler: NotificationScheduler | None = None,
    reevaluate_interval: timedelta | None = None,
) -> FastAPI:
    """
    Build the API app.

    Args:
        scheduler: Scheduler to serve (built from config when omitted)
        reevaluate_interval: Periodic pass interval (config when omitted)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        config = load_config()

        active = scheduler or build_scheduler(
            os.environ.get("FITCOACH_USER_ID", "default"),
            InMemoryDeliveryPort(),
            config,
        )
        app.state.scheduler = active
        await active.initialize()

        stop_event = asyncio.Event()
        periodic = asyncio.create_task(
            active.run_periodic(reevaluate_interval or config.reevaluate_interval, stop_event)
        )
        logger.info(f"Notification scheduler ready for {active.user_id}")

        try:
            yield
        finally:
            stop_event.set()
            await periodic

    app = FastAPI(
        title="FitCoach Notifications",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(router, prefix="/notifications", tags=["notifications"])
    return app


app = create_app()
