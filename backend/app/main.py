import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.app.core.config import settings
from backend.app.core.logging import configure_logging, init_sentry
from backend.app.core.redis_client import close_redis, init_redis
from backend.app.db.session import dispose_engine
import backend.app.routers.availability as availability
import backend.app.routers.bookings as bookings
import backend.app.routers.health as health
import backend.app.routers.jobs as jobs
import backend.app.routers.payments as payments


configure_logging()
init_sentry()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_redis()
    logger.info("Grace OS booking API started")
    try:
        yield
    finally:
        await close_redis()
        await dispose_engine()


app = FastAPI(
    title="Grace OS Booking API",
    lifespan=lifespan,
)

app.include_router(health.router, prefix=settings.API_PREFIX)
app.include_router(availability.router, prefix=settings.API_PREFIX)
app.include_router(bookings.router, prefix=settings.API_PREFIX)
app.include_router(payments.router, prefix=settings.API_PREFIX)
# Hit by the external scheduler, not by browsers
app.include_router(jobs.router, prefix=settings.API_PREFIX)
