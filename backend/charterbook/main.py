# backend/charterbook/main.py
"""
Charterbook API application.

Mounts the versioned API under /api/v1 and the unversioned health and
metrics probes at the root.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from . import models  # noqa: F401  registers tables on Base.metadata
from .core.config import settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_VERSION, BRAND_NAME
from .database import Base, engine
from .errors import register_error_handlers
from .routes import health
from .routes.v1 import (
    availability as availability_v1,
    bookings as bookings_v1,
    cron as cron_v1,
    guest as guest_v1,
    modifications as modifications_v1,
    webhooks as webhooks_v1,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    Base.metadata.create_all(bind=engine)
    if not settings.cron_secret.get_secret_value():
        logger.warning("CRON_SECRET is not set; /api/v1/cron endpoints will reject every call")
    yield
    logger.info(f"{BRAND_NAME} API shutting down...")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

register_error_handlers(app)

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(availability_v1.router)
api_v1.include_router(modifications_v1.router)
api_v1.include_router(guest_v1.router)
api_v1.include_router(cron_v1.router)
api_v1.include_router(webhooks_v1.router)

app.include_router(api_v1)

# Unversioned: load balancers and Prometheus depend on these paths.
app.include_router(health.router)
