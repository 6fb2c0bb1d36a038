# backend/charterbook/routes/health.py
"""
Health and metrics endpoints for load balancers and Prometheus.

These paths are unversioned; external probes depend on them.
"""

from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Response
from sqlalchemy import text

from ..core.config import settings
from ..core.constants import API_VERSION, BRAND_NAME
from ..database import SessionLocal
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict:
    return {
        "status": "healthy",
        "service": f"{BRAND_NAME.lower()}-api",
        "version": API_VERSION,
        "environment": settings.environment,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }


@router.get("/ready")
def ready(response: Response) -> dict:
    """Readiness probe: the database must answer a trivial query."""
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error(f"Readiness check failed: {exc}")
        response.status_code = 503
        return {"status": "db_not_ready"}
    finally:
        db.close()
    return {"status": "ok"}


@router.get("/metrics")
def prometheus_endpoint() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
