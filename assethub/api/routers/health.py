"""Health check endpoints for Asset Hub.

Provides:
- /health: Basic health check
- /health/ready: Readiness check (database and, in queued notification
  mode, the Celery broker)
"""

from typing import Dict, Any
from datetime import datetime, timezone

import redis
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from assethub import __version__
from assethub.api.deps import get_db
from assethub.core.config import get_settings

router = APIRouter(tags=["health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def check_database(db: Session) -> Dict[str, Any]:
    """Check database connectivity."""
    try:
        db.execute(text("SELECT 1")).fetchone()
        return {"status": "healthy", "dialect": db.get_bind().dialect.name}
    except SQLAlchemyError as e:
        return {"status": "unhealthy", "error": str(e)}


def check_broker() -> Dict[str, Any]:
    """Check the Redis broker used by the notification worker."""
    settings = get_settings()
    try:
        r = redis.from_url(
            settings.celery_broker,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        r.ping()
        info = r.info("server")
        r.close()
        return {"status": "healthy", "version": info.get("redis_version", "unknown")}
    except redis.RedisError as e:
        return {"status": "unhealthy", "error": str(e)}


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint.

    Returns 200 if the application is running.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": _now(),
    }


@router.get("/health/ready")
async def readiness_check(db: Session = Depends(get_db)):
    """
    Readiness check.

    Returns 503 when the database (or, in queued mode, the broker) is unreachable.
    """
    checks = {"database": check_database(db)}
    if get_settings().notification_mode == "queued":
        checks["broker"] = check_broker()

    unhealthy = [name for name, check in checks.items() if check["status"] == "unhealthy"]
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE if unhealthy else status.HTTP_200_OK,
        content={
            "status": "not_ready" if unhealthy else "ready",
            "checks": checks,
            "failed": unhealthy,
            "timestamp": _now(),
        },
    )
