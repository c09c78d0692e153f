"""
BizzyLink Backend: Health Check Route
======================================

What:  Liveness/readiness check for Docker and load balancers.
How:   Runs `SELECT 1` against the database.

Status levels:
    healthy:   database answered (HTTP 200)
    degraded:  database unreachable (HTTP 503, stop routing traffic)
"""

import logging
import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from bizzylink import __version__
from bizzylink.database import engine
from bizzylink.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check():
    db_status = "connected"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "unreachable"
        overall = "degraded"
        logger.warning("Health check: database unreachable: %s", str(e))

    body = HealthResponse(
        status=overall,
        database=db_status,
        uptime_seconds=round(time.time() - _start_time, 2),
        version=__version__,
    )
    if overall != "healthy":
        return JSONResponse(status_code=503, content=body.model_dump())
    return body
