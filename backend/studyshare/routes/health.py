"""
StudyShare Backend - Health Check Route
========================================

What:  GET /health for container probes and load balancers.
How:   Runs SELECT 1 against the platform database and checks that the AI
       gateway key is configured. No completion is requested.

Status levels:
    healthy    database reachable, AI gateway configured
    degraded   database reachable, AI gateway not configured
    unhealthy  database unreachable or not configured
"""

import logging
import time

from fastapi import APIRouter
from sqlalchemy import text

from studyshare import __version__
from studyshare.database import get_engine
from studyshare.exceptions import ConfigurationError
from studyshare.schemas.note import HealthResponse
from studyshare.services.ai_gateway_service import ai_gateway_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check() -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except ConfigurationError:
        db_status = "not_configured"
        overall = "unhealthy"
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    ai_status = "configured" if ai_gateway_service.is_configured() else "not_configured"
    if ai_status != "configured" and overall == "healthy":
        overall = "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        ai_gateway=ai_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
