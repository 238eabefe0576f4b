"""
SmartBrief Backend — Health Check Route
=========================================

What:  Unauthenticated probe for load balancers and monitors.
How:   `SELECT 1` through a normal request session, plus the gateway's
       configuration report. Providers are not called: a probe every few
       seconds must not spend API quota.

Status levels:
    healthy:   database reachable, every provider configured and breaker closed
    degraded:  database reachable, some provider unconfigured or breaker open
    unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from smartbrief import __version__
from smartbrief.database import get_db_session
from smartbrief.dependencies import get_orchestrator
from smartbrief.schemas.summary import HealthResponse
from smartbrief.services.circuit_breaker import CircuitBreaker
from smartbrief.services.orchestrator import RequestOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.monotonic()


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check(
    response: Response,
    db: AsyncSession = Depends(get_db_session),
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
) -> HealthResponse:
    db_status = "connected"
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        db_status = "disconnected"
        await db.rollback()
        logger.warning("Health check: database unreachable: %s", e)

    providers = orchestrator.gateway.check_configuration()
    providers_ok = all(
        info["configured"] and info["circuit_breaker"]["state"] == CircuitBreaker.CLOSED
        for info in providers.values()
    )

    if db_status != "connected":
        overall = "unhealthy"
        response.status_code = 503
    elif providers_ok:
        overall = "healthy"
    else:
        overall = "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        providers=providers,
        uptime_seconds=round(time.monotonic() - _start_time, 2),
    )
