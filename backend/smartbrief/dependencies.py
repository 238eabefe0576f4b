"""
SmartBrief Backend — FastAPI Dependencies
===========================================

What:  Getters that hand route handlers the components built by `create_app`.
Why:   Components live on `app.state` instead of module globals, so a test can
       build an app with its own gateway or ledger and nothing leaks between
       app instances.
How:   Each getter reads `request.app.state`; `get_current_principal` runs the
       AuthGate against the request's own database session.
"""

from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from smartbrief.database import get_db_session
from smartbrief.services.auth_service import AuthGate, Principal
from smartbrief.services.orchestrator import RequestOrchestrator


def get_auth_gate(request: Request) -> AuthGate:
    return request.app.state.auth_gate


def get_orchestrator(request: Request) -> RequestOrchestrator:
    return request.app.state.orchestrator


async def get_current_principal(
    authorization: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db_session),
    auth_gate: AuthGate = Depends(get_auth_gate),
) -> Principal:
    """Resolves the bearer token; raises UnauthenticatedError (401) or AuthError (500)."""
    return await auth_gate.authenticate(db, authorization)
