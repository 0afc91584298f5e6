"""
Health check endpoint for the Relaycast gateway.

Reports liveness plus the number of sessions currently registered.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

from rc_common.logging import SERVICE_NAME

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    service: str
    active_sessions: int


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    manager = getattr(request.app.state, "session_manager", None)
    active = len(manager.registry) if manager is not None else 0
    return HealthResponse(status="ok", service=SERVICE_NAME, active_sessions=active)
