"""
Operations endpoints: pipeline health for spotting stalled stages.
"""
from __future__ import annotations

from datetime import timedelta
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from clipline.services.pipeline_health import get_pipeline_health

router = APIRouter(prefix="/api/ops", tags=["ops"])


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    async with request.app.state.session_factory() as session:
        yield session


SessionDep = Depends(get_session)


@router.get("/health")
async def health_endpoint(request: Request, session: AsyncSession = SessionDep):
    """Work item counts per stage, series status, leases and scheduled posts."""
    settings = request.app.state.settings
    report = await get_pipeline_health(session, lease_ttl=timedelta(minutes=settings.series_lease_minutes))
    supervisor = getattr(request.app.state, "supervisor", None)
    report["workers_running"] = bool(supervisor and supervisor.running)
    return report
