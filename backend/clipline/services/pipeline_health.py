from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from clipline.models import PremadeSeries, ScheduledPost, SeriesStatus, WorkItem, utcnow


async def get_pipeline_health(
    session: AsyncSession,
    *,
    lease_ttl: timedelta,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Queue depth per stage, series split state and lease status."""
    now = now or utcnow()
    cutoff = now - lease_ttl

    stage_rows = await session.execute(
        sa.select(WorkItem.source_type, WorkItem.stage, sa.func.count(WorkItem.id))
        .group_by(WorkItem.source_type, WorkItem.stage)
    )
    stages: dict[str, dict[str, int]] = {}
    for source_type, stage, count in stage_rows.all():
        stages.setdefault(source_type, {})[stage] = count

    series_rows = await session.execute(
        sa.select(PremadeSeries.status, sa.func.count(PremadeSeries.id)).group_by(PremadeSeries.status)
    )
    series = {status: count for status, count in series_rows.all()}

    pending = PremadeSeries.status == SeriesStatus.pending_split.value
    leased_q = await session.execute(
        sa.select(sa.func.count(PremadeSeries.id)).where(pending, PremadeSeries.lease_timestamp >= cutoff)
    )
    expired_q = await session.execute(
        sa.select(sa.func.count(PremadeSeries.id)).where(pending, PremadeSeries.lease_timestamp < cutoff)
    )

    post_rows = await session.execute(
        sa.select(ScheduledPost.status, sa.func.count(ScheduledPost.id)).group_by(ScheduledPost.status)
    )

    return {
        "work_items": stages,
        "series": series,
        "leases": {
            "active": leased_q.scalar() or 0,
            "expired": expired_q.scalar() or 0,
        },
        "scheduled_posts": {status: count for status, count in post_rows.all()},
        "checked_at": now.isoformat(),
    }
