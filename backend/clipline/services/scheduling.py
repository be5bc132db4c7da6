"""
Publication scheduling rules.

- only premade segments are published, and only in series order: part N is
  eligible once part N-1 has a scheduled post
- a part counts as posted by work item or by (series, index), so a post
  survives a re-split that replaces the segment rows
- oldest series progress first (created_at, series_id, series_index)
- a slot collision on the same integration shifts the post by one minute,
  checked once
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from clipline.errors import PipelineError
from clipline.integrations.postiz import IntegrationInfo
from clipline.models import ScheduledPost, SourceType, Stage, WorkItem

COLLISION_SHIFT = timedelta(minutes=1)


class NoIntegrationError(PipelineError):
    pass


def _posted(post, series_id, series_index, item_id=None):
    same_part = sa.and_(post.series_id == series_id, post.series_index == series_index)
    if item_id is None:
        return same_part
    return sa.or_(post.work_item_id == item_id, same_part)


def schedulable_items_query():
    own_post = aliased(ScheduledPost)
    prev = aliased(WorkItem)
    prev_post = aliased(ScheduledPost)
    prev_part_post = aliased(ScheduledPost)

    has_own_post = sa.exists().where(
        _posted(own_post, WorkItem.series_id, WorkItem.series_index, WorkItem.id)
    )
    previous_published = sa.or_(
        sa.exists().where(_posted(prev_part_post, WorkItem.series_id, WorkItem.series_index - 1)),
        sa.exists().where(
            prev.series_id == WorkItem.series_id,
            prev.series_index == WorkItem.series_index - 1,
            prev_post.work_item_id == prev.id,
        ),
    )
    return (
        sa.select(WorkItem)
        .where(
            WorkItem.source_type == SourceType.premade_segment.value,
            WorkItem.stage == Stage.ready.value,
            ~has_own_post,
            sa.or_(WorkItem.series_index == 1, previous_published),
        )
        .order_by(WorkItem.created_at.asc(), WorkItem.series_id.asc(), WorkItem.series_index.asc())
    )


async def next_schedulable_item(session: AsyncSession) -> WorkItem | None:
    return (await session.execute(schedulable_items_query().limit(1))).scalars().first()


def resolve_integration(
    integrations: Sequence[IntegrationInfo],
    target_integration_id: str | None,
    default_platform: str,
) -> IntegrationInfo:
    enabled = [i for i in integrations if not i.disabled]
    if target_integration_id:
        for integration in enabled:
            if integration.id == target_integration_id:
                return integration
        raise NoIntegrationError(
            "target integration not found or disabled",
            component="scheduler",
            details={"integration_id": target_integration_id},
        )
    wanted = default_platform.strip().lower()
    for integration in enabled:
        if (integration.identifier or "").lower() == wanted:
            return integration
    raise NoIntegrationError(
        "no enabled integration for default platform",
        component="scheduler",
        details={"platform": default_platform},
    )


async def slot_taken(session: AsyncSession, integration_id: str, when: datetime) -> bool:
    stmt = sa.select(sa.func.count(ScheduledPost.id)).where(
        ScheduledPost.integration_id == integration_id,
        ScheduledPost.scheduled_at == when,
    )
    return ((await session.execute(stmt)).scalar() or 0) > 0


async def resolve_slot(
    session: AsyncSession,
    integration_id: str,
    *,
    lead_minutes: int,
    now: datetime | None = None,
) -> datetime:
    """now + lead (whole seconds, UTC), shifted once by a minute on collision."""
    now = now or datetime.now(timezone.utc)
    when = (now + timedelta(minutes=lead_minutes)).astimezone(timezone.utc).replace(microsecond=0)
    if await slot_taken(session, integration_id, when):
        when = when + COLLISION_SHIFT
    return when
