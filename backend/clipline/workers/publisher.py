from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clipline.errors import InputDataError
from clipline.integrations.postiz import PostingProvider
from clipline.models import ScheduledPost, utcnow
from clipline.services.post_builders import (
    build_post_item,
    build_schedule_body,
    make_settings,
    platform_key,
    post_content,
)
from clipline.services.scheduling import next_schedulable_item, resolve_integration, resolve_slot
from clipline.workers.base import PollingWorker

logger = logging.getLogger(__name__)


class SchedulingWorker(PollingWorker):
    """Uploads the next publishable segment and schedules it on the provider.

    The provider call is not idempotent: a crash between the provider
    accepting the post and the local commit can produce a duplicate remote
    post on the next cycle.
    """

    name = "scheduler"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        provider: PostingProvider,
        *,
        default_platform: str = "youtube",
        lead_minutes: int = 5,
        poll_seconds: float = 30,
        clock: Callable[[], datetime] = utcnow,
    ):
        super().__init__(session_factory, poll_seconds=poll_seconds)
        self.provider = provider
        self.default_platform = default_platform
        self.lead_minutes = lead_minutes
        self.clock = clock

    async def run_once(self, session: AsyncSession) -> bool:
        item = await next_schedulable_item(session)
        if item is None:
            return False

        video = Path(item.mp4_path or "")
        if not item.mp4_path or not video.is_file():
            raise InputDataError(
                f"MP4 missing for work item {item.id}", component=self.name, details={"path": item.mp4_path}
            )

        integrations = await self.provider.list_integrations()
        integration = resolve_integration(integrations, item.target_integration_id, self.default_platform)
        platform = platform_key(integration.identifier) or self.default_platform
        when = await resolve_slot(session, integration.id, lead_minutes=self.lead_minutes, now=self.clock())

        uploads = [await self.provider.upload(video)]
        if item.thumbnail_path and Path(item.thumbnail_path).is_file():
            uploads.append(await self.provider.upload(Path(item.thumbnail_path)))

        content = post_content(item)
        body = build_schedule_body(
            when,
            [build_post_item(integration.id, content, uploads, make_settings(platform, content))],
        )
        post_id = await self.provider.schedule_post(body)
        if not post_id:
            logger.warning(
                f"[scheduler] provider returned no post id for work item {item.id} on {integration.id} "
                f"at {when.isoformat()}, stored without provider_post_id"
            )

        session.add(
            ScheduledPost(
                customer_id=item.customer_id,
                platform=platform,
                integration_id=integration.id,
                scheduled_at=when,
                provider_post_id=post_id,
                provider_state="QUEUE",
                work_item_id=item.id,
                series_id=item.series_id,
                series_index=item.series_index,
                status="scheduled",
            )
        )
        await session.commit()
        logger.info(
            f"[scheduler] work item {item.id} (series {item.series_id} part {item.series_index}/{item.series_count}) "
            f"scheduled on {platform}:{integration.id} at {when.isoformat()} post={post_id}"
        )
        return True
