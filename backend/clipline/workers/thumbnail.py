from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clipline.errors import InputDataError
from clipline.media.tool import MediaTool
from clipline.models import SourceType, Stage, WorkItem
from clipline.services.stages import complete_thumbnail, next_item_in_stage
from clipline.services.thumbnail_text import (
    ThumbnailSpec,
    generated_thumbnail_spec,
    premade_label,
    premade_thumbnail_spec,
)
from clipline.workers.base import PollingWorker

logger = logging.getLogger(__name__)


class _ThumbnailWorker(PollingWorker):
    source_type: SourceType

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], media: MediaTool, *, poll_seconds: float):
        super().__init__(session_factory, poll_seconds=poll_seconds)
        self.media = media

    def spec_for(self, item: WorkItem) -> ThumbnailSpec:
        raise NotImplementedError

    def thumbnail_path(self, item: WorkItem, video: Path) -> Path:
        raise NotImplementedError

    async def run_once(self, session: AsyncSession) -> bool:
        item = await next_item_in_stage(session, [Stage.awaiting_thumbnail], self.source_type)
        if item is None:
            return False

        video = Path(item.mp4_path or "")
        if not item.mp4_path or not video.is_file():
            raise InputDataError(
                f"MP4 missing for work item {item.id}",
                component=self.name,
                details={"path": item.mp4_path},
            )

        spec = self.spec_for(item)
        output = self.thumbnail_path(item, video)
        duration = await self.media.probe_duration(video)
        at = spec.frame_time(duration)
        logger.info(
            f"[{self.name}] work item {item.id}: font={spec.font_size} at={at:.2f}s "
            f"text={spec.text.replace(chr(10), ' / ')}"
        )
        await self.media.frame(video, output, at, spec)

        complete_thumbnail(item, str(output))
        await session.commit()
        logger.info(f"[{self.name}] work item {item.id} thumbnail: {output}")
        return True


class GeneratedThumbnailWorker(_ThumbnailWorker):
    name = "thumbnail"
    source_type = SourceType.generated

    def spec_for(self, item: WorkItem) -> ThumbnailSpec:
        script_text = None
        if item.script_file_path and Path(item.script_file_path).is_file():
            script_text = Path(item.script_file_path).read_text(encoding="utf-8", errors="replace")
        return generated_thumbnail_spec(script_text)

    def thumbnail_path(self, item: WorkItem, video: Path) -> Path:
        return video.parent / f"thumb_{item.id:06d}.jpg"


class PremadeThumbnailWorker(_ThumbnailWorker):
    name = "premade-thumbnail"
    source_type = SourceType.premade_segment

    def spec_for(self, item: WorkItem) -> ThumbnailSpec:
        return premade_thumbnail_spec(premade_label(item.series_index, item.series_count))

    def thumbnail_path(self, item: WorkItem, video: Path) -> Path:
        return video.parent / f"thumb_part_{item.series_index:03d}.jpg"
