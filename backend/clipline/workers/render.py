from __future__ import annotations

import logging
import random
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clipline.errors import InputDataError
from clipline.media.tool import MediaTool, RenderJob
from clipline.models import SourceType, Stage, WorkItem
from clipline.services.background import choose_background, plan_background_window
from clipline.services.captions import build_ass_from_timestamps
from clipline.services.stages import complete_render, next_item_in_stage, select_background
from clipline.workers.base import PollingWorker

logger = logging.getLogger(__name__)


class RenderWorker(PollingWorker):
    """Speech + captions burned over a background clip."""

    name = "render"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        media: MediaTool,
        *,
        backgrounds_root: str,
        lead_in_seconds: float = 1.0,
        end_buffer_seconds: float = 10.0,
        caption_offset_seconds: float = 0.0,
        poll_seconds: float = 10,
        rng: random.Random | None = None,
    ):
        super().__init__(session_factory, poll_seconds=poll_seconds)
        self.media = media
        self.backgrounds_root = backgrounds_root
        self.lead_in_seconds = lead_in_seconds
        self.end_buffer_seconds = end_buffer_seconds
        self.caption_offset_seconds = caption_offset_seconds
        self.rng = rng or random.Random()

    async def resolve_background(self, session: AsyncSession, item: WorkItem) -> Path:
        """Reuse a persisted choice, otherwise pick one and commit it before rendering."""
        if item.mp4_path and Path(item.mp4_path).is_file():
            return Path(item.mp4_path)

        chosen = choose_background(self.backgrounds_root, item.customer_id, self.rng)
        if chosen is None:
            raise InputDataError(
                f"no background videos for customer {item.customer_id}",
                component=self.name,
                details={"root": self.backgrounds_root},
            )
        select_background(item, str(chosen))
        await session.commit()
        logger.info(f"[render] work item {item.id}: background selected {chosen}")
        return chosen

    async def run_once(self, session: AsyncSession) -> bool:
        item = await next_item_in_stage(
            session, [Stage.awaiting_render, Stage.background_selected], SourceType.generated
        )
        if item is None:
            return False

        wav = Path(item.wav_path or "")
        timestamps = Path(item.timestamps_path or "")
        if not wav.is_file() or not timestamps.is_file():
            raise InputDataError(
                f"missing WAV or timestamps for work item {item.id}",
                component=self.name,
                details={"wav": item.wav_path, "timestamps": item.timestamps_path},
            )

        background = await self.resolve_background(session, item)

        audio_duration = item.audio_duration_seconds
        if audio_duration is None:
            audio_duration = await self.media.probe_duration(wav)
        bg_duration = await self.media.probe_duration(background)

        window = plan_background_window(
            bg_duration,
            audio_duration,
            lead_in_seconds=self.lead_in_seconds,
            end_buffer_seconds=self.end_buffer_seconds,
            explicit_offset=item.background_start_offset_seconds,
            rng=self.rng,
        )

        base_dir = Path(item.script_file_path).parent if item.script_file_path else wav.parent
        ass_path = base_dir / f"captions_{item.id:06d}.ass"
        ass_path.write_text(
            build_ass_from_timestamps(
                timestamps.read_text(encoding="utf-8"),
                offset_seconds=self.lead_in_seconds + self.caption_offset_seconds,
            ),
            encoding="utf-8",
        )

        output = base_dir / f"rendered_{item.id:06d}.mp4"
        logger.info(
            f"[render] work item {item.id}: bg={bg_duration:.2f}s start={window.offset_seconds:.2f}s "
            f"loop={window.loop} audio={audio_duration:.2f}s lead_in={self.lead_in_seconds:.2f}s "
            f"end_buffer={self.end_buffer_seconds:.2f}s -> {output}"
        )
        await self.media.render(
            RenderJob(
                background=background,
                offset_seconds=window.offset_seconds,
                loop=window.loop,
                audio=wav,
                subtitles=ass_path,
                duration_seconds=audio_duration + self.lead_in_seconds,
                audio_delay_seconds=self.lead_in_seconds,
                output=output,
            )
        )

        complete_render(
            item,
            background_path=str(background),
            start_offset_seconds=window.offset_seconds,
            end_buffer_seconds=self.end_buffer_seconds,
            output_path=str(output),
        )
        await session.commit()
        logger.info(f"[render] work item {item.id} rendered: {output}")
        return True
