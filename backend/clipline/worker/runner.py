"""
Worker supervisor.

Builds the enabled stage workers from Settings and runs each as its own
asyncio task. Workers share nothing but the database; stopping sets a common
event so sleeping loops exit, and cancels tasks still busy after the grace
period (in-flight work is abandoned, its item stays eligible).

Run headless with ``clipline-worker``; the FastAPI app starts the same
supervisor in-process when WORKERS_ENABLED is set.
"""
from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clipline.db import create_engine, create_session_factory
from clipline.integrations.elevenlabs import ElevenLabsClient, SpeechSynthesizer
from clipline.integrations.postiz import PostingProvider, PostizClient
from clipline.media.ffmpeg import FfmpegMediaTool
from clipline.media.tool import MediaTool
from clipline.settings import Settings, get_settings
from clipline.workers.base import PollingWorker
from clipline.workers.publisher import SchedulingWorker
from clipline.workers.render import RenderWorker
from clipline.workers.splitter import SeriesSplitterWorker
from clipline.workers.thumbnail import GeneratedThumbnailWorker, PremadeThumbnailWorker
from clipline.workers.tts import TtsWorker

logger = logging.getLogger(__name__)


class WorkerSupervisor:
    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        media: MediaTool | None = None,
        synthesizer: SpeechSynthesizer | None = None,
        provider: PostingProvider | None = None,
        shutdown_grace_sec: float = 10.0,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.media = media or FfmpegMediaTool.from_settings(settings)
        self.synthesizer = synthesizer
        self.provider = provider
        self.shutdown_grace_sec = shutdown_grace_sec
        self._stop = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    def build_workers(self) -> list[PollingWorker]:
        s = self.settings
        workers: list[PollingWorker] = []

        if s.tts_enabled:
            synthesizer = self.synthesizer
            if synthesizer is None and s.tts_configured:
                synthesizer = ElevenLabsClient.from_settings(s)
            if synthesizer is None:
                logger.warning("[supervisor] ELEVENLABS_KEY missing, TTS worker disabled")
            else:
                workers.append(TtsWorker(self.session_factory, synthesizer, poll_seconds=s.tts_poll_seconds))

        if s.render_enabled:
            workers.append(
                RenderWorker(
                    self.session_factory,
                    self.media,
                    backgrounds_root=s.backgrounds_root,
                    lead_in_seconds=s.lead_in_seconds,
                    end_buffer_seconds=s.bg_end_buffer_seconds,
                    caption_offset_seconds=s.caption_offset_seconds,
                    poll_seconds=s.render_poll_seconds,
                )
            )

        if s.thumbnail_enabled:
            workers.append(
                GeneratedThumbnailWorker(self.session_factory, self.media, poll_seconds=s.thumbnail_poll_seconds)
            )
            workers.append(
                PremadeThumbnailWorker(
                    self.session_factory, self.media, poll_seconds=s.premade_thumbnail_poll_seconds
                )
            )

        if s.splitter_enabled:
            workers.append(
                SeriesSplitterWorker(
                    self.session_factory,
                    self.media,
                    lease_minutes=s.series_lease_minutes,
                    tolerance_seconds=s.segment_tolerance_seconds,
                    poll_seconds=s.splitter_poll_seconds,
                )
            )

        if s.scheduler_enabled:
            provider = self.provider
            if provider is None and s.postiz_configured:
                provider = PostizClient.from_settings(s)
            if provider is None:
                logger.warning("[supervisor] POSTIZ_API_KEY/POSTIZ_BASE_PUBLIC_V1 missing, scheduler disabled")
            else:
                workers.append(
                    SchedulingWorker(
                        self.session_factory,
                        provider,
                        default_platform=s.default_platform,
                        lead_minutes=s.schedule_lead_minutes,
                        poll_seconds=s.scheduler_poll_seconds,
                    )
                )

        return workers

    def prepare_dirs(self) -> None:
        """Create the premade drop folder customers upload series into."""
        root = self.settings.premade_root
        if root and self.settings.splitter_enabled:
            Path(root).mkdir(parents=True, exist_ok=True)
            logger.info(f"[supervisor] premade root {root}")

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def start(self) -> list[PollingWorker]:
        if self.running:
            return []
        self._stop.clear()
        self.prepare_dirs()
        workers = self.build_workers()
        self._tasks = [asyncio.create_task(w.run(self._stop), name=f"worker:{w.name}") for w in workers]
        logger.info(f"[supervisor] started {len(workers)} workers: {', '.join(w.name for w in workers)}")
        return workers

    async def stop(self) -> None:
        self._stop.set()
        if not self._tasks:
            return
        _, pending = await asyncio.wait(self._tasks, timeout=self.shutdown_grace_sec)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info(f"[supervisor] cancelled {len(pending)} busy workers")
        self._tasks = []
        logger.info("[supervisor] all workers stopped")

    def request_stop(self) -> None:
        self._stop.set()

    async def wait(self) -> None:
        await self._stop.wait()


async def run_forever(settings: Settings) -> None:
    engine = create_engine(settings.async_database_url)
    supervisor = WorkerSupervisor(settings, create_session_factory(engine))

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, supervisor.request_stop)
        except NotImplementedError:
            pass

    supervisor.start()
    try:
        await supervisor.wait()
    finally:
        await supervisor.stop()
        await engine.dispose()


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run_forever(settings))


if __name__ == "__main__":
    main()
