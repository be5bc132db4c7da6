from __future__ import annotations

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clipline.errors import InputDataError

logger = logging.getLogger(__name__)


class PollingWorker:
    """Poll-execute-sleep loop over the work item store.

    Subclasses implement ``run_once``: pick at most one item, process it and
    commit its completion write. It returns True when an item advanced, in
    which case the next poll happens immediately; otherwise the loop sleeps
    ``poll_seconds``.
    """

    name = "worker"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, poll_seconds: float):
        self.session_factory = session_factory
        self.poll_seconds = poll_seconds

    async def run_once(self, session: AsyncSession) -> bool:
        raise NotImplementedError

    async def tick(self) -> bool:
        """One cycle with its own session; errors are logged, never raised."""
        try:
            async with self.session_factory() as session:
                return await self.run_once(session)
        except asyncio.CancelledError:
            raise
        except InputDataError as exc:
            logger.error(f"[{self.name}] input data error: {exc}")
        except Exception:
            logger.exception(f"[{self.name}] cycle failed")
        return False

    async def run(self, stop_event: asyncio.Event) -> None:
        logger.info(f"[{self.name}] started, poll every {self.poll_seconds}s")
        while not stop_event.is_set():
            advanced = await self.tick()
            if advanced:
                continue
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info(f"[{self.name}] stopped")
