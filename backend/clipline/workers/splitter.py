from __future__ import annotations

import logging
import shutil
import uuid
from datetime import timedelta
from pathlib import Path

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clipline.errors import SeriesSplitError
from clipline.media.tool import MediaTool
from clipline.models import PremadeSeries, SeriesStatus, WorkItem, utcnow
from clipline.services.claims import claim_next_series, finish_series, make_holder_id
from clipline.services.segments import plan_segment_merge
from clipline.services.stages import new_premade_segment
from clipline.services.thumbnail_text import premade_thumbnail_spec
from clipline.workers.base import PollingWorker

logger = logging.getLogger(__name__)


def segments_dir(series: PremadeSeries) -> Path:
    return Path(series.source_path).parent / "segments" / series.id.hex


class SeriesSplitterWorker(PollingWorker):
    """Claims a pending series and fans it out into ordered segment items.

    A failed split is terminal: the series is marked failed with the error
    and never retried automatically. Each attempt writes into its own
    directory under ``segments_dir``, and both outcomes are written only
    while this worker still holds the lease, so a worker that outlived its
    lease cannot touch a series another worker has taken over.
    """

    name = "splitter"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        media: MediaTool,
        *,
        lease_minutes: int = 10,
        tolerance_seconds: float = 0.25,
        poll_seconds: float = 15,
        holder: str | None = None,
    ):
        super().__init__(session_factory, poll_seconds=poll_seconds)
        self.media = media
        self.lease_ttl = timedelta(minutes=lease_minutes)
        self.tolerance_seconds = tolerance_seconds
        self.holder = holder or make_holder_id()
        logger.info(f"[splitter] lease holder {self.holder}")

    async def run_once(self, session: AsyncSession) -> bool:
        series = await claim_next_series(session, self.holder, self.lease_ttl)
        if series is None:
            return False

        series_id = series.id
        logger.info(f"[splitter] claimed series {series_id} ({series.source_path})")
        try:
            count = await self.split_series(session, series)
        except Exception as exc:
            await session.rollback()
            logger.exception(f"[splitter] series {series_id} failed")
            await self.mark_failed(session, series_id, exc)
            return True

        if count is not None:
            logger.info(f"[splitter] series {series_id} split into {count} parts")
        return True

    async def split_series(self, session: AsyncSession, series: PremadeSeries) -> int | None:
        """Split, merge the short tail and replace the series' segment rows.

        Returns the number of parts, or None when the lease was lost before
        the result could be written.
        """
        source = Path(series.source_path)
        if not source.is_file():
            raise SeriesSplitError(
                "source video missing", component=self.name, details={"path": series.source_path}
            )

        series_id = series.id
        root = segments_dir(series)
        out_dir = root / uuid.uuid4().hex[:12]
        out_dir.mkdir(parents=True, exist_ok=True)

        try:
            items = await self._build_segments(series, source, out_dir)
            completed = await finish_series(
                session,
                series_id,
                self.holder,
                status=SeriesStatus.split_complete.value,
                split_at=utcnow(),
                error_message=None,
            )
            if completed:
                # replace segments from an earlier attempt; posts keep their history
                await session.execute(
                    sa.delete(WorkItem)
                    .where(WorkItem.series_id == series_id)
                    .execution_options(synchronize_session=False)
                )
                session.add_all(items)
                await session.commit()
                self._sweep_attempts(root, keep=out_dir)
                return len(items)
        except BaseException:
            shutil.rmtree(out_dir, ignore_errors=True)
            raise

        await session.rollback()
        shutil.rmtree(out_dir, ignore_errors=True)
        logger.warning(f"[splitter] lease on series {series_id} lost to another worker, discarded {len(items)} parts")
        return None

    @staticmethod
    def _sweep_attempts(root: Path, keep: Path) -> None:
        # earlier or abandoned attempts; only the committed one backs segment rows
        for attempt in root.iterdir():
            if attempt.is_dir() and attempt != keep:
                shutil.rmtree(attempt, ignore_errors=True)

    async def _build_segments(self, series: PremadeSeries, source: Path, out_dir: Path) -> list[WorkItem]:
        parts = await self.media.split(source, series.segment_seconds, out_dir)
        if not parts:
            raise SeriesSplitError("split produced no parts", component=self.name)

        durations = [await self.media.probe_duration(p) for p in parts]
        groups = plan_segment_merge(durations, series.segment_seconds, self.tolerance_seconds)

        final: list[tuple[int, Path, float]] = []
        for group in groups:
            target = out_dir / f"part_{group.index:03d}.mp4"
            if len(group.parts) > 1:
                merged = out_dir / f"merged_{group.index:03d}.mp4"
                await self.media.concat([parts[i] for i in group.parts], merged)
                for i in group.parts:
                    parts[i].unlink(missing_ok=True)
                merged.replace(target)
                logger.info(f"[splitter] merged short tail into part {group.index} ({group.duration:.2f}s)")
            elif parts[group.parts[0]] != target:
                parts[group.parts[0]].replace(target)
            final.append((group.index, target, group.duration))

        count = len(final)
        items: list[WorkItem] = []
        for index, path, duration in final:
            spec = premade_thumbnail_spec(f"PART {index}")
            thumb = out_dir / f"thumb_part_{index:03d}.jpg"
            await self.media.frame(path, thumb, spec.frame_time(duration), spec)
            items.append(
                new_premade_segment(
                    series.customer_id,
                    series_id=series.id,
                    series_index=index,
                    series_count=count,
                    mp4_path=str(path),
                    thumbnail_path=str(thumb),
                    target_integration_id=series.target_integration_id,
                )
            )
        return items

    async def mark_failed(self, session: AsyncSession, series_id: uuid.UUID, exc: Exception) -> bool:
        failed = await finish_series(
            session,
            series_id,
            self.holder,
            status=SeriesStatus.failed.value,
            error_message=str(exc)[:2000],
        )
        if not failed:
            await session.rollback()
            logger.warning(f"[splitter] lease on series {series_id} lost, failure not recorded: {exc}")
            return False
        await session.commit()
        return True
