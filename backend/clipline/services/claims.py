"""
Lease-based claim of pending series rows.

A claim is a compare-and-swap on the lease columns: the candidate row is
read (``FOR UPDATE SKIP LOCKED`` where the engine supports row locks), then
updated only if it is still pending and its lease is free or expired. The
row count of that conditional update decides which claimer won, so two
pollers can never both hold an unexpired lease on the same series. The
final write is conditional the same way: a worker whose lease was taken over
writes nothing.
"""
from __future__ import annotations

import logging
import socket
import uuid
from datetime import datetime, timedelta

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from clipline.models import PremadeSeries, SeriesStatus, utcnow

logger = logging.getLogger(__name__)

HOLDER_MAX_LEN = 64


def make_holder_id(prefix: str = "splitter") -> str:
    holder = f"{prefix}:{socket.gethostname()}:{uuid.uuid4().hex}"
    return holder[:HOLDER_MAX_LEN]


def _claimable(cutoff: datetime):
    return sa.and_(
        PremadeSeries.status == SeriesStatus.pending_split.value,
        sa.or_(PremadeSeries.lease_timestamp.is_(None), PremadeSeries.lease_timestamp < cutoff),
    )


async def claim_next_series(
    session: AsyncSession,
    holder: str,
    lease_ttl: timedelta,
    now: datetime | None = None,
) -> PremadeSeries | None:
    """Lease the oldest claimable series for ``holder``; None if nothing was won."""
    now = now or utcnow()
    cutoff = now - lease_ttl

    candidate = (
        sa.select(PremadeSeries.id)
        .where(_claimable(cutoff))
        .order_by(PremadeSeries.created_at.asc(), PremadeSeries.id.asc())
        .limit(1)
        .with_for_update(skip_locked=True)
    )
    series_id = (await session.execute(candidate)).scalar_one_or_none()
    if series_id is None:
        await session.rollback()
        return None

    result = await session.execute(
        sa.update(PremadeSeries)
        .where(PremadeSeries.id == series_id, _claimable(cutoff))
        .values(lease_timestamp=now, lease_holder=holder)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    if result.rowcount != 1:
        logger.info(f"[claims] lost race for series {series_id}")
        return None

    return await session.get(PremadeSeries, series_id, populate_existing=True)


async def finish_series(
    session: AsyncSession,
    series_id: uuid.UUID,
    holder: str,
    **values,
) -> bool:
    """Write the outcome of a claimed series if ``holder`` still owns it.

    The update only matches a row that is still pending and still leased to
    ``holder``; False means another worker has reclaimed or finished the
    series and nothing was written. The caller commits or rolls back.
    """
    result = await session.execute(
        sa.update(PremadeSeries)
        .where(
            PremadeSeries.id == series_id,
            PremadeSeries.lease_holder == holder,
            PremadeSeries.status == SeriesStatus.pending_split.value,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
