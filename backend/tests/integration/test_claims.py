"""Lease-based series claims against a real database."""

import asyncio
from datetime import timedelta

import sqlalchemy as sa

from clipline.models import PremadeSeries, SeriesStatus, utcnow
from clipline.services.claims import HOLDER_MAX_LEN, claim_next_series, finish_series, make_holder_id

LEASE = timedelta(minutes=10)


async def _add_series(session_factory, **fields):
    values = dict(customer_id="acme", source_path="/premade/acme/show.mp4", segment_seconds=60)
    values.update(fields)
    async with session_factory() as session:
        series = PremadeSeries(**values)
        session.add(series)
        await session.commit()
        return series.id


async def _load(session_factory, series_id):
    async with session_factory() as session:
        return await session.get(PremadeSeries, series_id)


def test_holder_id_is_bounded():
    holder = make_holder_id("splitter-with-a-rather-long-prefix-for-testing-purposes")
    assert len(holder) <= HOLDER_MAX_LEN
    assert make_holder_id() != make_holder_id()


async def test_claim_sets_lease(session_factory):
    series_id = await _add_series(session_factory)

    async with session_factory() as session:
        claimed = await claim_next_series(session, "worker-a", LEASE)

    assert claimed is not None
    assert claimed.id == series_id
    assert claimed.lease_holder == "worker-a"
    assert claimed.lease_timestamp is not None


async def test_nothing_to_claim(session_factory):
    async with session_factory() as session:
        assert await claim_next_series(session, "worker-a", LEASE) is None


async def test_concurrent_claimers_single_winner(session_factory):
    series_id = await _add_series(session_factory)

    async def claim(n):
        async with session_factory() as session:
            series = await claim_next_series(session, f"worker-{n}", LEASE)
            return series.id if series is not None else None

    results = await asyncio.gather(*(claim(n) for n in range(6)))

    winners = [r for r in results if r is not None]
    assert winners == [series_id]
    stored = await _load(session_factory, series_id)
    assert stored.lease_holder.startswith("worker-")


async def test_active_lease_blocks_second_claim(session_factory):
    await _add_series(session_factory)

    async with session_factory() as session:
        assert await claim_next_series(session, "worker-a", LEASE) is not None
    async with session_factory() as session:
        assert await claim_next_series(session, "worker-b", LEASE) is None


async def test_expired_lease_is_reclaimable(session_factory):
    series_id = await _add_series(
        session_factory, lease_holder="dead-worker", lease_timestamp=utcnow() - timedelta(minutes=30)
    )

    async with session_factory() as session:
        claimed = await claim_next_series(session, "worker-b", LEASE)

    assert claimed is not None
    assert claimed.id == series_id
    assert claimed.lease_holder == "worker-b"


async def test_terminal_series_not_claimed(session_factory):
    await _add_series(session_factory, status=SeriesStatus.failed.value)
    await _add_series(session_factory, status=SeriesStatus.split_complete.value)

    async with session_factory() as session:
        assert await claim_next_series(session, "worker-a", LEASE) is None


async def test_oldest_series_claimed_first(session_factory):
    now = utcnow()
    newer = await _add_series(session_factory, created_at=now)
    older = await _add_series(session_factory, created_at=now - timedelta(hours=1))

    async with session_factory() as session:
        first = await claim_next_series(session, "worker-a", LEASE)
    async with session_factory() as session:
        second = await claim_next_series(session, "worker-a", LEASE)

    assert [first.id, second.id] == [older, newer]

    async with session_factory() as session:
        leased = (await session.execute(
            sa.select(sa.func.count(PremadeSeries.id)).where(PremadeSeries.lease_holder == "worker-a")
        )).scalar()
    assert leased == 2


async def test_holder_finishes_its_series(session_factory):
    series_id = await _add_series(session_factory)
    async with session_factory() as session:
        await claim_next_series(session, "worker-a", LEASE)

    async with session_factory() as session:
        assert await finish_series(session, series_id, "worker-a", status=SeriesStatus.split_complete.value)
        await session.commit()

    assert (await _load(session_factory, series_id)).status == SeriesStatus.split_complete


async def test_reclaimed_series_rejects_former_holder(session_factory):
    series_id = await _add_series(session_factory)
    async with session_factory() as session:
        await claim_next_series(session, "worker-a", LEASE, now=utcnow() - timedelta(hours=1))
    async with session_factory() as session:
        assert (await claim_next_series(session, "worker-b", LEASE)).id == series_id

    async with session_factory() as session:
        assert not await finish_series(
            session, series_id, "worker-a", status=SeriesStatus.failed.value, error_message="late"
        )
        await session.rollback()

    series = await _load(session_factory, series_id)
    assert series.status == SeriesStatus.pending_split
    assert series.lease_holder == "worker-b"
    assert series.error_message is None


async def test_finished_series_cannot_be_finished_again(session_factory):
    series_id = await _add_series(session_factory)
    async with session_factory() as session:
        await claim_next_series(session, "worker-a", LEASE)
    async with session_factory() as session:
        assert await finish_series(session, series_id, "worker-a", status=SeriesStatus.split_complete.value)
        await session.commit()

    async with session_factory() as session:
        assert not await finish_series(session, series_id, "worker-a", status=SeriesStatus.failed.value)
        await session.rollback()

    assert (await _load(session_factory, series_id)).status == SeriesStatus.split_complete
