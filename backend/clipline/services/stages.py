"""
Work item stage machine.

Every pipeline stage reads and writes a work item through this module:
``stage_of`` derives the stage from the item's artifact fields, and each
``complete_*`` transition performs exactly one stage's completion write and
re-derives ``WorkItem.stage``. Workers select items by the stored stage.
"""
from __future__ import annotations

import uuid
from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from clipline.errors import PipelineError
from clipline.models import SourceType, Stage, WorkItem


class InvalidTransition(PipelineError):
    def __init__(self, item: WorkItem, transition: str, expected: Sequence[Stage]):
        super().__init__(
            f"cannot {transition} work item {item.id} in stage {item.stage}",
            component="stages",
            details={"expected": [s.value for s in expected]},
        )


def stage_of(item: WorkItem) -> Stage:
    if item.source_type == SourceType.premade_segment:
        if item.series_id is None or item.series_index is None or item.series_count is None:
            return Stage.invalid
        if not item.mp4_path:
            return Stage.invalid
        if not item.thumbnail_path:
            return Stage.awaiting_thumbnail
        return Stage.ready

    if not item.script_file_path:
        return Stage.invalid
    if not item.timestamps_path:
        return Stage.awaiting_tts
    if not item.wav_path:
        # alignment without audio cannot be rendered
        return Stage.invalid
    if not item.background_file_path:
        if item.mp4_path:
            return Stage.background_selected
        return Stage.awaiting_render
    if not item.thumbnail_path:
        return Stage.awaiting_thumbnail
    return Stage.ready


def refresh_stage(item: WorkItem) -> Stage:
    stage = stage_of(item)
    item.stage = stage.value
    return stage


def _require(item: WorkItem, transition: str, *expected: Stage) -> None:
    if stage_of(item) not in expected:
        raise InvalidTransition(item, transition, expected)


def new_generated_item(customer_id: str, script_file_path: str, *, title: str | None = None) -> WorkItem:
    if not script_file_path:
        raise ValueError("generated work item requires a script path")
    item = WorkItem(
        customer_id=customer_id,
        title=title,
        source_type=SourceType.generated.value,
        script_file_path=script_file_path,
    )
    refresh_stage(item)
    return item


def new_premade_segment(
    customer_id: str,
    *,
    series_id: uuid.UUID,
    series_index: int,
    series_count: int,
    mp4_path: str,
    thumbnail_path: str | None = None,
    target_integration_id: str | None = None,
    title: str | None = None,
) -> WorkItem:
    if series_id is None or series_index is None or series_count is None:
        raise ValueError("premade segment requires series id, index and count")
    if not 1 <= series_index <= series_count:
        raise ValueError(f"series index {series_index} out of range 1..{series_count}")
    item = WorkItem(
        customer_id=customer_id,
        title=title,
        source_type=SourceType.premade_segment.value,
        series_id=series_id,
        series_index=series_index,
        series_count=series_count,
        mp4_path=mp4_path,
        thumbnail_path=thumbnail_path,
        target_integration_id=target_integration_id,
    )
    refresh_stage(item)
    return item


def complete_tts(
    item: WorkItem,
    *,
    wav_path: str,
    timestamps_path: str,
    audio_duration_seconds: float,
    script_sha1: str | None = None,
) -> Stage:
    _require(item, "complete_tts", Stage.awaiting_tts)
    item.wav_path = wav_path
    item.timestamps_path = timestamps_path
    item.audio_duration_seconds = audio_duration_seconds
    if script_sha1:
        item.script_sha1 = script_sha1
    return refresh_stage(item)


def select_background(item: WorkItem, background_path: str) -> Stage:
    """Persist the chosen background before rendering starts."""
    _require(item, "select_background", Stage.awaiting_render, Stage.background_selected)
    item.mp4_path = background_path
    return refresh_stage(item)


def complete_render(
    item: WorkItem,
    *,
    background_path: str,
    start_offset_seconds: float,
    end_buffer_seconds: float,
    output_path: str,
) -> Stage:
    _require(item, "complete_render", Stage.awaiting_render, Stage.background_selected)
    item.background_file_path = background_path
    item.background_start_offset_seconds = start_offset_seconds
    item.end_buffer_seconds_used = end_buffer_seconds
    item.mp4_path = output_path
    return refresh_stage(item)


def complete_thumbnail(item: WorkItem, thumbnail_path: str) -> Stage:
    _require(item, "complete_thumbnail", Stage.awaiting_thumbnail)
    item.thumbnail_path = thumbnail_path
    return refresh_stage(item)


async def next_item_in_stage(
    session: AsyncSession,
    stages: Sequence[Stage],
    source_type: SourceType,
) -> WorkItem | None:
    """Oldest item of ``source_type`` currently in one of ``stages``."""
    stmt = (
        sa.select(WorkItem)
        .where(
            WorkItem.source_type == source_type.value,
            WorkItem.stage.in_([s.value for s in stages]),
        )
        .order_by(WorkItem.created_at.asc(), WorkItem.id.asc())
        .limit(1)
    )
    return (await session.execute(stmt)).scalars().first()
