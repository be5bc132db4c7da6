from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship as sa_relationship, validates

from .db import Base


def relationship(*args, **kwargs):
    """Wrap SQLAlchemy relationship to forbid lazy loading by default."""
    kwargs.setdefault("lazy", "raise")
    return sa_relationship(*args, **kwargs)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SourceType(str, Enum):
    generated = "generated"
    premade_segment = "premade_segment"


class Stage(str, Enum):
    invalid = "invalid"
    awaiting_tts = "awaiting_tts"
    awaiting_render = "awaiting_render"
    background_selected = "background_selected"
    awaiting_thumbnail = "awaiting_thumbnail"
    ready = "ready"


class SeriesStatus(str, Enum):
    pending_split = "pending_split"
    split_complete = "split_complete"
    failed = "failed"


class PremadeSeries(Base):
    __tablename__ = "premade_series"
    __table_args__ = (
        sa.Index("ix_premade_series_status_lease", "status", "lease_timestamp"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[str] = mapped_column(sa.String(64), nullable=False, index=True)
    source_path: Mapped[str] = mapped_column(sa.String(2048), nullable=False)
    segment_seconds: Mapped[int] = mapped_column(sa.Integer(), nullable=False)
    target_integration_id: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)
    status: Mapped[SeriesStatus] = mapped_column(
        sa.String(32), nullable=False, default=SeriesStatus.pending_split.value
    )
    error_message: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    lease_holder: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)
    lease_timestamp: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    split_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), nullable=False
    )

    segments: Mapped[list["WorkItem"]] = relationship(back_populates="series", passive_deletes=True)


class WorkItem(Base):
    __tablename__ = "work_items"
    __table_args__ = (
        sa.Index("ix_work_items_stage_created", "stage", "created_at"),
        sa.Index("ix_work_items_series", "series_id", "series_index"),
        sa.Index("ix_work_items_customer_source", "customer_id", "source_type"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    customer_id: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    title: Mapped[str | None] = mapped_column(sa.String(256), nullable=True)
    source_type: Mapped[SourceType] = mapped_column(sa.String(32), nullable=False)
    stage: Mapped[Stage] = mapped_column(sa.String(32), nullable=False, default=Stage.invalid.value)

    # Generated: script -> speech -> captions
    script_file_path: Mapped[str | None] = mapped_column(sa.String(2048), nullable=True)
    script_sha1: Mapped[str | None] = mapped_column(sa.String(40), nullable=True)
    wav_path: Mapped[str | None] = mapped_column(sa.String(2048), nullable=True)
    timestamps_path: Mapped[str | None] = mapped_column(sa.String(2048), nullable=True)
    audio_duration_seconds: Mapped[float | None] = mapped_column(sa.Float(), nullable=True)

    # Render outputs; background_file_path is the render-complete marker
    background_file_path: Mapped[str | None] = mapped_column(sa.String(2048), nullable=True)
    background_start_offset_seconds: Mapped[float | None] = mapped_column(sa.Float(), nullable=True)
    end_buffer_seconds_used: Mapped[float | None] = mapped_column(sa.Float(), nullable=True)

    # Best artifact so far; before render it holds the chosen background
    mp4_path: Mapped[str | None] = mapped_column(sa.String(2048), nullable=True)
    thumbnail_path: Mapped[str | None] = mapped_column(sa.String(2048), nullable=True)

    # Premade segments
    series_id: Mapped[uuid.UUID | None] = mapped_column(
        sa.Uuid(), sa.ForeignKey("premade_series.id", ondelete="CASCADE"), nullable=True
    )
    series_index: Mapped[int | None] = mapped_column(sa.Integer(), nullable=True)
    series_count: Mapped[int | None] = mapped_column(sa.Integer(), nullable=True)
    target_integration_id: Mapped[str | None] = mapped_column(sa.String(128), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=sa.func.now(), nullable=False
    )

    series: Mapped["PremadeSeries | None"] = relationship(back_populates="segments")
    scheduled_posts: Mapped[list["ScheduledPost"]] = relationship(back_populates="work_item", passive_deletes=True)

    @validates("source_type")
    def _validate_source_type(self, key, value):
        current = self.__dict__.get("source_type")
        if current is not None and current != value:
            raise ValueError(f"source_type is immutable (work item {self.id}: {current} -> {value})")
        return SourceType(value).value


class ScheduledPost(Base):
    __tablename__ = "scheduled_posts"
    __table_args__ = (
        sa.UniqueConstraint("integration_id", "scheduled_at", name="uq_scheduled_posts_integration_time"),
        sa.Index("ix_scheduled_posts_customer_time", "customer_id", "scheduled_at"),
        sa.Index("ix_scheduled_posts_series", "series_id", "series_index"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    customer_id: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    platform: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    integration_id: Mapped[str] = mapped_column(sa.String(128), nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    provider_post_id: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)
    provider_state: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    release_url: Mapped[str | None] = mapped_column(sa.String(2048), nullable=True)
    work_item_id: Mapped[int | None] = mapped_column(
        sa.ForeignKey("work_items.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # series position outlives the work item row when a series is re-split
    series_id: Mapped[uuid.UUID | None] = mapped_column(sa.Uuid(), nullable=True)
    series_index: Mapped[int | None] = mapped_column(sa.Integer(), nullable=True)
    status: Mapped[str] = mapped_column(sa.String(32), nullable=False, default="scheduled", server_default="scheduled")
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True, onupdate=utcnow)

    work_item: Mapped["WorkItem | None"] = relationship(back_populates="scheduled_posts")
