"""create pipeline tables: premade_series, work_items, scheduled_posts

Revision ID: 0001_pipeline_tables
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "0001_pipeline_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "premade_series",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("customer_id", sa.String(length=64), nullable=False),
        sa.Column("source_path", sa.String(length=2048), nullable=False),
        sa.Column("segment_seconds", sa.Integer(), nullable=False),
        sa.Column("target_integration_id", sa.String(length=128), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending_split"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("lease_holder", sa.String(length=128), nullable=True),
        sa.Column("lease_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("split_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_premade_series_customer_id", "premade_series", ["customer_id"])
    op.create_index("ix_premade_series_status_lease", "premade_series", ["status", "lease_timestamp"])

    op.create_table(
        "work_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("customer_id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=256), nullable=True),
        sa.Column("source_type", sa.String(length=32), nullable=False),
        sa.Column("stage", sa.String(length=32), nullable=False, server_default="invalid"),
        sa.Column("script_file_path", sa.String(length=2048), nullable=True),
        sa.Column("script_sha1", sa.String(length=40), nullable=True),
        sa.Column("wav_path", sa.String(length=2048), nullable=True),
        sa.Column("timestamps_path", sa.String(length=2048), nullable=True),
        sa.Column("audio_duration_seconds", sa.Float(), nullable=True),
        sa.Column("background_file_path", sa.String(length=2048), nullable=True),
        sa.Column("background_start_offset_seconds", sa.Float(), nullable=True),
        sa.Column("end_buffer_seconds_used", sa.Float(), nullable=True),
        sa.Column("mp4_path", sa.String(length=2048), nullable=True),
        sa.Column("thumbnail_path", sa.String(length=2048), nullable=True),
        sa.Column(
            "series_id",
            sa.Uuid(),
            sa.ForeignKey("premade_series.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("series_index", sa.Integer(), nullable=True),
        sa.Column("series_count", sa.Integer(), nullable=True),
        sa.Column("target_integration_id", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_work_items_stage_created", "work_items", ["stage", "created_at"])
    op.create_index("ix_work_items_series", "work_items", ["series_id", "series_index"])
    op.create_index("ix_work_items_customer_source", "work_items", ["customer_id", "source_type"])
    op.create_index("ix_work_items_target_integration_id", "work_items", ["target_integration_id"])

    op.create_table(
        "scheduled_posts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("customer_id", sa.String(length=64), nullable=False),
        sa.Column("platform", sa.String(length=32), nullable=False),
        sa.Column("integration_id", sa.String(length=128), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("provider_post_id", sa.String(length=128), nullable=True),
        sa.Column("provider_state", sa.String(length=64), nullable=True),
        sa.Column("release_url", sa.String(length=2048), nullable=True),
        sa.Column(
            "work_item_id",
            sa.Integer(),
            sa.ForeignKey("work_items.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="scheduled"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("integration_id", "scheduled_at", name="uq_scheduled_posts_integration_time"),
    )
    op.create_index("ix_scheduled_posts_work_item_id", "scheduled_posts", ["work_item_id"])
    op.create_index("ix_scheduled_posts_customer_time", "scheduled_posts", ["customer_id", "scheduled_at"])


def downgrade() -> None:
    op.drop_index("ix_scheduled_posts_customer_time", table_name="scheduled_posts")
    op.drop_index("ix_scheduled_posts_work_item_id", table_name="scheduled_posts")
    op.drop_table("scheduled_posts")
    op.drop_index("ix_work_items_target_integration_id", table_name="work_items")
    op.drop_index("ix_work_items_customer_source", table_name="work_items")
    op.drop_index("ix_work_items_series", table_name="work_items")
    op.drop_index("ix_work_items_stage_created", table_name="work_items")
    op.drop_table("work_items")
    op.drop_index("ix_premade_series_status_lease", table_name="premade_series")
    op.drop_index("ix_premade_series_customer_id", table_name="premade_series")
    op.drop_table("premade_series")
