"""scheduled_posts: keep series position after segment rows are replaced

Revision ID: 0002_scheduled_post_series_position
Revises: 0001_pipeline_tables
Create Date: 2026-10-19 15:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "0002_scheduled_post_series_position"
down_revision: Union[str, None] = "0001_pipeline_tables"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("scheduled_posts", sa.Column("series_id", sa.Uuid(), nullable=True))
    op.add_column("scheduled_posts", sa.Column("series_index", sa.Integer(), nullable=True))
    op.execute(
        """
        UPDATE scheduled_posts AS sp
        SET series_id = wi.series_id, series_index = wi.series_index
        FROM work_items AS wi
        WHERE sp.work_item_id = wi.id AND wi.series_id IS NOT NULL
        """
    )
    op.create_index("ix_scheduled_posts_series", "scheduled_posts", ["series_id", "series_index"])


def downgrade() -> None:
    op.drop_index("ix_scheduled_posts_series", table_name="scheduled_posts")
    op.drop_column("scheduled_posts", "series_index")
    op.drop_column("scheduled_posts", "series_id")
