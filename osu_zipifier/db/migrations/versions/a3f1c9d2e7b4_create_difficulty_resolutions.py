"""Create difficulty_resolutions table

Revision ID: a3f1c9d2e7b4
Revises:
Create Date: 2026-10-18

Persistent cache of difficulty id -> beatmap set id lookups.
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "a3f1c9d2e7b4"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "difficulty_resolutions",
        sa.Column("difficulty_id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("beatmapset_id", sa.BigInteger(), nullable=False),
        sa.Column(
            "resolved_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_difficulty_resolutions_beatmapset_id",
        "difficulty_resolutions",
        ["beatmapset_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_difficulty_resolutions_beatmapset_id", table_name="difficulty_resolutions")
    op.drop_table("difficulty_resolutions")
