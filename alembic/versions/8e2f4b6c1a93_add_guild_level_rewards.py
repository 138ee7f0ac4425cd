"""Add guild_level_rewards

Revision ID: 8e2f4b6c1a93
Revises: 5c1e0a7d9b42
Create Date: 2026-10-19 15:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "8e2f4b6c1a93"
down_revision = "5c1e0a7d9b42"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "guild_level_rewards",
        sa.Column("guild_id", sa.BigInteger(), primary_key=True),
        sa.Column("value_json", sa.Text(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )


def downgrade() -> None:
    op.drop_table("guild_level_rewards")
