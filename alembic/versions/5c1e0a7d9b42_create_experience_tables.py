"""Create user_experience and guild_experience_settings

Revision ID: 5c1e0a7d9b42
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "5c1e0a7d9b42"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user_experience",
        sa.Column("guild_id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), primary_key=True),
        sa.Column("total_xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("messages_sent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("commands_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("roles_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("voice_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_command_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_role_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_voice_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "last_updated",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_user_experience_guild_xp",
        "user_experience",
        ["guild_id", "total_xp"],
    )

    op.create_table(
        "guild_experience_settings",
        sa.Column("guild_id", sa.BigInteger(), primary_key=True),
        sa.Column("value_json", sa.Text(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )


def downgrade() -> None:
    op.drop_table("guild_experience_settings")
    op.drop_index("ix_user_experience_guild_xp", table_name="user_experience")
    op.drop_table("user_experience")
