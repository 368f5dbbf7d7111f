"""user_friends

Revision ID: 002_user_friends
Revises: 001_initial_schema
Create Date: 2026-10-19

Friend invitations for one-to-one progress comparison.
"""

from alembic import op
import sqlalchemy as sa


revision = "002_user_friends"
down_revision = "001_initial_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user_friends",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("friend_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["friend_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "friend_id", name="uq_user_friends_pair"),
    )
    op.create_index("ix_user_friends_user_id", "user_friends", ["user_id"], unique=False)
    op.create_index("ix_user_friends_friend_id", "user_friends", ["friend_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_user_friends_friend_id", table_name="user_friends")
    op.drop_index("ix_user_friends_user_id", table_name="user_friends")
    op.drop_table("user_friends")
