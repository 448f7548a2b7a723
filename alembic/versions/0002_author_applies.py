"""author applications

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19 14:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0002"
down_revision: Union[str, None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "author_applies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("real_name", sa.String(50), nullable=False),
        sa.Column("id_card", sa.String(18), nullable=False),
        sa.Column("apply_desc", sa.Text(), nullable=True),
        sa.Column("status", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("audit_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("audit_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("reject_reason", sa.String(255), nullable=True),
    )
    op.create_index("ix_author_applies_status", "author_applies", ["status"])


def downgrade() -> None:
    op.drop_index("ix_author_applies_status", table_name="author_applies")
    op.drop_table("author_applies")
