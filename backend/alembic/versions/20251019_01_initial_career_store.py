"""Initial career store schema: assessments, chat history, recommendations."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20251019_01_initial_career_store"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "assessments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("assessment_data", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_assessments_created_at", "assessments", ["created_at"])
    op.create_index("ix_assessments_user_created", "assessments", ["user_id", "created_at"])

    op.create_table(
        "chat_history",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("response", sa.Text(), nullable=False),
        sa.Column("context", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_chat_history_created_at", "chat_history", ["created_at"])
    op.create_index("ix_chat_history_user_created", "chat_history", ["user_id", "created_at"])

    op.create_table(
        "career_recommendations",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column(
            "assessment_id",
            sa.String(length=36),
            sa.ForeignKey("assessments.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("recommendations", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_career_recommendations_created_at", "career_recommendations", ["created_at"])
    op.create_index(
        "ix_career_recommendations_user_created",
        "career_recommendations",
        ["user_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_career_recommendations_user_created", table_name="career_recommendations")
    op.drop_index("ix_career_recommendations_created_at", table_name="career_recommendations")
    op.drop_table("career_recommendations")
    op.drop_index("ix_chat_history_user_created", table_name="chat_history")
    op.drop_index("ix_chat_history_created_at", table_name="chat_history")
    op.drop_table("chat_history")
    op.drop_index("ix_assessments_user_created", table_name="assessments")
    op.drop_index("ix_assessments_created_at", table_name="assessments")
    op.drop_table("assessments")
