"""ORM models backing the remote career store."""

from __future__ import annotations

import uuid
from typing import Any, Optional

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from .base import Base, CreatedAtMixin

JSONType = JSON


class AssessmentModel(CreatedAtMixin, Base):
    __tablename__ = "assessments"
    __table_args__ = (Index("ix_assessments_user_created", "user_id", "created_at"),)

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    assessment_data: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)


class ChatHistoryModel(CreatedAtMixin, Base):
    __tablename__ = "chat_history"
    __table_args__ = (Index("ix_chat_history_user_created", "user_id", "created_at"),)

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    response: Mapped[str] = mapped_column(Text, nullable=False)
    context: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)


class CareerRecommendationModel(CreatedAtMixin, Base):
    __tablename__ = "career_recommendations"
    __table_args__ = (Index("ix_career_recommendations_user_created", "user_id", "created_at"),)

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    assessment_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("assessments.id", ondelete="SET NULL"), nullable=True
    )
    recommendations: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list, nullable=False)


__all__ = [
    "AssessmentModel",
    "CareerRecommendationModel",
    "ChatHistoryModel",
]
