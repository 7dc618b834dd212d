"""Database-backed repository for assessments, chat exchanges and recommendation sets."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.models import AssessmentModel, CareerRecommendationModel, ChatHistoryModel


def _normalize_user_id(user_id: str) -> str:
    normalized = user_id.strip()
    if not normalized:
        raise ValueError("User id cannot be empty.")
    return normalized


class CareerRecordRepository:
    """Session-scoped queries; callers own the transaction."""

    def add_assessment(self, session: Session, user_id: str, assessment_data: dict[str, Any]) -> AssessmentModel:
        model = AssessmentModel(
            user_id=_normalize_user_id(user_id),
            assessment_data=dict(assessment_data),
            created_at=datetime.now(timezone.utc),
        )
        session.add(model)
        session.flush()
        return model

    def list_assessments(self, session: Session, user_id: str) -> List[AssessmentModel]:
        stmt = (
            select(AssessmentModel)
            .where(AssessmentModel.user_id == _normalize_user_id(user_id))
            .order_by(AssessmentModel.created_at.desc())
        )
        return list(session.execute(stmt).scalars().all())

    def add_chat_message(
        self,
        session: Session,
        user_id: str,
        message: str,
        response: str,
        context: Optional[dict[str, Any]] = None,
    ) -> ChatHistoryModel:
        model = ChatHistoryModel(
            user_id=_normalize_user_id(user_id),
            message=message,
            response=response,
            context=context,
            created_at=datetime.now(timezone.utc),
        )
        session.add(model)
        session.flush()
        return model

    def recent_chat_messages(self, session: Session, user_id: str, limit: int) -> List[ChatHistoryModel]:
        """Most recent ``limit`` exchanges, newest first."""
        stmt = (
            select(ChatHistoryModel)
            .where(ChatHistoryModel.user_id == _normalize_user_id(user_id))
            .order_by(ChatHistoryModel.created_at.desc())
            .limit(max(limit, 0))
        )
        return list(session.execute(stmt).scalars().all())

    def add_recommendations(
        self,
        session: Session,
        user_id: str,
        recommendations: List[dict[str, Any]],
        assessment_id: Optional[str] = None,
    ) -> CareerRecommendationModel:
        model = CareerRecommendationModel(
            user_id=_normalize_user_id(user_id),
            assessment_id=assessment_id,
            recommendations=list(recommendations),
            created_at=datetime.now(timezone.utc),
        )
        session.add(model)
        session.flush()
        return model


career_records = CareerRecordRepository()

__all__ = ["CareerRecordRepository", "career_records"]
