"""Remote store interface and its SQLAlchemy-backed implementation."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, List, Optional, Protocol, TypeVar

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from .db.models import AssessmentModel, CareerRecommendationModel, ChatHistoryModel
from .db.session import session_scope
from .repositories.career_records import CareerRecordRepository, career_records
from .state import SessionIdentity

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PersistenceError(RuntimeError):
    """Raised when the remote store rejects or cannot complete an operation."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


class AssessmentRecord(BaseModel):
    id: str
    user_id: str
    assessment_data: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class ChatRecord(BaseModel):
    id: str
    user_id: str
    message: str
    response: str
    context: Optional[dict[str, Any]] = None
    created_at: datetime


class RecommendationRecord(BaseModel):
    id: str
    user_id: str
    assessment_id: Optional[str] = None
    recommendations: List[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime


class PersistentStore(Protocol):
    """Durable remote sink. Every method raises ``PersistenceError`` on failure."""

    async def save_assessment(
        self, identity: SessionIdentity, answers: dict[str, Any]
    ) -> AssessmentRecord:  # pragma: no cover - protocol definition
        ...

    async def get_assessments(
        self, identity: SessionIdentity
    ) -> List[AssessmentRecord]:  # pragma: no cover - protocol definition
        ...

    async def save_chat_message(
        self,
        identity: SessionIdentity,
        user_text: str,
        response_text: str,
        context: Optional[dict[str, Any]] = None,
    ) -> ChatRecord:  # pragma: no cover - protocol definition
        ...

    async def get_chat_history(
        self, identity: SessionIdentity, limit: int = 50
    ) -> List[ChatRecord]:  # pragma: no cover - protocol definition
        ...

    async def save_recommendations(
        self,
        identity: SessionIdentity,
        recommendations: List[dict[str, Any]],
        assessment_id: Optional[str] = None,
    ) -> RecommendationRecord:  # pragma: no cover - protocol definition
        ...


def _assessment_record(model: AssessmentModel) -> AssessmentRecord:
    return AssessmentRecord(
        id=model.id,
        user_id=model.user_id,
        assessment_data=dict(model.assessment_data or {}),
        created_at=model.created_at,
    )


def _chat_record(model: ChatHistoryModel) -> ChatRecord:
    return ChatRecord(
        id=model.id,
        user_id=model.user_id,
        message=model.message,
        response=model.response,
        context=model.context,
        created_at=model.created_at,
    )


def _recommendation_record(model: CareerRecommendationModel) -> RecommendationRecord:
    return RecommendationRecord(
        id=model.id,
        user_id=model.user_id,
        assessment_id=model.assessment_id,
        recommendations=list(model.recommendations or []),
        created_at=model.created_at,
    )


class DatabasePersistentStore:
    """Runs repository calls in worker threads so the event loop never blocks on the database."""

    def __init__(self, repository: CareerRecordRepository | None = None) -> None:
        self._repo = repository or career_records

    async def _run(self, operation: str, func: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(func)
        except PersistenceError:
            raise
        except (SQLAlchemyError, RuntimeError, ValueError) as exc:
            logger.warning("Remote store %s failed: %s", operation, exc)
            raise PersistenceError(operation, str(exc)) from exc

    async def save_assessment(self, identity: SessionIdentity, answers: dict[str, Any]) -> AssessmentRecord:
        def _save() -> AssessmentRecord:
            with session_scope() as session:
                return _assessment_record(self._repo.add_assessment(session, identity.id, answers))

        record = await self._run("save_assessment", _save)
        logger.info("Stored assessment %s for %s", record.id, identity.id)
        return record

    async def get_assessments(self, identity: SessionIdentity) -> List[AssessmentRecord]:
        def _load() -> List[AssessmentRecord]:
            with session_scope(commit=False) as session:
                return [_assessment_record(row) for row in self._repo.list_assessments(session, identity.id)]

        return await self._run("get_assessments", _load)

    async def save_chat_message(
        self,
        identity: SessionIdentity,
        user_text: str,
        response_text: str,
        context: Optional[dict[str, Any]] = None,
    ) -> ChatRecord:
        def _save() -> ChatRecord:
            with session_scope() as session:
                model = self._repo.add_chat_message(session, identity.id, user_text, response_text, context)
                return _chat_record(model)

        return await self._run("save_chat_message", _save)

    async def get_chat_history(self, identity: SessionIdentity, limit: int = 50) -> List[ChatRecord]:
        def _load() -> List[ChatRecord]:
            with session_scope(commit=False) as session:
                rows = self._repo.recent_chat_messages(session, identity.id, limit)
                return [_chat_record(row) for row in rows]

        newest_first = await self._run("get_chat_history", _load)
        return list(reversed(newest_first))

    async def save_recommendations(
        self,
        identity: SessionIdentity,
        recommendations: List[dict[str, Any]],
        assessment_id: Optional[str] = None,
    ) -> RecommendationRecord:
        def _save() -> RecommendationRecord:
            with session_scope() as session:
                model = self._repo.add_recommendations(session, identity.id, recommendations, assessment_id)
                return _recommendation_record(model)

        record = await self._run("save_recommendations", _save)
        logger.info("Stored %d recommendations for %s", len(recommendations), identity.id)
        return record


__all__ = [
    "AssessmentRecord",
    "ChatRecord",
    "DatabasePersistentStore",
    "PersistenceError",
    "PersistentStore",
    "RecommendationRecord",
]
