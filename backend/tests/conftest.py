from __future__ import annotations

import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

import pytest

os.environ.setdefault("CAREERAI_DATABASE_URL", "sqlite://")
os.environ["CAREERAI_GENERATION_ENABLED"] = "0"

from careerai.db.base import Base  # noqa: E402
from careerai.db.session import dispose_engine, get_engine  # noqa: E402
from careerai.local_cache import InMemoryLocalCache  # noqa: E402
from careerai.persistent_store import (  # noqa: E402
    AssessmentRecord,
    ChatRecord,
    PersistenceError,
    RecommendationRecord,
)
from careerai.state import SessionIdentity  # noqa: E402
from careerai.synchronizer import RetryPolicy, StateSynchronizer  # noqa: E402
from careerai.telemetry import TelemetryEvent, register_listener, unregister_listener  # noqa: E402


class FakeRemoteStore:
    """In-memory remote store that records every call before deciding to fail."""

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.fail_next = 0
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[tuple[str, str, Any]] = []
        self.assessments: List[AssessmentRecord] = []
        self.chat_records: List[ChatRecord] = []
        self.recommendation_records: List[RecommendationRecord] = []

    async def _maybe_fail(self, operation: str) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_next > 0:
            self.fail_next -= 1
            raise PersistenceError(operation, "transient remote failure")
        if self.fail:
            raise PersistenceError(operation, "remote store unavailable")

    def calls_for(self, method: str) -> List[tuple[str, str, Any]]:
        return [call for call in self.calls if call[0] == method]

    def add_chat_record(self, user_id: str, message: str, response: str, *, minutes_ago: int = 0) -> ChatRecord:
        record = ChatRecord(
            id=f"c-{len(self.chat_records) + 1}",
            user_id=user_id,
            message=message,
            response=response,
            created_at=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
        )
        self.chat_records.append(record)
        return record

    async def save_assessment(self, identity: SessionIdentity, answers: dict[str, Any]) -> AssessmentRecord:
        self.calls.append(("save_assessment", identity.id, answers))
        await self._maybe_fail("save_assessment")
        record = AssessmentRecord(
            id=f"a-{len(self.assessments) + 1}",
            user_id=identity.id,
            assessment_data=answers,
            created_at=datetime.now(timezone.utc),
        )
        self.assessments.insert(0, record)
        return record

    async def get_assessments(self, identity: SessionIdentity) -> List[AssessmentRecord]:
        self.calls.append(("get_assessments", identity.id, None))
        await self._maybe_fail("get_assessments")
        return [record for record in self.assessments if record.user_id == identity.id]

    async def save_chat_message(
        self,
        identity: SessionIdentity,
        user_text: str,
        response_text: str,
        context: Optional[dict[str, Any]] = None,
    ) -> ChatRecord:
        self.calls.append(("save_chat_message", identity.id, (user_text, response_text)))
        await self._maybe_fail("save_chat_message")
        return self.add_chat_record(identity.id, user_text, response_text)

    async def get_chat_history(self, identity: SessionIdentity, limit: int = 50) -> List[ChatRecord]:
        self.calls.append(("get_chat_history", identity.id, limit))
        await self._maybe_fail("get_chat_history")
        owned = [record for record in self.chat_records if record.user_id == identity.id]
        return owned[-limit:]

    async def save_recommendations(
        self,
        identity: SessionIdentity,
        recommendations: List[dict[str, Any]],
        assessment_id: Optional[str] = None,
    ) -> RecommendationRecord:
        self.calls.append(("save_recommendations", identity.id, {"items": recommendations, "assessment_id": assessment_id}))
        await self._maybe_fail("save_recommendations")
        record = RecommendationRecord(
            id=f"r-{len(self.recommendation_records) + 1}",
            user_id=identity.id,
            assessment_id=assessment_id,
            recommendations=recommendations,
            created_at=datetime.now(timezone.utc),
        )
        self.recommendation_records.insert(0, record)
        return record


class FailingLocalCache(InMemoryLocalCache):
    def write_blob(self, key: str, value: Any) -> None:
        raise OSError("local storage unavailable")


class StubGenerationService:
    def __init__(self, *responses: str, error: Optional[Exception] = None) -> None:
        self._responses = list(responses)
        self._error = error
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self._error is not None:
            raise self._error
        return self._responses.pop(0)


@pytest.fixture
def remote_store() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def failing_remote_store() -> FakeRemoteStore:
    return FakeRemoteStore(fail=True)


@pytest.fixture
def local_cache() -> InMemoryLocalCache:
    return InMemoryLocalCache()


@pytest.fixture
def failing_local_cache() -> FailingLocalCache:
    return FailingLocalCache()


@pytest.fixture
def fast_retry() -> RetryPolicy:
    return RetryPolicy(attempts=1, backoff_seconds=0, timeout_seconds=None)


@pytest.fixture
def make_synchronizer(local_cache, fast_retry):
    def _make(remote=None, cache=None, **kwargs: Any) -> StateSynchronizer:
        kwargs.setdefault("retry", fast_retry)
        return StateSynchronizer(cache=cache if cache is not None else local_cache, remote=remote, **kwargs)

    return _make


@pytest.fixture
def stub_generation():
    return StubGenerationService


@pytest.fixture
def telemetry_events():
    events: List[TelemetryEvent] = []
    listener = events.append
    register_listener(listener)
    yield events
    unregister_listener(listener)


@pytest.fixture
def database():
    dispose_engine()
    engine = get_engine()
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    dispose_engine()
