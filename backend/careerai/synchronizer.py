"""Owner of in-memory session state and its mirrors in the remote store and local cache.

Every public mutation is applied to memory first, in call order, through the
pure ``reduce`` function. Local cache writes that the sink policy requires up
front happen before the mutation returns; the remote leg then runs as an
``asyncio`` task whose handle is returned to the caller. Awaiting it is
optional and it never raises. ``reset`` and ``sign_out`` start a new epoch, and
tasks from an older epoch skip their local fallback writes.

Sink policy per mutation, keyed on the identity active when the mutation ran:

* no identity: local cache only
* anonymous: local cache and remote store, both written
* authenticated: remote store, then local cache if the remote write fails

Superseded writes are not cancelled, so a slow remote write may land after a
newer one. Memory stays authoritative once hydration has completed.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Set, TypeVar, Union

from pydantic import ValidationError

from .config import Settings
from .local_cache import (
    ASSESSMENT_FIELD,
    CHAT_HISTORY_FIELD,
    RECOMMENDATIONS_FIELD,
    SKILL_ANALYSIS_FIELD,
    USER_DATA_KEY,
    LocalCache,
    update_user_blob,
)
from .persistent_store import PersistentStore
from .state import (
    INITIAL_STATE,
    CareerRecommendation,
    ChatMessage,
    ChatMessageAppended,
    ErrorCleared,
    ErrorRaised,
    HydratedData,
    IdentityHydrated,
    Intent,
    LoadingChanged,
    ProfileAnswers,
    ProfileAnswersSubmitted,
    RecommendationSetSubmitted,
    SessionIdentity,
    SessionState,
    SkillAnalysis,
    SkillAnalysisSubmitted,
    StateReset,
    Step,
    StepChanged,
    SyncError,
    reduce,
)
from .telemetry import emit_event

logger = logging.getLogger(__name__)

T = TypeVar("T")

StateListener = Callable[[SessionState], None]

_CACHE_FIELDS: Dict[str, str] = {
    "assessment": ASSESSMENT_FIELD,
    "recommendations": RECOMMENDATIONS_FIELD,
    "skill_analysis": SKILL_ANALYSIS_FIELD,
    "chat": CHAT_HISTORY_FIELD,
}


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 2
    backoff_seconds: float = 0.5
    timeout_seconds: Optional[float] = 15.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        timeout = settings.remote_timeout_seconds
        return cls(
            attempts=max(1, settings.remote_retry_attempts),
            backoff_seconds=max(0.0, settings.remote_retry_backoff_seconds),
            timeout_seconds=timeout if timeout > 0 else None,
        )


@dataclass(frozen=True)
class PersistenceOutcome:
    entity: str
    identity_id: Optional[str]
    remote_attempted: bool = False
    remote_ok: bool = False
    local_written: bool = False
    attempts: int = 0
    error: Optional[str] = None

    @property
    def durable(self) -> bool:
        return self.remote_ok or self.local_written


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StateSynchronizer:
    """Single source of truth for one client session."""

    def __init__(
        self,
        *,
        cache: LocalCache,
        remote: Optional[PersistentStore] = None,
        retry: Optional[RetryPolicy] = None,
        chat_history_limit: int = 50,
        expose_remote_errors: bool = True,
    ) -> None:
        self._cache = cache
        self._remote = remote
        self._retry = retry or RetryPolicy()
        self._chat_history_limit = chat_history_limit
        self._expose_remote_errors = expose_remote_errors
        self._state: SessionState = INITIAL_STATE
        self._listeners: List[StateListener] = []
        self._pending: Set[asyncio.Task[Any]] = set()
        self._identify_generation = 0
        self._epoch = 0
        self._assessment_record_ids: Dict[str, str] = {}

    # -- reading -----------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    def snapshot(self) -> SessionState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def wait_for_pending(self) -> None:
        """Block until every scheduled persistence task has settled."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # -- intents -----------------------------------------------------------

    def _dispatch(self, intent: Intent) -> SessionState:
        self._state = reduce(self._state, intent)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:  # noqa: BLE001
                logger.exception("State listener failed after %s", type(intent).__name__)
        return self._state

    def set_step(self, step: Step) -> SessionState:
        return self._dispatch(StepChanged(step))

    def set_loading(self, is_loading: bool) -> SessionState:
        return self._dispatch(LoadingChanged(is_loading))

    def set_error(self, code: str, message: str) -> SessionState:
        return self._dispatch(ErrorRaised(SyncError(code=code, message=message)))

    def clear_error(self) -> SessionState:
        return self._dispatch(ErrorCleared())

    async def identify(self, session: SessionIdentity) -> SessionState:
        """Switch identity, hydrating the new identity's data before swapping it in.

        The previous identity and its data stay visible until hydration
        finishes, then identity and derived entities change in one transition.
        A later ``identify``, ``reset`` or ``sign_out`` supersedes this call.
        """
        self._identify_generation += 1
        generation = self._identify_generation
        self._dispatch(LoadingChanged(True))
        data = await self._hydrate(session)
        if generation != self._identify_generation:
            logger.info("Discarding superseded hydration for %s", session.id)
            return self._state
        self._dispatch(IdentityHydrated(session, data))
        self._dispatch(LoadingChanged(False))
        return self._state

    def submit_profile_answers(
        self, answers: Union[ProfileAnswers, Mapping[str, Any]]
    ) -> "asyncio.Task[PersistenceOutcome]":
        base = answers.as_payload() if isinstance(answers, ProfileAnswers) else dict(answers)
        base["completedAt"] = _now().isoformat()
        base["id"] = uuid.uuid4().hex
        completed = ProfileAnswers.model_validate(base)
        self._dispatch(ProfileAnswersSubmitted(completed))
        return self._persist("assessment", completed.as_payload())

    def submit_recommendation_set(
        self, recommendations: Iterable[Union[CareerRecommendation, Mapping[str, Any]]]
    ) -> "asyncio.Task[PersistenceOutcome]":
        records = tuple(
            item if isinstance(item, CareerRecommendation) else CareerRecommendation.model_validate(item)
            for item in recommendations
        )
        self._dispatch(RecommendationSetSubmitted(records))
        return self._persist("recommendations", [record.as_payload() for record in records])

    def submit_skill_analysis(
        self, analysis: Union[SkillAnalysis, Mapping[str, Any]]
    ) -> "asyncio.Task[PersistenceOutcome]":
        record = analysis if isinstance(analysis, SkillAnalysis) else SkillAnalysis.model_validate(analysis)
        self._dispatch(SkillAnalysisSubmitted(record))
        return self._persist("skill_analysis", record.as_payload())

    def append_chat_message(
        self, message: Union[ChatMessage, Mapping[str, Any]]
    ) -> "asyncio.Task[PersistenceOutcome]":
        """Append a message with a fresh id and timestamp.

        An assistant reply that directly follows a user message is stored
        remotely as one exchange. Messages outside that pattern are only
        mirrored to the local cache.
        """
        raw = message.model_dump() if isinstance(message, ChatMessage) else dict(message)
        stamped = ChatMessage(sender=raw["sender"], text=raw["text"])
        history = self._state.chat_history
        previous = history[-1] if history else None
        self._dispatch(ChatMessageAppended(stamped))

        pair: Optional[tuple[str, str]] = None
        if stamped.sender == "assistant" and previous is not None and previous.sender == "user":
            pair = (previous.text, stamped.text)
        identity = self._state.identity
        transcript = [entry.as_payload() for entry in self._state.chat_history]
        written = False
        if identity is None or identity.is_anonymous or (pair is not None and self._remote is None):
            written = self._write_local(CHAT_HISTORY_FIELD, transcript)
        return self._spawn(self._settle_chat(identity, transcript, pair, written, self._epoch))

    def reset(self) -> SessionState:
        """Drop derived state and the local mirror; anonymous sessions get a new identity."""
        identity = self._state.identity
        if identity is not None and identity.is_anonymous:
            identity = SessionIdentity.anonymous()
        self._identify_generation += 1
        self._epoch += 1
        self._dispatch(StateReset(identity))
        try:
            self._cache.remove_blob(USER_DATA_KEY)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to purge local cache during reset")
        return self._state

    def sign_out(self) -> SessionState:
        self._identify_generation += 1
        self._epoch += 1
        return self._dispatch(StateReset(SessionIdentity.anonymous()))

    # -- persistence -------------------------------------------------------

    def _spawn(self, coro: Awaitable[PersistenceOutcome]) -> "asyncio.Task[PersistenceOutcome]":
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            # Memory and the local mirror are already updated at this point.
            if asyncio.iscoroutine(coro):
                coro.close()
            raise RuntimeError("StateSynchronizer remote persistence must run inside an event loop.") from exc
        task = loop.create_task(coro)  # type: ignore[arg-type]
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def _remote_write(
        self, entity: str, identity: SessionIdentity, payload: Any
    ) -> Optional[Callable[[], Awaitable[Any]]]:
        remote = self._remote
        if remote is None:
            return None
        if entity == "assessment":

            async def _save_assessment() -> Any:
                record = await remote.save_assessment(identity, payload)
                record_id = getattr(record, "id", None)
                if isinstance(record_id, str):
                    self._assessment_record_ids[identity.id] = record_id
                return record

            return _save_assessment
        if entity == "recommendations":
            # The assessment id is read when the write runs, after any earlier assessment save.
            return lambda: remote.save_recommendations(
                identity, payload, self._assessment_record_ids.get(identity.id)
            )
        return None

    def _persist(self, entity: str, payload: Any) -> "asyncio.Task[PersistenceOutcome]":
        """Write the local leg now and schedule the remote leg.

        Without an identity, or with an anonymous one, the local cache is
        written before this returns. Authenticated sessions only touch the
        cache when there is no remote write for the entity, or later as the
        fallback for a failed remote write.
        """
        identity = self._state.identity
        field = _CACHE_FIELDS[entity]
        write = self._remote_write(entity, identity, payload) if identity is not None else None
        written = False
        if identity is None or identity.is_anonymous or write is None:
            written = self._write_local(field, payload)
        return self._spawn(self._settle(entity, identity, payload, write, written, self._epoch))

    async def _settle(
        self,
        entity: str,
        identity: Optional[SessionIdentity],
        payload: Any,
        write: Optional[Callable[[], Awaitable[Any]]],
        written: bool,
        epoch: int,
    ) -> PersistenceOutcome:
        identity_id = identity.id if identity else None
        if identity is None or write is None:
            return PersistenceOutcome(entity=entity, identity_id=identity_id, local_written=written)

        ok, attempts, error = await self._attempt_remote(entity, identity, write)
        if not ok and not identity.is_anonymous:
            written = self._write_fallback(epoch, _CACHE_FIELDS[entity], payload)
            emit_event("sync_local_fallback", entity=entity, identity=identity_id, written=written)
        return PersistenceOutcome(
            entity=entity,
            identity_id=identity_id,
            remote_attempted=True,
            remote_ok=ok,
            local_written=written,
            attempts=attempts,
            error=error,
        )

    async def _settle_chat(
        self,
        identity: Optional[SessionIdentity],
        transcript: List[dict[str, Any]],
        pair: Optional[tuple[str, str]],
        written: bool,
        epoch: int,
    ) -> PersistenceOutcome:
        identity_id = identity.id if identity else None
        remote = self._remote
        if identity is None or pair is None or remote is None:
            return PersistenceOutcome(entity="chat", identity_id=identity_id, local_written=written)

        user_text, response_text = pair
        ok, attempts, error = await self._attempt_remote(
            "chat",
            identity,
            lambda: remote.save_chat_message(identity, user_text, response_text),
            report=False,
        )
        if not ok:
            logger.warning("Chat exchange for %s was not stored remotely: %s", identity_id, error)
            emit_event("chat_record_failed", identity=identity_id, error=error)
            if not identity.is_anonymous:
                written = self._write_fallback(epoch, CHAT_HISTORY_FIELD, transcript)
        return PersistenceOutcome(
            entity="chat",
            identity_id=identity_id,
            remote_attempted=True,
            remote_ok=ok,
            local_written=written,
            attempts=attempts,
            error=error,
        )

    async def _attempt_remote(
        self,
        entity: str,
        identity: SessionIdentity,
        write: Callable[[], Awaitable[Any]],
        *,
        report: bool = True,
    ) -> tuple[bool, int, Optional[str]]:
        attempts = max(1, self._retry.attempts)
        last_error: Optional[BaseException] = None
        for attempt in range(1, attempts + 1):
            try:
                await self._with_timeout(write())
                return True, attempt, None
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                logger.warning(
                    "Remote write of %s for %s failed (attempt %d/%d): %s",
                    entity,
                    identity.id,
                    attempt,
                    attempts,
                    exc,
                )
                if attempt < attempts and self._retry.backoff_seconds > 0:
                    await asyncio.sleep(self._retry.backoff_seconds * attempt)

        message = str(last_error) if last_error else "unknown error"
        emit_event(
            "sync_remote_write_failed",
            entity=entity,
            identity=identity.id,
            attempts=attempts,
            error=last_error,
        )
        if report and self._expose_remote_errors and self._state.identity == identity:
            self._dispatch(ErrorRaised(SyncError(code=f"{entity}_sync_failed", message=message)))
        return False, attempts, message

    async def _with_timeout(self, awaitable: Awaitable[T]) -> T:
        timeout = self._retry.timeout_seconds
        if timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout)

    def _write_local(self, field: str, payload: Any) -> bool:
        try:
            update_user_blob(self._cache, field, payload)
        except Exception:  # noqa: BLE001
            logger.exception("Local cache write for %s failed", field)
            return False
        return True

    def _write_fallback(self, epoch: int, field: str, payload: Any) -> bool:
        if epoch != self._epoch:
            logger.info("Skipping local fallback for %s; the session was reset after the write started", field)
            return False
        return self._write_local(field, payload)

    # -- hydration ---------------------------------------------------------

    async def _hydrate(self, identity: SessionIdentity) -> HydratedData:
        if not identity.is_anonymous and self._remote is not None:
            try:
                return await self._hydrate_remote(identity)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.warning("Remote hydration for %s failed, using local cache: %s", identity.id, exc)
                emit_event("sync_hydration_degraded", identity=identity.id, source="remote", error=exc)
        try:
            return self._hydrate_local()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Local hydration failed, starting empty: %s", exc)
            emit_event("sync_hydration_degraded", identity=identity.id, source="local", error=exc)
            return HydratedData()

    async def _hydrate_remote(self, identity: SessionIdentity) -> HydratedData:
        remote = self._remote
        assert remote is not None
        assessments = await self._with_timeout(remote.get_assessments(identity))
        answers: Optional[ProfileAnswers] = None
        if assessments:
            latest = assessments[0]
            answers = ProfileAnswers.model_validate(latest.assessment_data)
            self._assessment_record_ids[identity.id] = latest.id

        records = await self._with_timeout(remote.get_chat_history(identity, self._chat_history_limit))
        transcript: List[ChatMessage] = []
        for record in records:
            transcript.append(
                ChatMessage(id=record.id, sender="user", text=record.message, timestamp=record.created_at)
            )
            transcript.append(
                ChatMessage(
                    id=f"{record.id}-response",
                    sender="assistant",
                    text=record.response,
                    timestamp=record.created_at,
                )
            )
        logger.info(
            "Hydrated %s from remote store (assessment=%s, chat_records=%d)",
            identity.id,
            answers is not None,
            len(records),
        )
        return HydratedData(assessment_data=answers, chat_history=tuple(transcript))

    def _hydrate_local(self) -> HydratedData:
        blob = self._cache.read_blob(USER_DATA_KEY)
        if not isinstance(blob, dict):
            return HydratedData()

        def _parse(field: str, parser: Callable[[Any], T]) -> Optional[T]:
            raw = blob.get(field)
            if raw is None:
                return None
            try:
                return parser(raw)
            except (ValidationError, TypeError, ValueError) as exc:
                logger.warning("Ignoring malformed cached %s: %s", field, exc)
                return None

        chat = _parse(
            CHAT_HISTORY_FIELD,
            lambda raw: tuple(ChatMessage.model_validate(item) for item in raw),
        )
        return HydratedData(
            assessment_data=_parse(ASSESSMENT_FIELD, ProfileAnswers.model_validate),
            recommendations=_parse(
                RECOMMENDATIONS_FIELD,
                lambda raw: [CareerRecommendation.model_validate(item) for item in raw],
            ),
            skill_analysis=_parse(SKILL_ANALYSIS_FIELD, SkillAnalysis.model_validate),
            chat_history=chat or (),
        )


__all__ = [
    "PersistenceOutcome",
    "RetryPolicy",
    "StateSynchronizer",
]
