"""Session state models, intents and the pure reducer behind the synchronizer."""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Step = Literal["home", "assessment", "recommendations", "skills"]
Sender = Literal["user", "assistant"]

ANONYMOUS_EMAIL = "anonymous@demo.com"

_ASSISTANT_ALIASES = {"assistant", "bot", "ai"}


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _CamelModel(BaseModel):
    """Base for payloads mirrored to the sinks with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def as_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class SessionIdentity(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    kind: Literal["authenticated", "anonymous"]
    email: Optional[str] = None

    @classmethod
    def anonymous(cls, identity_id: Optional[str] = None) -> "SessionIdentity":
        return cls(id=identity_id or str(uuid.uuid4()), kind="anonymous", email=ANONYMOUS_EMAIL)

    @classmethod
    def authenticated(cls, identity_id: str, email: Optional[str] = None) -> "SessionIdentity":
        if not identity_id.strip():
            raise ValueError("Authenticated identities need a non-empty id.")
        return cls(id=identity_id.strip(), kind="authenticated", email=email)

    @property
    def is_anonymous(self) -> bool:
        return self.kind == "anonymous"


class ProfileAnswers(_CamelModel):
    """Completed assessment answers keyed by catalog field name."""

    name: Optional[str] = None
    age: Optional[int] = None
    education: Optional[str] = None
    location: Optional[str] = None
    field_of_study: Optional[str] = None
    programming_languages: List[str] = Field(default_factory=list)
    frameworks: List[str] = Field(default_factory=list)
    databases: List[str] = Field(default_factory=list)
    cloud_platforms: List[str] = Field(default_factory=list)
    tools_and_tech: List[str] = Field(default_factory=list)
    career_interests: List[str] = Field(default_factory=list)
    work_environment: Optional[str] = None
    work_style: Optional[str] = None
    career_goals: Optional[str] = None
    internships: Optional[str] = None
    projects: Optional[str] = None
    certifications: Optional[str] = None
    achievements: Optional[str] = None
    strengths: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    completed_at: Optional[datetime] = None
    id: Optional[str] = None


class CareerRecommendation(_CamelModel):
    id: int = 0
    title: str
    match: int = Field(default=0, ge=0, le=100)
    description: str = ""
    skills: List[str] = Field(default_factory=list)
    salary_range: str = ""
    growth: str = ""
    companies: List[str] = Field(default_factory=list)
    time_to_entry: str = ""
    reasoning: str = ""
    career_path: str = ""
    responsibilities: List[str] = Field(default_factory=list)
    industry_outlook: str = ""
    job_openings: str = ""

    @field_validator("match", mode="before")
    @classmethod
    def _coerce_match(cls, value: Any) -> Any:
        if isinstance(value, str):
            digits = re.sub(r"[^0-9.]", "", value)
            value = float(digits) if digits else 0
        if isinstance(value, float):
            value = round(value)
        if isinstance(value, int):
            return max(0, min(100, value))
        return value

    def as_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class LearningResource(_CamelModel):
    name: str
    type: str = "Free"
    url: str = "#"
    rating: float = 0.0


class LearningPathEntry(_CamelModel):
    skill: str
    priority: Literal["High", "Medium", "Low"] = "Medium"
    time_estimate: str = "2-3 months"
    resources: List[LearningResource] = Field(default_factory=list)


class SkillAnalysis(_CamelModel):
    existing: List[str] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)
    learning_path: List[LearningPathEntry] = Field(default_factory=list)

    def as_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ChatMessage(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    sender: Sender
    text: str
    timestamp: datetime = Field(default_factory=_now)

    @field_validator("sender", mode="before")
    @classmethod
    def _normalise_sender(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().lower() in _ASSISTANT_ALIASES:
            return "assistant"
        return value

    def as_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class SyncError(BaseModel):
    code: str
    message: str
    at: datetime = Field(default_factory=_now)


class SessionState(BaseModel):
    model_config = ConfigDict(frozen=True)

    identity: Optional[SessionIdentity] = None
    assessment_data: Optional[ProfileAnswers] = None
    recommendations: Optional[List[CareerRecommendation]] = None
    skill_analysis: Optional[SkillAnalysis] = None
    chat_history: List[ChatMessage] = Field(default_factory=list)
    current_step: Step = "home"
    is_loading: bool = False
    error: Optional[SyncError] = None


INITIAL_STATE = SessionState()


@dataclass(frozen=True)
class HydratedData:
    """Derived entities recovered from a sink for one identity."""

    assessment_data: Optional[ProfileAnswers] = None
    recommendations: Optional[List[CareerRecommendation]] = None
    skill_analysis: Optional[SkillAnalysis] = None
    chat_history: tuple[ChatMessage, ...] = ()


@dataclass(frozen=True)
class IdentityHydrated:
    identity: SessionIdentity
    data: HydratedData


@dataclass(frozen=True)
class ProfileAnswersSubmitted:
    answers: ProfileAnswers


@dataclass(frozen=True)
class RecommendationSetSubmitted:
    recommendations: tuple[CareerRecommendation, ...]


@dataclass(frozen=True)
class SkillAnalysisSubmitted:
    analysis: SkillAnalysis


@dataclass(frozen=True)
class ChatMessageAppended:
    message: ChatMessage


@dataclass(frozen=True)
class StepChanged:
    step: Step


@dataclass(frozen=True)
class LoadingChanged:
    is_loading: bool


@dataclass(frozen=True)
class ErrorRaised:
    error: SyncError


@dataclass(frozen=True)
class ErrorCleared:
    pass


@dataclass(frozen=True)
class StateReset:
    identity: Optional[SessionIdentity]


Intent = Union[
    IdentityHydrated,
    ProfileAnswersSubmitted,
    RecommendationSetSubmitted,
    SkillAnalysisSubmitted,
    ChatMessageAppended,
    StepChanged,
    LoadingChanged,
    ErrorRaised,
    ErrorCleared,
    StateReset,
]


def _step_for(data: HydratedData) -> Step:
    if data.recommendations is not None:
        return "skills"
    if data.assessment_data is not None:
        return "recommendations"
    return "home"


def reduce(state: SessionState, intent: Intent) -> SessionState:
    """Apply one intent and return the next state; never mutates ``state``."""
    if isinstance(intent, IdentityHydrated):
        data = intent.data
        return state.model_copy(
            update={
                "identity": intent.identity,
                "assessment_data": data.assessment_data,
                "recommendations": list(data.recommendations) if data.recommendations is not None else None,
                "skill_analysis": data.skill_analysis,
                "chat_history": list(data.chat_history),
                "current_step": _step_for(data),
            }
        )
    if isinstance(intent, ProfileAnswersSubmitted):
        return state.model_copy(
            update={"assessment_data": intent.answers, "current_step": "recommendations"}
        )
    if isinstance(intent, RecommendationSetSubmitted):
        return state.model_copy(
            update={"recommendations": list(intent.recommendations), "current_step": "skills"}
        )
    if isinstance(intent, SkillAnalysisSubmitted):
        return state.model_copy(update={"skill_analysis": intent.analysis})
    if isinstance(intent, ChatMessageAppended):
        return state.model_copy(update={"chat_history": [*state.chat_history, intent.message]})
    if isinstance(intent, StepChanged):
        return state.model_copy(update={"current_step": intent.step})
    if isinstance(intent, LoadingChanged):
        return state.model_copy(update={"is_loading": intent.is_loading})
    if isinstance(intent, ErrorRaised):
        return state.model_copy(update={"error": intent.error, "is_loading": False})
    if isinstance(intent, ErrorCleared):
        return state.model_copy(update={"error": None})
    if isinstance(intent, StateReset):
        return INITIAL_STATE.model_copy(update={"identity": intent.identity})
    raise TypeError(f"Unsupported intent: {type(intent).__name__}")


__all__ = [
    "ANONYMOUS_EMAIL",
    "CareerRecommendation",
    "ChatMessage",
    "ChatMessageAppended",
    "ErrorCleared",
    "ErrorRaised",
    "HydratedData",
    "INITIAL_STATE",
    "IdentityHydrated",
    "Intent",
    "LearningPathEntry",
    "LearningResource",
    "LoadingChanged",
    "ProfileAnswers",
    "ProfileAnswersSubmitted",
    "RecommendationSetSubmitted",
    "SessionIdentity",
    "SessionState",
    "SkillAnalysis",
    "SkillAnalysisSubmitted",
    "StateReset",
    "Step",
    "StepChanged",
    "SyncError",
    "reduce",
]
