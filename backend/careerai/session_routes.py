"""REST endpoints for the assessment, recommendation, skill gap and chat flows of a client session."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field

from .assessment import QUESTION_CATALOG, AssessmentValidationError, assessment_progress, validate_answers
from .chat_responder import APOLOGY_REPLY, ChatResponder, welcome_message
from .config import Settings, get_settings
from .dashboard import dashboard_summary
from .generation import create_generation_service
from .recommendations import RecommendationBuilder
from .sessions import ClientSession, SessionNotFoundError, SessionRegistry, get_session_registry
from .skill_gap import analyze_skill_gap, collect_user_skills
from .state import ChatMessage, SessionIdentity, SessionState
from .synchronizer import PersistenceOutcome
from .telemetry import emit_event

router = APIRouter(prefix="/api/sessions", tags=["sessions"])
assessment_router = APIRouter(prefix="/api/assessment", tags=["assessment"])

logger = logging.getLogger(__name__)


class OpenSessionRequest(BaseModel):
    client_id: Optional[str] = Field(default=None, max_length=128)
    user_id: Optional[str] = Field(default=None, max_length=128)
    email: Optional[str] = None


class IdentifyRequest(BaseModel):
    user_id: Optional[str] = Field(default=None, max_length=128)
    email: Optional[str] = None


class DraftRequest(BaseModel):
    answers: Dict[str, Any] = Field(default_factory=dict)


class AssessmentRequest(BaseModel):
    answers: Dict[str, Any]


class SkillAnalysisRequest(BaseModel):
    career_index: int = Field(default=0, ge=0)


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)


def get_recommendation_builder(settings: Settings = Depends(get_settings)) -> RecommendationBuilder:
    return RecommendationBuilder(create_generation_service(settings), count=settings.recommendation_count)


def get_chat_responder(settings: Settings = Depends(get_settings)) -> ChatResponder:
    return ChatResponder(create_generation_service(settings))


def _session(session_id: str, registry: SessionRegistry) -> ClientSession:
    try:
        return registry.get(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


def _identity_for(user_id: Optional[str], email: Optional[str]) -> SessionIdentity:
    if user_id and user_id.strip():
        return SessionIdentity.authenticated(user_id, email)
    return SessionIdentity.anonymous()


def _serialize_state(session: ClientSession, state: Optional[SessionState] = None) -> Dict[str, Any]:
    current = state or session.synchronizer.state
    identity = current.identity
    return {
        "sessionId": session.session_id,
        "clientId": session.client_id,
        "identity": identity.model_dump() if identity else None,
        "assessmentData": current.assessment_data.as_payload() if current.assessment_data else None,
        "recommendations": (
            [item.as_payload() for item in current.recommendations]
            if current.recommendations is not None
            else None
        ),
        "skillAnalysis": current.skill_analysis.as_payload() if current.skill_analysis else None,
        "chatHistory": [message.as_payload() for message in current.chat_history],
        "currentStep": current.current_step,
        "isLoading": current.is_loading,
        "error": current.error.model_dump(mode="json") if current.error else None,
    }


def _with_outcome(session: ClientSession, outcome: PersistenceOutcome) -> Dict[str, Any]:
    payload = _serialize_state(session)
    payload["persistence"] = asdict(outcome)
    return payload


@router.post("", status_code=status.HTTP_201_CREATED)
async def open_session(
    payload: OpenSessionRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Dict[str, Any]:
    session = registry.create(payload.client_id)
    await session.synchronizer.identify(_identity_for(payload.user_id, payload.email))
    return _serialize_state(session)


@router.get("/{session_id}", status_code=status.HTTP_200_OK)
def get_session_state(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Dict[str, Any]:
    return _serialize_state(_session(session_id, registry))


@router.post("/{session_id}/identify", status_code=status.HTTP_200_OK)
async def identify_session(
    session_id: str,
    payload: IdentifyRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Dict[str, Any]:
    session = _session(session_id, registry)
    state = await session.synchronizer.identify(_identity_for(payload.user_id, payload.email))
    return _serialize_state(session, state)


@router.post("/{session_id}/sign-out", status_code=status.HTTP_200_OK)
def sign_out_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Dict[str, Any]:
    session = _session(session_id, registry)
    return _serialize_state(session, session.synchronizer.sign_out())


@router.post("/{session_id}/reset", status_code=status.HTTP_200_OK)
def reset_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Dict[str, Any]:
    session = _session(session_id, registry)
    session.autosaver.cancel()
    return _serialize_state(session, session.synchronizer.reset())


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Response:
    _session(session_id, registry)
    await registry.close(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{session_id}/assessment/draft", status_code=status.HTTP_202_ACCEPTED)
async def save_assessment_draft(
    session_id: str,
    payload: DraftRequest,
    flush: bool = Query(default=False),
    registry: SessionRegistry = Depends(get_session_registry),
) -> Dict[str, Any]:
    session = _session(session_id, registry)
    if payload.answers:
        session.autosaver.schedule(payload.answers)
        if flush:
            await session.autosaver.flush()
    return {"progress": assessment_progress(payload.answers), "saved": flush and bool(payload.answers)}


@router.get("/{session_id}/assessment/draft", status_code=status.HTTP_200_OK)
def load_assessment_draft(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Dict[str, Any]:
    session = _session(session_id, registry)
    draft = session.drafts.load()
    return {"answers": draft, "progress": assessment_progress(draft)}


@router.post("/{session_id}/assessment", status_code=status.HTTP_200_OK)
async def submit_assessment(
    session_id: str,
    payload: AssessmentRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Dict[str, Any]:
    session = _session(session_id, registry)
    try:
        answers = validate_answers(payload.answers)
    except AssessmentValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Assessment is incomplete.", "errors": exc.errors},
        ) from exc

    outcome = await session.synchronizer.submit_profile_answers(answers)
    session.autosaver.cancel()
    session.drafts.clear()
    return _with_outcome(session, outcome)


@router.post("/{session_id}/recommendations/generate", status_code=status.HTTP_200_OK)
async def generate_recommendations(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
    builder: RecommendationBuilder = Depends(get_recommendation_builder),
) -> Dict[str, Any]:
    session = _session(session_id, registry)
    synchronizer = session.synchronizer
    answers = synchronizer.state.assessment_data
    if answers is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Complete the career assessment before requesting recommendations.",
        )

    synchronizer.set_loading(True)
    try:
        result = await builder.build(answers)
        outcome = await synchronizer.submit_recommendation_set(result.recommendations)
    finally:
        synchronizer.set_loading(False)
    response = _with_outcome(session, outcome)
    response["source"] = result.source
    return response


@router.post("/{session_id}/skills/analyze", status_code=status.HTTP_200_OK)
async def analyze_skills(
    session_id: str,
    payload: SkillAnalysisRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Dict[str, Any]:
    session = _session(session_id, registry)
    state = session.synchronizer.state
    if not state.recommendations:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Generate career recommendations before analysing skills.",
        )
    if payload.career_index >= len(state.recommendations):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Career index {payload.career_index} is out of range.",
        )

    career = state.recommendations[payload.career_index]
    user_skills = collect_user_skills(state.assessment_data) if state.assessment_data else []
    analysis = analyze_skill_gap(user_skills, career)
    outcome = await session.synchronizer.submit_skill_analysis(analysis)
    response = _with_outcome(session, outcome)
    response["career"] = career.as_payload()
    return response


@router.get("/{session_id}/chat/welcome", status_code=status.HTTP_200_OK)
def chat_welcome(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Dict[str, str]:
    session = _session(session_id, registry)
    return {"text": welcome_message(session.synchronizer.state.assessment_data)}


@router.post("/{session_id}/chat", status_code=status.HTTP_200_OK)
async def chat(
    session_id: str,
    payload: ChatRequest,
    registry: SessionRegistry = Depends(get_session_registry),
    responder: ChatResponder = Depends(get_chat_responder),
) -> Dict[str, Any]:
    session = _session(session_id, registry)
    synchronizer = session.synchronizer
    text = payload.message.strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message cannot be blank.")

    context = list(synchronizer.state.chat_history)
    synchronizer.append_chat_message(ChatMessage(sender="user", text=text))
    try:
        reply = await responder.respond(text, context, synchronizer.state.assessment_data)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Chat responder failed for session %s", session_id)
        emit_event("chat_responder_failed", session=session_id, error=exc)
        reply = APOLOGY_REPLY

    outcome = await synchronizer.append_chat_message(ChatMessage(sender="assistant", text=reply))
    response = _with_outcome(session, outcome)
    response["reply"] = reply
    return response


@router.get("/{session_id}/dashboard", status_code=status.HTTP_200_OK)
def get_dashboard(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Dict[str, Any]:
    session = _session(session_id, registry)
    state = session.synchronizer.state
    if state.assessment_data is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Complete the career assessment to unlock the dashboard.",
        )
    return dashboard_summary(state)


@assessment_router.get("/questions", status_code=status.HTTP_200_OK)
def list_assessment_questions() -> Dict[str, Any]:
    return {"sections": [section.model_dump(exclude_none=True) for section in QUESTION_CATALOG]}


__all__ = [
    "assessment_router",
    "get_chat_responder",
    "get_recommendation_builder",
    "router",
]
