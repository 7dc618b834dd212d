from __future__ import annotations

import pytest

from careerai.state import (
    INITIAL_STATE,
    CareerRecommendation,
    ChatMessage,
    ChatMessageAppended,
    ErrorCleared,
    ErrorRaised,
    HydratedData,
    IdentityHydrated,
    LoadingChanged,
    ProfileAnswers,
    ProfileAnswersSubmitted,
    RecommendationSetSubmitted,
    SessionIdentity,
    SkillAnalysis,
    SkillAnalysisSubmitted,
    StateReset,
    StepChanged,
    SyncError,
    reduce,
)


def test_reduce_never_mutates_previous_state() -> None:
    answers = ProfileAnswers(name="Asha")
    after = reduce(INITIAL_STATE, ProfileAnswersSubmitted(answers))
    assert INITIAL_STATE.assessment_data is None
    assert after.assessment_data == answers
    assert after.current_step == "recommendations"


def test_recommendations_advance_to_skills_and_replace_wholesale() -> None:
    first = reduce(INITIAL_STATE, RecommendationSetSubmitted((CareerRecommendation(title="A"), CareerRecommendation(title="B"))))
    second = reduce(first, RecommendationSetSubmitted((CareerRecommendation(title="C"),)))
    assert [item.title for item in second.recommendations] == ["C"]
    assert second.current_step == "skills"


def test_skill_analysis_does_not_change_step() -> None:
    state = reduce(INITIAL_STATE, StepChanged("skills"))
    state = reduce(state, SkillAnalysisSubmitted(SkillAnalysis(existing=["SQL"])))
    assert state.skill_analysis.existing == ["SQL"]
    assert state.current_step == "skills"


def test_chat_messages_keep_insertion_order() -> None:
    state = INITIAL_STATE
    for text in ("one", "two", "one"):
        state = reduce(state, ChatMessageAppended(ChatMessage(sender="user", text=text)))
    assert [entry.text for entry in state.chat_history] == ["one", "two", "one"]
    assert INITIAL_STATE.chat_history == []


def test_identity_hydration_swaps_all_derived_entities() -> None:
    loaded = reduce(INITIAL_STATE, ProfileAnswersSubmitted(ProfileAnswers(name="Old")))
    loaded = reduce(loaded, ChatMessageAppended(ChatMessage(sender="user", text="hi")))
    identity = SessionIdentity.authenticated("user-1")

    hydrated = reduce(loaded, IdentityHydrated(identity, HydratedData()))
    assert hydrated.identity == identity
    assert hydrated.assessment_data is None
    assert hydrated.chat_history == []
    assert hydrated.current_step == "home"


@pytest.mark.parametrize(
    ("data", "expected"),
    [
        (HydratedData(), "home"),
        (HydratedData(assessment_data=ProfileAnswers(name="A")), "recommendations"),
        (
            HydratedData(
                assessment_data=ProfileAnswers(name="A"),
                recommendations=[CareerRecommendation(title="Data Scientist")],
            ),
            "skills",
        ),
    ],
)
def test_hydrated_step_follows_available_data(data: HydratedData, expected: str) -> None:
    state = reduce(INITIAL_STATE, IdentityHydrated(SessionIdentity.anonymous(), data))
    assert state.current_step == expected


def test_error_raised_clears_loading_and_error_cleared_resets() -> None:
    state = reduce(INITIAL_STATE, LoadingChanged(True))
    state = reduce(state, ErrorRaised(SyncError(code="assessment_sync_failed", message="boom")))
    assert state.is_loading is False
    assert state.error.code == "assessment_sync_failed"
    assert reduce(state, ErrorCleared()).error is None


def test_state_reset_keeps_only_identity() -> None:
    identity = SessionIdentity.anonymous()
    state = reduce(INITIAL_STATE, ProfileAnswersSubmitted(ProfileAnswers(name="A")))
    state = reduce(state, LoadingChanged(True))
    reset = reduce(state, StateReset(identity))
    assert reset.identity == identity
    assert reset.assessment_data is None
    assert reset.is_loading is False
    assert reset.current_step == "home"


def test_unknown_intent_is_rejected() -> None:
    with pytest.raises(TypeError):
        reduce(INITIAL_STATE, object())  # type: ignore[arg-type]


def test_recommendation_match_is_coerced_into_range() -> None:
    assert CareerRecommendation(title="A", match="87%").match == 87
    assert CareerRecommendation(title="A", match=140).match == 100
    assert CareerRecommendation(title="A", match=72.6).match == 73


def test_chat_sender_aliases_normalise_to_assistant() -> None:
    assert ChatMessage(sender="bot", text="hi").sender == "assistant"
    assert ChatMessage(sender="AI", text="hi").sender == "assistant"


def test_authenticated_identity_requires_id() -> None:
    with pytest.raises(ValueError):
        SessionIdentity.authenticated("   ")
    anonymous = SessionIdentity.anonymous()
    assert anonymous.is_anonymous
    assert anonymous.id != SessionIdentity.anonymous().id
