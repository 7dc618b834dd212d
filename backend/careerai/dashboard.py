"""Read-only summaries of a session for the dashboard view."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from .skill_gap import collect_user_skills
from .state import CareerRecommendation, ProfileAnswers, SessionState, SkillAnalysis

LEARNING_PATH_PREVIEW = 3


def recommendation_stats(recommendations: Optional[Sequence[CareerRecommendation]]) -> Dict[str, int]:
    if not recommendations:
        return {"total": 0, "averageMatch": 0, "topMatch": 0}
    matches = [item.match for item in recommendations]
    return {
        "total": len(matches),
        "averageMatch": round(sum(matches) / len(matches)),
        "topMatch": max(matches),
    }


def skills_overview(answers: Optional[ProfileAnswers], analysis: Optional[SkillAnalysis]) -> Dict[str, Any]:
    skills: List[str] = collect_user_skills(answers) if answers is not None else []
    strengths = list(answers.strengths) if answers is not None else []
    learning = analysis.learning_path[:LEARNING_PATH_PREVIEW] if analysis is not None else []
    return {
        "skills": skills,
        "strengths": strengths,
        "learningPath": [entry.as_payload() for entry in learning],
    }


def days_since_assessment(answers: Optional[ProfileAnswers], now: Optional[datetime] = None) -> Optional[int]:
    if answers is None or answers.completed_at is None:
        return None
    completed = answers.completed_at
    if completed.tzinfo is None:
        completed = completed.replace(tzinfo=timezone.utc)
    current = now or datetime.now(timezone.utc)
    return max(0, (current - completed).days)


def dashboard_summary(state: SessionState, now: Optional[datetime] = None) -> Dict[str, Any]:
    answers = state.assessment_data
    return {
        "name": answers.name if answers is not None else None,
        "assessmentComplete": answers is not None,
        "hasRecommendations": bool(state.recommendations),
        "hasSkillAnalysis": state.skill_analysis is not None,
        "daysSinceAssessment": days_since_assessment(answers, now),
        "recommendations": recommendation_stats(state.recommendations),
        "skills": skills_overview(answers, state.skill_analysis),
        "chatMessages": len(state.chat_history),
    }


__all__ = ["dashboard_summary", "days_since_assessment", "recommendation_stats", "skills_overview"]
