"""Skill gap analysis by substring matching user skills against a career's requirements."""

from __future__ import annotations

from typing import Iterable, List, Sequence

from .career_catalog import LEARNING_RESOURCES, default_learning_entry
from .state import CareerRecommendation, LearningPathEntry, ProfileAnswers, SkillAnalysis


def collect_user_skills(answers: ProfileAnswers) -> List[str]:
    combined = [
        *answers.programming_languages,
        *answers.frameworks,
        *answers.databases,
        *answers.cloud_platforms,
        *answers.tools_and_tech,
    ]
    return [skill for skill in combined if skill and skill.strip() and skill != "None"]


def _matches(required: str, user_skills: Sequence[str]) -> bool:
    target = required.lower()
    for skill in user_skills:
        candidate = skill.lower()
        if candidate in target or target in candidate:
            return True
    return False


def learning_path(missing_skills: Iterable[str]) -> List[LearningPathEntry]:
    path: List[LearningPathEntry] = []
    for skill in missing_skills:
        entry = LEARNING_RESOURCES.get(skill)
        path.append(entry.model_copy(deep=True) if entry else default_learning_entry(skill))
    return path


def analyze_skill_gap(user_skills: Sequence[str], career: CareerRecommendation) -> SkillAnalysis:
    existing = [skill for skill in career.skills if _matches(skill, user_skills)]
    missing = [skill for skill in career.skills if skill not in existing]
    return SkillAnalysis(existing=existing, missing=missing, learning_path=learning_path(missing))


__all__ = ["analyze_skill_gap", "collect_user_skills", "learning_path"]
