"""Career recommendation builder with a deterministic keyword-overlap fallback."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Literal, Optional, Sequence

from pydantic import ValidationError

from .career_catalog import CAREER_CATALOG, CatalogCareer
from .generation import GenerationError, GenerationService, strip_code_fences
from .prompts import build_career_prompt
from .state import CareerRecommendation, ProfileAnswers
from .telemetry import emit_event

logger = logging.getLogger(__name__)

INTEREST_WEIGHT = 40
SKILL_WEIGHT = 35
EDUCATION_WEIGHT = 15
EXPERIENCE_WEIGHT = 10
MIN_MATCH = 70
MAX_MATCH = 95
INCLUSION_THRESHOLD = 30
MIN_RECOMMENDATIONS = 5


@dataclass(frozen=True)
class RecommendationResult:
    recommendations: List[CareerRecommendation]
    source: Literal["generated", "fallback"]


def _overlaps(left: str, right: str) -> bool:
    a = left.lower()
    b = right.lower()
    return a in b or b in a


def _any_overlap(candidates: Iterable[str], targets: Sequence[str]) -> bool:
    return any(
        _overlaps(candidate, target)
        for candidate in candidates
        if candidate.strip()
        for target in targets
    )


def _scoring_skills(answers: ProfileAnswers) -> List[str]:
    combined = [*answers.programming_languages, *answers.frameworks, *answers.tools_and_tech]
    return [skill for skill in combined if skill and skill != "None"]


def score_career(career: CatalogCareer, answers: ProfileAnswers) -> int:
    """Raw heuristic score before clamping; interests, skills, education, experience."""
    score = 0
    if _any_overlap(answers.career_interests, career.related_interests):
        score += INTEREST_WEIGHT
    if _any_overlap(_scoring_skills(answers), career.recommendation.skills):
        score += SKILL_WEIGHT
    if answers.field_of_study and answers.field_of_study in career.preferred_education:
        score += EDUCATION_WEIGHT
    if (answers.projects or "").strip() or (answers.internships or "").strip():
        score += EXPERIENCE_WEIGHT
    return score


def _clamp_match(score: int) -> int:
    return max(MIN_MATCH, min(MAX_MATCH, score))


def fallback_recommendations(answers: ProfileAnswers, *, count: int = 5) -> List[CareerRecommendation]:
    """Rank the static catalog against the answers.

    Careers scoring at or below the inclusion threshold are dropped; when fewer
    than five survive, the first five catalog entries are ranked instead.
    Ties keep catalog order, so the result is stable for identical answers.
    """
    scored = [(career, score_career(career, answers)) for career in CAREER_CATALOG]
    selected = [(career, score) for career, score in scored if score > INCLUSION_THRESHOLD]
    if len(selected) < MIN_RECOMMENDATIONS:
        selected = scored[:MIN_RECOMMENDATIONS]

    ranked = sorted(selected, key=lambda item: _clamp_match(item[1]), reverse=True)
    results: List[CareerRecommendation] = []
    for index, (career, score) in enumerate(ranked[: max(count, 0)], start=1):
        results.append(
            career.recommendation.model_copy(update={"id": index, "match": _clamp_match(score)}, deep=True)
        )
    return results


def parse_recommendations(text: str) -> List[CareerRecommendation]:
    """Parse a generated JSON array (or ``{"recommendations": [...]}``) into records."""
    payload: Any = json.loads(strip_code_fences(text))
    if isinstance(payload, dict):
        payload = payload.get("recommendations", [])
    if not isinstance(payload, list):
        raise ValueError(f"Expected a JSON array of recommendations, got {type(payload).__name__}")
    records: List[CareerRecommendation] = []
    for index, entry in enumerate(payload, start=1):
        record = CareerRecommendation.model_validate(entry)
        if not record.id:
            record = record.model_copy(update={"id": index})
        records.append(record)
    return records


class RecommendationBuilder:
    """Asks the generation service for recommendations and falls back to the catalog."""

    def __init__(self, service: Optional[GenerationService], *, count: int = 5) -> None:
        self._service = service
        self._count = count

    async def build(self, answers: ProfileAnswers) -> RecommendationResult:
        if self._service is None:
            return self._fallback(answers, reason="generation unavailable")

        prompt = build_career_prompt(answers, count=self._count)
        try:
            text = await self._service.generate(prompt)
        except GenerationError as exc:
            logger.warning("Recommendation generation failed: %s", exc)
            return self._fallback(answers, reason=str(exc))

        try:
            records = parse_recommendations(text)
        except (ValidationError, ValueError, TypeError) as exc:
            logger.warning("Generated recommendations were not usable JSON: %s", exc)
            return self._fallback(answers, reason="unparseable response")
        if not records:
            return self._fallback(answers, reason="empty response")
        return RecommendationResult(recommendations=records[: self._count], source="generated")

    def _fallback(self, answers: ProfileAnswers, *, reason: str) -> RecommendationResult:
        emit_event("generation_fallback_used", kind="recommendations", reason=reason)
        return RecommendationResult(
            recommendations=fallback_recommendations(answers, count=self._count),
            source="fallback",
        )


__all__ = [
    "RecommendationBuilder",
    "RecommendationResult",
    "fallback_recommendations",
    "parse_recommendations",
    "score_career",
]
