"""Prompt builders for career recommendations and the chat assistant."""

from __future__ import annotations

import json
from typing import Optional, Sequence

from .state import CareerRecommendation, ChatMessage, ProfileAnswers

CHAT_CONTEXT_MESSAGES = 5

_EXAMPLE_RECORD = {
    "id": 1,
    "title": "Job Title",
    "match": 85,
    "description": "Detailed description...",
    "skills": ["skill1", "skill2", "skill3"],
    "salaryRange": "₹X-Y LPA",
    "growth": "High",
    "companies": ["company1", "company2", "company3"],
    "timeToEntry": "X-Y months",
    "reasoning": "Specific reasoning...",
    "careerPath": "Career progression...",
    "responsibilities": ["responsibility1", "responsibility2"],
    "industryOutlook": "Industry outlook...",
    "jobOpenings": "High",
}


def _join(values: Sequence[str], empty: str = "None") -> str:
    cleaned = [value for value in values if value and value != "None"]
    return ", ".join(cleaned) if cleaned else empty


def _text(value: Optional[object], empty: str = "None") -> str:
    if value is None:
        return empty
    rendered = str(value).strip()
    return rendered or empty


def build_career_prompt(answers: ProfileAnswers, *, count: int = 5) -> str:
    """Describe the student profile and ask for ``count`` recommendations as a bare JSON array."""
    example = json.dumps([_EXAMPLE_RECORD], ensure_ascii=False, indent=2)
    return "\n".join(
        [
            "You are a career advisor AI specifically trained for the Indian job market.",
            f"Based on the following student profile, recommend exactly {count} suitable career paths.",
            "",
            "STUDENT PROFILE:",
            f"Name: {_text(answers.name)}",
            f"Age: {_text(answers.age)}",
            f"Education: {_text(answers.education)}",
            f"Field of Study: {_text(answers.field_of_study)}",
            f"Location: {_text(answers.location)}",
            "",
            "Technical Skills:",
            f"- Programming Languages: {_join(answers.programming_languages)}",
            f"- Frameworks: {_join(answers.frameworks)}",
            f"- Databases: {_join(answers.databases)}",
            f"- Cloud Platforms: {_join(answers.cloud_platforms)}",
            f"- Tools: {_join(answers.tools_and_tech)}",
            "",
            f"Career Interests: {_join(answers.career_interests, empty='')}",
            f"Work Environment Preference: {_text(answers.work_environment, empty='')}",
            f"Work Style: {_text(answers.work_style, empty='')}",
            f"Career Goals: {_text(answers.career_goals, empty='')}",
            "",
            "Experience:",
            f"- Internships: {_text(answers.internships)}",
            f"- Projects: {_text(answers.projects)}",
            f"- Certifications: {_text(answers.certifications)}",
            f"- Achievements: {_text(answers.achievements)}",
            "",
            f"Strengths: {_join(answers.strengths, empty='')}",
            f"Languages: {_join(answers.languages, empty='')}",
            "",
            "REQUIREMENTS:",
            f"1. Provide exactly {count} career recommendations",
            "2. Focus on realistic opportunities in India",
            "3. Consider current market trends and demand",
            "4. Include salary ranges in INR (Lakhs Per Annum)",
            "5. Provide match percentage (70-95% range)",
            "6. Include specific reasoning for each recommendation",
            "",
            "IMPORTANT: Return ONLY a valid JSON array with this exact structure:",
            example,
            "",
            "Do not include any text before or after the JSON array.",
        ]
    )


def build_chat_prompt(
    message: str,
    context: Sequence[ChatMessage],
    answers: Optional[ProfileAnswers] = None,
) -> str:
    recent = list(context)[-CHAT_CONTEXT_MESSAGES:]
    context_lines = "\n".join(f"{entry.sender}: {entry.text}" for entry in recent)
    sections = ["You are CareerAI, a helpful career advisor for Indian students."]
    if answers is not None:
        sections.append(
            f"User Profile: {_text(answers.name, empty='Student')}, {_text(answers.education, empty='education not shared')}, "
            f"interested in {_join(answers.career_interests, empty='no specific areas yet')}"
        )
    sections.append(f"Previous conversation:\n{context_lines}" if context_lines else "Previous conversation: (none)")
    sections.append(f"Current question: {message.strip()}")
    sections.append(
        "Provide helpful, actionable advice specific to the Indian job market and education system. "
        "Be conversational, supportive, and practical. Keep responses concise but informative. "
        "If the user asks about specific careers, provide India-specific information. "
        "Focus on practical advice that students can implement immediately."
    )
    return "\n\n".join(sections)


def describe_recommendation(recommendation: CareerRecommendation) -> str:
    return f"{recommendation.title} ({recommendation.match}% match)"


__all__ = [
    "CHAT_CONTEXT_MESSAGES",
    "build_career_prompt",
    "build_chat_prompt",
    "describe_recommendation",
]
