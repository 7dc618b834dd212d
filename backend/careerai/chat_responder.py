"""Chat assistant replies from the generation service, with canned answers as fallback."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from .generation import GenerationError, GenerationService
from .prompts import build_chat_prompt
from .state import ChatMessage, ProfileAnswers
from .telemetry import emit_event

logger = logging.getLogger(__name__)

APOLOGY_REPLY = (
    "I'm sorry, I'm having trouble processing your request right now. Please try again in a moment."
)


def welcome_message(answers: Optional[ProfileAnswers]) -> str:
    capabilities = (
        "I can help you with resume tips, course suggestions, interview preparation, and career guidance"
    )
    if answers is not None and answers.name:
        return f"Hi {answers.name}! I'm your AI career advisor. {capabilities} based on your profile. What would you like to know?"
    return f"Hi! I'm your AI career advisor. {capabilities}. What would you like to know?"


def _field_note(answers: Optional[ProfileAnswers], template: str) -> str:
    if answers is None or not answers.field_of_study:
        return ""
    return "\n\n" + template.format(field=answers.field_of_study)


def canned_reply(message: str, answers: Optional[ProfileAnswers] = None) -> str:
    lowered = message.lower()

    if "supabase" in lowered:
        return (
            "Supabase is an excellent choice for modern applications! Here's what makes it great:\n\n"
            "**Key Benefits:**\n"
            "• **Real-time database**: PostgreSQL with real-time subscriptions\n"
            "• **Built-in authentication**: Social logins, magic links, row-level security\n"
            "• **Edge Functions**: Serverless functions for custom logic\n"
            "• **Storage**: File uploads and management\n"
            "• **Auto-generated APIs**: REST and GraphQL APIs from your schema\n\n"
            "**Getting Started:**\n"
            "1. Create a Supabase project at supabase.com\n"
            "2. Set up your database schema\n"
            "3. Install a client library for your stack\n"
            "4. Configure your environment variables\n"
            "5. Start building with real-time features!"
            + _field_note(answers, "With your background in {field}, Supabase can help you build production-ready apps quickly!")
        )

    if "resume" in lowered or "cv" in lowered:
        return (
            "Here are key resume tips for Indian students:\n\n"
            "• **Keep it concise**: 1-2 pages maximum, focus on relevant information\n"
            "• **Technical skills section**: List programming languages, frameworks, and tools prominently\n"
            "• **Project showcase**: Include 2-3 key projects with technologies used and outcomes\n"
            "• **Quantify achievements**: Use numbers wherever possible (e.g., \"Improved performance by 30%\")\n"
            "• **ATS-friendly format**: Use simple formatting, avoid graphics that ATS can't read\n"
            "• **Include relevant coursework**: Especially if you're a fresher\n"
            "• **Contact information**: Professional email, LinkedIn profile, GitHub (for tech roles)"
            + _field_note(answers, "Based on your profile in {field}, make sure to highlight relevant projects and skills!")
        )

    closing = (
        f"I have your assessment data and can provide personalized advice based on your background in {answers.field_of_study}."
        if answers is not None and answers.field_of_study
        else "Complete the career assessment to get personalized recommendations!"
    )
    return (
        "I'm here to help with your career questions! I can assist with:\n\n"
        "• **Career recommendations** based on your skills and interests\n"
        "• **Skill development** guidance and learning resources\n"
        "• **Resume and interview** preparation tips\n"
        "• **Technology choices** like Supabase, React, and modern development\n"
        "• **Job market insights** for the Indian tech industry\n\n"
        "What specific area would you like to explore? Feel free to ask about any career-related topic!\n\n"
        + closing
    )


class ChatResponder:
    def __init__(self, service: Optional[GenerationService]) -> None:
        self._service = service

    async def respond(
        self,
        message: str,
        context: Sequence[ChatMessage],
        answers: Optional[ProfileAnswers] = None,
    ) -> str:
        if self._service is None:
            return canned_reply(message, answers)
        prompt = build_chat_prompt(message, context, answers)
        try:
            text = await self._service.generate(prompt)
        except GenerationError as exc:
            logger.warning("Chat generation failed, using canned reply: %s", exc)
            emit_event("generation_fallback_used", kind="chat", reason=str(exc))
            return canned_reply(message, answers)
        return text.strip()


__all__ = ["APOLOGY_REPLY", "ChatResponder", "canned_reply", "welcome_message"]
