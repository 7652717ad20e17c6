"""
Rule-Based Chat Responder

Deterministic keyword matching over a learner's message. Checked in order:
greeting, explain / "what is", progress / "how am i doing", help, and a
clarification prompt for everything else.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List

from adaptive_learning_tutor.exceptions import LearningEngineError
from adaptive_learning_tutor.schemas import ChatRequest
from adaptive_learning_tutor.skill_model import create_initial_skill_level

if TYPE_CHECKING:
    from adaptive_learning_tutor.learning_orchestrator import LearningOrchestrator

logger = logging.getLogger(__name__)

GREETING_PATTERN = re.compile(r"\b(hello|hi)\b")
EXPLAIN_KEYWORDS = ("explain", "what is")
PROGRESS_KEYWORDS = ("progress", "how am i doing")

EXPLAIN_SUGGESTIONS = ["What is React?", "Explain TypeScript"]


@dataclass
class ChatResponse:
    message: str
    suggestions: List[str] = field(default_factory=list)


class ChatResponder:
    """Answers chat messages using the orchestrator's explanations and insights."""

    def __init__(self, orchestrator: "LearningOrchestrator"):
        self.orchestrator = orchestrator

    async def respond(self, user_id: str, request: ChatRequest) -> ChatResponse:
        lower_msg = request.message.lower()

        if GREETING_PATTERN.search(lower_msg):
            return ChatResponse(
                message=(
                    "Hello! I'm your AI Tutor. I can help you with your learning path, "
                    "explain concepts, or review your progress. What would you like to do?"
                ),
                suggestions=["Explain a concept", "Review my progress", "Start a quiz"],
            )

        if any(keyword in lower_msg for keyword in EXPLAIN_KEYWORDS):
            return await self._explain(user_id, lower_msg)

        if any(keyword in lower_msg for keyword in PROGRESS_KEYWORDS):
            return await self._progress(user_id)

        if "help" in lower_msg:
            return ChatResponse(
                message=(
                    "I can help you learn new concepts, practice skills, and track your progress. "
                    "Try asking 'What is TypeScript?' or 'Start a quiz'."
                ),
                suggestions=["Start a new session", "Explain a concept"],
            )

        topic = request.context.topic if request.context and request.context.topic else "learning"
        return ChatResponse(
            message=(
                f"I understand. That's an interesting point about {topic}. "
                "Could you elaborate or ask a specific question?"
            ),
            suggestions=["Tell me more", "Give an example", "Next topic"],
        )

    async def _explain(self, user_id: str, lower_msg: str) -> ChatResponse:
        term = lower_msg
        for keyword in EXPLAIN_KEYWORDS:
            term = term.replace(keyword, "")
        term = term.strip(" ?!.")

        if not term:
            return ChatResponse(
                message='I can explain many concepts. Try asking about specific topics like "React", '
                        '"TypeScript", or "Databases".',
                suggestions=["What is React?", "Explain TypeScript interfaces"],
            )

        concept_id = self.orchestrator.concepts.find_concept(term)
        if concept_id is None:
            return ChatResponse(
                message=f'I\'m not sure about "{term}". I can explain topics like "React", '
                        f'"TypeScript", "Node.js", or "Databases".',
                suggestions=EXPLAIN_SUGGESTIONS,
            )

        try:
            profile = await self.orchestrator.profiles.get_user_profile(user_id)
            level = None
            if profile is not None:
                level = profile.skill_levels.get(concept_id)
            explanation = await self.orchestrator.generate_explanation(
                concept_id, level or create_initial_skill_level(concept_id)
            )
        except LearningEngineError as e:
            logger.warning(f"⚠️ [ChatResponder] Lookup failed for '{term}': {e}")
            return ChatResponse(
                message=f'I encountered an error looking up "{term}". Please try again.',
                suggestions=EXPLAIN_SUGGESTIONS,
            )

        return ChatResponse(
            message=f"{explanation.content.summary}\n\nWould you like a more detailed explanation or an example?",
            suggestions=["Detailed explanation", "Show example", "Compare with..."],
        )

    async def _progress(self, user_id: str) -> ChatResponse:
        insights = await self.orchestrator.get_learning_insights(user_id)
        pace = "steady" if insights.learning_velocity > 0 else "getting started"
        strengths = ", ".join(insights.strengths) or "basics"
        weaknesses = ", ".join(insights.weaknesses) or "advanced topics"
        return ChatResponse(
            message=(
                f"You're making good progress! Your learning velocity is {pace}. "
                f"You are strong in {strengths} but could focus more on {weaknesses}."
            ),
            suggestions=["View full detailed report", "Practice weak areas"],
        )
