"""
Unit Tests for the rule-based chat responder.
"""

import random
import pytest
import sys
import os
from unittest.mock import AsyncMock

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "adaptive_learning_tutor", "src"))

from adaptive_learning_tutor.content_generator import SUMMARY_TEMPLATES
from adaptive_learning_tutor.exceptions import RepositoryError, ValidationError
from adaptive_learning_tutor.learning_orchestrator import LearningOrchestrator
from adaptive_learning_tutor.skill_model import SkillLevel, UserProfile


class TestChatResponder:
    """Test suite for ChatResponder via LearningOrchestrator.process_chat_message."""

    @pytest.fixture
    def orchestrator(self):
        return LearningOrchestrator(rng=random.Random(11))

    async def add_user(self, orchestrator, **fields):
        await orchestrator.profiles.create_profile(UserProfile(id="user-1", **fields))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", ["Hello there", "hi!", "Hi, what is React?"])
    async def test_greeting(self, orchestrator, message):
        response = await orchestrator.process_chat_message("user-1", {"message": message})

        assert response.message.startswith("Hello! I'm your AI Tutor.")
        assert response.suggestions == ["Explain a concept", "Review my progress", "Start a quiz"]

    @pytest.mark.asyncio
    async def test_greeting_needs_whole_word(self, orchestrator):
        response = await orchestrator.process_chat_message("user-1", {"message": "this seems fine"})

        assert response.message.startswith("I understand.")

    @pytest.mark.asyncio
    async def test_explain_known_concept(self, orchestrator):
        response = await orchestrator.process_chat_message("user-1", {"message": "What is React?"})

        summaries = [t.format(concept="react-fundamentals") for t in SUMMARY_TEMPLATES["beginner"]]
        summary, follow_up = response.message.split("\n\n")
        assert summary in summaries
        assert follow_up == "Would you like a more detailed explanation or an example?"
        assert "Show example" in response.suggestions

    @pytest.mark.asyncio
    async def test_explain_uses_stored_mastery(self, orchestrator):
        await self.add_user(orchestrator, skill_levels={
            "typescript-intro": SkillLevel("typescript-intro", mastery=0.95),
        })

        response = await orchestrator.process_chat_message("user-1", {"message": "explain typescript"})

        summaries = [t.format(concept="typescript-intro") for t in SUMMARY_TEMPLATES["expert"]]
        assert response.message.split("\n\n")[0] in summaries

    @pytest.mark.asyncio
    async def test_explain_unknown_concept(self, orchestrator):
        response = await orchestrator.process_chat_message("user-1", {"message": "Explain quantum physics!"})

        assert response.message.startswith('I\'m not sure about "quantum physics".')
        assert response.suggestions == ["What is React?", "Explain TypeScript"]

    @pytest.mark.asyncio
    async def test_explain_without_term(self, orchestrator):
        response = await orchestrator.process_chat_message("user-1", {"message": "explain?"})

        assert response.message.startswith("I can explain many concepts.")

    @pytest.mark.asyncio
    async def test_explain_lookup_failure(self, orchestrator):
        orchestrator.generate_explanation = AsyncMock(side_effect=RepositoryError("storage down"))

        response = await orchestrator.process_chat_message("user-1", {"message": "what is react"})

        assert response.message == 'I encountered an error looking up "react". Please try again.'

    @pytest.mark.asyncio
    async def test_progress(self, orchestrator):
        await self.add_user(orchestrator)
        await orchestrator.track_progress("user-1", "react-fundamentals", 0.9)

        response = await orchestrator.process_chat_message("user-1", {"message": "How am I doing?"})

        assert response.message.startswith("You're making good progress! Your learning velocity is steady.")
        assert "strong in react-fundamentals" in response.message
        assert "focus more on advanced topics" in response.message

    @pytest.mark.asyncio
    async def test_help(self, orchestrator):
        response = await orchestrator.process_chat_message("user-1", {"message": "Can you help me?"})

        assert response.message.startswith("I can help you learn new concepts")
        assert response.suggestions == ["Start a new session", "Explain a concept"]

    @pytest.mark.asyncio
    async def test_clarification_uses_context_topic(self, orchestrator):
        response = await orchestrator.process_chat_message("user-1", {
            "message": "I like trains",
            "context": {"topic": "React"},
        })

        assert "interesting point about React" in response.message

    @pytest.mark.asyncio
    async def test_clarification_default_topic(self, orchestrator):
        response = await orchestrator.process_chat_message("user-1", {"message": "I like trains"})

        assert "interesting point about learning" in response.message

    @pytest.mark.asyncio
    async def test_malformed_request(self, orchestrator):
        with pytest.raises(ValidationError):
            await orchestrator.process_chat_message("user-1", {"text": "hello"})


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
