"""
Unit Tests for LearningSessionManager

Tests the session lifecycle, progress updates, metrics and the expiry sweep
against the in-memory repository.
"""

import pytest
import sys
import os
from datetime import datetime, timedelta

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "adaptive_learning_tutor", "src"))

from adaptive_learning_tutor.exceptions import (
    InvalidSessionStateError,
    SessionNotFoundError,
    ValidationError,
)
from adaptive_learning_tutor.session_manager import LearningSessionManager, generate_learning_path
from adaptive_learning_tutor.session_state import PerformanceMetrics, SessionStatus


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class TestLearningPath:
    """Path generation by difficulty."""

    def test_full_path(self):
        path = generate_learning_path("React")

        assert [node.name for node in path] == ["React Basics", "React Intermediate", "React Advanced"]
        assert path[1].prerequisites == ["React-basics"]

    @pytest.mark.parametrize("difficulty,length", [
        ("beginner", 1),
        ("intermediate", 2),
        ("advanced", 3),
        ("expert", 3),
        (None, 3),
    ])
    def test_path_length(self, difficulty, length):
        assert len(generate_learning_path("React", difficulty)) == length


class TestLearningSessionManager:
    """Test suite for LearningSessionManager."""

    @pytest.fixture
    def clock(self):
        return FakeClock(datetime(2024, 3, 4, 10, 0, 0))

    @pytest.fixture
    def manager(self, clock):
        return LearningSessionManager(max_age_hours=24, clock=clock)

    @pytest.mark.asyncio
    async def test_create_session_defaults(self, manager, clock):
        session = await manager.create_session("user-1", {"topic": "React"})

        assert session.status == SessionStatus.ACTIVE
        assert session.current_difficulty == "beginner"
        assert session.progress.total_steps == 3
        assert session.progress.current_step == 0
        assert session.start_time == clock.now

        metrics = await manager.get_session_metrics(session.id)
        assert metrics.exercises_completed == 0
        assert metrics.average_accuracy == 0.0
        assert metrics.engagement_score == 1.0

    @pytest.mark.asyncio
    async def test_create_session_with_preferred_difficulty(self, manager):
        session = await manager.create_session("user-1", {
            "topic": "React",
            "preferred_difficulty": "intermediate",
            "max_duration": 45,
            "learning_goals": ["goal-1"],
        })

        assert session.current_difficulty == "intermediate"
        assert session.progress.total_steps == 2
        assert session.max_duration == 45
        assert session.learning_goals == ["goal-1"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("options", [
        {"topic": ""},
        {"topic": "   "},
        {},
        {"topic": "React", "preferred_difficulty": "godlike"},
    ])
    async def test_create_session_rejects_bad_options(self, manager, options):
        with pytest.raises(ValidationError):
            await manager.create_session("user-1", options)

    @pytest.mark.asyncio
    async def test_unknown_session(self, manager):
        with pytest.raises(SessionNotFoundError):
            await manager.get_session("missing")
        with pytest.raises(SessionNotFoundError):
            await manager.update_session("missing", {"current_step": 1})
        with pytest.raises(SessionNotFoundError):
            await manager.pause_session("missing")

    @pytest.mark.asyncio
    async def test_step_change_marks_concept_completed_once(self, manager):
        session = await manager.create_session("user-1", {"topic": "React"})

        await manager.update_session(session.id, {"current_step": 1})
        updated = await manager.update_session(session.id, {"current_step": 1})

        assert updated.progress.current_step == 1
        assert updated.progress.completed_concepts == ["React Intermediate"]
        assert updated.progress.concepts_covered == 1
        metrics = await manager.get_session_metrics(session.id)
        assert metrics.concepts_covered == 1

    @pytest.mark.asyncio
    async def test_step_equal_to_total_is_allowed(self, manager):
        session = await manager.create_session("user-1", {"topic": "React"})

        updated = await manager.update_session(session.id, {"current_step": 3})

        assert updated.progress.current_step == 3
        assert updated.current_concept() is None
        assert updated.progress.completed_concepts == []

    @pytest.mark.asyncio
    async def test_step_outside_range_rejected(self, manager):
        session = await manager.create_session("user-1", {"topic": "React"})

        with pytest.raises(ValidationError):
            await manager.update_session(session.id, {"current_step": 4})
        with pytest.raises(ValidationError):
            await manager.update_session(session.id, {"current_step": -1})

        unchanged = await manager.get_session(session.id)
        assert unchanged.progress.current_step == 0

    @pytest.mark.asyncio
    async def test_performance_classifies_current_concept(self, manager):
        session = await manager.create_session("user-1", {"topic": "React"})

        struggling = await manager.update_session(session.id, {"performance": {"accuracy": 0.2}})
        assert struggling.progress.struggling_concepts == ["React Basics"]

        mastered = await manager.update_session(session.id, {"performance": {"accuracy": 0.9}})
        assert mastered.progress.mastered_concepts == ["React Basics"]
        assert mastered.progress.struggling_concepts == []

        # Mastered concepts are not demoted by a later poor score
        after = await manager.update_session(session.id, {"performance": {"accuracy": 0.1}})
        assert after.progress.mastered_concepts == ["React Basics"]
        assert after.progress.struggling_concepts == []

    @pytest.mark.asyncio
    async def test_running_metrics(self, manager):
        session = await manager.create_session("user-1", {"topic": "React"})

        await manager.update_session(session.id, {"performance": {"accuracy": 0.9}})
        await manager.update_session(session.id, {"performance": {"accuracy": 0.5}})
        metrics = await manager.get_session_metrics(session.id)

        assert metrics.exercises_completed == 2
        assert metrics.average_accuracy == pytest.approx(0.7)
        assert metrics.engagement_score == 1.0

        await manager.update_session(session.id, {"performance": {"accuracy": 0.2}})
        metrics = await manager.get_session_metrics(session.id)
        assert metrics.engagement_score == pytest.approx(0.9)

    @pytest.mark.asyncio
    async def test_engagement_floor(self, manager):
        session = await manager.create_session("user-1", {"topic": "React"})

        for _ in range(15):
            await manager.update_session_metrics(session.id, PerformanceMetrics(accuracy=0.1))

        metrics = await manager.get_session_metrics(session.id)
        assert metrics.engagement_score == pytest.approx(0.1)

    @pytest.mark.asyncio
    async def test_time_and_hints_accumulate(self, manager):
        session = await manager.create_session("user-1", {"topic": "React"})

        await manager.update_session(session.id, {"time_spent": 120, "hints_used": 1})
        await manager.update_session(session.id, {"time_spent": 60, "hints_used": 2})
        metrics = await manager.get_session_metrics(session.id)

        assert metrics.duration == 180
        assert metrics.hints_used == 3

    @pytest.mark.asyncio
    async def test_lifecycle_transitions(self, manager, clock):
        session = await manager.create_session("user-1", {"topic": "React"})

        paused = await manager.pause_session(session.id)
        assert paused.status == SessionStatus.PAUSED

        with pytest.raises(InvalidSessionStateError):
            await manager.pause_session(session.id)
        with pytest.raises(InvalidSessionStateError):
            await manager.complete_session(session.id)

        resumed = await manager.resume_session(session.id)
        assert resumed.status == SessionStatus.ACTIVE

        with pytest.raises(InvalidSessionStateError):
            await manager.resume_session(session.id)

        clock.advance(minutes=20)
        summary = await manager.complete_session(session.id)
        assert summary.session_id == session.id

        completed = await manager.get_session(session.id)
        assert completed.status == SessionStatus.COMPLETED
        assert completed.end_time == clock.now

    @pytest.mark.asyncio
    async def test_terminal_sessions_reject_changes(self, manager):
        session = await manager.create_session("user-1", {"topic": "React"})
        await manager.complete_session(session.id)

        with pytest.raises(InvalidSessionStateError):
            await manager.update_session(session.id, {"current_step": 1})
        with pytest.raises(InvalidSessionStateError):
            await manager.resume_session(session.id)
        with pytest.raises(InvalidSessionStateError):
            await manager.abandon_session(session.id)
        with pytest.raises(InvalidSessionStateError):
            await manager.update_difficulty(session.id, "advanced")
        with pytest.raises(InvalidSessionStateError):
            await manager.update_session_metrics(session.id, PerformanceMetrics(accuracy=0.6))
        with pytest.raises(InvalidSessionStateError):
            await manager.record_concept_mastery(session.id, "hooks", 0.9)

        metrics = await manager.get_session_metrics(session.id)
        assert metrics.exercises_completed == 0
        assert metrics.average_accuracy == 0.0

    @pytest.mark.asyncio
    async def test_get_mutable_session(self, manager):
        session = await manager.create_session("user-1", {"topic": "React"})

        assert (await manager.get_mutable_session(session.id, user_id="user-1")).id == session.id
        with pytest.raises(SessionNotFoundError):
            await manager.get_mutable_session(session.id, user_id="user-2")
        with pytest.raises(SessionNotFoundError):
            await manager.get_mutable_session("missing")

        await manager.abandon_session(session.id)
        with pytest.raises(InvalidSessionStateError):
            await manager.get_mutable_session(session.id)

    @pytest.mark.asyncio
    async def test_abandon_paused_session(self, manager, clock):
        session = await manager.create_session("user-1", {"topic": "React"})
        await manager.pause_session(session.id)

        abandoned = await manager.abandon_session(session.id)

        assert abandoned.status == SessionStatus.ABANDONED
        assert abandoned.end_time == clock.now

    @pytest.mark.asyncio
    async def test_update_difficulty(self, manager):
        session = await manager.create_session("user-1", {"topic": "React"})

        updated = await manager.update_difficulty(session.id, "advanced")
        assert updated.current_difficulty == "advanced"

        with pytest.raises(ValidationError):
            await manager.update_difficulty(session.id, "godlike")

    @pytest.mark.asyncio
    async def test_summary_with_struggling_concepts(self, manager):
        session = await manager.create_session("user-1", {"topic": "React"})
        await manager.record_concept_mastery(session.id, "y", 0.2)

        summary = await manager.complete_session(session.id)

        assert summary.struggling_concepts == ["y"]
        assert "Review struggling concepts: y" in summary.recommended_next_steps
        assert "Consider reviewing prerequisite concepts" in summary.recommended_next_steps

    @pytest.mark.asyncio
    async def test_summary_for_strong_session(self, manager):
        session = await manager.create_session("user-1", {"topic": "React"})
        await manager.update_session(session.id, {"performance": {"accuracy": 0.95}, "time_spent": 900})

        summary = await manager.complete_session(session.id)

        assert summary.recommended_next_steps == [
            "Continue to more advanced topics",
            "Ready for challenging material",
        ]
        assert summary.duration == 900
        assert summary.overall_accuracy == pytest.approx(0.95)
        assert summary.mastered_concepts == ["React Basics"]

    @pytest.mark.asyncio
    async def test_record_concept_mastery(self, manager):
        session = await manager.create_session("user-1", {"topic": "React"})

        updated = await manager.record_concept_mastery(session.id, "hooks", 0.85)

        assert updated.progress.mastered_concepts == ["hooks"]
        assert "hooks" in updated.progress.completed_concepts

    @pytest.mark.asyncio
    async def test_progress_percentage(self, manager):
        session = await manager.create_session("user-1", {"topic": "React"})
        await manager.update_session(session.id, {"current_step": 1})

        assert await manager.get_progress_percentage(session.id) == pytest.approx(100 / 3)

    @pytest.mark.asyncio
    async def test_user_queries(self, manager, clock):
        first = await manager.create_session("user-1", {"topic": "React"})
        clock.advance(minutes=5)
        second = await manager.create_session("user-1", {"topic": "Node"})
        clock.advance(minutes=5)
        third = await manager.create_session("user-1", {"topic": "SQL"})
        await manager.create_session("user-2", {"topic": "Go"})

        await manager.update_session(first.id, {"time_spent": 600, "performance": {"accuracy": 0.9}})
        await manager.update_session(second.id, {"time_spent": 1200, "performance": {"accuracy": 0.5}})
        clock.advance(minutes=5)
        await manager.complete_session(first.id)
        clock.advance(minutes=5)
        await manager.abandon_session(second.id)

        active = await manager.get_user_active_sessions("user-1")
        assert [s.id for s in active] == [third.id]

        history = await manager.get_user_session_history("user-1")
        assert [s.id for s in history] == [second.id, first.id]
        assert len(await manager.get_user_session_history("user-1", limit=1)) == 1

        stats = await manager.get_user_session_stats("user-1")
        assert stats.total_sessions == 3
        assert stats.completed_sessions == 1
        assert stats.total_study_time == 1800
        assert stats.average_session_length == pytest.approx(600)
        assert stats.concepts_mastered == 1

        assert await manager.get_active_sessions_count() == 2

    @pytest.mark.asyncio
    async def test_stats_for_unknown_user(self, manager):
        stats = await manager.get_user_session_stats("nobody")
        assert stats.total_sessions == 0
        assert stats.average_accuracy == 0.0

    @pytest.mark.asyncio
    async def test_cleanup_abandons_only_old_active_sessions(self, manager, clock):
        old_active = await manager.create_session("user-1", {"topic": "React"})
        old_paused = await manager.create_session("user-1", {"topic": "Node"})
        await manager.pause_session(old_paused.id)
        old_completed = await manager.create_session("user-1", {"topic": "SQL"})
        await manager.complete_session(old_completed.id)

        clock.advance(hours=25)
        fresh = await manager.create_session("user-1", {"topic": "Go"})

        abandoned = await manager.cleanup_expired_sessions()

        assert abandoned == [old_active.id]
        swept = await manager.get_session(old_active.id)
        assert swept.status == SessionStatus.ABANDONED
        assert swept.end_time == clock.now
        assert (await manager.get_session(old_paused.id)).status == SessionStatus.PAUSED
        assert (await manager.get_session(old_completed.id)).status == SessionStatus.COMPLETED
        assert (await manager.get_session(fresh.id)).status == SessionStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_cleanup_with_explicit_now(self, manager, clock):
        session = await manager.create_session("user-1", {"topic": "React"})

        assert await manager.cleanup_expired_sessions(clock.now + timedelta(hours=23)) == []
        assert await manager.cleanup_expired_sessions(clock.now + timedelta(hours=24, seconds=1)) == [session.id]
        assert await manager.cleanup_expired_sessions(clock.now + timedelta(hours=48)) == []

    @pytest.mark.asyncio
    async def test_loaded_sessions_are_copies(self, manager):
        session = await manager.create_session("user-1", {"topic": "React"})

        loaded = await manager.get_session(session.id)
        loaded.progress.current_step = 2

        assert (await manager.get_session(session.id)).progress.current_step == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
