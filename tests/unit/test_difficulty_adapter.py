"""
Unit Tests for Difficulty Adapter

Tests automatic difficulty adjustment logic.
"""

import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "adaptive_learning_tutor", "src"))

from adaptive_learning_tutor.difficulty_adapter import (
    DIFFICULTY_LEVELS,
    DifficultyAdapter,
    DifficultyAdjustment,
)


class TestDifficultyAdapter:
    """Test suite for DifficultyAdapter."""

    @pytest.fixture
    def adapter(self):
        """Create adapter instance."""
        return DifficultyAdapter()

    def test_increase_difficulty_excellent_scores(self, adapter):
        """Test increasing difficulty when recent average is excellent."""
        adjustment = adapter.check_adjustment(
            current_level="intermediate",
            accuracy_history=[0.95] * 10,
        )

        assert isinstance(adjustment, DifficultyAdjustment)
        assert adjustment.changed
        assert adjustment.direction == "increase"
        assert adjustment.to_level == "advanced"
        assert adjustment.confidence == pytest.approx(0.9)
        assert "Excellent performance" in adjustment.reason

    def test_decrease_difficulty_low_scores(self, adapter):
        """Test decreasing difficulty when recent average is poor."""
        adjustment = adapter.check_adjustment(
            current_level="intermediate",
            accuracy_history=[0.35, 0.30, 0.28, 0.32, 0.25],
        )

        assert adjustment.direction == "decrease"
        assert adjustment.to_level == "beginner"
        assert adjustment.confidence == pytest.approx(0.8)
        assert "Struggling" in adjustment.reason

    def test_maintain_difficulty_stable(self, adapter):
        """Test maintaining difficulty when performance is middling."""
        adjustment = adapter.check_adjustment(
            current_level="intermediate",
            accuracy_history=[0.65, 0.70, 0.68, 0.72, 0.69],
        )

        assert not adjustment.changed
        assert adjustment.direction is None
        assert adjustment.confidence == 0.0
        assert "stable" in adjustment.reason.lower()

    def test_empty_history_defaults_to_average(self, adapter):
        """No history counts as 0.5 accuracy, which holds the level."""
        adjustment = adapter.check_adjustment("advanced", [])

        assert adjustment.to_level == "advanced"
        assert adjustment.direction is None

    def test_consistent_good_streak_increases(self, adapter):
        """Good average plus five consecutive scores above 0.7 moves up."""
        adjustment = adapter.check_adjustment("beginner", [0.8] * 6)

        assert adjustment.direction == "increase"
        assert adjustment.to_level == "intermediate"
        assert adjustment.confidence == pytest.approx(0.7)
        assert "Consistent good performance" in adjustment.reason

    def test_good_average_without_streak_holds(self, adapter):
        """A broken streak keeps the level even with a good average."""
        adjustment = adapter.check_adjustment("beginner", [0.6, 0.9, 0.9, 0.9, 0.8])

        assert adjustment.direction is None
        assert adjustment.to_level == "beginner"

    def test_only_last_ten_scores_count(self, adapter):
        """Old poor scores outside the window do not drag the average down."""
        adjustment = adapter.check_adjustment("beginner", [0.1] * 20 + [0.95] * 10)

        assert adjustment.direction == "increase"
        assert adjustment.to_level == "intermediate"

    def test_already_at_max_difficulty(self, adapter):
        """Test that difficulty doesn't increase beyond expert."""
        adjustment = adapter.check_adjustment("expert", [0.95] * 10)

        assert adjustment.direction == "increase"
        assert adjustment.to_level == "expert"
        assert not adjustment.changed

    def test_already_at_min_difficulty(self, adapter):
        """Test that difficulty doesn't decrease below beginner."""
        adjustment = adapter.check_adjustment("beginner", [0.15, 0.10, 0.12, 0.08, 0.11])

        assert adjustment.to_level == "beginner"
        assert not adjustment.changed

    def test_comfortable_preference_damps_increase(self, adapter):
        adjustment = adapter.check_adjustment("beginner", [0.95] * 10, "comfortable")
        assert adjustment.confidence == pytest.approx(0.72)

    def test_challenging_preference_damps_decrease(self, adapter):
        adjustment = adapter.check_adjustment("advanced", [0.2] * 10, "challenging")
        assert adjustment.confidence == pytest.approx(0.72)

    def test_preference_only_damps_its_direction(self, adapter):
        comfortable_decrease = adapter.check_adjustment("advanced", [0.2] * 10, "comfortable")
        challenging_increase = adapter.check_adjustment("beginner", [0.95] * 10, "challenging")

        assert comfortable_decrease.confidence == pytest.approx(0.8)
        assert challenging_increase.confidence == pytest.approx(0.9)

    def test_saturated_moves_are_not_damped(self, adapter):
        at_expert = adapter.check_adjustment("expert", [0.95] * 10, "comfortable")
        at_beginner = adapter.check_adjustment("beginner", [0.2] * 10, "challenging")

        assert at_expert.to_level == "expert"
        assert at_expert.confidence == pytest.approx(0.9)
        assert at_beginner.to_level == "beginner"
        assert at_beginner.confidence == pytest.approx(0.8)

    def test_current_streak_counts_from_newest(self, adapter):
        assert adapter.current_streak([0.8, 0.5, 0.9, 0.9]) == 2
        assert adapter.current_streak([0.9, 0.6]) == 0
        assert adapter.current_streak([]) == 0

    def test_raise_difficulty(self, adapter):
        """Test raising difficulty level."""
        assert adapter.raise_difficulty("beginner") == "intermediate"
        assert adapter.raise_difficulty("intermediate") == "advanced"
        assert adapter.raise_difficulty("advanced") == "expert"
        assert adapter.raise_difficulty("expert") == "expert"  # Max

    def test_lower_difficulty(self, adapter):
        """Test lowering difficulty level."""
        assert adapter.lower_difficulty("expert") == "advanced"
        assert adapter.lower_difficulty("advanced") == "intermediate"
        assert adapter.lower_difficulty("intermediate") == "beginner"
        assert adapter.lower_difficulty("beginner") == "beginner"  # Min

    def test_repeated_moves_stay_on_scale(self, adapter):
        level = "beginner"
        for _ in range(10):
            level = adapter.raise_difficulty(level)
            assert level in DIFFICULTY_LEVELS
        assert level == "expert"

    def test_level_to_mastery(self, adapter):
        assert adapter.level_to_mastery("beginner") == 0.2
        assert adapter.level_to_mastery("intermediate") == 0.5
        assert adapter.level_to_mastery("advanced") == 0.75
        assert adapter.level_to_mastery("expert") == 0.9


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
