"""
Automatic Difficulty Adaptation

Decides whether a learner's difficulty should move, based on recent
performance history and their stated difficulty preference.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

DIFFICULTY_LEVELS = ["beginner", "intermediate", "advanced", "expert"]

# Approximate mastery written back to the engine's skill map for each level
LEVEL_MASTERY = {
    "beginner": 0.2,
    "intermediate": 0.5,
    "advanced": 0.75,
    "expert": 0.9,
}


@dataclass
class DifficultyAdjustment:
    """Result of a difficulty adjustment check."""
    from_level: str
    to_level: str
    reason: str
    confidence: float
    direction: Optional[str] = None  # "increase", "decrease", or None

    @property
    def changed(self) -> bool:
        return self.from_level != self.to_level


class DifficultyAdapter:
    """
    Threshold rule over the most recent performance window.

    Algorithm (first match wins):
    - avg >= 0.9 -> increase (confidence 0.9)
    - avg <= 0.4 -> decrease (confidence 0.8)
    - avg >= 0.75 and >= 5 consecutive recent scores > 0.7 -> increase (0.7)
    - otherwise hold (confidence 0)

    Confidence is damped for "comfortable" learners on increases and for
    "challenging" learners on decreases. Moves past either end of the
    scale saturate.
    """

    EXCELLENT_THRESHOLD = 0.9
    GOOD_THRESHOLD = 0.75
    POOR_THRESHOLD = 0.4
    STREAK_SCORE_THRESHOLD = 0.7
    STREAK_LENGTH = 5
    RECENT_WINDOW = 10
    DEFAULT_ACCURACY = 0.5

    COMFORTABLE_INCREASE_DAMPING = 0.8
    CHALLENGING_DECREASE_DAMPING = 0.9

    def check_adjustment(
        self,
        current_level: str,
        accuracy_history: Sequence[float],
        difficulty_preference: Optional[str] = None
    ) -> DifficultyAdjustment:
        """
        Check whether difficulty should be adjusted.

        Args:
            current_level: Current difficulty level
            accuracy_history: All known accuracy scores, oldest first
            difficulty_preference: "adaptive", "challenging" or "comfortable"

        Returns:
            DifficultyAdjustment with the recommended level
        """
        recent = list(accuracy_history)[-self.RECENT_WINDOW:]
        average_accuracy = self.average_accuracy(recent)

        new_level = current_level
        direction = None
        reason = f"Performance stable (avg={average_accuracy:.2f})"
        confidence = 0.0

        if average_accuracy >= self.EXCELLENT_THRESHOLD:
            new_level = self.raise_difficulty(current_level)
            direction = "increase"
            reason = f"Excellent performance (avg={average_accuracy:.2f}) - increasing difficulty"
            confidence = 0.9
        elif average_accuracy <= self.POOR_THRESHOLD:
            new_level = self.lower_difficulty(current_level)
            direction = "decrease"
            reason = f"Struggling with current level (avg={average_accuracy:.2f}) - decreasing difficulty"
            confidence = 0.8
        elif average_accuracy >= self.GOOD_THRESHOLD:
            streak = self.current_streak(accuracy_history)
            if streak >= self.STREAK_LENGTH:
                new_level = self.raise_difficulty(current_level)
                direction = "increase"
                reason = f"Consistent good performance ({streak} in a row) - ready for next level"
                confidence = 0.7

        # Saturated moves keep the rule confidence
        if new_level != current_level:
            if difficulty_preference == "comfortable" and direction == "increase":
                confidence *= self.COMFORTABLE_INCREASE_DAMPING
            elif difficulty_preference == "challenging" and direction == "decrease":
                confidence *= self.CHALLENGING_DECREASE_DAMPING

        return DifficultyAdjustment(
            from_level=current_level,
            to_level=new_level,
            reason=reason,
            confidence=confidence,
            direction=direction,
        )

    def average_accuracy(self, scores: Sequence[float]) -> float:
        if not scores:
            return self.DEFAULT_ACCURACY
        return sum(scores) / len(scores)

    def current_streak(self, scores: Sequence[float]) -> int:
        """Count consecutive scores above the streak threshold, newest first."""
        streak = 0
        for score in reversed(list(scores)):
            if score > self.STREAK_SCORE_THRESHOLD:
                streak += 1
            else:
                break
        return streak

    def raise_difficulty(self, current: str) -> str:
        """Raise difficulty level."""
        if current not in DIFFICULTY_LEVELS:
            return current

        current_idx = DIFFICULTY_LEVELS.index(current)
        if current_idx < len(DIFFICULTY_LEVELS) - 1:
            return DIFFICULTY_LEVELS[current_idx + 1]
        return current  # Already at max

    def lower_difficulty(self, current: str) -> str:
        """Lower difficulty level."""
        if current not in DIFFICULTY_LEVELS:
            return current

        current_idx = DIFFICULTY_LEVELS.index(current)
        if current_idx > 0:
            return DIFFICULTY_LEVELS[current_idx - 1]
        return current  # Already at min

    @staticmethod
    def level_to_mastery(level: str) -> float:
        return LEVEL_MASTERY.get(level, 0.0)
