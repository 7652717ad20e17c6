"""
Skill & Progress Model

Learner-level data: skill levels, learning goals, progress history and
preferences, plus the aggregate queries the engine and orchestrator run
over them. Pure data, no I/O.
"""

import math
import re
from collections import Counter, defaultdict
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from adaptive_learning_tutor.exceptions import ValidationError


LEARNING_STYLES = ("visual", "auditory", "kinesthetic", "mixed")
DIFFICULTY_PREFERENCES = ("adaptive", "challenging", "comfortable")
ACTIVITY_TYPES = ("explanation_viewed", "exercise_completed", "assessment_taken")
GOAL_STATUSES = ("active", "completed", "paused")
PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}

MIN_SESSION_LENGTH = 5      # minutes
MAX_SESSION_LENGTH = 180    # minutes
DEFAULT_STUDY_HOUR = 9

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def clamp_unit(value: float) -> float:
    """Clamp a score into [0, 1]."""
    return max(0.0, min(1.0, value))


@dataclass
class SkillLevel:
    """Authoritative mastery record for one concept."""
    concept: str
    mastery: float = 0.0
    confidence: float = 0.0
    last_assessed: datetime = field(default_factory=datetime.now)
    assessment_count: int = 0

    def __post_init__(self):
        self.mastery = clamp_unit(self.mastery)
        self.confidence = clamp_unit(self.confidence)


@dataclass
class LearningGoal:
    id: str
    title: str
    description: str = ""
    target_concepts: List[str] = field(default_factory=list)
    target_mastery: float = 0.8
    deadline: Optional[datetime] = None
    priority: str = "medium"  # "low", "medium", "high"
    status: str = "active"    # "active", "completed", "paused"

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass
class ProgressActivity:
    type: str = "explanation_viewed"
    duration: float = 0.0  # seconds
    success: bool = True
    attempts: int = 1
    hints_used: int = 0


@dataclass
class ProgressPerformance:
    accuracy: float = 0.0
    speed: float = 0.0
    confidence: float = 0.0


@dataclass
class ProgressAdaptations:
    difficulty_adjusted: bool = False
    content_personalized: bool = False
    pacing_modified: bool = False


@dataclass
class ProgressEntry:
    """One learning activity in a learner's history."""
    id: str
    user_id: str
    concept: str
    session_id: str
    timestamp: datetime = field(default_factory=datetime.now)
    activity: ProgressActivity = field(default_factory=ProgressActivity)
    performance: ProgressPerformance = field(default_factory=ProgressPerformance)
    adaptations: ProgressAdaptations = field(default_factory=ProgressAdaptations)


@dataclass
class NotificationPreferences:
    email: bool = True
    push: bool = True
    session_reminders: bool = True
    progress_updates: bool = True
    weekly_reports: bool = False


@dataclass
class UserPreferences:
    learning_style: str = "mixed"
    difficulty_preference: str = "adaptive"
    session_length: int = 30  # minutes
    notification_settings: NotificationPreferences = field(default_factory=NotificationPreferences)


@dataclass
class UserProfile:
    """User-level learning profile, owned by the profile repository."""
    id: str
    email: str = ""
    preferences: UserPreferences = field(default_factory=UserPreferences)
    skill_levels: Dict[str, SkillLevel] = field(default_factory=dict)
    learning_goals: List[LearningGoal] = field(default_factory=list)
    progress_history: List[ProgressEntry] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def active_goals(self) -> List[LearningGoal]:
        return [goal for goal in self.learning_goals if goal.is_active]


@dataclass
class LearningPatterns:
    best_time_of_day: str
    average_session_length: int  # minutes
    preferred_activity_type: str


# ==================== Validation ====================

def is_valid_mastery_level(level) -> bool:
    if isinstance(level, bool) or not isinstance(level, (int, float)):
        return False
    if math.isnan(level):
        return False
    return 0 <= level <= 1


def is_valid_learning_style(style: str) -> bool:
    return style in LEARNING_STYLES


def is_valid_session_length(minutes: int) -> bool:
    return MIN_SESSION_LENGTH <= minutes <= MAX_SESSION_LENGTH


def is_valid_email(email: str) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def validate_preferences(preferences: UserPreferences) -> UserPreferences:
    """Raise ValidationError when a preference value is out of its domain."""
    if not is_valid_learning_style(preferences.learning_style):
        raise ValidationError(f"Invalid learning style: {preferences.learning_style}", field="learning_style")
    if preferences.difficulty_preference not in DIFFICULTY_PREFERENCES:
        raise ValidationError(
            f"Invalid difficulty preference: {preferences.difficulty_preference}",
            field="difficulty_preference",
        )
    if not is_valid_session_length(preferences.session_length):
        raise ValidationError(f"Invalid session length: {preferences.session_length}", field="session_length")
    return preferences


# ==================== Skill levels ====================

def create_initial_skill_level(concept: str) -> SkillLevel:
    return SkillLevel(concept=concept, mastery=0.0, confidence=0.0, assessment_count=0)


def update_skill_level(
    skill_levels: Dict[str, SkillLevel],
    concept: str,
    new_mastery: float,
    confidence: float,
    now: Optional[datetime] = None,
) -> Dict[str, SkillLevel]:
    """
    Return a new skill map with the concept's level replaced.

    The input map is left untouched. Mastery and confidence are clamped and
    the assessment count goes up by one.

    Args:
        skill_levels: Current concept -> SkillLevel map
        concept: Concept being assessed
        new_mastery: Mastery observed in this assessment
        confidence: Confidence to record
        now: Assessment time (defaults to now)

    Returns:
        Updated copy of the map
    """
    now = now or datetime.now()
    updated = dict(skill_levels)
    existing = updated.get(concept)

    if existing:
        updated[concept] = replace(
            existing,
            mastery=clamp_unit(new_mastery),
            confidence=clamp_unit(confidence),
            last_assessed=now,
            assessment_count=existing.assessment_count + 1,
        )
    else:
        updated[concept] = SkillLevel(
            concept=concept,
            mastery=new_mastery,
            confidence=confidence,
            last_assessed=now,
            assessment_count=1,
        )

    return updated


def mastery_map(skill_levels: Dict[str, SkillLevel]) -> Dict[str, float]:
    """Project a SkillLevel map down to concept -> mastery."""
    return {concept: skill.mastery for concept, skill in skill_levels.items()}


def calculate_overall_mastery(skill_levels: Dict[str, SkillLevel]) -> float:
    if not skill_levels:
        return 0.0
    return sum(skill.mastery for skill in skill_levels.values()) / len(skill_levels)


def get_weakest_concepts(skill_levels: Dict[str, SkillLevel], limit: int = 5) -> List[str]:
    ranked = sorted(skill_levels.items(), key=lambda item: item[1].mastery)
    return [concept for concept, _ in ranked[:limit]]


def get_strongest_concepts(skill_levels: Dict[str, SkillLevel], limit: int = 5) -> List[str]:
    ranked = sorted(skill_levels.items(), key=lambda item: item[1].mastery, reverse=True)
    return [concept for concept, _ in ranked[:limit]]


def goal_current_mastery(goal: LearningGoal, skill_levels: Dict[str, SkillLevel]) -> float:
    """Average mastery over a goal's target concepts (unassessed concepts count as 0)."""
    if not goal.target_concepts:
        return 0.0
    total = sum(
        skill_levels[concept].mastery if concept in skill_levels else 0.0
        for concept in goal.target_concepts
    )
    return total / len(goal.target_concepts)


# ==================== Progress history ====================

def get_recent_progress(
    progress_history: List[ProgressEntry],
    days: int = 7,
    now: Optional[datetime] = None,
) -> List[ProgressEntry]:
    cutoff = (now or datetime.now()) - timedelta(days=days)
    return [entry for entry in progress_history if entry.timestamp >= cutoff]


def calculate_learning_velocity(
    progress_history: List[ProgressEntry],
    now: Optional[datetime] = None,
) -> float:
    """Distinct concepts touched per day over the last week."""
    if len(progress_history) < 2:
        return 0.0
    recent = get_recent_progress(progress_history, 7, now)
    concepts_learned = len({entry.concept for entry in recent})
    return concepts_learned / 7


def time_of_day_bucket(hour: int) -> str:
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    return "evening"


def best_hour_by_accuracy(samples: Iterable[Tuple[int, float]], default_hour: int = DEFAULT_STUDY_HOUR) -> int:
    """
    Hour of day (0-23) with the highest mean accuracy.

    Hours are compared in first-seen order; a later hour only wins with a
    strictly higher mean.
    """
    hourly: Dict[int, List[float]] = defaultdict(list)
    for hour, accuracy in samples:
        hourly[hour].append(accuracy)

    best_hour = default_hour
    best_accuracy = 0.0
    for hour, accuracies in hourly.items():
        average = sum(accuracies) / len(accuracies)
        if average > best_accuracy:
            best_accuracy = average
            best_hour = hour
    return best_hour


def identify_learning_patterns(progress_history: List[ProgressEntry]) -> LearningPatterns:
    if not progress_history:
        return LearningPatterns(
            best_time_of_day="morning",
            average_session_length=30,
            preferred_activity_type="explanation_viewed",
        )

    best_hour = best_hour_by_accuracy(
        (entry.timestamp.hour, entry.performance.accuracy) for entry in progress_history
    )

    total_duration = sum(entry.activity.duration for entry in progress_history)
    average_session_length = round(total_duration / len(progress_history) / 60)

    activity_counts = Counter(entry.activity.type for entry in progress_history)
    preferred_activity_type = activity_counts.most_common(1)[0][0]

    return LearningPatterns(
        best_time_of_day=time_of_day_bucket(best_hour),
        average_session_length=average_session_length,
        preferred_activity_type=preferred_activity_type,
    )
