"""
Personalization Engine

Keeps one PersonalizationModel per learner and derives from it:
- difficulty adjustments from recent performance
- learning-outcome predictions
- pacing recommendations
- strengths / weaknesses / velocity insights
- learning-style and skill-level adaptations of study material

The engine's skill map is a working copy. The profile repository holds the
authoritative mastery values; the orchestrator pushes them here through
update_model().
"""

import copy
import logging
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence

from adaptive_learning_tutor.content_generator import CodeExample, DiagramData
from adaptive_learning_tutor.difficulty_adapter import (
    LEVEL_MASTERY,
    DifficultyAdapter,
    DifficultyAdjustment,
)
from adaptive_learning_tutor.keyed_lock import KeyedLock
from adaptive_learning_tutor.response_cache import BoundedCache
from adaptive_learning_tutor.session_state import PerformanceMetrics, SessionMetrics
from adaptive_learning_tutor.skill_model import (
    UserPreferences,
    best_hour_by_accuracy,
    time_of_day_bucket,
)
from adaptive_learning_tutor.threshold_policy import DEFAULT_THRESHOLD_POLICY, ThresholdPolicy

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_CAP = 100
DEFAULT_MODEL_CAPACITY = 10000
RECENT_WINDOW = 10
DEFAULT_VELOCITY = 0.1
MAX_TIME_TO_MASTERY = 100.0  # hours


@dataclass
class PersonalizationModel:
    """Per-learner working state owned by the engine."""
    user_id: str
    learning_style: str = "mixed"
    skill_levels: Dict[str, float] = field(default_factory=dict)
    preferences: UserPreferences = field(default_factory=UserPreferences)
    performance_history: Deque[PerformanceMetrics] = field(
        default_factory=lambda: deque(maxlen=DEFAULT_HISTORY_CAP)
    )

    def recent_performance(self, window: int = RECENT_WINDOW) -> List[PerformanceMetrics]:
        history = list(self.performance_history)
        return history[-window:]


@dataclass
class PerformanceData:
    concept: str
    metrics: PerformanceMetrics
    context: Dict[str, Any] = field(default_factory=dict)
    session_id: Optional[str] = None


@dataclass
class LearningPrediction:
    concept: str
    predicted_mastery: float
    time_to_mastery: float  # hours
    confidence: float
    recommended_path: List[str]


@dataclass
class PacingRecommendation:
    session_length: int       # minutes
    break_frequency: int      # minutes
    content_density: float
    reasons: List[str] = field(default_factory=list)

    @property
    def reason(self) -> str:
        return "; ".join(self.reasons)


@dataclass
class EngineInsights:
    strengths: List[str]
    weaknesses: List[str]
    recommendations: List[str]
    learning_velocity: float
    optimal_study_time: str


@dataclass
class MaterialContent:
    text: Optional[str] = None
    code: List[CodeExample] = field(default_factory=list)
    diagrams: List[DiagramData] = field(default_factory=list)
    interactive: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class MaterialMetadata:
    estimated_time: int = 0  # minutes
    language: Optional[str] = None
    framework: Optional[str] = None
    tags: List[str] = field(default_factory=list)


@dataclass
class LearningMaterial:
    id: str
    title: str
    description: str = ""
    type: str = "explanation"  # "explanation", "exercise", "example", "assessment"
    difficulty: str = "beginner"
    concepts: List[str] = field(default_factory=list)
    prerequisites: List[str] = field(default_factory=list)
    content: MaterialContent = field(default_factory=MaterialContent)
    metadata: MaterialMetadata = field(default_factory=MaterialMetadata)


@dataclass
class PersonalizedContent:
    original_content: LearningMaterial
    adapted_content: LearningMaterial
    adaptation_reasons: List[str]
    personalized_for: str


def calculate_velocity(performance: Sequence[PerformanceMetrics]) -> float:
    """Accuracy change per hour between the first and last sample."""
    if len(performance) < 2:
        return DEFAULT_VELOCITY
    first, last = performance[0], performance[-1]
    elapsed_hours = (last.timestamp - first.timestamp).total_seconds() / 3600
    if elapsed_hours <= 0:
        return DEFAULT_VELOCITY
    return (last.accuracy - first.accuracy) / elapsed_hours


def recommended_path(concept: str, current_skill: float) -> List[str]:
    base_path = [f"{concept}-basics", f"{concept}-intermediate", f"{concept}-advanced"]
    if current_skill < 0.3:
        return base_path
    if current_skill < 0.7:
        return base_path[1:]
    return base_path[2:]


def enhance_for_auditory(text: str) -> str:
    return (
        text.replace("\n\n", "\n\nNow, let's move on to the next point.\n\n")
        .replace(":", ", which means")
        .replace(".", ". Take a moment to consider this.")
    )


class PersonalizationEngine:
    """
    Adaptive engine with one model per learner.

    Models live in a bounded LRU store; a learner whose model was evicted
    simply gets a fresh default model on next access. All mutations of a
    model happen under that learner's lock.
    """

    def __init__(
        self,
        history_cap: int = DEFAULT_HISTORY_CAP,
        model_capacity: int = DEFAULT_MODEL_CAPACITY,
        threshold_policy: Optional[ThresholdPolicy] = None,
        difficulty_adapter: Optional[DifficultyAdapter] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the engine.

        Args:
            history_cap: Max performance entries kept per learner
            model_capacity: Max learner models held at once
            threshold_policy: Mastery -> level tables (ENGINE table is used here)
            difficulty_adapter: Decision rule for difficulty moves
            clock: Time source for pacing decisions
        """
        if history_cap <= 0:
            raise ValueError("history_cap must be positive")
        self.history_cap = history_cap
        self.models: BoundedCache[PersonalizationModel] = BoundedCache(max_size=model_capacity)
        self.policy = threshold_policy or DEFAULT_THRESHOLD_POLICY
        self.adapter = difficulty_adapter or DifficultyAdapter()
        self._clock = clock or datetime.now
        self._locks = KeyedLock()

    # ==================== Model management ====================

    def _new_model(self, user_id: str) -> PersonalizationModel:
        logger.info(f"🧠 [PersonalizationEngine] Created model for user {user_id[:20]}")
        return PersonalizationModel(
            user_id=user_id,
            performance_history=deque(maxlen=self.history_cap),
        )

    def _model(self, user_id: str) -> PersonalizationModel:
        return self.models.get_or_create(user_id, lambda: self._new_model(user_id))

    async def get_or_create_model(self, user_id: str) -> PersonalizationModel:
        async with self._locks.acquire(user_id):
            return self._model(user_id)

    async def update_model(
        self,
        user_id: str,
        learning_style: Optional[str] = None,
        skill_levels: Optional[Dict[str, float]] = None,
        preferences: Optional[UserPreferences] = None
    ) -> PersonalizationModel:
        """Synchronize selected fields into the learner's model. Inputs are copied."""
        async with self._locks.acquire(user_id):
            model = self._model(user_id)
            if learning_style is not None:
                model.learning_style = learning_style
            if skill_levels is not None:
                model.skill_levels = dict(skill_levels)
            if preferences is not None:
                model.preferences = replace(preferences)
            return model

    async def add_performance_data(self, user_id: str, metrics: PerformanceMetrics):
        async with self._locks.acquire(user_id):
            # deque(maxlen) drops the oldest entry once the cap is reached
            self._model(user_id).performance_history.append(metrics)

    # ==================== Difficulty ====================

    async def adjust_difficulty(self, user_id: str, performance: PerformanceData) -> DifficultyAdjustment:
        """
        Decide the learner's next difficulty for a concept.

        The current level comes from the engine's own skill map. The result
        is written back into that map as an approximate mastery.
        """
        async with self._locks.acquire(user_id):
            model = self._model(user_id)
            current_level = self.policy.engine_level(model.skill_levels.get(performance.concept, 0.0))

            adjustment = self.adapter.check_adjustment(
                current_level,
                [entry.accuracy for entry in model.performance_history],
                model.preferences.difficulty_preference,
            )

            model.skill_levels[performance.concept] = LEVEL_MASTERY[adjustment.to_level]

        if adjustment.changed:
            logger.info(
                f"📈 [PersonalizationEngine] {performance.concept}: "
                f"{adjustment.from_level} -> {adjustment.to_level} ({adjustment.reason})"
            )
        return adjustment

    # ==================== Prediction ====================

    async def predict_learning_outcome(self, user_id: str, concept: str) -> LearningPrediction:
        async with self._locks.acquire(user_id):
            model = self._model(user_id)
            current_skill = model.skill_levels.get(concept, 0.0)
            recent = model.recent_performance()

        velocity = calculate_velocity(recent)
        predicted_mastery = min(1.0, current_skill + velocity * 0.1)

        if velocity > 0:
            time_to_mastery = (1.0 - current_skill) / velocity
        else:
            time_to_mastery = MAX_TIME_TO_MASTERY
        time_to_mastery = max(0.0, min(MAX_TIME_TO_MASTERY, time_to_mastery))

        return LearningPrediction(
            concept=concept,
            predicted_mastery=predicted_mastery,
            time_to_mastery=time_to_mastery,
            confidence=min(0.9, len(recent) * 0.1),
            recommended_path=recommended_path(concept, current_skill),
        )

    # ==================== Pacing ====================

    async def optimize_pacing(
        self,
        user_id: str,
        session_metrics: SessionMetrics,
        now: Optional[datetime] = None
    ) -> PacingRecommendation:
        """
        Recommend session length, break interval and content density.

        Branches are cumulative: the accuracy and time-of-day adjustments
        apply on top of whichever engagement branch was taken.
        """
        async with self._locks.acquire(user_id):
            model = self._model(user_id)
            recommended_length = float(model.preferences.session_length)

        engagement = session_metrics.engagement_score
        accuracy = session_metrics.average_accuracy
        break_frequency = 30.0
        content_density = 1.0
        reasons: List[str] = []

        if engagement < 0.5:
            recommended_length = max(15.0, recommended_length * 0.8)
            break_frequency = 20.0
            content_density = 0.8
            reasons.append("Reduced pacing due to low engagement")
        elif engagement > 0.8 and accuracy > 0.8:
            recommended_length = min(90.0, recommended_length * 1.2)
            break_frequency = 45.0
            content_density = 1.2
            reasons.append("Increased pacing due to high engagement and accuracy")

        if accuracy < 0.6:
            content_density *= 0.7
            break_frequency = min(break_frequency, 25.0)
            reasons.append("Slowed pacing to improve comprehension")

        hour = (now or self._clock()).hour
        if hour < 9 or hour > 20:
            recommended_length *= 0.9
            reasons.append("Shortened for time of day")

        if not reasons:
            reasons.append("Maintaining current pacing")

        return PacingRecommendation(
            session_length=round(recommended_length),
            break_frequency=round(break_frequency),
            content_density=round(content_density, 2),
            reasons=reasons,
        )

    # ==================== Insights ====================

    async def get_learning_insights(self, user_id: str) -> EngineInsights:
        async with self._locks.acquire(user_id):
            model = self._model(user_id)
            skill_entries = list(model.skill_levels.items())
            history = list(model.performance_history)
            learning_style = model.learning_style

        strengths = [concept for concept, level in skill_entries if level > 0.8][:5]
        weaknesses = [concept for concept, level in skill_entries if level < 0.4][:5]

        return EngineInsights(
            strengths=strengths,
            weaknesses=weaknesses,
            recommendations=self._recommendations(learning_style, history[-RECENT_WINDOW:]),
            learning_velocity=calculate_velocity(history),
            optimal_study_time=self._optimal_study_time(history),
        )

    def _recommendations(self, learning_style: str, recent: List[PerformanceMetrics]) -> List[str]:
        recommendations = []

        if learning_style == "visual":
            recommendations.append("Focus on diagram-rich content and visual explanations")
        elif learning_style == "kinesthetic":
            recommendations.append("Prioritize hands-on exercises and interactive content")

        recent_accuracy = self.adapter.average_accuracy([entry.accuracy for entry in recent])
        if recent_accuracy < 0.6:
            recommendations.append("Consider reviewing prerequisite concepts")
            recommendations.append("Take more frequent breaks during study sessions")
        elif recent_accuracy > 0.8:
            recommendations.append("Ready to tackle more challenging material")

        return recommendations

    @staticmethod
    def _optimal_study_time(history: List[PerformanceMetrics]) -> str:
        if not history:
            return "morning"
        best_hour = best_hour_by_accuracy((entry.timestamp.hour, entry.accuracy) for entry in history)
        return time_of_day_bucket(best_hour)

    # ==================== Content adaptation ====================

    async def personalize_content(self, user_id: str, material: LearningMaterial) -> PersonalizedContent:
        """
        Adapt a piece of study material to the learner.

        The original material is left untouched; the adapted version is a
        deep copy.
        """
        async with self._locks.acquire(user_id):
            model = self._model(user_id)
            learning_style = model.learning_style
            skill_levels = dict(model.skill_levels)
            preferences = replace(model.preferences)

        adapted = copy.deepcopy(material)
        reasons: List[str] = []

        self._adapt_for_learning_style(adapted, learning_style, reasons)
        self._adapt_for_skill_level(adapted, skill_levels, reasons)
        self._adapt_for_preferences(adapted, preferences, reasons)

        return PersonalizedContent(
            original_content=material,
            adapted_content=adapted,
            adaptation_reasons=reasons,
            personalized_for=user_id,
        )

    def _adapt_for_learning_style(self, material: LearningMaterial, learning_style: str, reasons: List[str]):
        content = material.content

        if learning_style == "visual":
            if content.diagrams:
                reasons.append("Enhanced visual elements for visual learner")
            if content.code:
                content.code = [
                    example if "visual" in example.explanation
                    else replace(example, explanation=f"Visual breakdown: {example.explanation}")
                    for example in content.code
                ]
                reasons.append("Added visual code explanations")
        elif learning_style == "auditory":
            if content.text:
                content.text = enhance_for_auditory(content.text)
                reasons.append("Enhanced explanations for auditory learning")
        elif learning_style == "kinesthetic":
            if content.interactive:
                reasons.append("Prioritized interactive elements for hands-on learning")
            if material.type == "explanation":
                material.metadata.tags.append("hands-on-recommended")
                reasons.append("Recommended hands-on practice")
        elif learning_style == "mixed":
            reasons.append("Balanced multi-modal content presentation")

    def _adapt_for_skill_level(self, material: LearningMaterial, skill_levels: Dict[str, float], reasons: List[str]):
        relevant = [skill_levels[concept] for concept in material.concepts if concept in skill_levels]
        if not relevant:
            return

        average_skill = sum(relevant) / len(relevant)

        if average_skill < 0.3 and material.difficulty != "beginner":
            material.difficulty = "beginner"
            reasons.append("Simplified content for current skill level")
        elif average_skill > 0.8 and material.difficulty == "beginner":
            material.difficulty = "intermediate"
            reasons.append("Increased complexity for advanced skill level")

        if average_skill < 0.5 and material.prerequisites and material.content.text:
            reminder = ", ".join(material.prerequisites)
            material.content.text = f"Prerequisites reminder: {reminder}\n\n{material.content.text}"
            reasons.append("Added prerequisite reminders")

    def _adapt_for_preferences(self, material: LearningMaterial, preferences: UserPreferences, reasons: List[str]):
        tags = material.metadata.tags

        if preferences.session_length and material.metadata.estimated_time > preferences.session_length:
            tags.append("break-recommended")
            reasons.append("Recommended breaks for long content")

        if preferences.difficulty_preference == "challenging" and material.difficulty == "beginner":
            tags.append("challenge-mode")
            reasons.append("Enhanced for challenge preference")
        elif preferences.difficulty_preference == "comfortable" and material.difficulty == "advanced":
            tags.append("comfort-mode")
            reasons.append("Simplified for comfort preference")

    # ==================== Stats ====================

    def get_stats(self) -> Dict[str, Any]:
        stats = self.models.get_stats()
        stats["history_cap"] = self.history_cap
        return stats
