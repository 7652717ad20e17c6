"""
Learning Orchestrator

Facade over the adaptive learning core. Receives a verified user id plus an
intent, reads the learner's profile, drives the session manager and the
personalization engine, asks the content generator for prose and writes
updated skill levels back to the profile repository.
"""

import random
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, List, Optional, Tuple, Union

from adaptive_learning_tutor.chat_responder import ChatResponder, ChatResponse
from adaptive_learning_tutor.config import EngineSettings
from adaptive_learning_tutor.content_generator import CodeExample, ContentGenerator, DiagramData
from adaptive_learning_tutor.difficulty_adapter import DifficultyAdjustment
from adaptive_learning_tutor.exceptions import (
    ConceptNotFoundError,
    InvalidMasteryError,
    UserNotFoundError,
)
from adaptive_learning_tutor.keyed_lock import KeyedLock
from adaptive_learning_tutor.knowledge_graph import ConceptLibrary
from adaptive_learning_tutor.logger import get_logger
from adaptive_learning_tutor.personalization_engine import PerformanceData, PersonalizationEngine
from adaptive_learning_tutor.response_cache import BoundedCache
from adaptive_learning_tutor.schemas import (
    ChatRequest,
    ExplanationRequest,
    PerformanceInput,
    SessionCreationOptions,
    SessionUpdate,
    parse_request,
)
from adaptive_learning_tutor.session_manager import LearningSessionManager
from adaptive_learning_tutor.session_state import (
    LearningSession,
    PerformanceMetrics,
    ProgressState,
    SessionSummary,
)
from adaptive_learning_tutor.skill_model import (
    PRIORITY_ORDER,
    LearningPatterns,
    ProgressActivity,
    ProgressEntry,
    ProgressPerformance,
    SkillLevel,
    UserProfile,
    calculate_overall_mastery,
    create_initial_skill_level,
    get_strongest_concepts,
    get_weakest_concepts,
    goal_current_mastery,
    identify_learning_patterns,
    is_valid_mastery_level,
    mastery_map,
    update_skill_level,
)
from adaptive_learning_tutor.threshold_policy import DEFAULT_THRESHOLD_POLICY, ThresholdPolicy
from adaptive_learning_tutor.user_profile_manager import InMemoryProfileRepository, ProfileRepository

logger = get_logger(__name__)

MAX_RECOMMENDATIONS = 5
MILESTONE_CAP_HOURS = 100.0
DEDICATED_SESSION_SECONDS = 30 * 60

STYLE_PREFIXES = {
    "visual": "📊 Visual learner focus: ",
    "auditory": "🎧 Listen carefully: ",
    "kinesthetic": "✋ Hands-on approach: ",
}


@dataclass(frozen=True)
class ExplanationContent:
    summary: str
    detailed: str
    examples: Tuple[CodeExample, ...] = ()
    analogies: Tuple[str, ...] = ()
    step_by_step: Tuple[str, ...] = ()
    visual_aids: Tuple[DiagramData, ...] = ()


@dataclass(frozen=True)
class Explanation:
    """Generated explanation. Cached instances are shared, so it is immutable."""
    id: str
    concept: str
    target_level: str
    content: ExplanationContent
    prerequisites: Tuple[str, ...] = ()
    next_steps: Tuple[str, ...] = ()
    estimated_read_time: int = 0  # minutes


@dataclass
class Recommendation:
    type: str  # "concept", "exercise", "review", "assessment"
    title: str
    description: str
    estimated_time: int  # minutes
    difficulty: str
    priority: str  # "high", "medium", "low"
    reason: str


@dataclass
class StudySchedule:
    best_time_of_day: str
    recommended_session_length: int  # minutes
    suggested_frequency: str


@dataclass
class InsightsBundle:
    overall_progress: float
    strengths: List[str]
    weaknesses: List[str]
    recommendations: List[Recommendation]
    engine_recommendations: List[str]
    learning_velocity: float
    time_to_next_milestone: float  # hours
    optimal_study_schedule: StudySchedule
    patterns: LearningPatterns


@dataclass
class CompletionResult:
    summary: SessionSummary
    achievements: List[str]
    next_recommendations: List[Recommendation]


@dataclass
class KnowledgeAssessment:
    current_level: SkillLevel
    suggested_actions: List[str] = field(default_factory=list)
    readiness_for_advancement: bool = False


@dataclass
class SessionProgressReport:
    progress: ProgressState
    percentage: float
    time_remaining: float  # seconds
    next_concept: Optional[str]


def calculate_confidence(mastery: float, existing: Optional[SkillLevel]) -> float:
    """80% of mastery plus 0.02 per prior assessment (bonus capped at 0.2)."""
    base_confidence = mastery * 0.8
    if existing is None:
        return base_confidence
    bonus = min(0.2, existing.assessment_count * 0.02)
    return min(1.0, base_confidence + bonus)


def calculate_optimal_frequency(velocity: float) -> str:
    if velocity > 0.1:
        return "Daily"
    if velocity > 0.05:
        return "3-4 times per week"
    if velocity > 0.02:
        return "2-3 times per week"
    return "Weekly"


def calculate_achievements(summary: SessionSummary) -> List[str]:
    achievements = []

    if summary.overall_accuracy > 0.9:
        achievements.append("🏆 Excellent Performance - 90%+ accuracy!")
    elif summary.overall_accuracy > 0.8:
        achievements.append("🎯 Great Job - 80%+ accuracy!")

    if summary.mastered_concepts:
        achievements.append(f"🧠 Mastered {len(summary.mastered_concepts)} new concept(s)!")

    if summary.duration > DEDICATED_SESSION_SECONDS:
        achievements.append("⏰ Dedicated Learner - 30+ minute session!")

    return achievements


def calculate_time_to_milestone(profile: UserProfile, velocity: float) -> float:
    """
    Hours until the nearest active goal is reached.

    Returns 0 without active goals. A non-positive velocity projects the
    cap for every goal.
    """
    active_goals = profile.active_goals()
    if not active_goals:
        return 0.0

    def projected_hours(goal) -> float:
        if velocity <= 0:
            return MILESTONE_CAP_HOURS
        gap = goal.target_mastery - goal_current_mastery(goal, profile.skill_levels)
        return gap / velocity

    return max(0.0, min(projected_hours(goal) for goal in active_goals))


class LearningOrchestrator:
    """
    Coordinates profiles, sessions, personalization and content.

    Profile writes for one user are serialized; everything else is
    delegated to the component that owns the state.
    """

    def __init__(
        self,
        profile_repository: Optional[ProfileRepository] = None,
        session_manager: Optional[LearningSessionManager] = None,
        engine: Optional[PersonalizationEngine] = None,
        content_generator: Optional[ContentGenerator] = None,
        concept_library: Optional[ConceptLibrary] = None,
        threshold_policy: Optional[ThresholdPolicy] = None,
        settings: Optional[EngineSettings] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.settings = settings or EngineSettings()
        self._clock = clock or datetime.now
        self.policy = threshold_policy or DEFAULT_THRESHOLD_POLICY

        self.profiles = profile_repository or InMemoryProfileRepository()
        self.session_manager = session_manager or LearningSessionManager(
            max_age_hours=self.settings.session_max_age_hours,
            clock=self._clock,
        )
        self.engine = engine or PersonalizationEngine(
            history_cap=self.settings.performance_history_cap,
            model_capacity=self.settings.personalization_model_capacity,
            threshold_policy=self.policy,
            clock=self._clock,
        )
        self.content_generator = content_generator or ContentGenerator(rng)
        self.concepts = concept_library or ConceptLibrary()
        self.explanation_cache: BoundedCache[Explanation] = BoundedCache(
            max_size=self.settings.explanation_cache_size,
            ttl_hours=self.settings.explanation_cache_ttl_hours,
            clock=self._clock,
        )
        self.chat = ChatResponder(self)
        self._profile_locks = KeyedLock()

    async def _require_profile(self, user_id: str) -> UserProfile:
        profile = await self.profiles.get_user_profile(user_id)
        if profile is None:
            raise UserNotFoundError(user_id)
        return profile

    # ==================== Sessions ====================

    async def start_learning_session(self, user_id: str, topic: str) -> LearningSession:
        """
        Start a session seeded from the learner's stored mastery of the topic.

        A learner never assessed on the topic gets no preferred difficulty,
        which yields the full path at beginner level.
        """
        profile = await self._require_profile(user_id)
        preferences = profile.preferences

        skill = profile.skill_levels.get(topic)
        preferred_difficulty = None
        if skill is not None:
            preferred_difficulty = self.policy.seed_difficulty(skill.mastery, preferences.difficulty_preference)

        options = parse_request(SessionCreationOptions, {
            "topic": topic,
            "preferred_difficulty": preferred_difficulty,
            "max_duration": preferences.session_length,
            "learning_goals": [goal.id for goal in profile.learning_goals if topic in goal.target_concepts],
        })

        session = await self.session_manager.create_session(user_id, options)
        await self.engine.update_model(
            user_id,
            learning_style=preferences.learning_style,
            preferences=preferences,
        )

        logger.success("Learning session started", {
            "user": user_id[:20],
            "session": session.id,
            "difficulty": session.current_difficulty,
        })
        return session

    async def advance_session(self, session_id: str, update: Union[SessionUpdate, dict]) -> LearningSession:
        return await self.session_manager.update_session(session_id, parse_request(SessionUpdate, update))

    async def adapt_difficulty(
        self,
        session_id: str,
        performance: Union[PerformanceMetrics, PerformanceInput, dict]
    ) -> DifficultyAdjustment:
        """
        Feed one performance sample through the engine for the session's
        current concept and persist any difficulty change on the session.

        Raises:
            SessionNotFoundError: Unknown session id
            InvalidSessionStateError: Session is completed or abandoned
        """
        if not isinstance(performance, PerformanceMetrics):
            performance = parse_request(PerformanceInput, performance).to_metrics()

        # Checked before the engine sees the sample
        session = await self.session_manager.get_mutable_session(session_id)
        metrics = await self.session_manager.get_session_metrics(session_id)
        current = session.current_concept()

        data = PerformanceData(
            concept=current.name if current else session.topic,
            metrics=performance,
            session_id=session_id,
            context={
                "current_difficulty": session.current_difficulty,
                "session_duration": (self._clock() - session.start_time).total_seconds(),
                "hints_used": metrics.hints_used,
            },
        )

        adjustment = await self.engine.adjust_difficulty(session.user_id, data)
        if adjustment.to_level != session.current_difficulty:
            await self.session_manager.update_difficulty(session_id, adjustment.to_level)

        await self.engine.add_performance_data(session.user_id, performance)
        await self.session_manager.update_session_metrics(session_id, performance)
        return adjustment

    async def pause_learning_session(self, session_id: str) -> LearningSession:
        return await self.session_manager.pause_session(session_id)

    async def resume_learning_session(self, session_id: str) -> LearningSession:
        return await self.session_manager.resume_session(session_id)

    async def abandon_learning_session(self, session_id: str) -> LearningSession:
        return await self.session_manager.abandon_session(session_id)

    async def complete_learning_session(self, session_id: str) -> CompletionResult:
        session = await self.session_manager.get_session(session_id)
        summary = await self.session_manager.complete_session(session_id)
        achievements = calculate_achievements(summary)
        next_recommendations = await self.get_personalized_recommendations(session.user_id)

        logger.success("Learning session completed", {
            "session": session_id,
            "accuracy": f"{summary.overall_accuracy:.2f}",
            "achievements": len(achievements),
        })
        return CompletionResult(
            summary=summary,
            achievements=achievements,
            next_recommendations=next_recommendations,
        )

    async def get_user_active_sessions(self, user_id: str) -> List[LearningSession]:
        return await self.session_manager.get_user_active_sessions(user_id)

    async def get_session_progress(self, session_id: str) -> SessionProgressReport:
        session = await self.session_manager.get_session(session_id)
        progress = session.progress

        elapsed = (self._clock() - session.start_time).total_seconds()
        average_per_concept = elapsed / (progress.current_step + 1)
        remaining_concepts = max(0, progress.total_steps - progress.current_step - 1)

        next_index = progress.current_step + 1
        next_concept = session.learning_path[next_index].name if next_index < len(session.learning_path) else None

        return SessionProgressReport(
            progress=progress,
            percentage=await self.session_manager.get_progress_percentage(session_id),
            time_remaining=remaining_concepts * average_per_concept,
            next_concept=next_concept,
        )

    # ==================== Progress ====================

    async def track_progress(
        self,
        user_id: str,
        concept: str,
        mastery: float,
        session_id: Optional[str] = None,
        activity: Optional[ProgressActivity] = None
    ) -> SkillLevel:
        """
        Record an assessed mastery for a concept.

        The profile is written first (authoritative), then the mastery map is
        projected into the personalization engine. With a session id the
        concept is also recorded in that session's progress.

        Raises:
            InvalidMasteryError: Mastery outside [0, 1]
            UserNotFoundError: Unknown user
            SessionNotFoundError: Unknown session, or one owned by another user
            InvalidSessionStateError: Session is completed or abandoned
        """
        if not is_valid_mastery_level(mastery):
            raise InvalidMasteryError(mastery)
        if session_id:
            await self.session_manager.get_mutable_session(session_id, user_id=user_id)

        now = self._clock()
        async with self._profile_locks.acquire(user_id):
            profile = await self._require_profile(user_id)
            confidence = calculate_confidence(mastery, profile.skill_levels.get(concept))
            profile.skill_levels = update_skill_level(profile.skill_levels, concept, mastery, confidence, now)
            profile.progress_history.append(ProgressEntry(
                id=str(uuid.uuid4()),
                user_id=user_id,
                concept=concept,
                session_id=session_id or "",
                timestamp=now,
                activity=activity or ProgressActivity(type="assessment_taken"),
                performance=ProgressPerformance(accuracy=mastery, confidence=confidence),
            ))
            # Oldest entries drop off first
            overflow = len(profile.progress_history) - self.settings.progress_history_cap
            if overflow > 0:
                del profile.progress_history[:overflow]
            profile.updated_at = now
            await self.profiles.update_user_profile(user_id, profile)
            masteries = mastery_map(profile.skill_levels)

        await self.engine.update_model(user_id, skill_levels=masteries)
        if session_id:
            await self.session_manager.record_concept_mastery(session_id, concept, mastery)

        logger.info("Progress tracked", {"user": user_id[:20], "concept": concept, "mastery": mastery})
        return profile.skill_levels[concept]

    async def assess_user_knowledge(self, user_id: str, concept: str) -> KnowledgeAssessment:
        profile = await self._require_profile(user_id)
        current_level = profile.skill_levels.get(concept) or create_initial_skill_level(concept)
        assessment = KnowledgeAssessment(current_level=current_level)

        if current_level.mastery < 0.3:
            assessment.suggested_actions += [
                "Start with basic concepts and fundamentals",
                "Practice with guided exercises",
            ]
        elif current_level.mastery < 0.7:
            assessment.suggested_actions += [
                "Continue practicing intermediate concepts",
                "Try applying knowledge to real-world scenarios",
            ]
        else:
            assessment.suggested_actions += [
                "Ready for advanced topics",
                "Consider teaching others to reinforce learning",
            ]
            assessment.readiness_for_advancement = True

        if current_level.confidence < current_level.mastery - 0.2:
            assessment.suggested_actions.append("Build confidence through additional practice")

        return assessment

    # ==================== Explanations ====================

    async def generate_explanation(self, concept: str, user_level: SkillLevel) -> Explanation:
        """
        Explanation pitched at the learner's complexity tier.

        Cached by (concept, mastery, confidence); a hit returns the very
        object stored.

        Raises:
            ConceptNotFoundError: Concept is not in the library
        """
        cache_key = (concept, user_level.mastery, user_level.confidence)
        cached = self.explanation_cache.get(cache_key)
        if cached is not None:
            return cached

        node = self.concepts.get(concept)
        if node is None:
            raise ConceptNotFoundError(concept)

        complexity = self.policy.explanation_complexity(user_level.mastery)
        generator = self.content_generator

        explanation = Explanation(
            id=f"explanation-{concept}-{uuid.uuid4().hex[:8]}",
            concept=concept,
            target_level=complexity,
            content=ExplanationContent(
                summary=generator.generate_summary(concept, complexity),
                detailed=generator.generate_detailed(concept, complexity),
                examples=(generator.generate_example(concept, complexity),),
                analogies=(generator.generate_analogy(concept, complexity),),
                step_by_step=tuple(generator.generate_step_by_step(concept, complexity)),
                visual_aids=(generator.generate_diagram(concept, complexity),),
            ),
            prerequisites=tuple(node.prerequisites),
            next_steps=tuple(generator.generate_next_steps(concept, user_level.mastery)),
            estimated_read_time=generator.estimate_read_time(complexity),
        )

        self.explanation_cache.put(cache_key, explanation)
        logger.debug("Explanation generated", {"concept": concept, "level": complexity})
        return explanation

    async def get_concept_explanation(self, request: Union[ExplanationRequest, dict]) -> Explanation:
        """Cached explanation with request options applied to a copy."""
        request = parse_request(ExplanationRequest, request)
        base = await self.generate_explanation(request.concept, request.user_level.to_skill_level())

        content = base.content
        if request.preferred_style in STYLE_PREFIXES:
            content = replace(content, detailed=STYLE_PREFIXES[request.preferred_style] + content.detailed)
        if not request.include_examples:
            content = replace(content, examples=())
        if not request.include_analogies:
            content = replace(content, analogies=())

        return replace(base, content=content)

    # ==================== Recommendations & insights ====================

    async def get_personalized_recommendations(self, user_id: str) -> List[Recommendation]:
        profile = await self._require_profile(user_id)
        recommendations = []

        for concept in get_weakest_concepts(profile.skill_levels, 3):
            recommendations.append(Recommendation(
                type="review",
                title=f"Review {concept}",
                description=f"Strengthen your understanding of {concept} concepts",
                estimated_time=20,
                difficulty="beginner",
                priority="high",
                reason="Low mastery level detected",
            ))

        for concept in get_strongest_concepts(profile.skill_levels, 2):
            recommendations.append(Recommendation(
                type="concept",
                title=f"Advanced {concept}",
                description=f"Explore advanced topics in {concept}",
                estimated_time=30,
                difficulty="advanced",
                priority="medium",
                reason="Strong foundation - ready for advanced material",
            ))

        for goal in profile.active_goals():
            recommendations.append(Recommendation(
                type="concept",
                title=goal.title,
                description=goal.description,
                estimated_time=45,
                difficulty="intermediate",
                priority=goal.priority,
                reason="Active learning goal",
            ))

        # sorted() is stable, so equal priorities keep insertion order
        recommendations = sorted(recommendations, key=lambda rec: -PRIORITY_ORDER.get(rec.priority, 0))
        return recommendations[:MAX_RECOMMENDATIONS]

    async def get_learning_insights(self, user_id: str) -> InsightsBundle:
        profile = await self._require_profile(user_id)
        engine_insights = await self.engine.get_learning_insights(user_id)
        patterns = identify_learning_patterns(profile.progress_history)
        velocity = engine_insights.learning_velocity

        return InsightsBundle(
            overall_progress=calculate_overall_mastery(profile.skill_levels),
            strengths=engine_insights.strengths,
            weaknesses=engine_insights.weaknesses,
            recommendations=await self.get_personalized_recommendations(user_id),
            engine_recommendations=engine_insights.recommendations,
            learning_velocity=velocity,
            time_to_next_milestone=calculate_time_to_milestone(profile, velocity),
            optimal_study_schedule=StudySchedule(
                best_time_of_day=engine_insights.optimal_study_time,
                recommended_session_length=patterns.average_session_length,
                suggested_frequency=calculate_optimal_frequency(velocity),
            ),
            patterns=patterns,
        )

    # ==================== Chat ====================

    async def process_chat_message(self, user_id: str, request: Union[ChatRequest, dict]) -> ChatResponse:
        return await self.chat.respond(user_id, parse_request(ChatRequest, request))
