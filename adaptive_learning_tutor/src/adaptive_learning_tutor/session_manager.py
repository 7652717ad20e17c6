"""
Learning Session Manager

Owns the session lifecycle and per-session metrics:

    active -> paused -> active
    active -> completed            (terminal)
    active | paused -> abandoned   (terminal, also via the expiry sweep)

Every mutation of a session runs under that session's lock and goes
load -> modify -> save through the SessionRepository.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Union

from adaptive_learning_tutor.difficulty_adapter import DIFFICULTY_LEVELS
from adaptive_learning_tutor.exceptions import (
    InvalidSessionStateError,
    SessionNotFoundError,
    ValidationError,
)
from adaptive_learning_tutor.keyed_lock import KeyedLock
from adaptive_learning_tutor.schemas import SessionCreationOptions, SessionUpdate, parse_request
from adaptive_learning_tutor.session_repository import InMemorySessionRepository, SessionRepository
from adaptive_learning_tutor.session_state import (
    ConceptNode,
    LearningSession,
    PerformanceMetrics,
    ProgressState,
    SessionMetrics,
    SessionStatus,
    SessionSummary,
    UserSessionStats,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_HOURS = 24

MASTERED_THRESHOLD = 0.8
STRUGGLING_THRESHOLD = 0.4


def generate_learning_path(topic: str, difficulty: Optional[str] = None) -> List[ConceptNode]:
    """Three-stage path for a topic, shortened for beginner and intermediate learners."""
    concepts = [
        ConceptNode(
            id=f"{topic}-basics",
            name=f"{topic} Basics",
            description=f"Introduction to {topic}",
            prerequisites=[],
            difficulty="beginner",
        ),
        ConceptNode(
            id=f"{topic}-intermediate",
            name=f"{topic} Intermediate",
            description=f"Intermediate concepts in {topic}",
            prerequisites=[f"{topic}-basics"],
            difficulty="intermediate",
        ),
        ConceptNode(
            id=f"{topic}-advanced",
            name=f"{topic} Advanced",
            description=f"Advanced topics in {topic}",
            prerequisites=[f"{topic}-intermediate"],
            difficulty="advanced",
        ),
    ]

    if difficulty == "beginner":
        return concepts[:1]
    if difficulty == "intermediate":
        return concepts[:2]
    return concepts


def apply_performance(metrics: SessionMetrics, performance: PerformanceMetrics):
    """Fold one performance sample into running session metrics."""
    count = metrics.exercises_completed
    metrics.average_accuracy = (metrics.average_accuracy * count + performance.accuracy) / (count + 1)
    metrics.exercises_completed = count + 1

    if performance.accuracy > 0.8:
        metrics.engagement_score = min(1.0, metrics.engagement_score + 0.1)
    elif performance.accuracy < 0.4:
        metrics.engagement_score = max(0.1, metrics.engagement_score - 0.1)


def classify_concept(progress: ProgressState, concept: str, score: float):
    if score >= MASTERED_THRESHOLD:
        progress.mark_mastered(concept)
    elif score < STRUGGLING_THRESHOLD:
        progress.mark_struggling(concept)


class LearningSessionManager:
    """
    Session state machine.

    Unknown ids raise SessionNotFoundError; disallowed transitions and
    changes to terminal sessions raise InvalidSessionStateError.
    """

    def __init__(
        self,
        repository: Optional[SessionRepository] = None,
        max_age_hours: float = DEFAULT_MAX_AGE_HOURS,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the manager.

        Args:
            repository: Session storage (in-memory when omitted)
            max_age_hours: Age after which an active session is swept
            clock: Time source for timestamps
        """
        self.repository = repository or InMemorySessionRepository()
        self.max_age = timedelta(hours=max_age_hours)
        self._clock = clock or datetime.now
        self._locks = KeyedLock()

    async def _load(self, session_id: str) -> LearningSession:
        session = await self.repository.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def _load_metrics(self, session_id: str) -> SessionMetrics:
        metrics = await self.repository.get_metrics(session_id)
        if metrics is None:
            raise SessionNotFoundError(session_id)
        return metrics

    @staticmethod
    def _require_mutable(session: LearningSession):
        if session.status.is_terminal:
            raise InvalidSessionStateError(
                f"Session {session.id} is {session.status.value} and can no longer change",
                session_id=session.id,
                status=session.status.value,
            )

    @staticmethod
    def _require_status(session: LearningSession, expected: SessionStatus, action: str):
        if session.status != expected:
            raise InvalidSessionStateError(
                f"Cannot {action} session {session.id}: status is {session.status.value}, "
                f"expected {expected.value}",
                session_id=session.id,
                status=session.status.value,
            )

    # ==================== Lifecycle ====================

    async def create_session(
        self,
        user_id: str,
        options: Union[SessionCreationOptions, dict]
    ) -> LearningSession:
        """
        Create a new active session.

        Args:
            user_id: Verified user id
            options: Topic plus optional preferred difficulty, max duration and goal ids

        Returns:
            The stored LearningSession

        Raises:
            ValidationError: If the topic is blank or the options are malformed
        """
        options = parse_request(SessionCreationOptions, options)
        learning_path = generate_learning_path(options.topic, options.preferred_difficulty)

        session = LearningSession(
            id=str(uuid.uuid4()),
            user_id=user_id,
            topic=options.topic,
            current_difficulty=options.preferred_difficulty or "beginner",
            learning_path=learning_path,
            progress=ProgressState(current_step=0, total_steps=len(learning_path)),
            start_time=self._clock(),
            status=SessionStatus.ACTIVE,
            learning_goals=list(options.learning_goals),
            max_duration=options.max_duration,
        )

        await self.repository.create_session_with_metrics(session, SessionMetrics(session_id=session.id))
        logger.info(
            f"✅ [SessionManager] Created session {session.id} for user {user_id[:20]} "
            f"(topic={session.topic}, difficulty={session.current_difficulty}, steps={len(learning_path)})"
        )
        return session

    async def update_session(
        self,
        session_id: str,
        update: Union[SessionUpdate, dict]
    ) -> LearningSession:
        """
        Apply a progress update to a non-terminal session.

        Order: step change, then metrics from performance, then
        reclassification of the concept at the (new) current step, then
        time and hint accumulation.

        Raises:
            SessionNotFoundError: Unknown session id
            InvalidSessionStateError: Session is completed or abandoned
            ValidationError: Step outside [0, total_steps]
        """
        update = parse_request(SessionUpdate, update)

        async with self._locks.acquire(session_id):
            session = await self._load(session_id)
            self._require_mutable(session)
            metrics = await self._load_metrics(session_id)
            progress = session.progress

            if update.current_step is not None:
                if not 0 <= update.current_step <= progress.total_steps:
                    raise ValidationError(
                        f"current_step {update.current_step} outside 0..{progress.total_steps}",
                        field="current_step",
                    )
                progress.current_step = update.current_step
                reached = session.current_concept()
                if reached and progress.mark_completed(reached.name):
                    progress.concepts_covered += 1
                    metrics.concepts_covered += 1

            if update.performance is not None:
                performance = update.performance.to_metrics()
                apply_performance(metrics, performance)
                concept = session.current_concept()
                if concept:
                    classify_concept(progress, concept.name, performance.accuracy)

            if update.time_spent:
                metrics.duration += update.time_spent
            if update.hints_used:
                metrics.hints_used += update.hints_used

            await self.repository.save_metrics(metrics)
            await self.repository.save_session(session)

        logger.debug(f"📝 [SessionManager] Updated session {session_id} (step={progress.current_step})")
        return session

    async def update_difficulty(self, session_id: str, level: str) -> LearningSession:
        """Persist a new current difficulty for a non-terminal session."""
        if level not in DIFFICULTY_LEVELS:
            raise ValidationError(f"Invalid difficulty level: {level}", field="current_difficulty")

        async with self._locks.acquire(session_id):
            session = await self._load(session_id)
            self._require_mutable(session)
            if session.current_difficulty != level:
                logger.info(
                    f"🎚️ [SessionManager] Session {session_id} difficulty "
                    f"{session.current_difficulty} -> {level}"
                )
                session.current_difficulty = level
                await self.repository.save_session(session)
            return session

    async def pause_session(self, session_id: str) -> LearningSession:
        async with self._locks.acquire(session_id):
            session = await self._load(session_id)
            self._require_status(session, SessionStatus.ACTIVE, "pause")
            session.status = SessionStatus.PAUSED
            await self.repository.save_session(session)
        logger.info(f"⏸️ [SessionManager] Paused session {session_id}")
        return session

    async def resume_session(self, session_id: str) -> LearningSession:
        async with self._locks.acquire(session_id):
            session = await self._load(session_id)
            self._require_status(session, SessionStatus.PAUSED, "resume")
            session.status = SessionStatus.ACTIVE
            await self.repository.save_session(session)
        logger.info(f"▶️ [SessionManager] Resumed session {session_id}")
        return session

    async def complete_session(self, session_id: str) -> SessionSummary:
        """Complete an active session and summarize it."""
        async with self._locks.acquire(session_id):
            session = await self._load(session_id)
            self._require_status(session, SessionStatus.ACTIVE, "complete")
            session.status = SessionStatus.COMPLETED
            session.end_time = self._clock()
            await self.repository.save_session(session)
            metrics = await self.repository.get_metrics(session_id)

        logger.info(f"🏁 [SessionManager] Completed session {session_id}")
        return self._summarize(session, metrics)

    async def abandon_session(self, session_id: str) -> LearningSession:
        async with self._locks.acquire(session_id):
            session = await self._load(session_id)
            self._require_mutable(session)
            session.status = SessionStatus.ABANDONED
            session.end_time = self._clock()
            await self.repository.save_session(session)
        logger.info(f"🛑 [SessionManager] Abandoned session {session_id}")
        return session

    @staticmethod
    def _summarize(session: LearningSession, metrics: Optional[SessionMetrics]) -> SessionSummary:
        progress = session.progress
        accuracy = metrics.average_accuracy if metrics else 0.0

        next_steps = []
        if progress.struggling_concepts:
            next_steps.append(f"Review struggling concepts: {', '.join(progress.struggling_concepts)}")
        else:
            next_steps.append("Continue to more advanced topics")

        if metrics and accuracy < 0.6:
            next_steps.append("Consider reviewing prerequisite concepts")
        elif metrics and accuracy > 0.8:
            next_steps.append("Ready for challenging material")

        return SessionSummary(
            session_id=session.id,
            topic=session.topic,
            duration=metrics.duration if metrics else 0.0,
            concepts_covered=list(progress.completed_concepts),
            mastered_concepts=list(progress.mastered_concepts),
            struggling_concepts=list(progress.struggling_concepts),
            overall_accuracy=accuracy,
            recommended_next_steps=next_steps,
        )

    # ==================== Metrics & progress ====================

    async def update_session_metrics(self, session_id: str, performance: PerformanceMetrics) -> SessionMetrics:
        async with self._locks.acquire(session_id):
            self._require_mutable(await self._load(session_id))
            metrics = await self._load_metrics(session_id)
            apply_performance(metrics, performance)
            await self.repository.save_metrics(metrics)
            return metrics

    async def record_concept_mastery(self, session_id: str, concept: str, mastery: float) -> LearningSession:
        """Record an assessed mastery for a concept inside a session."""
        async with self._locks.acquire(session_id):
            session = await self._load(session_id)
            self._require_mutable(session)
            classify_concept(session.progress, concept, mastery)
            session.progress.mark_completed(concept)
            await self.repository.save_session(session)
            return session

    # ==================== Queries ====================

    async def get_session(self, session_id: str) -> LearningSession:
        return await self._load(session_id)

    async def get_mutable_session(self, session_id: str, user_id: Optional[str] = None) -> LearningSession:
        """
        Load a session that can still change, optionally owned by user_id.

        A session owned by someone else is reported as not found.

        Raises:
            SessionNotFoundError: Unknown id or another user's session
            InvalidSessionStateError: Session is completed or abandoned
        """
        session = await self._load(session_id)
        if user_id is not None and session.user_id != user_id:
            raise SessionNotFoundError(session_id)
        self._require_mutable(session)
        return session

    async def get_session_metrics(self, session_id: str) -> SessionMetrics:
        return await self._load_metrics(session_id)

    async def get_session_progress(self, session_id: str) -> ProgressState:
        session = await self._load(session_id)
        return session.progress

    async def get_progress_percentage(self, session_id: str) -> float:
        progress = await self.get_session_progress(session_id)
        if progress.total_steps == 0:
            return 0.0
        return progress.current_step / progress.total_steps * 100

    async def get_user_active_sessions(self, user_id: str) -> List[LearningSession]:
        return await self.repository.list_sessions(user_id=user_id, status=SessionStatus.ACTIVE)

    async def get_user_session_history(self, user_id: str, limit: Optional[int] = None) -> List[LearningSession]:
        """Finished or paused sessions, most recently ended first."""
        sessions = [
            session for session in await self.repository.list_sessions(user_id=user_id)
            if session.status != SessionStatus.ACTIVE
        ]
        sessions.sort(key=lambda session: session.end_time or datetime.min, reverse=True)
        return sessions[:limit] if limit else sessions

    async def get_user_session_stats(self, user_id: str) -> UserSessionStats:
        sessions = await self.repository.list_sessions(user_id=user_id)
        if not sessions:
            return UserSessionStats()

        metrics: List[SessionMetrics] = []
        for session in sessions:
            session_metrics = await self.repository.get_metrics(session.id)
            if session_metrics:
                metrics.append(session_metrics)

        total_study_time = sum(m.duration for m in metrics)
        mastered = {concept for session in sessions for concept in session.progress.mastered_concepts}

        return UserSessionStats(
            total_sessions=len(sessions),
            completed_sessions=sum(1 for s in sessions if s.status == SessionStatus.COMPLETED),
            total_study_time=total_study_time,
            average_session_length=total_study_time / len(sessions),
            concepts_mastered=len(mastered),
            average_accuracy=sum(m.average_accuracy for m in metrics) / len(metrics) if metrics else 0.0,
        )

    async def get_active_sessions_count(self) -> int:
        return len(await self.repository.list_sessions(status=SessionStatus.ACTIVE))

    # ==================== Maintenance ====================

    async def cleanup_expired_sessions(self, now: Optional[datetime] = None) -> List[str]:
        """
        Abandon every active session older than the max age.

        Each candidate is reloaded under its lock and re-checked, so a
        session completed or paused meanwhile is left alone.

        Returns:
            Ids of the sessions that were abandoned
        """
        now = now or self._clock()
        cutoff = now - self.max_age
        abandoned = []

        for candidate in await self.repository.list_sessions(status=SessionStatus.ACTIVE):
            if candidate.start_time >= cutoff:
                continue
            async with self._locks.acquire(candidate.id):
                session = await self.repository.get_session(candidate.id)
                if session is None or session.status != SessionStatus.ACTIVE or session.start_time >= cutoff:
                    continue
                session.status = SessionStatus.ABANDONED
                session.end_time = now
                await self.repository.save_session(session)
                abandoned.append(session.id)

        if abandoned:
            logger.info(f"🧹 [SessionManager] Abandoned {len(abandoned)} expired session(s)")
        return abandoned
