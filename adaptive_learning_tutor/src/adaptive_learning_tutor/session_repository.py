"""
Session Repository

Persistence for LearningSession and SessionMetrics records, keyed by
session id.

Two implementations:
- InMemorySessionRepository: process-local, the default
- SupabaseSessionRepository: `sessions` and `session_metrics` tables

Both hand out copies, so a caller mutating a loaded session changes nothing
until it calls save_session().
"""

import copy
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from adaptive_learning_tutor.exceptions import RepositoryError
from adaptive_learning_tutor.session_state import (
    ConceptNode,
    LearningSession,
    ProgressState,
    SessionMetrics,
    SessionStatus,
)

logger = logging.getLogger(__name__)


class SessionRepository(ABC):
    """Storage contract used by the session lifecycle manager."""

    @abstractmethod
    async def create_session_with_metrics(self, session: LearningSession, metrics: SessionMetrics):
        """Store a new session together with its initial metrics, all or nothing."""

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[LearningSession]:
        ...

    @abstractmethod
    async def save_session(self, session: LearningSession):
        ...

    @abstractmethod
    async def get_metrics(self, session_id: str) -> Optional[SessionMetrics]:
        ...

    @abstractmethod
    async def save_metrics(self, metrics: SessionMetrics):
        ...

    @abstractmethod
    async def list_sessions(
        self,
        user_id: Optional[str] = None,
        status: Optional[SessionStatus] = None
    ) -> List[LearningSession]:
        """Sessions matching the filters, oldest start_time first."""


class InMemorySessionRepository(SessionRepository):
    """Dictionary-backed repository."""

    def __init__(self):
        self._sessions: Dict[str, LearningSession] = {}
        self._metrics: Dict[str, SessionMetrics] = {}

    async def create_session_with_metrics(self, session: LearningSession, metrics: SessionMetrics):
        if session.id in self._sessions:
            raise RepositoryError(f"Session already exists: {session.id}")
        self._sessions[session.id] = copy.deepcopy(session)
        self._metrics[metrics.session_id] = copy.deepcopy(metrics)

    async def get_session(self, session_id: str) -> Optional[LearningSession]:
        session = self._sessions.get(session_id)
        return copy.deepcopy(session) if session else None

    async def save_session(self, session: LearningSession):
        self._sessions[session.id] = copy.deepcopy(session)

    async def get_metrics(self, session_id: str) -> Optional[SessionMetrics]:
        metrics = self._metrics.get(session_id)
        return copy.deepcopy(metrics) if metrics else None

    async def save_metrics(self, metrics: SessionMetrics):
        self._metrics[metrics.session_id] = copy.deepcopy(metrics)

    async def list_sessions(
        self,
        user_id: Optional[str] = None,
        status: Optional[SessionStatus] = None
    ) -> List[LearningSession]:
        matches = [
            session for session in self._sessions.values()
            if (user_id is None or session.user_id == user_id)
            and (status is None or session.status == status)
        ]
        matches.sort(key=lambda session: session.start_time)
        return [copy.deepcopy(session) for session in matches]


# ==================== Supabase ====================

def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    # Core timestamps are naive local time
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _parse_json(value: Any, default: Any) -> Any:
    if value is None:
        return default
    return json.loads(value) if isinstance(value, str) else value


def session_to_dict(session: LearningSession) -> Dict[str, Any]:
    """
    Convert LearningSession to a row for the sessions table.

    Args:
        session: LearningSession object

    Returns:
        Dictionary representation
    """
    return {
        "id": session.id,
        "user_id": session.user_id,
        "topic": session.topic,
        "current_difficulty": session.current_difficulty,
        "learning_path": json.dumps([asdict(node) for node in session.learning_path]),
        "progress": json.dumps(asdict(session.progress)),
        "start_time": session.start_time.isoformat(),
        "end_time": session.end_time.isoformat() if session.end_time else None,
        "status": session.status.value,
        "learning_goals": json.dumps(session.learning_goals),
        "max_duration": session.max_duration,
    }


def dict_to_session(data: Dict[str, Any]) -> LearningSession:
    """
    Convert a sessions row to a LearningSession object.

    Args:
        data: Dictionary from database

    Returns:
        LearningSession object
    """
    path = _parse_json(data.get("learning_path"), [])
    progress = _parse_json(data.get("progress"), {})

    return LearningSession(
        id=data["id"],
        user_id=data["user_id"],
        topic=data["topic"],
        current_difficulty=data.get("current_difficulty") or "beginner",
        learning_path=[ConceptNode(**node) for node in path],
        progress=ProgressState(**progress),
        start_time=_parse_datetime(data.get("start_time")) or datetime.now(),
        end_time=_parse_datetime(data.get("end_time")),
        status=SessionStatus(data.get("status") or "active"),
        learning_goals=_parse_json(data.get("learning_goals"), []),
        max_duration=data.get("max_duration"),
    )


def metrics_to_dict(metrics: SessionMetrics) -> Dict[str, Any]:
    return asdict(metrics)


def dict_to_metrics(data: Dict[str, Any]) -> SessionMetrics:
    return SessionMetrics(
        session_id=data["session_id"],
        duration=data.get("duration", 0.0),
        concepts_covered=data.get("concepts_covered", 0),
        exercises_completed=data.get("exercises_completed", 0),
        hints_used=data.get("hints_used", 0),
        average_accuracy=data.get("average_accuracy", 0.0),
        engagement_score=data.get("engagement_score", 1.0),
    )


class SupabaseSessionRepository(SessionRepository):
    """
    Session persistence in Supabase.

    Tables:
    - sessions: one row per session (path, progress and goals as JSON text)
    - session_metrics: one row per session, keyed by session_id
    """

    SESSIONS_TABLE = "sessions"
    METRICS_TABLE = "session_metrics"

    def __init__(self, supabase_client):
        """
        Initialize the repository.

        Args:
            supabase_client: Supabase client instance
        """
        self.supabase = supabase_client

    async def create_session_with_metrics(self, session: LearningSession, metrics: SessionMetrics):
        try:
            self.supabase.table(self.SESSIONS_TABLE).insert(session_to_dict(session)).execute()
        except Exception as e:
            logger.error(f"❌ [SessionRepository] Error creating session {session.id}: {e}")
            raise RepositoryError(f"Failed to create session {session.id}") from e

        try:
            self.supabase.table(self.METRICS_TABLE).insert(metrics_to_dict(metrics)).execute()
        except Exception as e:
            logger.error(f"❌ [SessionRepository] Error initializing metrics for {session.id}, rolling back: {e}")
            try:
                self.supabase.table(self.SESSIONS_TABLE).delete().eq("id", session.id).execute()
            except Exception as cleanup_error:
                logger.error(f"❌ [SessionRepository] Rollback failed for {session.id}: {cleanup_error}")
            raise RepositoryError(f"Failed to initialize metrics for session {session.id}") from e

        logger.info(f"✅ [SessionRepository] Created session {session.id}")

    async def get_session(self, session_id: str) -> Optional[LearningSession]:
        try:
            result = self.supabase.table(self.SESSIONS_TABLE) \
                .select("*") \
                .eq("id", session_id) \
                .execute()
        except Exception as e:
            logger.error(f"❌ [SessionRepository] Error loading session {session_id}: {e}")
            raise RepositoryError(f"Failed to load session {session_id}") from e

        if result.data:
            return dict_to_session(result.data[0])
        return None

    async def save_session(self, session: LearningSession):
        row = session_to_dict(session)
        update_data = {key: value for key, value in row.items() if key not in ("id", "user_id")}
        try:
            self.supabase.table(self.SESSIONS_TABLE) \
                .update(update_data) \
                .eq("id", session.id) \
                .execute()
        except Exception as e:
            logger.error(f"❌ [SessionRepository] Error saving session {session.id}: {e}")
            raise RepositoryError(f"Failed to save session {session.id}") from e

    async def get_metrics(self, session_id: str) -> Optional[SessionMetrics]:
        try:
            result = self.supabase.table(self.METRICS_TABLE) \
                .select("*") \
                .eq("session_id", session_id) \
                .execute()
        except Exception as e:
            logger.error(f"❌ [SessionRepository] Error loading metrics for {session_id}: {e}")
            raise RepositoryError(f"Failed to load metrics for session {session_id}") from e

        if result.data:
            return dict_to_metrics(result.data[0])
        return None

    async def save_metrics(self, metrics: SessionMetrics):
        update_data = {key: value for key, value in metrics_to_dict(metrics).items() if key != "session_id"}
        try:
            self.supabase.table(self.METRICS_TABLE) \
                .update(update_data) \
                .eq("session_id", metrics.session_id) \
                .execute()
        except Exception as e:
            logger.error(f"❌ [SessionRepository] Error saving metrics for {metrics.session_id}: {e}")
            raise RepositoryError(f"Failed to save metrics for session {metrics.session_id}") from e

    async def list_sessions(
        self,
        user_id: Optional[str] = None,
        status: Optional[SessionStatus] = None
    ) -> List[LearningSession]:
        try:
            query = self.supabase.table(self.SESSIONS_TABLE).select("*")
            if user_id:
                query = query.eq("user_id", user_id)
            if status:
                query = query.eq("status", status.value)
            result = query.order("start_time", desc=False).execute()
        except Exception as e:
            logger.error(f"❌ [SessionRepository] Error listing sessions: {e}")
            raise RepositoryError("Failed to list sessions") from e

        return [dict_to_session(row) for row in result.data or []]
