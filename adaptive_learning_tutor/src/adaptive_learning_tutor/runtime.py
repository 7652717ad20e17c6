"""
Runtime Wiring

Builds the orchestrator and the session sweeper from EngineSettings, and
keeps process-wide singletons for a hosting transport layer.
"""

from typing import Optional

from adaptive_learning_tutor.config import EngineSettings
from adaptive_learning_tutor.learning_orchestrator import LearningOrchestrator
from adaptive_learning_tutor.logger import get_logger, setup_logging
from adaptive_learning_tutor.session_manager import LearningSessionManager
from adaptive_learning_tutor.session_repository import (
    InMemorySessionRepository,
    SupabaseSessionRepository,
)
from adaptive_learning_tutor.session_sweeper import SessionSweeper
from adaptive_learning_tutor.supabase_client import get_supabase_client
from adaptive_learning_tutor.user_profile_manager import (
    InMemoryProfileRepository,
    SupabaseProfileRepository,
)

logger = get_logger(__name__)

_orchestrator: Optional[LearningOrchestrator] = None
_sweeper: Optional[SessionSweeper] = None


def build_orchestrator(
    settings: Optional[EngineSettings] = None,
    supabase_client=None
) -> LearningOrchestrator:
    """
    Assemble an orchestrator.

    With a Supabase client (or STORAGE_BACKEND=supabase) sessions and
    profiles persist to Supabase; otherwise both live in memory.
    """
    settings = settings or EngineSettings.from_env()

    if supabase_client is None and settings.storage_backend == "supabase":
        supabase_client = get_supabase_client()

    if supabase_client is not None:
        session_repository = SupabaseSessionRepository(supabase_client)
        profile_repository = SupabaseProfileRepository(supabase_client)
    else:
        session_repository = InMemorySessionRepository()
        profile_repository = InMemoryProfileRepository()

    session_manager = LearningSessionManager(
        repository=session_repository,
        max_age_hours=settings.session_max_age_hours,
    )

    logger.info("Orchestrator assembled", {
        "storage": "supabase" if supabase_client is not None else "memory",
        "history_cap": settings.performance_history_cap,
        "explanation_cache": settings.explanation_cache_size,
    })
    return LearningOrchestrator(
        profile_repository=profile_repository,
        session_manager=session_manager,
        settings=settings,
    )


def build_sweeper(orchestrator: LearningOrchestrator, settings: Optional[EngineSettings] = None) -> SessionSweeper:
    settings = settings or orchestrator.settings
    return SessionSweeper(
        orchestrator.session_manager,
        interval_minutes=settings.sweep_interval_minutes,
        enabled=settings.sweep_enabled,
    )


def get_orchestrator() -> LearningOrchestrator:
    """Get or create the singleton orchestrator."""
    global _orchestrator
    if _orchestrator is None:
        settings = EngineSettings.from_env()
        setup_logging(level=settings.log_level, use_colors=settings.use_colors)
        _orchestrator = build_orchestrator(settings)
    return _orchestrator


async def startup():
    """Start the background session sweep for the singleton orchestrator."""
    global _sweeper
    if _sweeper is None:
        _sweeper = build_sweeper(get_orchestrator())
    await _sweeper.start()


async def shutdown():
    """Stop the background session sweep."""
    global _sweeper
    if _sweeper is not None:
        await _sweeper.stop()
        _sweeper = None
