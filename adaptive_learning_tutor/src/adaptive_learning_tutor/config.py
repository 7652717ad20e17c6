"""
Engine Configuration

Reads tunables from the environment (and a local .env file when present).
"""

import os
import logging
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class EngineSettings:
    """Tunables for the adaptive learning core."""
    session_max_age_hours: int = 24
    sweep_interval_minutes: int = 60
    sweep_enabled: bool = True
    performance_history_cap: int = 100
    progress_history_cap: int = 500
    explanation_cache_size: int = 500
    explanation_cache_ttl_hours: int = 24
    personalization_model_capacity: int = 10000
    log_level: int = logging.INFO
    use_colors: bool = True
    storage_backend: str = "memory"  # "memory" or "supabase"

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Build settings from environment variables, falling back to defaults."""
        level_name = os.getenv("LOG_LEVEL", "INFO").upper()
        return cls(
            session_max_age_hours=int(os.getenv("SESSION_MAX_AGE_HOURS", "24")),
            sweep_interval_minutes=int(os.getenv("SESSION_SWEEP_INTERVAL_MINUTES", "60")),
            sweep_enabled=_env_bool("SESSION_SWEEP_ENABLED", "true"),
            performance_history_cap=int(os.getenv("PERFORMANCE_HISTORY_CAP", "100")),
            progress_history_cap=int(os.getenv("PROGRESS_HISTORY_CAP", "500")),
            explanation_cache_size=int(os.getenv("EXPLANATION_CACHE_SIZE", "500")),
            explanation_cache_ttl_hours=int(os.getenv("EXPLANATION_CACHE_TTL_HOURS", "24")),
            personalization_model_capacity=int(os.getenv("PERSONALIZATION_MODEL_CAPACITY", "10000")),
            log_level=getattr(logging, level_name, logging.INFO),
            use_colors=_env_bool("LOG_COLORS", "true"),
            storage_backend=os.getenv("STORAGE_BACKEND", "memory").lower(),
        )
