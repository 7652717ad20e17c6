"""
User Profile Manager

Authoritative store for learner profiles: preferences, skill levels,
learning goals and progress history.

Two implementations of ProfileRepository:
- InMemoryProfileRepository: process-local, the default
- SupabaseProfileRepository: `profiles` table, nested data stored as JSON
"""

import copy
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, Optional

from adaptive_learning_tutor.exceptions import RepositoryError
from adaptive_learning_tutor.skill_model import (
    LearningGoal,
    NotificationPreferences,
    ProgressActivity,
    ProgressAdaptations,
    ProgressEntry,
    ProgressPerformance,
    SkillLevel,
    UserPreferences,
    UserProfile,
)

logger = logging.getLogger(__name__)


class ProfileRepository(ABC):
    """Profile storage consumed by the orchestrator."""

    @abstractmethod
    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        """Return the profile, or None when the user is unknown."""

    @abstractmethod
    async def update_user_profile(self, user_id: str, profile: UserProfile) -> UserProfile:
        """Replace the stored profile."""


class InMemoryProfileRepository(ProfileRepository):
    """Dictionary-backed profile store. Hands out copies."""

    def __init__(self):
        self._profiles: Dict[str, UserProfile] = {}

    async def create_profile(self, profile: UserProfile) -> UserProfile:
        self._profiles[profile.id] = copy.deepcopy(profile)
        logger.info(f"✅ [UserProfileManager] Created profile for user {profile.id[:20]}")
        return profile

    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        profile = self._profiles.get(user_id)
        return copy.deepcopy(profile) if profile else None

    async def update_user_profile(self, user_id: str, profile: UserProfile) -> UserProfile:
        if user_id not in self._profiles:
            raise RepositoryError(f"Cannot update missing profile: {user_id}")
        self._profiles[user_id] = copy.deepcopy(profile)
        return profile


# ==================== Supabase ====================

def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _load_json(value: Any, default: Any) -> Any:
    if value is None:
        return default
    return json.loads(value) if isinstance(value, str) else value


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _dict_to_entry(data: Dict[str, Any]) -> ProgressEntry:
    return ProgressEntry(
        id=data["id"],
        user_id=data["user_id"],
        concept=data["concept"],
        session_id=data.get("session_id", ""),
        timestamp=_parse_datetime(data.get("timestamp")) or datetime.now(),
        activity=ProgressActivity(**data.get("activity", {})),
        performance=ProgressPerformance(**data.get("performance", {})),
        adaptations=ProgressAdaptations(**data.get("adaptations", {})),
    )


def profile_to_dict(profile: UserProfile) -> Dict[str, Any]:
    """Convert UserProfile to a row for the profiles table."""
    skill_levels = {
        concept: {**asdict(skill), "last_assessed": _iso(skill.last_assessed)}
        for concept, skill in profile.skill_levels.items()
    }
    goals = [{**asdict(goal), "deadline": _iso(goal.deadline)} for goal in profile.learning_goals]
    history = [{**asdict(entry), "timestamp": _iso(entry.timestamp)} for entry in profile.progress_history]

    return {
        "id": profile.id,
        "email": profile.email,
        "preferences": json.dumps(asdict(profile.preferences)),
        "skill_levels": json.dumps(skill_levels),
        "learning_goals": json.dumps(goals),
        "progress_history": json.dumps(history),
        "created_at": _iso(profile.created_at),
        "updated_at": _iso(profile.updated_at),
    }


def dict_to_profile(data: Dict[str, Any]) -> UserProfile:
    """Convert a profiles row to a UserProfile object."""
    preferences_data = _load_json(data.get("preferences"), {})
    notification_data = preferences_data.pop("notification_settings", {}) or {}
    preferences = UserPreferences(
        notification_settings=NotificationPreferences(**notification_data),
        **preferences_data,
    )

    skill_levels = {}
    for concept, skill in _load_json(data.get("skill_levels"), {}).items():
        skill_levels[concept] = SkillLevel(
            concept=skill.get("concept", concept),
            mastery=skill.get("mastery", 0.0),
            confidence=skill.get("confidence", 0.0),
            last_assessed=_parse_datetime(skill.get("last_assessed")) or datetime.now(),
            assessment_count=skill.get("assessment_count", 0),
        )

    goals = []
    for goal in _load_json(data.get("learning_goals"), []):
        goal = dict(goal)
        goal["deadline"] = _parse_datetime(goal.get("deadline"))
        goals.append(LearningGoal(**goal))

    history = [_dict_to_entry(entry) for entry in _load_json(data.get("progress_history"), [])]

    return UserProfile(
        id=data["id"],
        email=data.get("email") or "",
        preferences=preferences,
        skill_levels=skill_levels,
        learning_goals=goals,
        progress_history=history,
        created_at=_parse_datetime(data.get("created_at")) or datetime.now(),
        updated_at=_parse_datetime(data.get("updated_at")) or datetime.now(),
    )


class SupabaseProfileRepository(ProfileRepository):
    """Profile persistence in the Supabase `profiles` table."""

    TABLE = "profiles"

    def __init__(self, supabase_client):
        """
        Initialize the repository.

        Args:
            supabase_client: Supabase client instance
        """
        self.supabase = supabase_client

    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        try:
            result = self.supabase.table(self.TABLE) \
                .select("*") \
                .eq("id", user_id) \
                .execute()
        except Exception as e:
            logger.error(f"❌ [UserProfileManager] Error loading user profile: {e}")
            raise RepositoryError(f"Failed to load profile {user_id}") from e

        if result.data:
            return dict_to_profile(result.data[0])
        return None

    async def update_user_profile(self, user_id: str, profile: UserProfile) -> UserProfile:
        row = profile_to_dict(profile)
        update_data = {key: value for key, value in row.items() if key not in ("id", "created_at")}
        try:
            result = self.supabase.table(self.TABLE) \
                .update(update_data) \
                .eq("id", user_id) \
                .execute()
        except Exception as e:
            logger.error(f"❌ [UserProfileManager] Error updating profile: {e}", exc_info=True)
            raise RepositoryError(f"Failed to update profile {user_id}") from e

        if not result.data:
            logger.warning(f"⚠️ [UserProfileManager] Update returned no data for user {user_id[:20]}...")
            raise RepositoryError(f"Cannot update missing profile: {user_id}")

        logger.info(f"✅ [UserProfileManager] Updated profile for user {user_id[:20]}...")
        return profile
