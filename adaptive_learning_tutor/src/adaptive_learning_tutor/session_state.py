"""
Session State Data Model

Dataclasses for learning sessions, their progress and per-session metrics.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class SessionStatus(Enum):
    """Session lifecycle states. COMPLETED and ABANDONED are terminal."""
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.ABANDONED)


@dataclass
class ConceptNode:
    """One step of a session's learning path."""
    id: str
    name: str
    description: str = ""
    prerequisites: List[str] = field(default_factory=list)
    difficulty: str = "intermediate"


@dataclass
class ProgressState:
    """
    Where a learner is within a session.

    Concept collections are ordered and duplicate-free; a concept is never
    in both mastered_concepts and struggling_concepts.
    """
    current_step: int = 0
    total_steps: int = 0
    completed_concepts: List[str] = field(default_factory=list)
    struggling_concepts: List[str] = field(default_factory=list)
    mastered_concepts: List[str] = field(default_factory=list)
    concepts_covered: int = 0

    def mark_completed(self, concept: str) -> bool:
        """Record a reached concept. Returns False when it was already recorded."""
        if concept in self.completed_concepts:
            return False
        self.completed_concepts.append(concept)
        return True

    def mark_mastered(self, concept: str):
        if concept not in self.mastered_concepts:
            self.mastered_concepts.append(concept)
        if concept in self.struggling_concepts:
            self.struggling_concepts.remove(concept)

    def mark_struggling(self, concept: str):
        # Mastery wins: a mastered concept is not demoted here
        if concept in self.mastered_concepts:
            return
        if concept not in self.struggling_concepts:
            self.struggling_concepts.append(concept)


@dataclass
class LearningSession:
    id: str
    user_id: str
    topic: str
    current_difficulty: str = "beginner"
    learning_path: List[ConceptNode] = field(default_factory=list)
    progress: ProgressState = field(default_factory=ProgressState)
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    status: SessionStatus = SessionStatus.ACTIVE
    learning_goals: List[str] = field(default_factory=list)  # goal ids
    max_duration: Optional[int] = None  # minutes

    def current_concept(self) -> Optional[ConceptNode]:
        step = self.progress.current_step
        if 0 <= step < len(self.learning_path):
            return self.learning_path[step]
        return None


@dataclass
class SessionMetrics:
    """Running per-session metrics. Updated incrementally, never recomputed."""
    session_id: str
    duration: float = 0.0  # seconds
    concepts_covered: int = 0
    exercises_completed: int = 0
    hints_used: int = 0
    average_accuracy: float = 0.0
    engagement_score: float = 1.0


@dataclass
class PerformanceMetrics:
    """A single performance observation (all scores 0-1)."""
    accuracy: float
    speed: float = 0.5
    engagement: float = 0.5
    retention: float = 0.5
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class SessionSummary:
    session_id: str
    topic: str
    duration: float
    concepts_covered: List[str]
    mastered_concepts: List[str]
    struggling_concepts: List[str]
    overall_accuracy: float
    recommended_next_steps: List[str]


@dataclass
class UserSessionStats:
    total_sessions: int = 0
    completed_sessions: int = 0
    total_study_time: float = 0.0  # seconds
    average_session_length: float = 0.0  # seconds
    concepts_mastered: int = 0
    average_accuracy: float = 0.0
