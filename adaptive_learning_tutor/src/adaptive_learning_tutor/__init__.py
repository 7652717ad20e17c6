"""Adaptive learning orchestration engine."""
from adaptive_learning_tutor.learning_orchestrator import LearningOrchestrator
from adaptive_learning_tutor.runtime import build_orchestrator, get_orchestrator

__all__ = ["LearningOrchestrator", "build_orchestrator", "get_orchestrator"]
