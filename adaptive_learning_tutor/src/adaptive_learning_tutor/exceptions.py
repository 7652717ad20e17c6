"""
Error Taxonomy

Typed failures raised by the adaptive learning core. Every failure is
returned to the immediate caller; nothing here retries.
"""

from typing import Optional


class LearningEngineError(Exception):
    """Base class for all adaptive learning errors."""

    code = "LEARNING_ENGINE_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


# ==================== Not Found ====================

class NotFoundError(LearningEngineError):
    """A session, concept or user does not exist."""

    code = "NOT_FOUND"


class SessionNotFoundError(NotFoundError):
    code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class ConceptNotFoundError(NotFoundError):
    code = "CONCEPT_NOT_FOUND"

    def __init__(self, concept: str):
        super().__init__(f"Concept not found: {concept}")
        self.concept = concept


class UserNotFoundError(NotFoundError):
    code = "USER_NOT_FOUND"

    def __init__(self, user_id: str):
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


# ==================== Validation ====================

class ValidationError(LearningEngineError):
    """Malformed input: bad request shape, empty topic, out-of-range values."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidMasteryError(ValidationError):
    code = "INVALID_MASTERY"

    def __init__(self, mastery: float):
        super().__init__(f"Invalid mastery level: {mastery} (expected 0-1)", field="mastery")
        self.mastery = mastery


# ==================== State ====================

class InvalidStateError(LearningEngineError):
    """Operation not allowed in the current lifecycle state."""

    code = "INVALID_STATE"


class InvalidSessionStateError(InvalidStateError):
    code = "INVALID_SESSION_STATE"

    def __init__(self, message: str, session_id: Optional[str] = None, status: Optional[str] = None):
        super().__init__(message)
        self.session_id = session_id
        self.status = status


# ==================== Collaborators ====================

class UnauthorizedError(LearningEngineError):
    """Raised by the auth collaborator; never generated by the core itself."""

    code = "UNAUTHORIZED"


class RepositoryError(LearningEngineError):
    """A persistence adapter failed to read or write."""

    code = "REPOSITORY_ERROR"
