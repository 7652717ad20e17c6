"""
Request Schemas

Pydantic models for the inbound request shapes the orchestrator accepts.
Shape errors are re-raised as the core's ValidationError.
"""

from typing import Any, List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from adaptive_learning_tutor.exceptions import ValidationError
from adaptive_learning_tutor.session_state import PerformanceMetrics
from adaptive_learning_tutor.skill_model import SkillLevel

DifficultyLevel = Literal["beginner", "intermediate", "advanced", "expert"]
LearningStyle = Literal["visual", "auditory", "kinesthetic", "mixed"]

ModelT = TypeVar("ModelT", bound=BaseModel)


class SessionCreationOptions(BaseModel):
    topic: str
    preferred_difficulty: Optional[DifficultyLevel] = None
    max_duration: Optional[int] = Field(default=None, ge=1)  # minutes
    learning_goals: List[str] = Field(default_factory=list)

    @field_validator("topic")
    @classmethod
    def topic_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("topic must not be empty")
        return value


class PerformanceInput(BaseModel):
    accuracy: float = Field(ge=0, le=1)
    speed: float = Field(default=0.5, ge=0, le=1)
    engagement: float = Field(default=0.5, ge=0, le=1)
    retention: float = Field(default=0.5, ge=0, le=1)

    def to_metrics(self) -> PerformanceMetrics:
        return PerformanceMetrics(
            accuracy=self.accuracy,
            speed=self.speed,
            engagement=self.engagement,
            retention=self.retention,
        )


class SessionUpdate(BaseModel):
    current_step: Optional[int] = Field(default=None, ge=0)
    performance: Optional[PerformanceInput] = None
    time_spent: Optional[float] = Field(default=None, ge=0)  # seconds
    hints_used: Optional[int] = Field(default=None, ge=0)


class SkillLevelInput(BaseModel):
    concept: str
    mastery: float = Field(default=0.0, ge=0, le=1)
    confidence: float = Field(default=0.0, ge=0, le=1)
    assessment_count: int = Field(default=0, ge=0)

    def to_skill_level(self) -> SkillLevel:
        return SkillLevel(
            concept=self.concept,
            mastery=self.mastery,
            confidence=self.confidence,
            assessment_count=self.assessment_count,
        )


class ExplanationRequest(BaseModel):
    concept: str
    user_level: SkillLevelInput
    context: Optional[str] = None
    preferred_style: Optional[LearningStyle] = None
    include_examples: bool = False
    include_analogies: bool = False


class ChatContext(BaseModel):
    session_id: Optional[str] = None
    topic: Optional[str] = None
    current_concept: Optional[str] = None


class ChatRequest(BaseModel):
    message: str
    context: Optional[ChatContext] = None


def parse_request(model: Type[ModelT], data: Any) -> ModelT:
    """
    Coerce a dict (or an existing model instance) into a request model.

    Raises:
        ValidationError: If the payload does not match the model
    """
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump()
    if not isinstance(data, dict):
        raise ValidationError(f"Malformed {model.__name__}: expected an object")
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(f"Malformed {model.__name__}: {first.get('msg')}", field=field) from e
