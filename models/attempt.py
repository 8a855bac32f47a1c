"""
Attempt - one learner submission cycle for a theme.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel

from .base import BaseEntity, new_id
from .feedback import Feedback
from .exercise import ExercisePayload


class AttemptStatus(str, Enum):
    """Lifecycle states of an attempt."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    ANALYZING = "analyzing"
    REVIEWED = "reviewed"
    EXERCISE_GENERATED = "exercise_generated"
    ANSWERED = "answered"


class VersionType(str, Enum):
    """What produced a version."""
    INITIAL = "initial"
    EXERCISE = "exercise"
    FEEDBACK = "feedback"


class AttemptVersion(BaseModel):
    """Immutable content snapshot. Numbers are contiguous from 1."""
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    version: int = Field(ge=1)
    content: str
    created_at: datetime = Field(default_factory=datetime.now)
    type: VersionType = VersionType.INITIAL
    exercise_id: Optional[str] = None


class Attempt(BaseEntity):
    """
    An attempt and its full history.

    versions and feedback_history are newest first and append-only.
    """
    attempt_id: str = Field(default_factory=new_id)
    topic_id: str
    theme_id: str
    status: AttemptStatus = AttemptStatus.SUBMITTED
    latest_version: int = Field(default=1, ge=1)
    versions: tuple[AttemptVersion, ...] = ()
    feedback_history: tuple[Feedback, ...] = ()
    pending_exercise: Optional[ExercisePayload] = None
    cycles: int = Field(default=0, ge=0)

    @property
    def latest_version_entry(self) -> Optional[AttemptVersion]:
        """Most recent version, if any."""
        return self.versions[0] if self.versions else None

    @property
    def latest_content(self) -> str:
        """Content of the most recent version."""
        entry = self.latest_version_entry
        return entry.content if entry else ""

    @property
    def latest_feedback(self) -> Optional[Feedback]:
        """Most recent attached critique."""
        return self.feedback_history[0] if self.feedback_history else None

    def find_feedback(self, feedback_id: str) -> Optional[Feedback]:
        """Look up a critique by id."""
        for feedback in self.feedback_history:
            if feedback.feedback_id == feedback_id:
                return feedback
        return None

    def cycle_limit_reached(self, max_cycles: int) -> bool:
        """True once the attempt can no longer re-enter analysis."""
        return self.cycles >= max_cycles
