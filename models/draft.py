"""
Draft buffers - ephemeral text kept while the learner types.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel


class AutosaveStatus(str, Enum):
    """Autosave indicator for a draft."""
    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


class Draft(BaseModel):
    """A keyed text (or serialized list) buffer."""
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    value: str = ""
    status: AutosaveStatus = AutosaveStatus.IDLE
    error: Optional[str] = None
    updated_at: datetime = Field(default_factory=datetime.now)


def attempt_draft_id(theme_id: str) -> str:
    """Draft holding an unsent explanation for a theme."""
    return f"attempt-draft-{theme_id}"


def exercise_draft_id(exercise_id: str, index: Optional[int] = None) -> str:
    """Draft holding an unsent exercise answer (per statement for propositions)."""
    if index is None:
        return f"exercise-{exercise_id}"
    return f"exercise-{exercise_id}-{index}"


def subject_draft_id(topic_id: Optional[str] = None) -> str:
    """Draft holding a subject name being typed."""
    return f"subject-{topic_id or 'new'}"


def themes_draft_id(topic_id: str) -> str:
    """Draft holding a serialized list of theme titles."""
    return f"themes-{topic_id}"
