"""
Exercise payload - a follow-up task generated from a critique.
"""

from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel

from .base import new_id


class ExerciseType(str, Enum):
    """Canonical exercise kinds."""
    ANALYTICAL = "analytical"    # Single open-ended statement
    PROPOSITION = "proposition"  # Three derived logical variants


class ExercisePayload(BaseModel):
    """
    A generated exercise.

    payload is opaque here: an escaped statement for analytical
    exercises, a JSON list of three statements for propositions.
    See schemas.payloads for decoding.
    """
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    exercise_id: str = Field(default_factory=new_id)
    attempt_id: str
    type: ExerciseType
    payload: str
    created_at: datetime = Field(default_factory=datetime.now)
    model: str = ""
