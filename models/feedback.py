"""
Feedback models - the validated critique of an attempt.
"""

from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel


class FeedbackSource(str, Enum):
    """Where the critique text came from."""
    MODEL = "model"
    MANUAL = "manual"  # Edited or pasted by the learner


class FeedbackIssue(BaseModel):
    """One weak point with a counterexample."""
    model_config = ConfigDict(frozen=True)

    id: str
    point: str
    counterexample: str


class Feedback(BaseModel):
    """
    Structured critique attached to an attempt.

    Only ever built by the response validator, which guarantees
    attempt_id matches the attempt it was requested for.
    """
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    feedback_id: str
    attempt_id: str
    summary: str
    errors: tuple[FeedbackIssue, ...]
    suggestion: str
    model: str = ""
    raw: str = ""
    source: FeedbackSource = FeedbackSource.MODEL
    created_at: datetime = Field(default_factory=datetime.now)
    version: int = 1  # Schema version

    def critique_text(self) -> str:
        """Summary, suggestion and numbered errors as plain text."""
        lines = [
            f"Summary: {self.summary}",
            f"Suggestion: {self.suggestion}",
        ]
        if self.errors:
            lines.append("Errors:")
            for index, issue in enumerate(self.errors, 1):
                lines.append(f"{index}. {issue.point} -> {issue.counterexample}")
        return "\n".join(lines)
