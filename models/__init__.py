"""
Domain models - single source of truth for all entities.

Design principles:
- Every entity defined once
- Entities are frozen; updates produce new copies
- Validation at the boundary
- Backend-agnostic (store and repository handle state and persistence)
"""

from .base import BaseEntity, TimestampMixin, new_id
from .topic import Topic, Theme
from .attempt import Attempt, AttemptStatus, AttemptVersion, VersionType
from .feedback import Feedback, FeedbackIssue, FeedbackSource
from .exercise import ExercisePayload, ExerciseType
from .draft import (
    Draft,
    AutosaveStatus,
    attempt_draft_id,
    exercise_draft_id,
    subject_draft_id,
    themes_draft_id,
)
from .settings import (
    Settings,
    ApiModel,
    PropositionPrompts,
    PropositionPromptKind,
    DEFAULT_PROPOSITION_PROMPTS,
)
from .errors import (
    TutorError,
    GuardViolation,
    EmptyContent,
    CycleLimitReached,
    RetryLimitReached,
    InvalidTransition,
    EntityNotFoundError,
    AttemptNotFoundError,
    ResponseValidationError,
    MalformedPayload,
    SchemaViolation,
    AttemptMismatch,
    UnknownExerciseType,
    ExternalCallFailure,
    PropositionChainError,
    EmptyBaseProposition,
    EmptyVariant,
)

__all__ = [
    # Base
    "BaseEntity",
    "TimestampMixin",
    "new_id",
    # Containers
    "Topic",
    "Theme",
    # Attempt
    "Attempt",
    "AttemptStatus",
    "AttemptVersion",
    "VersionType",
    # Feedback
    "Feedback",
    "FeedbackIssue",
    "FeedbackSource",
    # Exercise
    "ExercisePayload",
    "ExerciseType",
    # Drafts
    "Draft",
    "AutosaveStatus",
    "attempt_draft_id",
    "exercise_draft_id",
    "subject_draft_id",
    "themes_draft_id",
    # Settings
    "Settings",
    "ApiModel",
    "PropositionPrompts",
    "PropositionPromptKind",
    "DEFAULT_PROPOSITION_PROMPTS",
    # Errors
    "TutorError",
    "GuardViolation",
    "EmptyContent",
    "CycleLimitReached",
    "RetryLimitReached",
    "InvalidTransition",
    "EntityNotFoundError",
    "AttemptNotFoundError",
    "ResponseValidationError",
    "MalformedPayload",
    "SchemaViolation",
    "AttemptMismatch",
    "UnknownExerciseType",
    "ExternalCallFailure",
    "PropositionChainError",
    "EmptyBaseProposition",
    "EmptyVariant",
]
