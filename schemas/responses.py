"""
Response validation - turns raw model output into domain records.

Nothing reaches the store without passing through here. Checks run in
a fixed order so the learner always sees the first problem:

    feedback:  feedback_id, attempt_id, attempt match, summary,
               errors (non-empty, each with id/point/counterexample),
               suggestion
    exercise:  exercise_id, type, payload, then type normalization

All functions are pure.
"""

import json
import re
import unicodedata
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field, StrictStr, ValidationError

from config import FEEDBACK_SCHEMA_VERSION
from models import (
    AttemptMismatch,
    ExercisePayload,
    ExerciseType,
    Feedback,
    FeedbackIssue,
    FeedbackSource,
    MalformedPayload,
    SchemaViolation,
    UnknownExerciseType,
)


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


NonBlank = Annotated[StrictStr, AfterValidator(_not_blank)]


# === Raw shapes (snake_case, exactly as requested in the prompts) ===

class RawFeedbackIssue(BaseModel):
    id: NonBlank
    point: NonBlank
    counterexample: NonBlank


class RawFeedback(BaseModel):
    # Field order is the order problems are reported in
    feedback_id: NonBlank
    attempt_id: NonBlank
    summary: NonBlank
    errors: list[RawFeedbackIssue] = Field(min_length=1)
    suggestion: NonBlank


class RawExercise(BaseModel):
    exercise_id: NonBlank
    type: NonBlank
    payload: NonBlank


# === Decoding helpers ===

_FENCE = re.compile(r"^```[a-zA-Z]*\s*\n?(.*?)\n?\s*```$", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Remove a single markdown code fence wrapping the whole text."""
    stripped = text.strip()
    match = _FENCE.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def _decode_object(raw_text: str, what: str) -> dict:
    try:
        data = json.loads(strip_code_fence(raw_text))
    except json.JSONDecodeError as e:
        raise MalformedPayload(f"The {what} is not valid JSON.", raw_text, {"error": str(e)})

    if not isinstance(data, dict):
        raise SchemaViolation(f"The {what} must be a JSON object.", raw_text)
    return data


def _describe(error: dict) -> str:
    loc = error["loc"]
    field = str(loc[0])
    if field == "errors" and len(loc) >= 3:
        return f"Error {int(loc[1]) + 1} needs a non-empty '{loc[2]}'."
    if field == "errors" and len(loc) == 2:
        return f"Error {int(loc[1]) + 1} is not a valid object."
    if field == "errors":
        return "'errors' must be a non-empty list."
    return f"Missing or empty '{field}'."


# === Public API ===

def normalize_exercise_type(value: str) -> ExerciseType:
    """
    Canonical exercise type, ignoring case and diacritics.

    'analítico', 'Analitico', 'analytical' -> ANALYTICAL
    'proposición', 'proposicion', 'Proposition' -> PROPOSITION
    """
    decomposed = unicodedata.normalize("NFD", value.lower())
    letters = re.sub(r"[^a-z]", "", decomposed)

    if letters in ("analitico", "analytical", "analytic"):
        return ExerciseType.ANALYTICAL
    if letters in ("proposicion", "proposition"):
        return ExerciseType.PROPOSITION
    raise UnknownExerciseType(
        "The exercise 'type' must be 'analytical' or 'proposition'.",
        details={"type": value},
    )


def parse_feedback(
    raw_text: str,
    *,
    model: str,
    expected_attempt_id: str,
    source: FeedbackSource = FeedbackSource.MODEL,
) -> Feedback:
    """
    Validate a critique response.

    Raises MalformedPayload, SchemaViolation or AttemptMismatch. The
    mismatch check wins over problems in fields listed after attempt_id.
    """
    data = _decode_object(raw_text, "critique")

    try:
        parsed = RawFeedback.model_validate(data)
    except ValidationError as e:
        errors = e.errors()
        head_fields = {"feedback_id", "attempt_id"}
        head_errors = [err for err in errors if err["loc"] and err["loc"][0] in head_fields]
        received = data.get("attempt_id")
        if not head_errors and received != expected_attempt_id:
            raise AttemptMismatch(expected_attempt_id, received, raw_text)
        raise SchemaViolation(_describe(errors[0]), raw_text, {"errors": len(errors)})

    if parsed.attempt_id != expected_attempt_id:
        raise AttemptMismatch(expected_attempt_id, parsed.attempt_id, raw_text)

    return Feedback(
        feedback_id=parsed.feedback_id,
        attempt_id=parsed.attempt_id,
        summary=parsed.summary,
        errors=tuple(
            FeedbackIssue(id=issue.id, point=issue.point, counterexample=issue.counterexample)
            for issue in parsed.errors
        ),
        suggestion=parsed.suggestion,
        model=model,
        raw=raw_text,
        source=FeedbackSource(source),
        created_at=datetime.now(),
        version=FEEDBACK_SCHEMA_VERSION,
    )


def parse_exercise(raw_text: str, *, model: str, attempt_id: str) -> ExercisePayload:
    """
    Validate an exercise response.

    Raises MalformedPayload, SchemaViolation or UnknownExerciseType.
    """
    data = _decode_object(raw_text, "exercise")

    try:
        parsed = RawExercise.model_validate(data)
    except ValidationError as e:
        errors = e.errors()
        raise SchemaViolation(_describe(errors[0]), raw_text, {"errors": len(errors)})

    try:
        exercise_type = normalize_exercise_type(parsed.type)
    except UnknownExerciseType as e:
        e.raw = raw_text
        raise

    return ExercisePayload(
        exercise_id=parsed.exercise_id,
        attempt_id=attempt_id,
        type=exercise_type,
        payload=parsed.payload,
        created_at=datetime.now(),
        model=model,
    )
