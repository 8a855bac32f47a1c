"""
Error taxonomy for the attempt lifecycle.

Every error carries a user-facing message plus a details dict.
Guard and validation errors are always recoverable by the user.
"""

from typing import Optional


class TutorError(Exception):
    """Base exception for all tutor errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# === Guards ===

class GuardViolation(TutorError):
    """A transition was requested that its guard does not allow."""


class EmptyContent(GuardViolation):
    """Submitted text was blank after trimming."""


class CycleLimitReached(GuardViolation):
    """The attempt already used all of its cycles."""

    def __init__(self, attempt_id: str, cycles: int, max_cycles: int):
        self.attempt_id = attempt_id
        super().__init__(
            f"This attempt reached the limit of {max_cycles} cycles. Start a new attempt.",
            {"attempt_id": attempt_id, "cycles": cycles, "max_cycles": max_cycles},
        )


class RetryLimitReached(GuardViolation):
    """The feedback request was already retried."""

    def __init__(self, attempt_id: str, max_retries: int):
        self.attempt_id = attempt_id
        super().__init__(
            f"No retries left for this critique (limit {max_retries}).",
            {"attempt_id": attempt_id, "max_retries": max_retries},
        )


class InvalidTransition(GuardViolation):
    """The attempt is not in a status that allows the transition."""

    def __init__(self, attempt_id: str, status: str, action: str):
        self.attempt_id = attempt_id
        self.status = status
        super().__init__(
            f"Cannot {action} while the attempt is '{status}'.",
            {"attempt_id": attempt_id, "status": status, "action": action},
        )


class EntityNotFoundError(GuardViolation):
    """A topic or theme does not exist."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind.capitalize()} not found: {entity_id}", {"kind": kind, "id": entity_id})


class AttemptNotFoundError(EntityNotFoundError):
    """The attempt was deleted (or never existed)."""

    def __init__(self, attempt_id: str):
        self.attempt_id = attempt_id
        super().__init__("attempt", attempt_id)


# === Response validation ===

class ResponseValidationError(TutorError):
    """Model output could not be turned into a domain record."""

    def __init__(self, message: str, raw: Optional[str] = None, details: Optional[dict] = None):
        self.raw = raw
        super().__init__(message, details)


class MalformedPayload(ResponseValidationError):
    """Text is not syntactically valid JSON."""


class SchemaViolation(ResponseValidationError):
    """JSON is valid but a required field is missing or has the wrong shape."""


class AttemptMismatch(ResponseValidationError):
    """The embedded attempt id does not match the attempt being reviewed."""

    def __init__(self, expected: str, received: str, raw: Optional[str] = None):
        self.expected = expected
        self.received = received
        super().__init__(
            "The 'attempt_id' in the response does not match the current attempt.",
            raw,
            {"expected": expected, "received": received},
        )


class UnknownExerciseType(ResponseValidationError):
    """The exercise 'type' is neither analytical nor proposition."""


# === External calls ===

class ExternalCallFailure(TutorError):
    """Network, provider or configuration error while calling the model."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        self.cause = cause
        details = {}
        if cause:
            details["cause"] = str(cause)
        super().__init__(message, details)


# === Proposition chain ===

class PropositionChainError(TutorError):
    """The proposition chain aborted."""


class EmptyBaseProposition(PropositionChainError):
    """The first call of the chain returned nothing."""

    def __init__(self):
        super().__init__("The model did not return a base proposition.")


class EmptyVariant(PropositionChainError):
    """One of the variant calls returned nothing."""

    def __init__(self, variant: str):
        self.variant = variant
        super().__init__(f"Could not generate the {variant}.", {"variant": variant})
