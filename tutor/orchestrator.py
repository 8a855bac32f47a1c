"""
Attempt orchestrator - the lifecycle state machine.

    draft -> submitted -> analyzing -> reviewed -> exercise_generated -> answered
                 ^                                        |
                 +----------- (exercise answer) ----------+

Every cycle re-enters analyzing. An attempt with MAX_CYCLES cycles can
no longer advance. Guards raise before any store write; all writes go
through EntityStore commands, and the orchestrator keeps only transient
state (feedback requests, in-flight markers, theory cache).

Model failures on the feedback path are recorded on the FeedbackRequest
so the learner can retry once or fix the text by hand. Exercise
generation raises instead and leaves the attempt untouched.
"""

from dataclasses import dataclass, field
from typing import Optional

import config
from config import MAX_CYCLES, MAX_RETRIES
from models import (
    ApiModel,
    Attempt,
    AttemptMismatch,
    AttemptNotFoundError,
    AttemptStatus,
    CycleLimitReached,
    EmptyContent,
    EntityNotFoundError,
    ExercisePayload,
    ExerciseType,
    ExternalCallFailure,
    Feedback,
    FeedbackSource,
    InvalidTransition,
    ResponseValidationError,
    RetryLimitReached,
    TutorError,
    VersionType,
    attempt_draft_id,
    exercise_draft_id,
)
from schemas import parse_exercise, parse_feedback
from store import AttemptLocation, EntityStore
from .llm import ModelRequest
from .prompts import (
    build_analytical_exercise_prompt,
    build_feedback_prompt,
    build_manual_prompt,
    build_proposition_exercise_prompt,
    build_theory_prompt,
)
from .propositions import PropositionChainBuilder


@dataclass
class PromptBundle:
    """A prompt and the learner text it was built from."""
    prompt: str
    context: str


@dataclass
class FeedbackRequest:
    """
    Transient state of one critique request.

    Exactly one of feedback / error is set once a response arrived.
    """
    attempt_id: str
    bundle: PromptBundle
    model: str
    retries: int = 0
    raw: Optional[str] = None
    feedback: Optional[Feedback] = None
    error: Optional[TutorError] = None

    @property
    def can_retry(self) -> bool:
        return self.error is not None and self.retries < MAX_RETRIES


@dataclass(frozen=True)
class TheoryState:
    """Theory refresher for one (attempt, feedback) pair."""
    text: str = ""
    loading: bool = False
    error: Optional[str] = None


@dataclass
class Review:
    """Result of confirming a critique."""
    attempt: Attempt
    feedback: Feedback
    theory: TheoryState = field(default_factory=TheoryState)


def theory_key(attempt_id: str, feedback_id: str) -> str:
    return f"{attempt_id}-{feedback_id}"


class AttemptOrchestrator:
    """
    Drives attempts through their lifecycle.

    client needs an async complete(ModelRequest) -> str; list_models is
    only used by refresh_models.
    """

    def __init__(
        self,
        store: EntityStore,
        client,
        default_model: Optional[str] = None,
        max_cycles: int = MAX_CYCLES,
        max_retries: int = MAX_RETRIES,
    ):
        self.store = store
        self.client = client
        self.default_model = default_model
        self.max_cycles = max_cycles
        self.max_retries = max_retries
        self._requests: dict[str, FeedbackRequest] = {}
        self._in_flight: set[str] = set()
        self._theory: dict[str, TheoryState] = {}

    # === Helpers ===

    @property
    def model(self) -> str:
        """Selected model, else the configured default."""
        return self.store.settings.selected_model or self.default_model or config.default_model()

    async def _call_model(self, request: ModelRequest) -> str:
        """Single boundary to the model: every failure is an ExternalCallFailure."""
        try:
            return await self.client.complete(request)
        except ExternalCallFailure:
            raise
        except Exception as e:
            raise ExternalCallFailure(f"Model request failed: {e}", e)

    def _locate(self, attempt_id: str) -> AttemptLocation:
        location = self.store.get_attempt(attempt_id)
        if location is None:
            raise AttemptNotFoundError(attempt_id)
        return location

    def _check_cycles(self, attempt: Attempt) -> None:
        if attempt.cycle_limit_reached(self.max_cycles):
            raise CycleLimitReached(attempt.attempt_id, attempt.cycles, self.max_cycles)

    def _check_idle(self, attempt: Attempt, action: str) -> None:
        if attempt.attempt_id in self._in_flight:
            raise InvalidTransition(attempt.attempt_id, attempt.status.value, action)

    def _is_current(self, request: FeedbackRequest) -> bool:
        """False once the request was cancelled, replaced, or its attempt deleted."""
        if self._requests.get(request.attempt_id) is not request:
            return False
        return self.store.get_attempt(request.attempt_id) is not None

    def get_request(self, attempt_id: str) -> Optional[FeedbackRequest]:
        return self._requests.get(attempt_id)

    def _require_request(self, attempt_id: str, action: str) -> FeedbackRequest:
        request = self._requests.get(attempt_id)
        if request is None:
            location = self._locate(attempt_id)
            raise InvalidTransition(attempt_id, location.attempt.status.value, action)
        return request

    # === Submission and critique ===

    async def submit(
        self,
        topic_id: str,
        theme_id: str,
        content: str,
        attempt_id: Optional[str] = None,
    ) -> FeedbackRequest:
        """
        Submit an explanation and request its critique.

        Without attempt_id a new attempt is created; otherwise a new
        initial version is pushed onto the existing attempt.
        """
        if not content.strip():
            raise EmptyContent("Write an explanation before submitting.")

        theme = self.store.get_theme(theme_id)
        if theme is None or theme.topic_id != topic_id:
            raise EntityNotFoundError("theme", theme_id)

        if attempt_id is None:
            attempt = self.store.create_attempt(topic_id, theme_id, content)
        else:
            existing = self._locate(attempt_id).attempt
            self._check_cycles(existing)
            self._check_idle(existing, "submit")
            # A live request is retried or edited, not replaced
            if existing.status == AttemptStatus.ANALYZING and attempt_id in self._requests:
                raise InvalidTransition(attempt_id, existing.status.value, "submit")
            attempt = self.store.push_version(attempt_id, content, VersionType.INITIAL)
            if attempt is None:
                raise AttemptNotFoundError(attempt_id)

        self.store.clear_draft(attempt_draft_id(theme_id))
        return await self._start_analysis(attempt, theme.title, count_cycle=True)

    async def _start_analysis(self, attempt: Attempt, theme_title: str, count_cycle: bool) -> FeedbackRequest:
        attempt_id = attempt.attempt_id
        content = attempt.latest_content
        self.store.set_status(attempt_id, AttemptStatus.ANALYZING)
        if count_cycle:
            self.store.increment_cycle(attempt_id)

        request = FeedbackRequest(
            attempt_id=attempt_id,
            bundle=PromptBundle(
                prompt=build_feedback_prompt(theme_title, content, attempt_id),
                context=content,
            ),
            model=self.model,
        )
        self._requests[attempt_id] = request
        print(f"[ORCHESTRATOR] Analyzing {attempt_id} with {request.model}")
        return await self._fetch_feedback(request)

    async def _fetch_feedback(self, request: FeedbackRequest) -> FeedbackRequest:
        attempt_id = request.attempt_id
        self._in_flight.add(attempt_id)
        try:
            raw = await self._call_model(ModelRequest.for_feedback(request.bundle.prompt, request.model))
        except ExternalCallFailure as e:
            if self._is_current(request):
                request.error = e
                request.feedback = None
            print(f"[ORCHESTRATOR] Critique request failed for {attempt_id}: {e.message}")
            return request
        finally:
            self._in_flight.discard(attempt_id)

        if not self._is_current(request):
            print(f"[ORCHESTRATOR] Dropping stale critique for {attempt_id}")
            return request

        request.raw = raw
        self._validate(request, raw, FeedbackSource.MODEL)
        return request

    def _validate(self, request: FeedbackRequest, raw_text: str, source: FeedbackSource) -> None:
        try:
            request.feedback = parse_feedback(
                raw_text,
                model=request.model,
                expected_attempt_id=request.attempt_id,
                source=source,
            )
            request.error = None
        except ResponseValidationError as e:
            request.feedback = None
            request.error = e
            print(f"[ORCHESTRATOR] Invalid critique for {request.attempt_id}: {e.message}")

    async def retry_feedback(self, attempt_id: str) -> FeedbackRequest:
        """Re-issue the same critique prompt after a failure. Allowed once."""
        request = self._require_request(attempt_id, "retry the critique")
        attempt = self._locate(attempt_id).attempt
        self._check_idle(attempt, "retry the critique")
        if request.retries >= self.max_retries:
            raise RetryLimitReached(attempt_id, self.max_retries)
        if request.error is None:
            raise InvalidTransition(attempt_id, attempt.status.value, "retry a successful critique")

        request.retries += 1
        request.error = None
        print(f"[ORCHESTRATOR] Retrying critique for {attempt_id} ({request.retries}/{self.max_retries})")
        return await self._fetch_feedback(request)

    def revalidate_feedback(self, attempt_id: str, raw_text: str) -> FeedbackRequest:
        """
        Validate edited or pasted critique text.

        The result is marked manual when it differs from what the model sent.
        """
        request = self._require_request(attempt_id, "edit the critique")
        source = FeedbackSource.MODEL
        if raw_text.strip() != (request.raw or "").strip():
            source = FeedbackSource.MANUAL
        request.raw = raw_text
        self._validate(request, raw_text, source)
        return request

    def manual_prompt(self, attempt_id: str) -> str:
        """Critique prompt to run by hand in any chat model."""
        return self._require_request(attempt_id, "copy the critique prompt").bundle.prompt

    async def resume_analysis(self, attempt_id: str) -> FeedbackRequest:
        """
        Re-issue the critique for an attempt left analyzing without a
        request (cancelled, or lost on restart). No cycle is counted.
        """
        location = self._locate(attempt_id)
        attempt = location.attempt
        self._check_idle(attempt, "resume the critique")
        if attempt.status != AttemptStatus.ANALYZING or attempt_id in self._requests:
            raise InvalidTransition(attempt_id, attempt.status.value, "resume the critique")

        print(f"[ORCHESTRATOR] Resuming critique for {attempt_id}")
        return await self._start_analysis(attempt, location.theme.title, count_cycle=False)

    def cancel(self, attempt_id: str) -> None:
        """Forget the pending request; a late response is dropped."""
        if self._requests.pop(attempt_id, None) is not None:
            print(f"[ORCHESTRATOR] Cancelled critique for {attempt_id}")

    # === Review and theory ===

    async def confirm_feedback(self, attempt_id: str, feedback: Optional[Feedback] = None) -> Review:
        """
        Accept a validated critique.

        Pushes a feedback version holding the raw text, attaches the
        critique (attempt becomes reviewed), then fetches the theory
        refresher. A theory failure does not undo the review.
        """
        attempt = self._locate(attempt_id).attempt
        if feedback is None:
            request = self._requests.get(attempt_id)
            feedback = request.feedback if request else None
        if feedback is None:
            raise InvalidTransition(attempt_id, attempt.status.value, "confirm a critique that was not validated")
        if feedback.attempt_id != attempt_id:
            raise AttemptMismatch(attempt_id, feedback.attempt_id, feedback.raw)
        if attempt.status != AttemptStatus.ANALYZING:
            raise InvalidTransition(attempt_id, attempt.status.value, "confirm a critique")

        self.store.push_version(attempt_id, feedback.raw, VersionType.FEEDBACK)
        attempt = self.store.attach_feedback(feedback)
        self._requests.pop(attempt_id, None)
        print(f"[ORCHESTRATOR] Critique {feedback.feedback_id} attached to {attempt_id}")

        theory = await self.request_theory(attempt_id, feedback.feedback_id)
        location = self.store.get_attempt(attempt_id)
        return Review(
            attempt=location.attempt if location else attempt,
            feedback=feedback,
            theory=theory,
        )

    async def request_theory(self, attempt_id: str, feedback_id: str) -> TheoryState:
        """Fetch (or re-fetch) the theory text for a critique."""
        location = self._locate(attempt_id)
        feedback = location.attempt.find_feedback(feedback_id)
        if feedback is None:
            raise EntityNotFoundError("feedback", feedback_id)

        key = theory_key(attempt_id, feedback_id)
        self._theory[key] = TheoryState(loading=True)
        prompt = build_theory_prompt(feedback, location.theme.title)
        try:
            text = await self._call_model(ModelRequest.for_theory(prompt, self.model))
        except ExternalCallFailure as e:
            state = TheoryState(error=e.message)
        else:
            if text:
                state = TheoryState(text=text)
            else:
                state = TheoryState(error="The model returned an empty explanation.")

        self._theory[key] = state
        if state.error:
            print(f"[ORCHESTRATOR] Theory failed for {attempt_id}: {state.error}")
        return state

    def theory_for(self, attempt_id: str, feedback_id: str) -> Optional[TheoryState]:
        return self._theory.get(theory_key(attempt_id, feedback_id))

    def _theory_text(self, attempt: Attempt, feedback: Feedback) -> str:
        state = self.theory_for(attempt.attempt_id, feedback.feedback_id)
        return state.text if state else ""

    # === Exercises ===

    def _check_exercise_allowed(self, attempt: Attempt, action: str) -> Feedback:
        self._check_cycles(attempt)
        self._check_idle(attempt, action)
        if attempt.status not in (AttemptStatus.REVIEWED, AttemptStatus.EXERCISE_GENERATED):
            raise InvalidTransition(attempt.attempt_id, attempt.status.value, action)
        feedback = attempt.latest_feedback
        if feedback is None:
            raise InvalidTransition(attempt.attempt_id, attempt.status.value, action)
        return feedback

    def _store_exercise(self, attempt_id: str, exercise: ExercisePayload) -> ExercisePayload:
        if self.store.set_pending_exercise(attempt_id, exercise) is None:
            print(f"[ORCHESTRATOR] Dropping exercise for deleted attempt {attempt_id}")
            raise AttemptNotFoundError(attempt_id)
        print(f"[ORCHESTRATOR] {exercise.type.value} exercise {exercise.exercise_id} ready for {attempt_id}")
        return exercise

    async def generate_exercise(self, attempt_id: str, kind: ExerciseType) -> ExercisePayload:
        """
        Generate a follow-up exercise from the latest critique.

        Any failure raises and leaves status and the pending slot as
        they were.
        """
        kind = ExerciseType(kind)
        attempt = self._locate(attempt_id).attempt
        feedback = self._check_exercise_allowed(attempt, "generate an exercise")
        theory_text = self._theory_text(attempt, feedback)
        model = self.model

        self._in_flight.add(attempt_id)
        try:
            if kind == ExerciseType.ANALYTICAL:
                prompt = build_analytical_exercise_prompt(feedback, theory_text, attempt)
                raw = await self._call_model(ModelRequest.for_exercise(prompt, model, kind))
                exercise = parse_exercise(raw, model=model, attempt_id=attempt_id)
            else:
                builder = PropositionChainBuilder(self._call_model, self.store.settings.proposition_prompts)
                exercise = await builder.build(feedback, attempt_id, model)
        finally:
            self._in_flight.discard(attempt_id)

        return self._store_exercise(attempt_id, exercise)

    def manual_exercise_prompt(self, attempt_id: str, kind: ExerciseType) -> str:
        """Exercise prompt to run by hand, for accept_manual_exercise."""
        kind = ExerciseType(kind)
        attempt = self._locate(attempt_id).attempt
        feedback = attempt.latest_feedback
        if feedback is None:
            raise InvalidTransition(attempt_id, attempt.status.value, "build an exercise prompt")

        theory_text = self._theory_text(attempt, feedback)
        if kind == ExerciseType.ANALYTICAL:
            base = build_analytical_exercise_prompt(feedback, theory_text, attempt)
        else:
            base = build_proposition_exercise_prompt(feedback, theory_text, attempt)
        return build_manual_prompt(kind, base)

    def accept_manual_exercise(self, attempt_id: str, raw_text: str) -> ExercisePayload:
        """Validate and store an exercise produced outside the app."""
        attempt = self._locate(attempt_id).attempt
        self._check_exercise_allowed(attempt, "accept an exercise")
        exercise = parse_exercise(raw_text, model="manual", attempt_id=attempt_id)
        return self._store_exercise(attempt_id, exercise)

    async def submit_exercise_answer(self, attempt_id: str, answer: str) -> FeedbackRequest:
        """
        Answer the pending exercise and request a new critique.

        The answer becomes an exercise version; the critique is built
        from the version the push returned.
        """
        if not answer.strip():
            raise EmptyContent("Write an answer before submitting.")

        location = self._locate(attempt_id)
        attempt = location.attempt
        self._check_cycles(attempt)
        self._check_idle(attempt, "answer the exercise")
        exercise = attempt.pending_exercise
        if exercise is None:
            raise InvalidTransition(attempt_id, attempt.status.value, "answer an exercise that was not generated")

        updated = self.store.push_version(attempt_id, answer, VersionType.EXERCISE, exercise.exercise_id)
        if updated is None:
            raise AttemptNotFoundError(attempt_id)
        self.store.set_pending_exercise(attempt_id, None)
        self.store.set_status(attempt_id, AttemptStatus.SUBMITTED)
        self.store.increment_cycle(attempt_id)
        self.store.clear_draft_family(exercise_draft_id(exercise.exercise_id))

        return await self._start_analysis(updated, location.theme.title, count_cycle=False)

    # === Settings ===

    async def refresh_models(self) -> list[ApiModel]:
        """Reload the provider's model list into settings."""
        self.store.set_settings_status("loading")
        try:
            models = await self.client.list_models(self.model)
        except ExternalCallFailure as e:
            self.store.set_settings_status("error", e.message)
            raise
        except Exception as e:
            self.store.set_settings_status("error", str(e))
            raise ExternalCallFailure(f"Could not list models: {e}", e)

        self.store.set_available_models(models)
        if not self.store.settings.selected_model and models:
            self.store.set_selected_model(models[0].id)
        return models
