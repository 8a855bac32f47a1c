"""Unit tests for response validation."""

import json
import pytest

from models import (
    AttemptMismatch,
    ExerciseType,
    FeedbackSource,
    MalformedPayload,
    SchemaViolation,
    UnknownExerciseType,
)
from schemas import normalize_exercise_type, parse_exercise, parse_feedback, strip_code_fence


class TestParseFeedback:
    """Test critique validation."""

    def test_valid(self, make_feedback_json):
        raw = make_feedback_json("a-1")
        feedback = parse_feedback(raw, model="groq/llama", expected_attempt_id="a-1")

        assert feedback.feedback_id == "fb-1"
        assert feedback.attempt_id == "a-1"
        assert feedback.errors[0].counterexample == "f(x) = sin(1/x) near 0"
        assert feedback.model == "groq/llama"
        assert feedback.raw == raw
        assert feedback.source == FeedbackSource.MODEL
        assert feedback.version == 1

    def test_manual_source(self, make_feedback_json):
        feedback = parse_feedback(
            make_feedback_json("a-1"), model="m", expected_attempt_id="a-1", source=FeedbackSource.MANUAL,
        )
        assert feedback.source == FeedbackSource.MANUAL

    def test_idempotent_except_created_at(self, make_feedback_json):
        raw = make_feedback_json("a-1")
        first = parse_feedback(raw, model="m", expected_attempt_id="a-1")
        second = parse_feedback(raw, model="m", expected_attempt_id="a-1")

        assert first.model_dump(exclude={"created_at"}) == second.model_dump(exclude={"created_at"})

    def test_not_json(self):
        with pytest.raises(MalformedPayload):
            parse_feedback("Here is your critique!", model="m", expected_attempt_id="a-1")

    def test_not_an_object(self):
        with pytest.raises(SchemaViolation):
            parse_feedback("[1, 2]", model="m", expected_attempt_id="a-1")

    def test_mismatch_even_when_valid(self, make_feedback_json):
        with pytest.raises(AttemptMismatch) as exc:
            parse_feedback(make_feedback_json("other"), model="m", expected_attempt_id="a-1")
        assert exc.value.received == "other"

    def test_mismatch_reported_before_later_fields(self, make_feedback_json):
        raw = make_feedback_json("other", summary="", errors=[])
        with pytest.raises(AttemptMismatch):
            parse_feedback(raw, model="m", expected_attempt_id="a-1")

    def test_missing_feedback_id_reported_before_mismatch(self, make_feedback_json):
        raw = make_feedback_json("other", feedback_id="  ")
        with pytest.raises(SchemaViolation) as exc:
            parse_feedback(raw, model="m", expected_attempt_id="a-1")
        assert "feedback_id" in exc.value.message

    @pytest.mark.parametrize("field", ["summary", "suggestion"])
    def test_blank_field(self, make_feedback_json, field):
        raw = make_feedback_json("a-1", **{field: "   "})
        with pytest.raises(SchemaViolation) as exc:
            parse_feedback(raw, model="m", expected_attempt_id="a-1")
        assert field in exc.value.message

    def test_wrong_type(self, make_feedback_json):
        raw = make_feedback_json("a-1", summary=42)
        with pytest.raises(SchemaViolation):
            parse_feedback(raw, model="m", expected_attempt_id="a-1")

    def test_empty_errors(self, make_feedback_json):
        with pytest.raises(SchemaViolation) as exc:
            parse_feedback(make_feedback_json("a-1", errors=[]), model="m", expected_attempt_id="a-1")
        assert "errors" in exc.value.message

    def test_error_item_missing_counterexample(self, make_feedback_json):
        raw = make_feedback_json("a-1", errors=[{"id": "e1", "point": "p"}])
        with pytest.raises(SchemaViolation) as exc:
            parse_feedback(raw, model="m", expected_attempt_id="a-1")
        assert "counterexample" in exc.value.message

    def test_error_item_not_object(self, make_feedback_json):
        raw = make_feedback_json("a-1", errors=["just text"])
        with pytest.raises(SchemaViolation):
            parse_feedback(raw, model="m", expected_attempt_id="a-1")

    def test_fenced_json(self, make_feedback_json):
        raw = "```json\n" + make_feedback_json("a-1") + "\n```"
        feedback = parse_feedback(raw, model="m", expected_attempt_id="a-1")
        assert feedback.raw == raw

    def test_extra_fields_ignored(self, make_feedback_json):
        raw = make_feedback_json("a-1", confidence="high")
        assert parse_feedback(raw, model="m", expected_attempt_id="a-1").summary


class TestParseExercise:
    """Test exercise validation."""

    def test_valid(self, make_exercise_json):
        exercise = parse_exercise(make_exercise_json(), model="m", attempt_id="a-1")

        assert exercise.exercise_id == "ex-1"
        assert exercise.attempt_id == "a-1"
        assert exercise.type == ExerciseType.ANALYTICAL
        assert exercise.model == "m"

    def test_unknown_type(self, make_exercise_json):
        with pytest.raises(UnknownExerciseType) as exc:
            parse_exercise(make_exercise_json(type="essay"), model="m", attempt_id="a-1")
        assert exc.value.raw is not None

    @pytest.mark.parametrize("field", ["exercise_id", "type", "payload"])
    def test_missing_field(self, field):
        data = {"exercise_id": "ex", "type": "analytical", "payload": "p"}
        del data[field]
        with pytest.raises(SchemaViolation):
            parse_exercise(json.dumps(data), model="m", attempt_id="a-1")

    def test_malformed(self):
        with pytest.raises(MalformedPayload):
            parse_exercise("{exercise", model="m", attempt_id="a-1")


class TestNormalizeExerciseType:
    """Test type normalization."""

    @pytest.mark.parametrize("value", ["analítico", "analitico", "Analytical", "ANALÍTICO"])
    def test_analytical(self, value):
        assert normalize_exercise_type(value) == ExerciseType.ANALYTICAL

    @pytest.mark.parametrize("value", ["proposición", "proposicion", "proposition", "Proposición"])
    def test_proposition(self, value):
        assert normalize_exercise_type(value) == ExerciseType.PROPOSITION

    def test_unknown(self):
        with pytest.raises(UnknownExerciseType):
            normalize_exercise_type("multiple choice")


class TestStripCodeFence:
    """Test fence stripping."""

    def test_plain_text_untouched(self):
        assert strip_code_fence('  {"a": 1} ') == '{"a": 1}'

    def test_fence_without_language(self):
        assert strip_code_fence('```\n{"a": 1}\n```') == '{"a": 1}'
