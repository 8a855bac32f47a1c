"""Unit tests for EntityStore."""

import json
import pytest

from models import (
    ApiModel,
    AttemptStatus,
    AutosaveStatus,
    EntityNotFoundError,
    ExercisePayload,
    ExerciseType,
    Feedback,
    FeedbackIssue,
    PropositionPromptKind,
    VersionType,
)
from store import EntityStore


def make_feedback(attempt_id, feedback_id="fb-1"):
    return Feedback(
        feedback_id=feedback_id,
        attempt_id=attempt_id,
        summary="Summary",
        errors=(FeedbackIssue(id="e1", point="Point", counterexample="Counter"),),
        suggestion="Suggestion",
        raw="{}",
    )


class TestTopicsAndThemes:
    """Test container commands."""

    def test_upsert_creates_newest_first(self, store):
        first = store.upsert_topic("Algebra")
        second = store.upsert_topic("Calculus")

        assert [t.topic_id for t in store.list_topics()] == [second.topic_id, first.topic_id]

    def test_upsert_renames(self, store, topic):
        renamed = store.upsert_topic("Analysis", topic.topic_id)

        assert renamed.topic_id == topic.topic_id
        assert store.get_topic(topic.topic_id).subject == "Analysis"
        assert len(store.list_topics()) == 1

    def test_upsert_blank_subject_ignored(self, store):
        assert store.upsert_topic("   ") is None
        assert store.list_topics() == []

    def test_upsert_unknown_topic(self, store):
        assert store.upsert_topic("X", "missing") is None

    def test_add_theme_appends(self, store, topic):
        a = store.add_theme(topic.topic_id, "Limits")
        b = store.add_theme(topic.topic_id, "Derivatives")

        assert [t.title for t in store.list_themes(topic.topic_id)] == ["Limits", "Derivatives"]
        assert store.get_topic(topic.topic_id).theme_ids == (a.theme_id, b.theme_id)

    def test_add_theme_unknown_topic_raises(self, store):
        with pytest.raises(EntityNotFoundError):
            store.add_theme("missing", "Limits")

    def test_update_theme_title(self, store, topic, theme):
        updated = store.update_theme_title(topic.topic_id, theme.theme_id, " Continuity ")
        assert updated.title == "Continuity"
        assert store.update_theme_title("other", theme.theme_id, "X") is None

    def test_remove_theme_destroys_attempts(self, store, topic, theme, attempt):
        assert store.remove_theme(topic.topic_id, theme.theme_id)

        assert store.get_theme(theme.theme_id) is None
        assert store.get_attempt(attempt.attempt_id) is None
        assert store.get_topic(topic.topic_id).theme_ids == ()

    def test_delete_topic_cascades(self, store, topic, theme, attempt):
        assert store.delete_topic(topic.topic_id)

        assert store.list_topics() == []
        assert store.snapshot.themes == {}
        assert store.snapshot.attempts == {}
        assert not store.delete_topic(topic.topic_id)


class TestAttempts:
    """Test attempt commands."""

    def test_create_attempt(self, store, topic, theme):
        attempt = store.create_attempt(topic.topic_id, theme.theme_id, "My explanation")

        assert attempt.status == AttemptStatus.SUBMITTED
        assert attempt.cycles == 0
        assert attempt.latest_version == 1
        assert attempt.versions[0].content == "My explanation"
        assert attempt.versions[0].type == VersionType.INITIAL

    def test_create_attempt_newest_first(self, store, topic, theme):
        a = store.create_attempt(topic.topic_id, theme.theme_id, "one")
        b = store.create_attempt(topic.topic_id, theme.theme_id, "two")

        assert [x.attempt_id for x in store.list_attempts(theme.theme_id)] == [b.attempt_id, a.attempt_id]

    def test_create_attempt_missing_theme_raises(self, store, topic):
        with pytest.raises(EntityNotFoundError):
            store.create_attempt(topic.topic_id, "missing", "text")

    def test_create_attempt_theme_under_other_topic_raises(self, store, topic, theme):
        other = store.upsert_topic("Other")
        with pytest.raises(EntityNotFoundError):
            store.create_attempt(other.topic_id, theme.theme_id, "text")

    def test_get_attempt_returns_location(self, store, topic, theme, attempt):
        location = store.get_attempt(attempt.attempt_id)

        assert location.topic.topic_id == topic.topic_id
        assert location.theme.theme_id == theme.theme_id
        assert location.attempt == attempt

    def test_get_attempt_missing(self, store):
        assert store.get_attempt("missing") is None

    def test_push_version_returns_updated_attempt(self, store, attempt):
        updated = store.push_version(attempt.attempt_id, "answer", VersionType.EXERCISE, "ex-1")

        assert updated.latest_version == 2
        assert updated.versions[0].version == 2
        assert updated.versions[0].exercise_id == "ex-1"
        assert updated.latest_content == "answer"

    def test_versions_stay_contiguous(self, store, attempt):
        for i in range(4):
            store.push_version(attempt.attempt_id, f"v{i}", VersionType.FEEDBACK)

        current = store.get_attempt(attempt.attempt_id).attempt
        numbers = [v.version for v in current.versions]
        assert numbers == [5, 4, 3, 2, 1]
        assert current.latest_version == max(numbers)

    def test_push_version_missing_attempt(self, store):
        assert store.push_version("missing", "x", VersionType.INITIAL) is None

    def test_set_status_and_increment_cycle(self, store, attempt):
        store.set_status(attempt.attempt_id, AttemptStatus.ANALYZING)
        updated = store.increment_cycle(attempt.attempt_id)

        assert updated.status == AttemptStatus.ANALYZING
        assert updated.cycles == 1

    def test_attach_feedback_marks_reviewed(self, store, attempt):
        first = make_feedback(attempt.attempt_id, "fb-1")
        second = make_feedback(attempt.attempt_id, "fb-2")
        store.attach_feedback(first)
        updated = store.attach_feedback(second)

        assert updated.status == AttemptStatus.REVIEWED
        assert [f.feedback_id for f in updated.feedback_history] == ["fb-2", "fb-1"]

    def test_attach_feedback_to_deleted_attempt_is_noop(self, store, topic, theme, attempt):
        store.remove_theme(topic.topic_id, theme.theme_id)
        before = store.snapshot

        assert store.attach_feedback(make_feedback(attempt.attempt_id)) is None
        assert store.snapshot is before

    def test_set_pending_exercise(self, store, attempt):
        exercise = ExercisePayload(attempt_id=attempt.attempt_id, type=ExerciseType.ANALYTICAL, payload="x")
        updated = store.set_pending_exercise(attempt.attempt_id, exercise)
        assert updated.status == AttemptStatus.EXERCISE_GENERATED
        assert updated.pending_exercise == exercise

        cleared = store.set_pending_exercise(attempt.attempt_id, None)
        assert cleared.pending_exercise is None
        assert cleared.status == AttemptStatus.EXERCISE_GENERATED

    def test_previous_snapshot_unchanged(self, store, attempt):
        before = store.snapshot
        store.push_version(attempt.attempt_id, "x", VersionType.INITIAL)

        assert before.attempts[attempt.attempt_id].latest_version == 1
        assert store.snapshot.attempts[attempt.attempt_id].latest_version == 2


class TestDraftsAndSettings:
    """Test draft and settings commands."""

    def test_set_draft_value_marks_saving(self, store):
        draft = store.set_draft_value("attempt-draft-1", "text")
        assert draft.status == AutosaveStatus.SAVING
        assert store.get_draft("attempt-draft-1").value == "text"

    def test_set_draft_status(self, store):
        store.set_draft_value("d", "text")
        store.set_draft_status("d", AutosaveStatus.ERROR, "disk full")

        draft = store.get_draft("d")
        assert draft.status == AutosaveStatus.ERROR
        assert draft.error == "disk full"
        assert store.set_draft_status("missing", AutosaveStatus.SAVED) is None

    def test_clear_draft_family(self, store):
        store.set_draft_value("exercise-ex1", "a")
        store.set_draft_value("exercise-ex1-0", "b")
        store.set_draft_value("exercise-ex1-1", "c")
        store.set_draft_value("exercise-ex2", "d")

        assert store.clear_draft_family("exercise-ex1") == 3
        assert store.get_draft("exercise-ex2") is not None

    def test_clear_draft_family_spares_longer_ids(self, store):
        store.set_draft_value("exercise-ex1", "a")
        store.set_draft_value("exercise-ex10", "b")
        store.set_draft_value("exercise-ex11-0", "c")

        assert store.clear_draft_family("exercise-ex1") == 1
        assert store.get_draft("exercise-ex10").value == "b"
        assert store.get_draft("exercise-ex11-0").value == "c"

    def test_settle_drafts_in_one_commit(self, store):
        store.set_draft_value("a", "x")
        store.set_draft_value("b", "y")
        commits = []
        store.add_callback(commits.append)

        assert store.settle_drafts(AutosaveStatus.SAVED) == 2

        assert len(commits) == 1
        assert store.get_draft("a").status == AutosaveStatus.SAVED
        assert store.get_draft("b").status == AutosaveStatus.SAVED
        assert store.settle_drafts(AutosaveStatus.SAVED) == 0
        assert len(commits) == 1

    def test_clear_draft(self, store):
        store.set_draft_value("d", "x")
        store.clear_draft("d")
        assert store.get_draft("d") is None

    def test_settings_commands(self, store):
        store.set_selected_model(" groq/llama ")
        store.set_available_models([ApiModel(id="m1", context_length=8192)])
        store.set_proposition_prompt(PropositionPromptKind.INITIAL, "Base: {{condition}}")

        settings = store.settings
        assert settings.selected_model == "groq/llama"
        assert settings.available_models[0].id == "m1"
        assert settings.proposition_prompts.initial == "Base: {{condition}}"

        store.reset_proposition_prompts()
        assert store.settings.proposition_prompts.initial != "Base: {{condition}}"

    def test_set_proposition_prompt_keeps_others(self, store):
        store.set_proposition_prompt(PropositionPromptKind.INITIAL, "Base: {{condition}}")
        store.set_proposition_prompt(PropositionPromptKind.INVERSE, "Inverse: {{condition}}")

        prompts = store.settings.proposition_prompts
        assert prompts.initial == "Base: {{condition}}"
        assert prompts.inverse == "Inverse: {{condition}}"

    def test_settings_status(self, store):
        store.set_settings_status("error", "bad key")
        assert store.settings.status == "error"
        assert store.settings.error == "bad key"


class TestCallbacks:
    """Test commit notifications."""

    def test_callback_receives_new_state(self, store):
        seen = []
        store.add_callback(seen.append)

        topic = store.upsert_topic("Algebra")

        assert len(seen) == 1
        assert topic.topic_id in seen[0].topics

    def test_noop_does_not_notify(self, store):
        seen = []
        store.add_callback(seen.append)

        store.push_version("missing", "x", VersionType.INITIAL)

        assert seen == []

    def test_failing_callback_is_isolated(self, store):
        seen = []

        def broken(state):
            raise RuntimeError("boom")

        store.add_callback(broken)
        store.add_callback(seen.append)

        assert store.upsert_topic("Algebra") is not None
        assert len(seen) == 1

    def test_remove_callback(self, store):
        seen = []
        store.add_callback(seen.append)
        store.remove_callback(seen.append)

        store.upsert_topic("Algebra")

        assert seen == []


class TestExport:
    """Test export and snapshot documents."""

    def test_export_missing_topic(self, store):
        assert store.export_topic("missing") is None
        assert store.topic_document("missing") is None

    def test_export_two_themes_three_attempts(self, store, topic):
        limits = store.add_theme(topic.topic_id, "Limits")
        series = store.add_theme(topic.topic_id, "Series")
        a1 = store.create_attempt(topic.topic_id, limits.theme_id, "one")
        a2 = store.create_attempt(topic.topic_id, limits.theme_id, "two")
        a3 = store.create_attempt(topic.topic_id, series.theme_id, "three")
        store.attach_feedback(make_feedback(a1.attempt_id))

        doc = json.loads(store.export_topic(topic.topic_id))

        assert doc["topicId"] == topic.topic_id
        assert doc["createdAt"] == topic.created_at.isoformat()
        assert [t["themeId"] for t in doc["themes"]] == [limits.theme_id, series.theme_id]
        attempts = [a for t in doc["themes"] for a in t["attempts"]]
        assert len(attempts) == 3
        assert [a["attemptId"] for a in doc["themes"][0]["attempts"]] == [a2.attempt_id, a1.attempt_id]

        stored = store.get_attempt(a3.attempt_id).attempt
        exported = doc["themes"][1]["attempts"][0]
        assert exported["attemptId"] == a3.attempt_id
        assert exported["createdAt"] == stored.created_at.isoformat()
        assert exported["updatedAt"] == stored.updated_at.isoformat()
        assert exported["versions"][0]["content"] == "three"

    def test_export_is_indented(self, store, topic):
        assert store.export_topic(topic.topic_id).startswith("{\n  ")

    def test_snapshot_round_trip(self, store, topic, theme, attempt):
        store.attach_feedback(make_feedback(attempt.attempt_id))
        store.set_draft_value("attempt-draft-x", "unsent")
        store.set_selected_model("groq/llama")

        restored = EntityStore.from_document(json.loads(json.dumps(store.to_document())))

        assert restored.list_topics() == store.list_topics()
        assert restored.get_attempt(attempt.attempt_id) == store.get_attempt(attempt.attempt_id)
        assert restored.get_draft("attempt-draft-x").value == "unsent"
        assert restored.settings.selected_model == "groq/llama"

    def test_snapshot_document_shape(self, store, topic):
        doc = store.to_document()
        assert doc["schemaVersion"] == 1
        assert set(doc["state"]) == {"userId", "topics", "drafts", "settings"}

    def test_from_none_is_empty(self):
        assert EntityStore.from_document(None).list_topics() == []
