"""
Entity store - canonical, in-memory state of topics, themes and attempts.

State is one immutable StoreState. Entities live in flat maps keyed by
id (the arena); containers reference children by id (the index). Every
command builds the next state from the previous one and swaps it in
under a single lock, so readers always see a complete snapshot.

Commands that address a missing attempt are no-ops returning None.
Creating under a missing topic or theme raises EntityNotFoundError.
"""

import json
import threading
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from config import SCHEMA_VERSION
from models import (
    ApiModel,
    Attempt,
    AttemptStatus,
    AttemptVersion,
    AutosaveStatus,
    Draft,
    EntityNotFoundError,
    ExercisePayload,
    Feedback,
    PropositionPromptKind,
    PropositionPrompts,
    DEFAULT_PROPOSITION_PROMPTS,
    Settings,
    Theme,
    Topic,
    VersionType,
)
from . import serialization


@dataclass(frozen=True)
class StoreState:
    """One complete snapshot of everything the store owns."""
    user_id: str = "user-local"
    topic_ids: tuple[str, ...] = ()  # Newest first
    topics: dict[str, Topic] = field(default_factory=dict)
    themes: dict[str, Theme] = field(default_factory=dict)
    attempts: dict[str, Attempt] = field(default_factory=dict)
    drafts: dict[str, Draft] = field(default_factory=dict)
    settings: Settings = field(default_factory=Settings)


@dataclass(frozen=True)
class AttemptLocation:
    """An attempt together with its owners."""
    topic: Topic
    theme: Theme
    attempt: Attempt


def _with(mapping: dict, key: str, value) -> dict:
    return {**mapping, key: value}


def _without(mapping: dict, *keys: str) -> dict:
    return {k: v for k, v in mapping.items() if k not in keys}


class EntityStore:
    """
    Owns every durable entity.

    Callbacks registered with add_callback receive the new StoreState
    after each commit. A failing callback is logged and skipped.
    """

    def __init__(self, state: Optional[StoreState] = None):
        self._state = state or StoreState()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[StoreState], None]] = []

    # === Commit machinery ===

    @property
    def snapshot(self) -> StoreState:
        """Current state. Never mutated; later commits replace it."""
        return self._state

    def _commit(self, command: Callable[[StoreState], tuple[Optional[StoreState], object]]):
        """
        Apply command to the current state atomically.

        command returns (next_state, result); a None next_state means
        nothing changed and nobody is notified.
        """
        with self._lock:
            next_state, result = command(self._state)
            if next_state is not None:
                self._state = next_state

        if next_state is not None:
            self._notify(next_state)
        return result

    def add_callback(self, callback: Callable[[StoreState], None]) -> None:
        """Add callback for state changes."""
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[StoreState], None]) -> None:
        """Remove callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify(self, state: StoreState) -> None:
        for cb in list(self._callbacks):
            try:
                cb(state)
            except Exception as e:
                print(f"[STORE] Callback error: {e}")

    # === Queries ===

    def get_topic(self, topic_id: str) -> Optional[Topic]:
        return self._state.topics.get(topic_id)

    def get_theme(self, theme_id: str) -> Optional[Theme]:
        return self._state.themes.get(theme_id)

    def get_attempt(self, attempt_id: str) -> Optional[AttemptLocation]:
        """Locate an attempt and its owners, or None if it is gone."""
        state = self._state
        attempt = state.attempts.get(attempt_id)
        if attempt is None:
            return None
        theme = state.themes.get(attempt.theme_id)
        topic = state.topics.get(attempt.topic_id)
        if theme is None or topic is None:
            return None
        return AttemptLocation(topic=topic, theme=theme, attempt=attempt)

    def list_topics(self) -> list[Topic]:
        state = self._state
        return [state.topics[tid] for tid in state.topic_ids if tid in state.topics]

    def list_themes(self, topic_id: str) -> list[Theme]:
        state = self._state
        topic = state.topics.get(topic_id)
        if topic is None:
            return []
        return [state.themes[tid] for tid in topic.theme_ids if tid in state.themes]

    def list_attempts(self, theme_id: str) -> list[Attempt]:
        """Attempts of a theme, newest first."""
        state = self._state
        theme = state.themes.get(theme_id)
        if theme is None:
            return []
        return [state.attempts[aid] for aid in theme.attempt_ids if aid in state.attempts]

    def get_draft(self, draft_id: str) -> Optional[Draft]:
        return self._state.drafts.get(draft_id)

    @property
    def settings(self) -> Settings:
        return self._state.settings

    # === Topics and themes ===

    def upsert_topic(self, subject: str, topic_id: Optional[str] = None) -> Optional[Topic]:
        """
        Create a topic (placed first) or rename an existing one.

        Returns None for a blank subject or an unknown topic_id.
        """
        subject = subject.strip()
        if not subject:
            return None

        def command(state: StoreState):
            if topic_id is None:
                topic = Topic(user_id=state.user_id, subject=subject)
                return replace(
                    state,
                    topics=_with(state.topics, topic.topic_id, topic),
                    topic_ids=(topic.topic_id, *state.topic_ids),
                ), topic

            existing = state.topics.get(topic_id)
            if existing is None:
                return None, None
            topic = existing.touched(subject=subject)
            return replace(state, topics=_with(state.topics, topic_id, topic)), topic

        return self._commit(command)

    def delete_topic(self, topic_id: str) -> bool:
        """Remove a topic with all its themes and attempts."""
        def command(state: StoreState):
            topic = state.topics.get(topic_id)
            if topic is None:
                return None, False
            attempt_ids = [
                aid
                for tid in topic.theme_ids
                if tid in state.themes
                for aid in state.themes[tid].attempt_ids
            ]
            return replace(
                state,
                topic_ids=tuple(t for t in state.topic_ids if t != topic_id),
                topics=_without(state.topics, topic_id),
                themes=_without(state.themes, *topic.theme_ids),
                attempts=_without(state.attempts, *attempt_ids),
            ), True

        deleted = self._commit(command)
        if deleted:
            print(f"[STORE] Deleted topic {topic_id}")
        return deleted

    def add_theme(self, topic_id: str, title: str) -> Theme:
        """Append a theme to a topic."""
        def command(state: StoreState):
            topic = state.topics.get(topic_id)
            if topic is None:
                raise EntityNotFoundError("topic", topic_id)
            theme = Theme(topic_id=topic_id, title=title.strip())
            return replace(
                state,
                themes=_with(state.themes, theme.theme_id, theme),
                topics=_with(
                    state.topics, topic_id,
                    topic.touched(theme_ids=(*topic.theme_ids, theme.theme_id)),
                ),
            ), theme

        return self._commit(command)

    def update_theme_title(self, topic_id: str, theme_id: str, title: str) -> Optional[Theme]:
        def command(state: StoreState):
            theme = state.themes.get(theme_id)
            if theme is None or theme.topic_id != topic_id:
                return None, None
            updated = theme.touched(title=title.strip())
            return replace(state, themes=_with(state.themes, theme_id, updated)), updated

        return self._commit(command)

    def remove_theme(self, topic_id: str, theme_id: str) -> bool:
        """Remove a theme from its topic and destroy its attempts."""
        def command(state: StoreState):
            topic = state.topics.get(topic_id)
            theme = state.themes.get(theme_id)
            if topic is None or theme is None or theme.topic_id != topic_id:
                return None, False
            return replace(
                state,
                themes=_without(state.themes, theme_id),
                attempts=_without(state.attempts, *theme.attempt_ids),
                topics=_with(
                    state.topics, topic_id,
                    topic.touched(theme_ids=tuple(t for t in topic.theme_ids if t != theme_id)),
                ),
            ), True

        return self._commit(command)

    # === Attempts ===

    def create_attempt(self, topic_id: str, theme_id: str, content: str) -> Attempt:
        """
        New attempt with an initial version 1, status submitted, no cycles.

        Placed first in its theme. Raises EntityNotFoundError when the
        theme does not exist under that topic.
        """
        def command(state: StoreState):
            if topic_id not in state.topics:
                raise EntityNotFoundError("topic", topic_id)
            theme = state.themes.get(theme_id)
            if theme is None or theme.topic_id != topic_id:
                raise EntityNotFoundError("theme", theme_id)

            attempt = Attempt(
                topic_id=topic_id,
                theme_id=theme_id,
                status=AttemptStatus.SUBMITTED,
                latest_version=1,
                versions=(AttemptVersion(version=1, content=content, type=VersionType.INITIAL),),
                cycles=0,
            )
            return replace(
                state,
                attempts=_with(state.attempts, attempt.attempt_id, attempt),
                themes=_with(
                    state.themes, theme_id,
                    theme.touched(attempt_ids=(attempt.attempt_id, *theme.attempt_ids)),
                ),
            ), attempt

        attempt = self._commit(command)
        print(f"[STORE] Created attempt {attempt.attempt_id} in theme {theme_id}")
        return attempt

    def _update_attempt(self, attempt_id: str, update: Callable[[Attempt], Attempt]) -> Optional[Attempt]:
        def command(state: StoreState):
            attempt = state.attempts.get(attempt_id)
            if attempt is None:
                return None, None
            updated = update(attempt)
            return replace(state, attempts=_with(state.attempts, attempt_id, updated)), updated

        return self._commit(command)

    def push_version(
        self,
        attempt_id: str,
        content: str,
        type: VersionType,
        exercise_id: Optional[str] = None,
    ) -> Optional[Attempt]:
        """
        Prepend version latest_version + 1.

        Returns the updated attempt so callers never need a read-back.
        """
        def update(attempt: Attempt) -> Attempt:
            number = attempt.latest_version + 1
            version = AttemptVersion(
                version=number,
                content=content,
                type=type,
                exercise_id=exercise_id,
            )
            return attempt.touched(
                versions=(version, *attempt.versions),
                latest_version=number,
            )

        return self._update_attempt(attempt_id, update)

    def set_status(self, attempt_id: str, status: AttemptStatus) -> Optional[Attempt]:
        return self._update_attempt(attempt_id, lambda a: a.touched(status=status))

    def increment_cycle(self, attempt_id: str) -> Optional[Attempt]:
        """Add one cycle. The ceiling is enforced by the caller."""
        return self._update_attempt(attempt_id, lambda a: a.touched(cycles=a.cycles + 1))

    def attach_feedback(self, feedback: Feedback) -> Optional[Attempt]:
        """Prepend a validated critique and mark the attempt reviewed."""
        return self._update_attempt(
            feedback.attempt_id,
            lambda a: a.touched(
                feedback_history=(feedback, *a.feedback_history),
                status=AttemptStatus.REVIEWED,
            ),
        )

    def set_pending_exercise(self, attempt_id: str, exercise: Optional[ExercisePayload]) -> Optional[Attempt]:
        """Replace the pending slot. Storing an exercise marks exercise_generated."""
        def update(attempt: Attempt) -> Attempt:
            if exercise is None:
                return attempt.touched(pending_exercise=None)
            return attempt.touched(
                pending_exercise=exercise,
                status=AttemptStatus.EXERCISE_GENERATED,
            )

        return self._update_attempt(attempt_id, update)

    # === Drafts ===

    def _put_draft(self, draft_id: str, draft: Draft) -> Draft:
        def command(state: StoreState):
            return replace(state, drafts=_with(state.drafts, draft_id, draft)), draft

        return self._commit(command)

    def set_draft_value(self, draft_id: str, value: str) -> Draft:
        """Store typed text; the draft is marked saving until persisted."""
        return self._put_draft(draft_id, Draft(value=value, status=AutosaveStatus.SAVING))

    def set_draft_status(self, draft_id: str, status: AutosaveStatus, error: Optional[str] = None) -> Optional[Draft]:
        def command(state: StoreState):
            existing = state.drafts.get(draft_id)
            if existing is None:
                return None, None
            draft = existing.model_copy(update={"status": status, "error": error})
            return replace(state, drafts=_with(state.drafts, draft_id, draft)), draft

        return self._commit(command)

    def settle_drafts(self, status: AutosaveStatus, error: Optional[str] = None) -> int:
        """Move every draft still saving to status in one commit."""
        def command(state: StoreState):
            saving = {
                draft_id: draft.model_copy(update={"status": status, "error": error})
                for draft_id, draft in state.drafts.items()
                if draft.status == AutosaveStatus.SAVING
            }
            if not saving:
                return None, 0
            return replace(state, drafts={**state.drafts, **saving}), len(saving)

        return self._commit(command)

    def clear_draft(self, draft_id: str) -> None:
        def command(state: StoreState):
            if draft_id not in state.drafts:
                return None, None
            return replace(state, drafts=_without(state.drafts, draft_id)), None

        self._commit(command)

    def clear_draft_family(self, draft_id: str) -> int:
        """Remove draft_id and its per-item drafts (draft_id-0, draft_id-1, ...)."""
        prefix = f"{draft_id}-"

        def command(state: StoreState):
            doomed = [d for d in state.drafts if d == draft_id or d.startswith(prefix)]
            if not doomed:
                return None, 0
            return replace(state, drafts=_without(state.drafts, *doomed)), len(doomed)

        return self._commit(command)

    # === Settings ===

    def _update_settings(self, **changes) -> Settings:
        def command(state: StoreState):
            settings = state.settings.model_copy(update=changes)
            return replace(state, settings=settings), settings

        return self._commit(command)

    def set_selected_model(self, model: str) -> Settings:
        return self._update_settings(selected_model=model.strip())

    def set_available_models(self, models: list[ApiModel]) -> Settings:
        return self._update_settings(available_models=tuple(models), status="idle", error=None)

    def set_settings_status(self, status: str, error: Optional[str] = None) -> Settings:
        return self._update_settings(status=status, error=error)

    def set_proposition_prompt(self, kind: PropositionPromptKind, prompt: str) -> Settings:
        def command(state: StoreState):
            prompts = state.settings.proposition_prompts.with_prompt(kind, prompt)
            settings = state.settings.model_copy(update={"proposition_prompts": prompts})
            return replace(state, settings=settings), settings

        return self._commit(command)

    def reset_proposition_prompts(self, prompts: Optional[PropositionPrompts] = None) -> Settings:
        return self._update_settings(proposition_prompts=prompts or DEFAULT_PROPOSITION_PROMPTS)

    # === Export and snapshot documents ===

    def topic_document(self, topic_id: str) -> Optional[dict]:
        """Depth-complete document for a topic, or None."""
        state = self._state
        topic = state.topics.get(topic_id)
        if topic is None:
            return None
        return serialization.topic_document(topic, state.themes, state.attempts)

    def export_topic(self, topic_id: str) -> Optional[str]:
        """Topic document as indented JSON, or None."""
        doc = self.topic_document(topic_id)
        if doc is None:
            return None
        return json.dumps(doc, indent=2, ensure_ascii=False)

    def to_document(self) -> dict:
        """Full persistable snapshot."""
        state = self._state
        return {
            "schemaVersion": SCHEMA_VERSION,
            "state": {
                "userId": state.user_id,
                "topics": [
                    serialization.topic_document(state.topics[tid], state.themes, state.attempts)
                    for tid in state.topic_ids
                    if tid in state.topics
                ],
                "drafts": serialization.drafts_document(state.drafts),
                "settings": serialization.settings_document(state.settings),
            },
        }

    @classmethod
    def from_document(cls, document: Optional[dict]) -> "EntityStore":
        """Rebuild a store from to_document() output. None gives an empty store."""
        if not document:
            return cls()

        data = document.get("state") or {}
        topics: dict[str, Topic] = {}
        themes: dict[str, Theme] = {}
        attempts: dict[str, Attempt] = {}
        topic_ids: list[str] = []

        for topic_doc in data.get("topics") or []:
            topic, topic_themes, topic_attempts = serialization.topic_from_document(topic_doc)
            topics[topic.topic_id] = topic
            topic_ids.append(topic.topic_id)
            themes.update({t.theme_id: t for t in topic_themes})
            attempts.update({a.attempt_id: a for a in topic_attempts})

        state = StoreState(
            user_id=data.get("userId") or "user-local",
            topic_ids=tuple(topic_ids),
            topics=topics,
            themes=themes,
            attempts=attempts,
            drafts=serialization.drafts_from_document(data.get("drafts")),
            settings=serialization.settings_from_document(data.get("settings")),
        )
        print(f"[STORE] Loaded {len(topics)} topics, {len(attempts)} attempts")
        return cls(state)
