"""
Document shapes for export and snapshot persistence.

The store keeps entities in flat maps; these helpers nest them into
the export document (topic -> themes -> attempts) and back.

Topic document:
    {topicId, subject, userId, createdAt, updatedAt,
     themes: [{themeId, title, createdAt, updatedAt,
               attempts: [{attemptId, status, latestVersion, cycles,
                           createdAt, updatedAt, versions,
                           feedbackHistory, pendingExercise}]}]}
"""

from typing import Mapping, Optional

from models import Attempt, Draft, Settings, Theme, Topic


def attempt_document(attempt: Attempt) -> dict:
    return attempt.to_document(exclude={"topic_id", "theme_id"})


def theme_document(theme: Theme, attempts: Mapping[str, Attempt]) -> dict:
    doc = theme.to_document(exclude={"topic_id", "attempt_ids"})
    doc["attempts"] = [
        attempt_document(attempts[attempt_id])
        for attempt_id in theme.attempt_ids
        if attempt_id in attempts
    ]
    return doc


def topic_document(
    topic: Topic,
    themes: Mapping[str, Theme],
    attempts: Mapping[str, Attempt],
) -> dict:
    """Depth-complete document for one topic."""
    doc = topic.to_document(exclude={"theme_ids"})
    doc["themes"] = [
        theme_document(themes[theme_id], attempts)
        for theme_id in topic.theme_ids
        if theme_id in themes
    ]
    return doc


def topic_from_document(doc: dict) -> tuple[Topic, list[Theme], list[Attempt]]:
    """
    Inverse of topic_document.

    Owner ids are not stored on nested records; they are inferred
    from where the record sits in the document.
    """
    theme_docs = doc.get("themes") or []
    topic = Topic.model_validate({
        **doc,
        "themeIds": [t["themeId"] for t in theme_docs],
    })

    themes: list[Theme] = []
    attempts: list[Attempt] = []
    for theme_doc in theme_docs:
        attempt_docs = theme_doc.get("attempts") or []
        theme = Theme.model_validate({
            **theme_doc,
            "topicId": topic.topic_id,
            "attemptIds": [a["attemptId"] for a in attempt_docs],
        })
        themes.append(theme)
        for attempt_doc in attempt_docs:
            attempts.append(Attempt.model_validate({
                **attempt_doc,
                "topicId": topic.topic_id,
                "themeId": theme.theme_id,
            }))

    return topic, themes, attempts


def drafts_document(drafts: Mapping[str, Draft]) -> dict:
    return {
        draft_id: draft.model_dump(mode="json", by_alias=True)
        for draft_id, draft in drafts.items()
    }


def drafts_from_document(doc: Optional[dict]) -> dict[str, Draft]:
    return {draft_id: Draft.model_validate(data) for draft_id, data in (doc or {}).items()}


def settings_document(settings: Settings) -> dict:
    return settings.model_dump(mode="json", by_alias=True)


def settings_from_document(doc: Optional[dict]) -> Settings:
    if not doc:
        return Settings()
    # A model listing in progress does not survive a restart
    return Settings.model_validate(doc).model_copy(update={"status": "idle", "error": None})
