"""
Entity store - the single owner of durable state.

Usage:
    from store import EntityStore

    store = EntityStore()
    topic = store.upsert_topic("Calculus")
    theme = store.add_theme(topic.topic_id, "Limits")
    attempt = store.create_attempt(topic.topic_id, theme.theme_id, "A limit is ...")
"""

from .entity_store import EntityStore, StoreState, AttemptLocation

__all__ = ["EntityStore", "StoreState", "AttemptLocation"]
