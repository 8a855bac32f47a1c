"""
Topic and Theme - the containers an attempt lives in.
"""

from pydantic import Field

from .base import BaseEntity, new_id


class Topic(BaseEntity):
    """
    A subject the learner is studying.

    Themes are held by reference; the store owns the Theme records.
    """
    topic_id: str = Field(default_factory=new_id)
    user_id: str = "user-local"
    subject: str
    theme_ids: tuple[str, ...] = ()


class Theme(BaseEntity):
    """A concept within a topic. Attempt ids are newest first."""
    theme_id: str = Field(default_factory=new_id)
    topic_id: str
    title: str
    attempt_ids: tuple[str, ...] = ()
