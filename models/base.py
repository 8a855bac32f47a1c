"""
Base entity classes.
"""

import uuid
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel


def new_id() -> str:
    """Fresh entity identifier."""
    return str(uuid.uuid4())


class TimestampMixin(BaseModel):
    """Mixin for created/updated timestamps."""
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class BaseEntity(TimestampMixin):
    """
    Base for all durable entities.

    Entities are immutable snapshots. The store replaces them with
    updated copies, it never edits one in place.
    Serialized field names are camelCase (topicId, createdAt, ...).
    """
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",  # Consumers tolerate additive fields
    )

    def touched(self, **changes):
        """Copy with changes applied and updated_at refreshed."""
        return self.model_copy(update={**changes, "updated_at": datetime.now()})

    def to_document(self, **kwargs) -> dict:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, **kwargs)
