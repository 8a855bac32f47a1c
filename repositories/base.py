"""
Repository base classes - define the interface.
"""

from abc import ABC, abstractmethod
from typing import Optional


class SnapshotRepository(ABC):
    """
    Persists the store's snapshot document as one unit.

    The document is the dict produced by EntityStore.to_document().
    """

    @abstractmethod
    def load(self) -> Optional[dict]:
        """Load the snapshot. None if absent or unusable."""
        pass

    @abstractmethod
    def save(self, document: dict) -> None:
        """Replace the snapshot."""
        pass

    @abstractmethod
    def exists(self) -> bool:
        """Check if a snapshot exists."""
        pass

    @abstractmethod
    def delete(self) -> bool:
        """Delete the snapshot. Returns True if deleted."""
        pass
