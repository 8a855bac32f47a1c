"""
Repository layer - abstracts persistence of the store snapshot.

Usage:
    from repositories import get_repository

    repo = get_repository()  # Returns configured backend
    store = EntityStore.from_document(repo.load())
    repo.save(store.to_document())

Backends are swappable via configure_backend().
"""

from .base import SnapshotRepository
from .json_backend import JsonSnapshotRepository

# Default backend - can be changed via configure_backend
_backend: str = "json"
_options: dict = {}
_instance: SnapshotRepository = None


def get_repository() -> SnapshotRepository:
    """Get the configured repository instance."""
    global _instance

    if _instance is None:
        if _backend == "json":
            _instance = JsonSnapshotRepository(**_options)
        else:
            raise ValueError(f"Unknown backend: {_backend}")

    return _instance


def configure_backend(backend: str, **kwargs) -> None:
    """Configure the repository backend (e.g. path= for json)."""
    global _backend, _options, _instance
    _backend = backend
    _options = kwargs
    _instance = None  # Force re-initialization


__all__ = ["get_repository", "configure_backend", "SnapshotRepository", "JsonSnapshotRepository"]
