"""
Composition root - wires store, persistence, model client and orchestrator.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from config import default_model, load_proposition_prompts
from models import AutosaveStatus
from repositories import JsonSnapshotRepository, SnapshotRepository, get_repository
from store import EntityStore, StoreState
from .llm import ChatModelClient
from .orchestrator import AttemptOrchestrator


class Autosave:
    """
    Store callback that persists every committed snapshot.

    Drafts waiting in 'saving' are flipped to 'saved' (or 'error')
    once the write finished.
    """

    def __init__(self, store: EntityStore, repository: SnapshotRepository):
        self.store = store
        self.repository = repository
        self.last_error: Optional[str] = None

    def __call__(self, state: StoreState) -> None:
        try:
            self.repository.save(self.store.to_document())
            self.last_error = None
            status, error = AutosaveStatus.SAVED, None
        except OSError as e:
            print(f"[WARN] Autosave failed: {e}")
            self.last_error = str(e)
            status, error = AutosaveStatus.ERROR, str(e)

        if any(draft.status == AutosaveStatus.SAVING for draft in state.drafts.values()):
            self.store.settle_drafts(status, error)


@dataclass
class Tutor:
    store: EntityStore
    repository: SnapshotRepository
    orchestrator: AttemptOrchestrator
    client: object


def build_tutor(
    data_path: Optional[Path] = None,
    client=None,
    repository: Optional[SnapshotRepository] = None,
    autosave: bool = True,
) -> Tutor:
    """Load the saved snapshot (if any) and assemble the services."""
    if repository is None:
        repository = JsonSnapshotRepository(data_path) if data_path else get_repository()

    document = repository.load()
    try:
        store = EntityStore.from_document(document)
    except (KeyError, TypeError, AttributeError, ValueError) as e:
        # pydantic ValidationError is a ValueError
        print(f"[WARN] Snapshot could not be restored, starting empty: {e}")
        document = None
        store = EntityStore()

    if document is None:
        store.reset_proposition_prompts(load_proposition_prompts())

    if autosave:
        store.add_callback(Autosave(store, repository))

    client = client or ChatModelClient()
    orchestrator = AttemptOrchestrator(store, client, default_model=default_model())
    return Tutor(store=store, repository=repository, orchestrator=orchestrator, client=client)
