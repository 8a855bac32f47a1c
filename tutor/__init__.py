"""
Tutor services - model access, prompts and the attempt lifecycle.
"""

from .llm import ChatModelClient, ModelRequest
from .orchestrator import (
    AttemptOrchestrator,
    FeedbackRequest,
    PromptBundle,
    Review,
    TheoryState,
)
from .propositions import PropositionChainBuilder, replace_condition_placeholder
from .bootstrap import Autosave, Tutor, build_tutor

__all__ = [
    "ChatModelClient",
    "ModelRequest",
    "AttemptOrchestrator",
    "FeedbackRequest",
    "PromptBundle",
    "Review",
    "TheoryState",
    "PropositionChainBuilder",
    "replace_condition_placeholder",
    "Autosave",
    "Tutor",
    "build_tutor",
]
