"""
Learner settings - model selection and proposition templates.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel


class PropositionPromptKind(str, Enum):
    """Templates used by the proposition chain."""
    INITIAL = "initial"
    RECIPROCAL = "reciprocal"
    INVERSE = "inverse"
    CONTRA_RECIPROCAL = "contra_reciprocal"


class _SettingsModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class PropositionPrompts(_SettingsModel):
    """
    Prompt templates for the four chain steps.

    Each template carries a {{condition}} placeholder ({{condicion}} is
    accepted too). Without one, the text is appended after a blank line.
    """
    initial: str = (
        "Take this critique and write one clear, critical proposition of the form "
        "'if p then q' about the weakest point. Keep any LaTeX exactly as written. "
        "Return only the proposition.\n\n{{condition}}"
    )
    reciprocal: str = (
        "Identify the hypothesis and the thesis. Write the converse by swapping them "
        "(q -> p), changing as little as possible. Keep the LaTeX intact. "
        "Return only the proposition.\n\n{{condition}}"
    )
    inverse: str = (
        "Identify the hypothesis and the thesis. Write the inverse (~p -> ~q), "
        "changing as little as possible. Keep the LaTeX intact. "
        "Return only the proposition.\n\n{{condition}}"
    )
    contra_reciprocal: str = (
        "Identify the hypothesis and the thesis. Write the contrapositive (~q -> ~p), "
        "changing as little as possible. Keep the LaTeX intact. "
        "Return only the proposition.\n\n{{condition}}"
    )

    def get(self, kind: PropositionPromptKind) -> str:
        return getattr(self, PropositionPromptKind(kind).value)

    def with_prompt(self, kind: PropositionPromptKind, prompt: str) -> "PropositionPrompts":
        return self.model_copy(update={PropositionPromptKind(kind).value: prompt})


DEFAULT_PROPOSITION_PROMPTS = PropositionPrompts()


class ApiModel(_SettingsModel):
    """A model offered by the provider."""
    id: str
    context_length: Optional[int] = None
    description: Optional[str] = None


class Settings(_SettingsModel):
    """
    Persisted learner settings.

    The API key is not stored here; config reads it from the environment.
    """
    selected_model: str = ""
    available_models: tuple[ApiModel, ...] = ()
    status: str = "idle"  # 'idle' | 'loading' | 'error'
    error: Optional[str] = None
    proposition_prompts: PropositionPrompts = Field(default_factory=PropositionPrompts)
