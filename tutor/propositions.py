"""
Proposition chain - four dependent model calls, one exercise.

    critique -> base proposition (initial template)
    base     -> reciprocal, inverse, contra-reciprocal (in that order)

The three variants become the exercise statements. Calls are strictly
sequential: each variant needs the base. Any failure aborts the whole
chain; the builder never writes to the store.
"""

import re
from typing import Awaitable, Callable

from models import (
    EmptyBaseProposition,
    EmptyVariant,
    ExercisePayload,
    ExerciseType,
    Feedback,
    PropositionPromptKind,
    PropositionPrompts,
)
from schemas import encode_proposition_payload
from .llm import ModelRequest

# {{condicion}} or {{condition}}, any case, optional inner whitespace
PLACEHOLDER = re.compile(r"\{\{\s*(?:condicion|condition)\s*\}\}", re.IGNORECASE)

# (template kind, label used in error messages)
PROPOSITION_VARIANTS = (
    (PropositionPromptKind.RECIPROCAL, "reciprocal"),
    (PropositionPromptKind.INVERSE, "inverse"),
    (PropositionPromptKind.CONTRA_RECIPROCAL, "contra-reciprocal"),
)


def replace_condition_placeholder(template: str, condition: str) -> str:
    """
    Put condition into template.

    Every placeholder is replaced. Without one, condition is appended
    to the trimmed template after a blank line; an empty template
    yields the condition alone.
    """
    if PLACEHOLDER.search(template):
        return PLACEHOLDER.sub(lambda _: condition, template)
    base = template.strip()
    if not base:
        return condition
    return f"{base}\n\n{condition}"


class PropositionChainBuilder:
    """
    Builds a proposition exercise from a critique.

    call_model is an async callable taking a ModelRequest and returning
    the response text.
    """

    def __init__(self, call_model: Callable[[ModelRequest], Awaitable[str]], prompts: PropositionPrompts):
        self.call_model = call_model
        self.prompts = prompts

    async def _ask(self, template: str, condition: str, model: str) -> str:
        prompt = replace_condition_placeholder(template, condition)
        text = await self.call_model(ModelRequest.for_proposition(prompt, model))
        return (text or "").strip()

    async def build(self, feedback: Feedback, attempt_id: str, model: str) -> ExercisePayload:
        """
        Run the chain.

        Raises EmptyBaseProposition or EmptyVariant on an empty answer;
        errors from call_model propagate unchanged.
        """
        base = await self._ask(
            self.prompts.get(PropositionPromptKind.INITIAL),
            feedback.critique_text(),
            model,
        )
        if not base:
            raise EmptyBaseProposition()
        print(f"[CHAIN] Base proposition for {attempt_id}: {base[:80]}")

        statements = []
        for kind, label in PROPOSITION_VARIANTS:
            variant = await self._ask(self.prompts.get(kind), base, model)
            if not variant:
                print(f"[CHAIN] Empty {label} for {attempt_id}, aborting")
                raise EmptyVariant(label)
            statements.append(variant)

        return ExercisePayload(
            attempt_id=attempt_id,
            type=ExerciseType.PROPOSITION,
            payload=encode_proposition_payload(statements),
            model=model,
        )
