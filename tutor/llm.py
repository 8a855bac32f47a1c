"""
Model requests - one chat completion per call.

The provider SDKs are synchronous; calls run in a worker thread via
asyncio.to_thread so a pending request suspends only its own attempt.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional

from config import get_client
from models import ApiModel, ExerciseType, ExternalCallFailure

FEEDBACK_SYSTEM_PROMPT = (
    "You are an expert tutor. Return only valid JSON that follows the user's instructions."
)
THEORY_SYSTEM_PROMPT = "You are a teacher who explains concepts precisely and concisely."
EXERCISE_SYSTEM_PROMPT = (
    "Generate challenging exercises and return only the requested JSON. "
    "Do not add any extra commentary."
)
PROPOSITION_SYSTEM_PROMPT = (
    "You are a logic tutor. Return only the requested proposition as plain text."
)


@dataclass(frozen=True)
class ModelRequest:
    """Everything needed for one completion."""
    prompt: str
    model: str
    max_output_tokens: int = 1024
    temperature: float = 0.4
    structured_output: bool = False  # Ask the provider for a JSON object
    system_prompt: str = ""

    @classmethod
    def for_feedback(cls, prompt: str, model: str) -> "ModelRequest":
        return cls(prompt, model, 1200, 0.2, True, FEEDBACK_SYSTEM_PROMPT)

    @classmethod
    def for_theory(cls, prompt: str, model: str) -> "ModelRequest":
        return cls(prompt, model, 900, 0.4, False, THEORY_SYSTEM_PROMPT)

    @classmethod
    def for_exercise(cls, prompt: str, model: str, kind: ExerciseType) -> "ModelRequest":
        max_tokens = 1200 if ExerciseType(kind) == ExerciseType.PROPOSITION else 800
        return cls(prompt, model, max_tokens, 0.35, True, EXERCISE_SYSTEM_PROMPT)

    @classmethod
    def for_proposition(cls, prompt: str, model: str) -> "ModelRequest":
        return cls(prompt, model, 600, 0.35, False, PROPOSITION_SYSTEM_PROMPT)


class ChatModelClient:
    """
    OpenAI-compatible chat client (Groq by default).

    get_client_fn maps a model key to (client, model_config), see
    config.get_client.
    """

    def __init__(self, get_client_fn: Optional[Callable[[str], tuple]] = None):
        self._get_client = get_client_fn or get_client

    def _resolve(self, model_key: str):
        try:
            return self._get_client(model_key)
        except Exception as e:
            raise ExternalCallFailure(f"Model '{model_key}' is not configured: {e}", e)

    async def complete(self, request: ModelRequest) -> str:
        """
        Run one completion and return its trimmed text (may be empty).

        Raises ExternalCallFailure on configuration, transport or
        provider errors.
        """
        client, model_cfg = self._resolve(request.model)
        model_name = model_cfg.get("model", request.model)

        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})

        kwargs = {
            "model": model_name,
            "messages": messages,
            "temperature": request.temperature,
            "max_tokens": request.max_output_tokens,
        }
        if request.structured_output:
            kwargs["response_format"] = {"type": "json_object"}

        def sync_call():
            resp = client.chat.completions.create(**kwargs)
            if not resp.choices:
                return ""
            return resp.choices[0].message.content or ""

        try:
            text = await asyncio.to_thread(sync_call)
        except Exception as e:
            print(f"[LLM] Request to {request.model} failed: {e}")
            raise ExternalCallFailure(f"Model request failed: {e}", e)

        return text.strip()

    async def list_models(self, model_key: str) -> list[ApiModel]:
        """Models offered by the provider behind model_key."""
        client, _ = self._resolve(model_key)

        def sync_call():
            return list(client.models.list().data)

        try:
            entries = await asyncio.to_thread(sync_call)
        except Exception as e:
            print(f"[LLM] Model listing failed: {e}")
            raise ExternalCallFailure(f"Could not list models: {e}", e)

        models = []
        for entry in entries:
            model_id = getattr(entry, "id", None)
            if not model_id:
                continue
            context = getattr(entry, "context_length", None) or getattr(entry, "context_window", None)
            description = getattr(entry, "description", None)
            models.append(ApiModel(
                id=str(model_id),
                context_length=context if isinstance(context, int) else None,
                description=description if isinstance(description, str) else None,
            ))
        return models
