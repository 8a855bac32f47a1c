"""
Configuration and shared utilities for the focus tutor.
"""

import os
import yaml
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Pre-import clients so the first request does not pay for the import
from groq import Groq
from openai import OpenAI

from models import DEFAULT_PROPOSITION_PROMPTS, PropositionPrompts, PropositionPromptKind

# Client cache to avoid recreating clients per request
_client_cache: dict = {}

# Load environment variables
load_dotenv()
user_config = Path.home() / ".focus-tutor" / "config.env"
if user_config.exists():
    load_dotenv(user_config, override=True)

# Paths
DATA_DIR = Path(os.environ.get("TUTOR_DATA_DIR", Path.home() / ".focus-tutor"))
STATE_FILE = DATA_DIR / "state.json"
MODELS_CONFIG = Path("models.yaml")
PROMPTS_CONFIG = Path("prompts.yaml")

# Lifecycle limits
MAX_CYCLES = 5
MAX_RETRIES = 1

# Document versions
SCHEMA_VERSION = 1           # Persisted snapshot
FEEDBACK_SCHEMA_VERSION = 1  # Feedback records

DEFAULT_MODEL = "groq/llama-3.1-8b-instant"

# Providers reachable through an OpenAI-compatible endpoint
_OPENAI_COMPATIBLE = {
    "xai": ("https://api.x.ai/v1", "XAI_API_KEY"),
    "deepseek": ("https://api.deepseek.com/v1", "DEEPSEEK_API_KEY"),
    "together": ("https://api.together.xyz/v1", "TOGETHER_API_KEY"),
    "fireworks": ("https://api.fireworks.ai/inference/v1", "FIREWORKS_API_KEY"),
    "mistral": ("https://api.mistral.ai/v1", "MISTRAL_API_KEY"),
    "google": ("https://generativelanguage.googleapis.com/v1beta/openai/", "GOOGLE_API_KEY"),
    "deepinfra": ("https://api.deepinfra.com/v1/openai", "DEEPINFRA_API_KEY"),
    "openrouter": ("https://openrouter.ai/api/v1", "OPENROUTER_API_KEY"),
}

KNOWN_PROVIDERS = {"groq", "openai", "ollama", *_OPENAI_COMPATIBLE}


def load_models_config() -> dict:
    """Load models configuration from YAML."""
    if MODELS_CONFIG.exists():
        with open(MODELS_CONFIG) as f:
            return yaml.safe_load(f) or {}
    return {"default": DEFAULT_MODEL, "models": {}}


def default_model() -> str:
    """Model used when the learner has not picked one."""
    env_model = os.environ.get("TUTOR_MODEL", "").strip()
    if env_model:
        return env_model
    return load_models_config().get("default") or DEFAULT_MODEL


def _get_cached_client(provider: str):
    """Get or create a cached client for a provider."""
    if provider in _client_cache:
        return _client_cache[provider]

    if provider == "groq":
        client = Groq()
    elif provider == "openai":
        client = OpenAI()
    elif provider == "ollama":
        host = os.environ.get("OLLAMA_HOST", "http://localhost:11434")
        client = OpenAI(base_url=f"{host}/v1", api_key="ollama")
    elif provider in _OPENAI_COMPATIBLE:
        base_url, env_key = _OPENAI_COMPATIBLE[provider]
        client = OpenAI(base_url=base_url, api_key=os.environ.get(env_key))
    else:
        raise ValueError(f"Unknown provider: {provider}")

    _client_cache[provider] = client
    return client


def parse_model_key(model_key: str) -> tuple[str, str]:
    """
    Split "provider/model" into its parts.

    Only a known provider counts as a prefix: Groq serves ids such as
    "meta-llama/llama-4-scout-17b-16e-instruct" that contain a slash.
    """
    if "/" in model_key:
        prefix, rest = model_key.split("/", 1)
        if prefix.lower() in KNOWN_PROVIDERS:
            return prefix.lower(), rest
    return "groq", model_key


def get_client(model_key: str):
    """
    Get appropriate API client for a model.

    Supports two formats:
    1. "provider/model-name" - parsed dynamically (preferred)
    2. Key in models.yaml - config lookup

    A bare model id goes to Groq. Returns (client, model_config) tuple.
    """
    models = load_models_config()
    if model_key in (models.get("models") or {}):
        model_cfg = models["models"][model_key]
        provider = model_cfg["provider"]
        env_key = model_cfg.get("env_key", "")

        if env_key and env_key != "OLLAMA_HOST" and not os.environ.get(env_key):
            raise ValueError(f"{env_key} not found in environment")

        return _get_cached_client(provider), model_cfg

    if not model_key:
        model_key = DEFAULT_MODEL

    provider, model_name = parse_model_key(model_key)
    model_cfg = {"provider": provider, "model": model_name}
    return _get_cached_client(provider), model_cfg


def load_proposition_prompts(path: Optional[Path] = None) -> PropositionPrompts:
    """
    Default proposition templates with prompts.yaml overrides applied.

    prompts.yaml:
        propositions:
          initial: "..."
          reciprocal: "..."
          inverse: "..."
          contra_reciprocal: "..."
    """
    path = path or PROMPTS_CONFIG
    prompts = DEFAULT_PROPOSITION_PROMPTS
    if not path.exists():
        return prompts

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        print(f"[WARN] Ignoring {path}: {e}")
        return prompts

    for kind in PropositionPromptKind:
        override = (data.get("propositions") or {}).get(kind.value)
        if isinstance(override, str) and override.strip():
            prompts = prompts.with_prompt(kind, override)
    return prompts
