"""
Unit test fixtures.

All unit tests should be:
- Fast (< 100ms)
- Isolated (no network, no files)
- Deterministic (same result every time)
"""

import json
import pytest
from datetime import datetime

from models import ExternalCallFailure
from store import EntityStore


class ScriptedModelClient:
    """
    Stand-in for ChatModelClient.

    Returns scripted responses in order. An Exception instance in the
    script is raised instead of returned, and a callable is called with
    the request. Every request is recorded.
    """

    def __init__(self, responses=None, models=None):
        self.responses = list(responses or [])
        self.models = list(models or [])
        self.requests = []

    def queue(self, *responses):
        self.responses.extend(responses)

    async def complete(self, request):
        self.requests.append(request)
        if not self.responses:
            raise ExternalCallFailure("No scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(request)
        return response

    async def list_models(self, model_key):
        return self.models


@pytest.fixture
def fixed_time():
    """Fixed datetime for deterministic tests."""
    return datetime(2024, 1, 15, 12, 0, 0)


@pytest.fixture
def store():
    """Empty in-memory store."""
    return EntityStore()


@pytest.fixture
def topic(store, sample_subject):
    return store.upsert_topic(sample_subject)


@pytest.fixture
def theme(store, topic):
    return store.add_theme(topic.topic_id, "Limits")


@pytest.fixture
def attempt(store, topic, theme, sample_explanation):
    return store.create_attempt(topic.topic_id, theme.theme_id, sample_explanation)


@pytest.fixture
def client():
    return ScriptedModelClient()


def feedback_dict(attempt_id, **overrides):
    data = {
        "feedback_id": "fb-1",
        "attempt_id": attempt_id,
        "summary": "The definition ignores the epsilon-delta condition.",
        "errors": [
            {"id": "e1", "point": "No quantifiers", "counterexample": "f(x) = sin(1/x) near 0"},
        ],
        "suggestion": "Restate the definition with epsilon and delta.",
    }
    data.update(overrides)
    return data


def feedback_json(attempt_id, **overrides):
    """Valid critique response for attempt_id."""
    return json.dumps(feedback_dict(attempt_id, **overrides))


def exercise_json(**overrides):
    data = {
        "exercise_id": "ex-1",
        "type": "analítico",
        "payload": "Prove that $\\lim_{x \\to 2} 3x = 6$.",
    }
    data.update(overrides)
    return json.dumps(data)


@pytest.fixture
def make_feedback_json():
    return feedback_json


@pytest.fixture
def make_exercise_json():
    return exercise_json
