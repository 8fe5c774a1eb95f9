"""
Pytest configuration and fixtures.
"""
import json

import pytest

from src.core import get_settings
from src.models import Message, Session, Slide


class FakeModelClient:
    """Stands in for the hosted text model; answers from a scripted list."""

    def __init__(self, responses=(), available=True):
        self.responses = list(responses)
        self.prompts = []
        self.is_available = available
        self.model_name = "fake-model"

    async def generate_text(self, prompt: str) -> str:
        self.prompts.append(prompt)
        result = self.responses.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


class StatusError(Exception):
    """SDK-style exception carrying an HTTP status code."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Provide a clean, fast environment for tests."""
    env_vars = [
        "AZURE_OPENAI_API_KEY",
        "AZURE_OPENAI_ENDPOINT",
        "AZURE_OPENAI_DEPLOYMENT",
        "TRACING_ENABLED",
        "APPLICATIONINSIGHTS_CONNECTION_STRING",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("THINKING_TICK_SECONDS", "0")
    monkeypatch.setenv("COUNTDOWN_TICK_SECONDS", "0")
    monkeypatch.setenv("HISTORY_DEBOUNCE_SECONDS", "0")

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_client():
    """Factory for scripted model clients."""
    return FakeModelClient


@pytest.fixture
def status_error():
    """Factory for exceptions that carry an HTTP status."""
    return StatusError


@pytest.fixture
def recorded_sleep():
    """Async sleep replacement that records the requested delays."""
    delays = []

    async def sleep(seconds):
        delays.append(seconds)

    sleep.delays = delays
    return sleep


def deck_json(count: int, message: str = "Here are your slides") -> str:
    return json.dumps({
        "message": message,
        "slides": [
            {"title": f"Slide {i + 1}", "subtitle": f"Sub {i + 1}", "content": f"Point {i + 1}"}
            for i in range(count)
        ],
    })


@pytest.fixture
def model_deck():
    """Factory for well-formed model responses with ``count`` slides."""
    return deck_json


@pytest.fixture
def sample_deck():
    """A small two-slide deck without images."""
    return [
        Slide(title="Quantum Computing", subtitle="An Overview", type="title", layout="title"),
        Slide(
            title="Qubits",
            subtitle="The basic unit",
            content="* **Superposition** of states\n* Entanglement between *pairs*",
        ),
    ]


@pytest.fixture
def sample_session(sample_deck):
    """A complete session snapshot."""
    return Session(
        id="session-1",
        prompt="Quantum Computing",
        slides=sample_deck,
        messages=[
            Message(sender="user", text="Quantum Computing"),
            Message(sender="ai", text="Here are your slides"),
        ],
    )
