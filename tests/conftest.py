"""Shared pytest fixtures for completion_operator tests."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
import typer
from pydantic import SecretStr
from typer.testing import CliRunner

from completion_operator.cli.main import app
from completion_operator.integrations.completion.config import CompletionConfig
from completion_operator.models.completion import CompletionResource


class FakeTimer:
    """Stand-in for threading.Timer that only fires when told to."""

    def __init__(self, interval: float, function: Callable[..., Any], args: Any = None) -> None:
        self.interval = interval
        self.function = function
        self.args = tuple(args or ())
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled:
            self.function(*self.args)


class FakeTimerFactory:
    """Timer factory that records every timer it creates."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def __call__(
        self, interval: float, function: Callable[..., Any], args: Any = None
    ) -> FakeTimer:
        timer = FakeTimer(interval, function, args)
        self.timers.append(timer)
        return timer

    @property
    def live(self) -> list[FakeTimer]:
        """Timers that were started and neither fired nor cancelled."""
        return [t for t in self.timers if t.started and not t.cancelled]

    def fire_all(self) -> None:
        """Fire every timer created so far, oldest first, exactly once."""
        for timer in list(self.timers):
            if timer.started and not timer.cancelled:
                timer.cancelled = True
                timer.function(*timer.args)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def cli_app() -> typer.Typer:
    """Return the CLI app for testing."""
    return app


@pytest.fixture
def temp_dir() -> Generator[Path]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def reset_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset environment variables for each test."""
    for key in list(os.environ.keys()):
        if key.startswith("COMPLETION_OPERATOR_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


@pytest.fixture
def timer_factory() -> FakeTimerFactory:
    """Timer factory whose timers fire only on demand."""
    return FakeTimerFactory()


@pytest.fixture
def completion_config() -> CompletionConfig:
    """Completion provider config pointing at a test endpoint."""
    return CompletionConfig(
        api_key=SecretStr("sk-test"),
        base_url="https://completions.test/v1",
        retry_attempts=1,
    )


@pytest.fixture
def make_resource() -> Callable[..., CompletionResource]:
    """Factory for Completion resources as the API server delivers them."""

    def _make(
        name: str = "example",
        *,
        generation: int | None = 1,
        resource_version: str = "100",
        user_prompt: Any = "kind: Pod\n",
        max_tokens: Any = None,
        status: dict[str, Any] | None = None,
        spec: dict[str, Any] | None = None,
    ) -> CompletionResource:
        metadata: dict[str, Any] = {
            "name": name,
            "resourceVersion": resource_version,
            "uid": f"uid-{name}",
        }
        if generation is not None:
            metadata["generation"] = generation
        if spec is None:
            spec = {"userPrompt": user_prompt}
            if max_tokens is not None:
                spec["maxTokens"] = max_tokens
        data: dict[str, Any] = {
            "apiVersion": "copilot.poc.com/v1",
            "kind": "Completion",
            "metadata": metadata,
            "spec": spec,
        }
        if status is not None:
            data["status"] = status
        return CompletionResource.from_api_object(data)

    return _make
