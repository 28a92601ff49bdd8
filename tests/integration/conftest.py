"""Integration-test fixtures for deterministic provider behavior."""

from __future__ import annotations

import json
import re
from pathlib import Path

import pytest

from echopaths.llm.openai_client import OpenAIChatClient, OpenAISpeechClient


class FakeCredentialStore:
    """In-memory credential store replacing the OS keyring in CLI tests."""

    def __init__(self) -> None:
        self.api_key: str | None = None

    def is_available(self) -> bool:
        return True

    def get_api_key(self) -> str | None:
        return self.api_key

    def set_api_key(self, api_key: str) -> None:
        self.api_key = api_key.strip()

    def clear_api_key(self) -> bool:
        existed = self.api_key is not None
        self.api_key = None
        return existed


@pytest.fixture
def chat_calls() -> list[dict[str, object]]:
    return []


@pytest.fixture
def credential_store() -> FakeCredentialStore:
    return FakeCredentialStore()


@pytest.fixture(autouse=True)
def _isolate_environment(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    credential_store: FakeCredentialStore,
) -> None:
    """Keep trip history and credentials out of the real home directory."""

    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setattr("echopaths.cli.create_credential_store", lambda: credential_store)


@pytest.fixture(autouse=True)
def _mock_openai_calls(
    monkeypatch: pytest.MonkeyPatch, chat_calls: list[dict[str, object]]
) -> None:
    """Mock OpenAI calls in integration tests to avoid network/key requirements."""

    def _mock_chat_completion(self: OpenAIChatClient, **kwargs: object) -> str:
        chat_calls.append(kwargs)
        prompt = str(kwargs.get("user_prompt", ""))
        if kwargs.get("json_output"):
            match = re.search(r"exactly (\d+) chapters", prompt)
            total = int(match.group(1)) if match else 1
            return json.dumps({"chapters": [f"Planned beat {i}" for i in range(1, total + 1)]})
        segment = re.search(r"Generate segment (\d+) of (\d+)", prompt)
        label = f"{segment.group(1)}/{segment.group(2)}" if segment else "?"
        return f"integration narration {label}"

    def _mock_synthesize_pcm(self: OpenAISpeechClient, **kwargs: object) -> bytes:
        return b"\x00\x00" * 2400

    monkeypatch.setattr(OpenAIChatClient, "chat_completion_text", _mock_chat_completion)
    monkeypatch.setattr(OpenAISpeechClient, "synthesize_pcm", _mock_synthesize_pcm)
