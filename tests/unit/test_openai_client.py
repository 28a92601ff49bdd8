"""Unit tests for the requests-based OpenAI clients."""

from __future__ import annotations

import json
import threading
from typing import Any

import pytest
import requests

from echopaths.llm.openai_client import (
    OpenAIChatClient,
    OpenAIProviderError,
    OpenAIRequestCancelled,
    OpenAISpeechClient,
    failure_hint,
)


class _FakeResponse:
    """Minimal streamed `requests.Response` stand-in."""

    def __init__(
        self,
        status_code: int = 200,
        content: bytes = b"",
        chunks: list[bytes] | None = None,
    ) -> None:
        self.status_code = status_code
        self.content = content
        self.chunks = chunks if chunks is not None else [content]
        self.closed = False
        self.chunk_sizes: list[int] = []

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)

    def iter_content(self, chunk_size: int = 1):
        self.chunk_sizes.append(chunk_size)
        yield from self.chunks

    def close(self) -> None:
        self.closed = True


def _install_post(monkeypatch: pytest.MonkeyPatch, response: _FakeResponse) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []

    def _fake_post(url: str, **kwargs: Any) -> _FakeResponse:
        calls.append({"url": url, **kwargs})
        return response

    monkeypatch.setattr("echopaths.llm.openai_client.requests.post", _fake_post)
    return calls


def _chat_body(content: object) -> bytes:
    return json.dumps({"choices": [{"message": {"content": content}}]}).encode("utf-8")


def test_chat_completion_returns_first_message_text(monkeypatch: pytest.MonkeyPatch) -> None:
    response = _FakeResponse(content=_chat_body("  The gate creaks open.  "))
    calls = _install_post(monkeypatch, response)
    client = OpenAIChatClient(api_key="sk-test", base_url="https://example.test/v1/")

    text = client.chat_completion_text(model="gpt-4o-mini", system_prompt="sys", user_prompt="usr")

    assert text == "The gate creaks open."
    assert calls[0]["url"] == "https://example.test/v1/chat/completions"
    assert calls[0]["headers"]["Authorization"] == "Bearer sk-test"
    assert calls[0]["stream"] is True
    assert "response_format" not in calls[0]["json"]
    assert response.closed is True


def test_chat_completion_requests_json_object_when_asked(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install_post(monkeypatch, _FakeResponse(content=_chat_body('{"chapters": []}')))
    client = OpenAIChatClient(api_key="sk-test")

    client.chat_completion_text(model="m", system_prompt="s", user_prompt="u", json_output=True)

    assert calls[0]["json"]["response_format"] == {"type": "json_object"}


def test_chat_completion_joins_text_content_parts(monkeypatch: pytest.MonkeyPatch) -> None:
    parts = [
        {"type": "text", "text": "North "},
        {"type": "image"},
        {"type": "text", "text": "wind"},
    ]
    _install_post(monkeypatch, _FakeResponse(content=_chat_body(parts)))

    text = OpenAIChatClient(api_key="sk-test").chat_completion_text(
        model="m", system_prompt="s", user_prompt="u"
    )

    assert text == "North wind"


def test_missing_api_key_fails_before_any_request(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install_post(monkeypatch, _FakeResponse())

    with pytest.raises(OpenAIProviderError) as exc_info:
        OpenAIChatClient(api_key="  ").chat_completion_text(
            model="m", system_prompt="s", user_prompt="u"
        )

    assert exc_info.value.failure_kind == "invalid_api_key"
    assert calls == []


def test_unauthorized_response_maps_to_redacted_auth_failure(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    body = json.dumps(
        {
            "error": {
                "message": "Incorrect API key provided: sk-abcdefghijklmnop",
                "code": "invalid_api_key",
            }
        }
    ).encode("utf-8")
    response = _FakeResponse(status_code=401, content=body)
    _install_post(monkeypatch, response)

    with pytest.raises(OpenAIProviderError) as exc_info:
        OpenAIChatClient(api_key="sk-test").chat_completion_text(
            model="m", system_prompt="s", user_prompt="u"
        )

    error = exc_info.value
    assert error.failure_kind == "invalid_api_key"
    assert error.status_code == 401
    assert "OpenAI authentication failed (HTTP 401)" in str(error)
    assert "sk-abcdefghijklmnop" not in str(error)
    assert "[redacted-key]" in str(error)
    assert response.closed is True


@pytest.mark.parametrize(
    ("status_code", "message", "code", "expected_kind"),
    [
        (429, "You exceeded your current quota", "insufficient_quota", "insufficient_quota"),
        (429, "Too many requests", None, "rate_limited"),
        (404, "The model `nope` does not exist", "model_not_found", "invalid_model"),
        (504, "Gateway timed out", None, "timeout"),
        (500, "Internal error", None, "http_error"),
    ],
)
def test_http_failures_are_classified(
    monkeypatch: pytest.MonkeyPatch,
    status_code: int,
    message: str,
    code: str | None,
    expected_kind: str,
) -> None:
    body = json.dumps({"error": {"message": message, "code": code}}).encode("utf-8")
    _install_post(monkeypatch, _FakeResponse(status_code=status_code, content=body))

    with pytest.raises(OpenAIProviderError) as exc_info:
        OpenAIChatClient(api_key="sk-test").chat_completion_text(
            model="m", system_prompt="s", user_prompt="u"
        )

    assert exc_info.value.failure_kind == expected_kind


def test_transport_timeout_maps_to_timeout_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    def _raise_timeout(url: str, **kwargs: Any) -> _FakeResponse:
        raise requests.Timeout("read timed out")

    monkeypatch.setattr("echopaths.llm.openai_client.requests.post", _raise_timeout)

    with pytest.raises(OpenAIProviderError) as exc_info:
        OpenAIChatClient(api_key="sk-test").chat_completion_text(
            model="m", system_prompt="s", user_prompt="u"
        )

    assert exc_info.value.failure_kind == "timeout"
    assert str(exc_info.value) == "OpenAI request timed out."


def test_speech_request_asks_for_raw_pcm(monkeypatch: pytest.MonkeyPatch) -> None:
    pcm = b"\x01\x00" * 10
    calls = _install_post(monkeypatch, _FakeResponse(content=pcm, chunks=[pcm[:8], b"", pcm[8:]]))

    audio = OpenAISpeechClient(api_key="sk-test").synthesize_pcm(
        model="gpt-4o-mini-tts",
        voice="onyx",
        text="Rain on cobblestones.",
        instructions="Low and slow.",
    )

    assert audio == pcm
    assert calls[0]["url"].endswith("/audio/speech")
    assert calls[0]["json"]["response_format"] == "pcm"
    assert calls[0]["json"]["voice"] == "onyx"
    assert calls[0]["json"]["instructions"] == "Low and slow."


def test_empty_speech_response_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_post(monkeypatch, _FakeResponse(content=b"", chunks=[]))

    with pytest.raises(OpenAIProviderError) as exc_info:
        OpenAISpeechClient(api_key="sk-test").synthesize_pcm(model="m", voice="alloy", text="hi")

    assert exc_info.value.failure_kind == "empty_response"


def test_cancel_event_abandons_streamed_body(monkeypatch: pytest.MonkeyPatch) -> None:
    cancel_event = threading.Event()

    def _chunks():
        yield b"\x00\x00"
        cancel_event.set()
        yield b"\x00\x00"

    response = _FakeResponse()
    response.chunks = _chunks()
    _install_post(monkeypatch, response)

    with pytest.raises(OpenAIRequestCancelled):
        OpenAISpeechClient(api_key="sk-test").synthesize_pcm(
            model="m", voice="alloy", text="hi", cancel_event=cancel_event
        )

    assert response.closed is True


def test_already_cancelled_call_never_posts(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install_post(monkeypatch, _FakeResponse(content=b"\x00\x00"))
    cancel_event = threading.Event()
    cancel_event.set()

    with pytest.raises(OpenAIRequestCancelled):
        OpenAISpeechClient(api_key="sk-test").synthesize_pcm(
            model="m", voice="alloy", text="hi", cancel_event=cancel_event
        )

    assert calls == []


def test_failure_hints_cover_actionable_kinds() -> None:
    assert "credentials --set-api-key" in (failure_hint("invalid_api_key") or "")
    assert failure_hint("http_error") is None
