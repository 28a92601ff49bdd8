"""OpenAI HTTP client utilities for outline, narrative, and speech calls.

Responsibilities:
- Send minimal chat-completions and speech requests to OpenAI's REST API.
- Stream response bodies so an abandoned call can release its connection early.
- Raise actionable provider exceptions for stage-level error mapping.
"""

from __future__ import annotations

import json
import re
import socket
import threading
from typing import Any

import requests


class OpenAIProviderError(RuntimeError):
    """Raised when an OpenAI provider request fails or returns malformed output."""

    def __init__(
        self,
        message: str,
        *,
        failure_kind: str = "unknown",
        status_code: int | None = None,
        provider_code: str | None = None,
    ) -> None:
        """Initialize provider error metadata for stage-aware diagnostics."""

        super().__init__(message)
        self.failure_kind = failure_kind
        self.status_code = status_code
        self.provider_code = provider_code


class OpenAIRequestCancelled(OpenAIProviderError):
    """Raised inside a worker thread once the awaiting caller gave up on the request."""

    def __init__(self) -> None:
        super().__init__("OpenAI request was cancelled by the caller.", failure_kind="cancelled")


class _OpenAIBaseClient:
    """Shared OpenAI HTTP settings and helpers used by stage-specific clients."""

    _MAX_PROVIDER_MESSAGE_CHARS = 180
    _STREAM_CHUNK_BYTES = 16384

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 60.0,
    ) -> None:
        """Initialize OpenAI HTTP client settings."""

        self.api_key = api_key.strip() if isinstance(api_key, str) else ""
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def _require_api_key(self) -> None:
        """Require API key presence before issuing OpenAI requests."""

        if not self.api_key:
            raise OpenAIProviderError(
                "Missing OpenAI API key. Set `OPENAI_API_KEY`, use `--api-key`, or run "
                "`echopaths credentials --set-api-key`.",
                failure_kind="invalid_api_key",
            )

    def _post_json_bytes(
        self,
        *,
        endpoint_path: str,
        payload: dict[str, Any],
        cancel_event: threading.Event | None = None,
        require_non_empty_response: bool = False,
        empty_response_message: str = "OpenAI response is empty.",
    ) -> bytes:
        """POST a JSON payload and return the streamed response body.

        The body is read in chunks; when `cancel_event` is set between chunks the
        response is closed and `OpenAIRequestCancelled` is raised.
        """

        endpoint = f"{self.base_url}{endpoint_path}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if cancel_event is not None and cancel_event.is_set():
            raise OpenAIRequestCancelled()
        try:
            response = requests.post(
                endpoint,
                headers=headers,
                json=payload,
                timeout=self.timeout_seconds,
                stream=True,
            )
            try:
                try:
                    response.raise_for_status()
                except requests.HTTPError as exc:
                    raise self._http_error_to_provider_error(exc) from exc
                response_bytes = self._read_body(response, cancel_event)
            finally:
                response.close()
        except requests.RequestException as exc:
            failure_kind = self._classify_transport_failure(exc)
            if failure_kind == "timeout":
                detail = "OpenAI request timed out."
            else:
                detail = (
                    "OpenAI request transport error: "
                    f"{self._short_message(str(exc))}"
                )
            raise OpenAIProviderError(detail, failure_kind=failure_kind) from exc
        except TimeoutError as exc:
            raise OpenAIProviderError(
                "OpenAI request timed out.",
                failure_kind="timeout",
            ) from exc

        if require_non_empty_response and not response_bytes:
            raise OpenAIProviderError(empty_response_message, failure_kind="empty_response")
        return response_bytes

    def _read_body(
        self,
        response: requests.Response,
        cancel_event: threading.Event | None,
    ) -> bytes:
        """Collect body chunks, abandoning the transfer once cancellation is requested."""

        chunks: list[bytes] = []
        for chunk in response.iter_content(chunk_size=self._STREAM_CHUNK_BYTES):
            if cancel_event is not None and cancel_event.is_set():
                raise OpenAIRequestCancelled()
            if chunk:
                chunks.append(chunk)
        return b"".join(chunks)

    @staticmethod
    def _decode_error_body(exc: requests.HTTPError) -> str:
        """Decode an HTTP error body into a best-effort UTF-8 payload string."""

        response = exc.response
        if response is None:
            return ""
        try:
            return bytes(response.content).decode("utf-8", errors="replace").strip()
        except (AttributeError, TypeError, requests.RequestException):
            return ""

    @classmethod
    def _redact_sensitive_tokens(cls, text: str) -> str:
        """Redact API-key-like tokens from provider error content."""

        redacted = re.sub(r"\bsk-[A-Za-z0-9_-]{8,}\b", "[redacted-key]", text)
        return re.sub(
            r"(?i)bearer\s+[A-Za-z0-9._-]{12,}",
            "Bearer [redacted-token]",
            redacted,
        )

    @classmethod
    def _short_message(cls, text: str) -> str:
        """Normalize and cap user-facing provider message length."""

        compact = " ".join(text.split())
        if len(compact) <= cls._MAX_PROVIDER_MESSAGE_CHARS:
            return compact
        return f"{compact[: cls._MAX_PROVIDER_MESSAGE_CHARS - 1]}..."

    @classmethod
    def _extract_provider_message(cls, body: str) -> tuple[str, str | None]:
        """Extract a concise provider message and optional provider error code."""

        if not body:
            return "", None

        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            return cls._short_message(cls._redact_sensitive_tokens(body)), None

        provider_code: str | None = None
        message: str | None = None
        error_payload = payload.get("error") if isinstance(payload, dict) else None
        if isinstance(error_payload, dict):
            code_value = error_payload.get("code")
            if isinstance(code_value, str) and code_value.strip():
                provider_code = code_value.strip()
            message_value = error_payload.get("message")
            if isinstance(message_value, str) and message_value.strip():
                message = message_value.strip()

        return cls._short_message(cls._redact_sensitive_tokens(message or body)), provider_code

    @staticmethod
    def _classify_http_failure(
        status_code: int,
        provider_message: str,
        provider_code: str | None,
    ) -> str:
        """Classify OpenAI HTTP errors into deterministic diagnostic kinds."""

        message_lower = provider_message.lower()
        normalized_code = provider_code.lower() if provider_code is not None else ""

        if status_code == 401 or "api key" in message_lower:
            return "invalid_api_key"
        if normalized_code == "insufficient_quota" or (
            status_code == 429 and "quota" in message_lower
        ):
            return "insufficient_quota"
        if status_code == 429:
            return "rate_limited"
        if normalized_code == "model_not_found" or (
            "model" in message_lower
            and any(phrase in message_lower for phrase in ("not found", "does not exist"))
        ):
            return "invalid_model"
        if status_code in {408, 504} or "timed out" in message_lower:
            return "timeout"
        return "http_error"

    @staticmethod
    def _classify_transport_failure(reason: object) -> str:
        """Classify network-layer failures into deterministic diagnostic kinds."""

        if isinstance(reason, TimeoutError | socket.timeout | requests.Timeout):
            return "timeout"
        return "transport"

    @classmethod
    def _http_error_to_provider_error(cls, exc: requests.HTTPError) -> OpenAIProviderError:
        """Convert HTTP errors into normalized provider exceptions with metadata."""

        status_code = exc.response.status_code if exc.response is not None else 0
        body = cls._decode_error_body(exc)
        provider_message, provider_code = cls._extract_provider_message(body)
        failure_kind = cls._classify_http_failure(status_code, provider_message, provider_code)

        headline = {
            "invalid_api_key": "OpenAI authentication failed",
            "insufficient_quota": "OpenAI quota is insufficient for this request",
            "rate_limited": "OpenAI rate limit reached",
            "invalid_model": "OpenAI rejected the selected model",
            "timeout": "OpenAI request timed out",
        }.get(failure_kind, "OpenAI request failed")

        if provider_message:
            detail = f"{headline} (HTTP {status_code}): {provider_message}"
        else:
            detail = f"{headline} (HTTP {status_code})."

        return OpenAIProviderError(
            detail,
            failure_kind=failure_kind,
            status_code=status_code,
            provider_code=provider_code,
        )


class OpenAIChatClient(_OpenAIBaseClient):
    """Minimal requests-based OpenAI chat-completions HTTP client."""

    def chat_completion_text(
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.8,
        json_output: bool = False,
        cancel_event: threading.Event | None = None,
    ) -> str:
        """Return the first assistant text response from a chat-completions request."""

        self._require_api_key()

        payload: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
        }
        if json_output:
            payload["response_format"] = {"type": "json_object"}
        raw_payload = self._post_json_bytes(
            endpoint_path="/chat/completions",
            payload=payload,
            cancel_event=cancel_event,
        ).decode("utf-8")
        return self._extract_message_text(raw_payload)

    @staticmethod
    def _extract_message_text(raw_payload: str) -> str:
        """Extract first assistant message text; an empty message yields an empty string."""

        try:
            payload = json.loads(raw_payload)
        except json.JSONDecodeError as exc:
            raise OpenAIProviderError("OpenAI returned invalid JSON payload.") from exc

        choices = payload.get("choices") if isinstance(payload, dict) else None
        if not isinstance(choices, list) or not choices:
            raise OpenAIProviderError("OpenAI response missing non-empty `choices` list.")

        first_choice = choices[0]
        if not isinstance(first_choice, dict):
            raise OpenAIProviderError("OpenAI response `choices[0]` is malformed.")

        message = first_choice.get("message")
        if not isinstance(message, dict):
            raise OpenAIProviderError("OpenAI response missing `choices[0].message` object.")

        content = message.get("content")
        if isinstance(content, str):
            return content.strip()
        if isinstance(content, list):
            parts = [
                item["text"]
                for item in content
                if isinstance(item, dict)
                and item.get("type") == "text"
                and isinstance(item.get("text"), str)
            ]
            return "".join(parts).strip()
        return ""


class OpenAISpeechClient(_OpenAIBaseClient):
    """Minimal requests-based OpenAI speech client returning raw PCM."""

    def synthesize_pcm(
        self,
        *,
        model: str,
        voice: str,
        text: str,
        speed: float = 1.0,
        instructions: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> bytes:
        """Return 24 kHz mono signed 16-bit PCM bytes from `/audio/speech`."""

        self._require_api_key()

        payload: dict[str, Any] = {
            "model": model,
            "voice": voice,
            "input": text,
            "response_format": "pcm",
            "speed": speed,
        }
        if instructions:
            payload["instructions"] = instructions
        return self._post_json_bytes(
            endpoint_path="/audio/speech",
            payload=payload,
            cancel_event=cancel_event,
            require_non_empty_response=True,
            empty_response_message="OpenAI speech response contained no audio.",
        )


def failure_hint(failure_kind: str) -> str | None:
    """Return an actionable CLI hint for a provider failure kind, when one exists."""

    return {
        "invalid_api_key": "Set `OPENAI_API_KEY` or run `echopaths credentials --set-api-key`.",
        "insufficient_quota": "Check the OpenAI billing quota for this key.",
        "rate_limited": "Wait a moment and start the route again.",
        "invalid_model": "Choose a different model with `--model-text` or `--model-tts`.",
    }.get(failure_kind)
