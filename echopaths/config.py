"""Configuration model and loaders for EchoPaths.

Responsibilities:
- Define session and buffering configuration as a typed dataclass.
- Provide deterministic precedence resolution for runtime provider/model settings.
- Provide loader entry points for file- and environment-based configuration.

Key types:
- `EchoPathsConfig`: normalized runtime settings for one narration session.
- `ProviderRuntimeConfig`: resolved provider/model runtime values.
- `RuntimeConfigSources`: optional value sources for precedence resolution.
- `ConfigLoader`: static construction helpers for `EchoPathsConfig`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from .parsing import (
    normalize_optional_string,
    parse_enum_token,
    parse_non_negative_float,
)
from .story.scheduler import GapPolicy

_DEFAULT_TEXT_MODEL = "gpt-4.1-mini"
_DEFAULT_TTS_MODEL = "gpt-4o-mini-tts"
_SUPPORTED_PROVIDER_IDS = frozenset({"openai"})
_ENV_PREFIX = "ECHOPATHS_"


@dataclass(frozen=True, slots=True)
class RuntimeConfigSources:
    """Source mappings used for deterministic runtime value precedence.

    Attributes:
        cli: Values explicitly provided by CLI arguments.
        secure: Values loaded from secure local credential storage.
        env: Values loaded from environment variables.
    """

    cli: Mapping[str, str] = field(default_factory=dict)
    secure: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProviderRuntimeConfig:
    """Resolved runtime provider and model identifiers for one session.

    Attributes:
        text_provider: Provider identifier for outline and narrative stages.
        tts_provider: Provider identifier for the speech stage.
        text_model: Model identifier for outline and narrative stages.
        tts_model: Model identifier for the speech stage.
        tts_voice: Voice override; `None` selects the story-style voice.
        api_key: Optional provider API key (resolved but never written to artifacts).
    """

    text_provider: str
    tts_provider: str
    text_model: str
    tts_model: str
    tts_voice: str | None = None
    api_key: str | None = None

    def as_session_metadata(self) -> dict[str, str]:
        """Return non-secret runtime metadata safe to persist in `session.json`."""

        return {
            "provider_text": self.text_provider,
            "provider_tts": self.tts_provider,
            "model_text": self.text_model,
            "model_tts": self.tts_model,
            "tts_voice": self.tts_voice or "style-default",
        }


@dataclass(slots=True)
class EchoPathsConfig:
    """Runtime configuration for one narration session.

    Attributes:
        output_dir: Output directory for generated artifacts.
        provider_text: Outline and narrative provider identifier.
        provider_tts: Speech provider identifier.
        model_text: Outline and narrative model identifier.
        model_tts: Speech model identifier.
        tts_voice: Optional voice override; the story style picks one otherwise.
        api_key: Optional API key for provider calls.
        lookahead_segments: Segments kept buffered ahead of playback.
        text_timeout_seconds: Deadline of the narrative text stage.
        audio_timeout_seconds: Deadline of the speech stage.
        outline_timeout_seconds: Deadline of outline planning before filler beats are used.
        context_chars: Trailing story characters handed to the narrator.
        segment_seconds: Target narration length of one segment.
        words_per_minute: Narration pace used to size segments.
        gap_policy: What happens to a segment index whose background production failed.
        max_segment_attempts: Attempts per index under the `retry` gap policy.
        playback_speed: Real-time factor of the simulated listener (0 plays instantly).
        history_path: Saved trip history file.
        runtime_sources: Optional runtime source overrides injected by CLI.
        extra: Additional metadata for future extensions.
    """

    output_dir: Path = Path("out")
    provider_text: str = "openai"
    provider_tts: str = "openai"
    model_text: str = _DEFAULT_TEXT_MODEL
    model_tts: str = _DEFAULT_TTS_MODEL
    tts_voice: str | None = None
    api_key: str | None = None
    lookahead_segments: int = 3
    text_timeout_seconds: float = 60.0
    audio_timeout_seconds: float = 100.0
    outline_timeout_seconds: float = 60.0
    context_chars: int = 3000
    segment_seconds: int = 60
    words_per_minute: int = 145
    gap_policy: GapPolicy = GapPolicy.RETRY
    max_segment_attempts: int = 3
    playback_speed: float = 0.0
    history_path: Path = field(default_factory=lambda: Path.home() / ".echopaths" / "trips.json")
    runtime_sources: RuntimeConfigSources = field(default_factory=RuntimeConfigSources)
    extra: dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        """Validate configuration values before a session starts."""

        self._validate_provider_id(self.provider_text, "provider_text")
        self._validate_provider_id(self.provider_tts, "provider_tts")
        self._require_non_empty(self.model_text, "model_text")
        self._require_non_empty(self.model_tts, "model_tts")
        for field_name in (
            "lookahead_segments",
            "context_chars",
            "segment_seconds",
            "words_per_minute",
            "max_segment_attempts",
        ):
            if getattr(self, field_name) <= 0:
                raise ValueError(f"`{field_name}` must be a positive integer.")
        for field_name in (
            "text_timeout_seconds",
            "audio_timeout_seconds",
            "outline_timeout_seconds",
        ):
            if getattr(self, field_name) <= 0:
                raise ValueError(f"`{field_name}` must be a positive number of seconds.")
        if self.playback_speed < 0:
            raise ValueError("`playback_speed` must not be negative.")

    def resolved_provider_runtime(
        self, sources: RuntimeConfigSources | None = None
    ) -> ProviderRuntimeConfig:
        """Resolve provider and model settings with deterministic source precedence.

        Precedence for each key is:
        `cli` > `secure` > `env` > config field default.
        """

        resolved_sources = sources if sources is not None else self.runtime_sources

        def resolve(key: str, default_value: str | None, env_key: str | None = None) -> str | None:
            return self._resolve_runtime_value(
                key=key,
                env_key=env_key or f"{_ENV_PREFIX}{key.upper()}",
                default_value=default_value,
                sources=resolved_sources,
            )

        resolved = ProviderRuntimeConfig(
            text_provider=resolve("provider_text", self.provider_text) or "",
            tts_provider=resolve("provider_tts", self.provider_tts) or "",
            text_model=resolve("model_text", self.model_text) or "",
            tts_model=resolve("model_tts", self.model_tts) or "",
            tts_voice=resolve("tts_voice", self.tts_voice),
            api_key=resolve("api_key", self.api_key, env_key="OPENAI_API_KEY"),
        )
        self._validate_provider_id(resolved.text_provider, "provider_text")
        self._validate_provider_id(resolved.tts_provider, "provider_tts")
        self._require_non_empty(resolved.text_model, "model_text")
        self._require_non_empty(resolved.tts_model, "model_tts")
        return resolved

    @staticmethod
    def _resolve_runtime_value(
        key: str,
        env_key: str,
        default_value: str | None,
        sources: RuntimeConfigSources,
    ) -> str | None:
        """Resolve a runtime value from sources in deterministic precedence order."""

        for mapping, lookup_key in (
            (sources.cli, key),
            (sources.secure, key),
            (sources.env, env_key),
        ):
            if lookup_key in mapping:
                value = normalize_optional_string(mapping.get(lookup_key))
                if value is not None:
                    return value
        return normalize_optional_string(default_value)

    @staticmethod
    def _validate_provider_id(provider_id: str, field_name: str) -> None:
        """Validate provider identifiers against currently supported providers."""

        if provider_id not in _SUPPORTED_PROVIDER_IDS:
            supported = ", ".join(sorted(_SUPPORTED_PROVIDER_IDS))
            raise ValueError(
                f"Unsupported `{field_name}` value `{provider_id}`; supported: {supported}."
            )

    @staticmethod
    def _require_non_empty(value: str, field_name: str) -> None:
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"`{field_name}` must be a non-empty string.")


class ConfigLoader:
    """Factory methods for creating `EchoPathsConfig` from external sources."""

    _STRING_KEYS = (
        "provider_text",
        "provider_tts",
        "model_text",
        "model_tts",
        "tts_voice",
        "api_key",
    )
    _PATH_KEYS = ("output_dir", "history_path")
    _INT_KEYS = (
        "lookahead_segments",
        "context_chars",
        "segment_seconds",
        "words_per_minute",
        "max_segment_attempts",
    )
    _FLOAT_KEYS = (
        "text_timeout_seconds",
        "audio_timeout_seconds",
        "outline_timeout_seconds",
        "playback_speed",
    )
    _SUPPORTED_YAML_KEYS = frozenset(
        (*_STRING_KEYS, *_PATH_KEYS, *_INT_KEYS, *_FLOAT_KEYS, "gap_policy", "extra")
    )
    _RUNTIME_ENV_KEYS = frozenset(
        {
            "ECHOPATHS_PROVIDER_TEXT",
            "ECHOPATHS_PROVIDER_TTS",
            "ECHOPATHS_MODEL_TEXT",
            "ECHOPATHS_MODEL_TTS",
            "ECHOPATHS_TTS_VOICE",
            "OPENAI_API_KEY",
        }
    )

    @staticmethod
    def from_yaml(path: Path) -> EchoPathsConfig:
        """Create a validated config from a YAML file."""

        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ValueError(f"YAML config `{path}` could not be parsed: {exc}") from exc
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` must contain a top-level mapping/object.")

        source_label = f"YAML `{path}`"
        unknown = sorted(set(payload).difference(ConfigLoader._SUPPORTED_YAML_KEYS))
        if unknown:
            raise ValueError(f"{source_label} includes unsupported key(s): {', '.join(unknown)}.")
        return ConfigLoader._build_config(payload, source_label)

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> EchoPathsConfig:
        """Create a validated config from `ECHOPATHS_*` environment variables."""

        env_map: Mapping[str, str] = os.environ if env is None else env
        payload: dict[str, Any] = {}
        for key in (
            *ConfigLoader._STRING_KEYS,
            *ConfigLoader._PATH_KEYS,
            *ConfigLoader._INT_KEYS,
            *ConfigLoader._FLOAT_KEYS,
            "gap_policy",
        ):
            env_key = "OPENAI_API_KEY" if key == "api_key" else f"{_ENV_PREFIX}{key.upper()}"
            value = normalize_optional_string(env_map.get(env_key))
            if value is not None:
                payload[key] = value

        config = ConfigLoader._build_config(payload, "Environment")
        config.runtime_sources = RuntimeConfigSources(
            env={
                key: value
                for key, value in env_map.items()
                if key in ConfigLoader._RUNTIME_ENV_KEYS
                and normalize_optional_string(value) is not None
            }
        )
        return config

    @staticmethod
    def _build_config(payload: Mapping[str, Any], source_label: str) -> EchoPathsConfig:
        """Build a validated config from a normalized mapping payload."""

        values: dict[str, Any] = {}
        for key in ConfigLoader._STRING_KEYS:
            value = normalize_optional_string(payload.get(key))
            if value is not None:
                values[key] = value
        for key in ConfigLoader._PATH_KEYS:
            value = normalize_optional_string(payload.get(key))
            if value is not None:
                values[key] = Path(value).expanduser()
        for key in ConfigLoader._INT_KEYS:
            if key in payload:
                values[key] = ConfigLoader._positive_int(payload[key], key, source_label)
        for key in ConfigLoader._FLOAT_KEYS:
            if key in payload:
                try:
                    values[key] = parse_non_negative_float(payload[key], key)
                except ValueError as exc:
                    raise ValueError(f"{source_label}: {exc}") from exc
        if "gap_policy" in payload:
            try:
                values["gap_policy"] = parse_enum_token(
                    payload["gap_policy"], GapPolicy, "gap_policy"
                )
            except ValueError as exc:
                raise ValueError(f"{source_label}: {exc}") from exc
        if "extra" in payload:
            values["extra"] = ConfigLoader._string_map(payload["extra"], "extra", source_label)

        config = EchoPathsConfig(**values)
        config.validate()
        return config

    @staticmethod
    def _positive_int(raw_value: Any, key: str, source_label: str) -> int:
        """Parse a positive integer field; booleans are rejected."""

        if isinstance(raw_value, bool):
            raise ValueError(f"{source_label} field `{key}` must be a positive integer.")
        try:
            parsed = int(str(raw_value).strip())
        except ValueError as exc:
            raise ValueError(f"{source_label} field `{key}` must be a positive integer.") from exc
        if parsed <= 0:
            raise ValueError(f"{source_label} field `{key}` must be a positive integer.")
        return parsed

    @staticmethod
    def _string_map(raw: Any, key: str, source_label: str) -> dict[str, str]:
        """Read an optional mapping with non-empty string keys and values."""

        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise ValueError(f"{source_label} field `{key}` must be a mapping/object.")

        normalized: dict[str, str] = {}
        for raw_key, raw_value in raw.items():
            key_value = normalize_optional_string(raw_key)
            value_value = normalize_optional_string(raw_value)
            if key_value is None:
                raise ValueError(f"{source_label} field `{key}` contains a blank key.")
            if value_value is None:
                raise ValueError(
                    f"{source_label} field `{key}` contains blank value for `{key_value}`."
                )
            normalized[key_value] = value_value
        return normalized
