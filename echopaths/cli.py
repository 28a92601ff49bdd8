"""Command-line interface for EchoPaths.

Responsibilities:
- Expose user-facing commands for narrating routes and managing saved trips.
- Convert CLI arguments into `EchoPathsConfig` and `RouteDetails` values.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Annotated

import typer

from .cli_rendering import (
    echo_narration_summary,
    echo_outline,
    echo_trip_list,
    exit_with_command_error,
)
from .config import ConfigLoader, EchoPathsConfig, RuntimeConfigSources
from .credentials import create_credential_store
from .errors import StoryStageError
from .io.trip_history import TripHistoryStore
from .models.datatypes import RouteDetails, StoryStyle, TravelMode
from .parsing import normalize_optional_string, parse_enum_token
from .runner import NarrationRunner
from .telemetry.logger import RunLogger

app = typer.Typer(
    name="echopaths",
    no_args_is_help=True,
    help="EchoPaths CLI: narrate a route as a buffered audio story.",
)
history_app = typer.Typer(no_args_is_help=True, help="Manage saved trips.")
app.add_typer(history_app, name="history")


def _load_yaml_config(config_path: Path | None) -> EchoPathsConfig:
    """Load a YAML config file when requested and map failures to stage errors."""

    if config_path is None:
        return EchoPathsConfig()

    try:
        return ConfigLoader.from_yaml(config_path)
    except FileNotFoundError as exc:
        raise StoryStageError(
            stage="config",
            detail=f"Config file not found: `{config_path}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise StoryStageError(
            stage="config",
            detail=f"Invalid config file `{config_path}`: {exc}",
            hint="Fix config schema/values and rerun.",
        ) from exc


def _resolve_command_config(
    config_file: Path | None,
    out: Path | None = None,
    api_key: str | None = None,
    model_text: str | None = None,
    model_tts: str | None = None,
    tts_voice: str | None = None,
    playback_speed: float | None = None,
) -> EchoPathsConfig:
    """Resolve effective command config from YAML defaults and explicit CLI overrides."""

    config = _load_yaml_config(config_file)
    if out is not None:
        config.output_dir = out
    if playback_speed is not None:
        config.playback_speed = playback_speed

    runtime_cli_values: dict[str, str] = {}
    for key, value in (
        ("api_key", api_key),
        ("model_text", model_text),
        ("model_tts", model_tts),
        ("tts_voice", tts_voice),
    ):
        normalized = normalize_optional_string(value)
        if normalized is not None:
            runtime_cli_values[key] = normalized

    runtime_secure_values: dict[str, str] = {}
    stored_api_key = create_credential_store().get_api_key()
    if stored_api_key is not None:
        runtime_secure_values["api_key"] = stored_api_key

    config.runtime_sources = RuntimeConfigSources(
        cli=runtime_cli_values,
        secure=runtime_secure_values,
        env=os.environ,
    )
    try:
        config.validate()
    except ValueError as exc:
        raise StoryStageError(stage="config", detail=str(exc)) from exc
    return config


def _build_route(
    start: str | None,
    end: str | None,
    stops: list[str] | None,
    mode: str,
    duration_seconds: int | None,
    distance: str | None,
    style: str,
) -> RouteDetails:
    """Build and validate a route from command options."""

    if not start or not end or duration_seconds is None:
        raise StoryStageError(
            stage="route",
            detail="`--from`, `--to` and `--duration` are required for a new route.",
            hint="Pass all three options, or replay a saved trip with `--trip <id>`.",
        )
    try:
        route = RouteDetails(
            start_address=start.strip(),
            end_address=end.strip(),
            travel_mode=parse_enum_token(mode, TravelMode, "mode"),
            duration_seconds=duration_seconds,
            distance_text=(distance or "").strip(),
            story_style=parse_enum_token(style, StoryStyle, "style"),
            waypoints=tuple(stop.strip() for stop in stops or [] if stop.strip()),
        )
        route.validate()
    except ValueError as exc:
        raise StoryStageError(
            stage="route",
            detail=str(exc),
            hint="Check the route options and rerun.",
        ) from exc
    return route


@app.command("narrate")
def narrate_command(
    start: Annotated[str | None, typer.Option("--from", help="Start address.")] = None,
    end: Annotated[str | None, typer.Option("--to", help="Destination address.")] = None,
    stops: Annotated[
        list[str] | None,
        typer.Option("--stop", help="Intermediate stop, in order (repeatable, max 5)."),
    ] = None,
    mode: Annotated[str, typer.Option("--mode", help="`walking` or `driving`.")] = "walking",
    duration: Annotated[
        int | None,
        typer.Option("--duration", help="Total travel time in seconds (max 28800)."),
    ] = None,
    distance: Annotated[
        str | None, typer.Option("--distance", help="Display distance, e.g. `4.2 km`.")
    ] = None,
    style: Annotated[
        str,
        typer.Option("--style", help="noir, children, historical, fantasy or immersive."),
    ] = "immersive",
    trip: Annotated[
        str | None, typer.Option("--trip", help="Replay the outline of a saved trip.")
    ] = None,
    config_file: Annotated[
        Path | None, typer.Option("--config", help="Optional YAML config file.")
    ] = None,
    out: Annotated[Path | None, typer.Option("--out", help="Output directory.")] = None,
    api_key: Annotated[
        str | None, typer.Option("--api-key", help="OpenAI API key for this run.")
    ] = None,
    model_text: Annotated[
        str | None, typer.Option("--model-text", help="Outline and narrative model.")
    ] = None,
    model_tts: Annotated[str | None, typer.Option("--model-tts", help="Speech model.")] = None,
    tts_voice: Annotated[
        str | None, typer.Option("--tts-voice", help="Override the style voice.")
    ] = None,
    playback_speed: Annotated[
        float | None,
        typer.Option("--playback-speed", min=0.0, help="Real-time factor; 0 plays instantly."),
    ] = None,
) -> None:
    """Narrate a route as a serialized audio story."""

    try:
        config = _resolve_command_config(
            config_file,
            out=out,
            api_key=api_key,
            model_text=model_text,
            model_tts=model_tts,
            tts_voice=tts_voice,
            playback_speed=playback_speed,
        )
        route = None
        if trip is None:
            route = _build_route(start, end, stops, mode, duration, distance, style)
        runner = NarrationRunner(
            run_logger=RunLogger(),
            status_callback=lambda message: typer.echo(f"[status] {message}"),
        )
        result = asyncio.run(runner.narrate(config, route=route, trip_id=trip))
    except Exception as exc:
        exit_with_command_error("narrate", exc)

    echo_narration_summary(result)


@app.command("outline")
def outline_command(
    start: Annotated[str, typer.Option("--from", help="Start address.")],
    end: Annotated[str, typer.Option("--to", help="Destination address.")],
    duration: Annotated[int, typer.Option("--duration", help="Travel time in seconds.")],
    stops: Annotated[
        list[str] | None, typer.Option("--stop", help="Intermediate stop (repeatable).")
    ] = None,
    mode: Annotated[str, typer.Option("--mode", help="`walking` or `driving`.")] = "walking",
    style: Annotated[str, typer.Option("--style", help="Narrative style.")] = "immersive",
    config_file: Annotated[
        Path | None, typer.Option("--config", help="Optional YAML config file.")
    ] = None,
    api_key: Annotated[
        str | None, typer.Option("--api-key", help="OpenAI API key for this run.")
    ] = None,
    model_text: Annotated[
        str | None, typer.Option("--model-text", help="Outline model.")
    ] = None,
) -> None:
    """Plan and print the story outline of a route."""

    try:
        config = _resolve_command_config(config_file, api_key=api_key, model_text=model_text)
        route = _build_route(start, end, stops, mode, duration, None, style)
        outline = asyncio.run(NarrationRunner(run_logger=RunLogger()).plan_outline(config, route))
    except Exception as exc:
        exit_with_command_error("outline", exc)

    echo_outline(outline)


def _history_store(config_file: Path | None) -> TripHistoryStore:
    return TripHistoryStore(_load_yaml_config(config_file).history_path)


@history_app.command("list")
def history_list_command(
    config_file: Annotated[
        Path | None, typer.Option("--config", help="Optional YAML config file.")
    ] = None,
) -> None:
    """List saved trips, newest first."""

    try:
        trips = _history_store(config_file).list_trips()
    except Exception as exc:
        exit_with_command_error("history list", exc)

    echo_trip_list(trips)


@history_app.command("delete")
def history_delete_command(
    trip_id: Annotated[str, typer.Argument(help="Saved trip id.")],
    config_file: Annotated[
        Path | None, typer.Option("--config", help="Optional YAML config file.")
    ] = None,
) -> None:
    """Delete one saved trip."""

    try:
        removed = _history_store(config_file).delete(trip_id)
    except Exception as exc:
        exit_with_command_error("history delete", exc)

    if not removed:
        exit_with_command_error(
            "history delete",
            StoryStageError(
                stage="history",
                detail=f"Saved trip `{trip_id}` was not found.",
                hint="Run `echopaths history list` to see saved trips.",
            ),
        )
    typer.echo(f"Deleted saved trip {trip_id}.")


@app.command("credentials")
def credentials_command(
    set_api_key: Annotated[
        bool,
        typer.Option("--set-api-key", help="Prompt for and store an OpenAI API key."),
    ] = False,
    clear_api_key: Annotated[
        bool,
        typer.Option("--clear-api-key", help="Remove the stored OpenAI API key."),
    ] = False,
) -> None:
    """Manage securely stored CLI credentials."""

    if set_api_key and clear_api_key:
        exit_with_command_error(
            "credentials",
            StoryStageError(
                stage="credentials",
                detail="`--set-api-key` and `--clear-api-key` cannot be used together.",
                hint="Run one credentials action per command invocation.",
            ),
        )

    credential_store = create_credential_store()
    if set_api_key:
        prompted_api_key = normalize_optional_string(
            typer.prompt(
                "OpenAI API key (hidden input)",
                default="",
                hide_input=True,
                show_default=False,
            )
        )
        if prompted_api_key is None:
            exit_with_command_error(
                "credentials",
                StoryStageError(
                    stage="credentials",
                    detail="No API key entered.",
                    hint="Provide a non-empty API key when using `--set-api-key`.",
                ),
            )
        try:
            credential_store.set_api_key(prompted_api_key)
        except RuntimeError as exc:
            exit_with_command_error(
                "credentials",
                StoryStageError(
                    stage="credentials",
                    detail=f"Failed to store API key securely: {exc}",
                    hint="Install and configure a keyring backend and retry.",
                ),
            )
        typer.echo("API key stored in secure credential storage.")
        return

    if clear_api_key:
        if credential_store.clear_api_key():
            typer.echo("Stored API key cleared from secure credential storage.")
        else:
            typer.echo("No stored API key found in secure credential storage.")
        return

    availability = "available" if credential_store.is_available() else "unavailable"
    status = "present" if credential_store.get_api_key() is not None else "not set"
    typer.echo(f"Secure credential storage: {availability}")
    typer.echo(f"Stored OpenAI API key: {status}")


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
