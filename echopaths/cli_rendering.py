"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
outline listings, saved trip rows, and narration summaries.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import NoReturn

import typer

from .errors import StoryStageError
from .models.datatypes import Outline, SavedTrip
from .runner import NarrationResult


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, StoryStageError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def echo_outline(outline: Outline) -> None:
    """Print numbered outline beats."""

    for index, beat in enumerate(outline, start=1):
        typer.echo(f"{index}. {beat}")


def echo_trip_list(trips: list[SavedTrip]) -> None:
    """Print one compact row per saved trip, newest first."""

    if not trips:
        typer.echo("No saved trips.")
        return
    for trip in trips:
        saved_at = datetime.fromtimestamp(trip.timestamp_ms / 1000, tz=timezone.utc)
        typer.echo(
            f"{trip.trip_id}  {saved_at:%Y-%m-%d %H:%M}  "
            f"{trip.route.start_address} -> {trip.route.end_address}  "
            f"({trip.route.travel_mode.value.lower()}, {trip.route.display_duration()}, "
            f"{trip.route.story_style.value.lower()}, {len(trip.outline)} segments)"
        )


def echo_narration_summary(result: NarrationResult) -> None:
    """Print the outcome of a narration run."""

    typer.echo(f"Segments played: {len(result.played)}/{result.total_segments}")
    if result.skipped:
        typer.echo(f"Segments skipped: {', '.join(str(index) for index in result.skipped)}")
    for failure in result.failures:
        typer.echo(
            f"Segment {failure.index} attempt {failure.attempt} failed at stage "
            f"`{failure.stage}`: {failure.detail}"
        )
    if not result.completed:
        typer.echo("Playback stopped before the last planned segment.")
    typer.echo(f"Merged audio: {result.merged_audio_path}")
    typer.echo(f"Session: {result.session_path}")
    if result.trip_id:
        typer.echo(f"Saved trip: {result.trip_id}")
