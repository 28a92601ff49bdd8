"""Saved trip history.

Responsibilities:
- Persist the route and outline published when story generation starts.
- List, fetch and delete saved trips so a story can be replayed later.

Key types:
- `TripHistoryStore`: JSON-file backed history, newest trip first.
"""

from __future__ import annotations

import json
import time
import uuid
from pathlib import Path
from typing import Any

from ..models.datatypes import (
    Outline,
    RouteDetails,
    SavedTrip,
    StoryStyle,
    TravelMode,
)

_HISTORY_VERSION = 1


def route_to_payload(route: RouteDetails) -> dict[str, Any]:
    """Serialize a route into a JSON-compatible mapping."""

    return {
        "start_address": route.start_address,
        "end_address": route.end_address,
        "waypoints": list(route.waypoints),
        "travel_mode": route.travel_mode.value,
        "duration_seconds": route.duration_seconds,
        "duration_text": route.duration_text,
        "distance_text": route.distance_text,
        "story_style": route.story_style.value,
    }


def route_from_payload(payload: dict[str, Any]) -> RouteDetails:
    """Deserialize a route mapping written by `route_to_payload`."""

    try:
        return RouteDetails(
            start_address=str(payload["start_address"]),
            end_address=str(payload["end_address"]),
            travel_mode=TravelMode(str(payload["travel_mode"])),
            duration_seconds=int(payload["duration_seconds"]),
            distance_text=str(payload.get("distance_text", "")),
            story_style=StoryStyle(str(payload.get("story_style", StoryStyle.IMMERSIVE.value))),
            waypoints=tuple(str(stop) for stop in payload.get("waypoints", [])),
            duration_text=str(payload.get("duration_text", "")),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"Saved route is malformed: {exc}") from exc


class TripHistoryStore:
    """JSON-file backed trip history, newest first."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def list_trips(self) -> list[SavedTrip]:
        if not self.path.exists():
            return []
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Trip history file `{self.path}` is not valid JSON.") from exc
        if not isinstance(payload, dict) or not isinstance(payload.get("trips"), list):
            raise ValueError(f"Trip history file `{self.path}` has an unexpected layout.")
        return [self._trip_from_payload(item) for item in payload["trips"]]

    def get(self, trip_id: str) -> SavedTrip | None:
        return next((trip for trip in self.list_trips() if trip.trip_id == trip_id), None)

    def save(self, route: RouteDetails, outline: Outline) -> SavedTrip:
        """Prepend a new saved trip and return it."""

        trip = SavedTrip(
            trip_id=uuid.uuid4().hex[:9],
            route=route,
            outline=tuple(outline),
            timestamp_ms=int(time.time() * 1000),
        )
        self._write([trip, *self.list_trips()])
        return trip

    def delete(self, trip_id: str) -> bool:
        """Delete a saved trip and report whether it existed."""

        trips = self.list_trips()
        remaining = [trip for trip in trips if trip.trip_id != trip_id]
        if len(remaining) == len(trips):
            return False
        self._write(remaining)
        return True

    def _write(self, trips: list[SavedTrip]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": _HISTORY_VERSION,
            "trips": [self._trip_to_payload(trip) for trip in trips],
        }
        self.path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True),
            encoding="utf-8",
        )

    @staticmethod
    def _trip_to_payload(trip: SavedTrip) -> dict[str, Any]:
        return {
            "id": trip.trip_id,
            "route": route_to_payload(trip.route),
            "outline": list(trip.outline),
            "timestamp_ms": trip.timestamp_ms,
        }

    @staticmethod
    def _trip_from_payload(payload: Any) -> SavedTrip:
        if not isinstance(payload, dict):
            raise ValueError("Saved trip entry must be a mapping.")
        outline = payload.get("outline", [])
        if not isinstance(outline, list):
            raise ValueError("Saved trip outline must be a list.")
        return SavedTrip(
            trip_id=str(payload.get("id", "")),
            route=route_from_payload(payload.get("route", {})),
            outline=tuple(str(beat) for beat in outline),
            timestamp_ms=int(payload.get("timestamp_ms", 0)),
        )
