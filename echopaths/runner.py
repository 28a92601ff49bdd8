"""Narration run orchestration for EchoPaths.

Responsibilities:
- Wire configuration, providers, session, scheduler and playback for one route.
- Persist segment artifacts, the merged story and a session summary.
- Record freshly planned outlines in the trip history for later replay.

Key types:
- `NarrationRunner`: orchestration facade used by the CLI.
- `NarrationResult`: summary of one narration run.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from .audio.merger import AudioMerger
from .audio.pcm import encode_wav
from .config import EchoPathsConfig, ProviderRuntimeConfig
from .errors import StoryStageError
from .io.storage import ArtifactStore
from .io.trip_history import TripHistoryStore, route_to_payload
from .models.datatypes import Outline, RouteDetails, SavedTrip, StorySegment
from .provider_factory import ProviderFactory
from .story.outline import OutlinePlanner, calculate_total_segments
from .story.playback import PlaybackDriver, PlaybackReport
from .story.producer import SegmentProducer
from .story.scheduler import SegmentFailure
from .story.session import SessionState, StorySession
from .telemetry.logger import RunLogger


@dataclass(slots=True)
class NarrationResult:
    """Outcome of one narrated route.

    Attributes:
        output_dir: Root directory of the written artifacts.
        merged_audio_path: Concatenated story WAV.
        session_path: `session.json` summary.
        outline: Outline used for the story.
        total_segments: Planned number of segments.
        played: Segment indices handed to the listener, in order.
        skipped: Abandoned segment indices skipped during playback.
        failures: Background production failures.
        completed: Whether playback reached the last planned segment.
        trip_id: Saved trip identifier, when the outline was recorded or replayed.
    """

    output_dir: Path
    merged_audio_path: Path
    session_path: Path
    outline: Outline
    total_segments: int
    played: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failures: list[SegmentFailure] = field(default_factory=list)
    completed: bool = False
    trip_id: str | None = None


class NarrationRunner:
    """Coordinate one narration session from route to written story."""

    def __init__(
        self,
        run_logger: RunLogger | None = None,
        status_callback: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize optional runtime logging and status reporting hooks."""

        self._run_logger = run_logger
        self._status_callback = status_callback

    def create_planner(
        self, config: EchoPathsConfig, runtime: ProviderRuntimeConfig
    ) -> OutlinePlanner:
        provider = ProviderFactory.create_outline_provider(
            runtime.text_provider,
            runtime.text_model,
            api_key=runtime.api_key,
            request_timeout_seconds=config.outline_timeout_seconds,
        )
        return OutlinePlanner(
            provider,
            timeout_seconds=config.outline_timeout_seconds,
            run_logger=self._run_logger,
        )

    def create_producer(
        self, config: EchoPathsConfig, runtime: ProviderRuntimeConfig
    ) -> SegmentProducer:
        text_generator = ProviderFactory.create_text_generator(
            runtime.text_provider,
            runtime.text_model,
            api_key=runtime.api_key,
            words_per_minute=config.words_per_minute,
            segment_seconds=config.segment_seconds,
            request_timeout_seconds=config.text_timeout_seconds,
        )
        audio_synthesizer = ProviderFactory.create_audio_synthesizer(
            runtime.tts_provider,
            runtime.tts_model,
            api_key=runtime.api_key,
            request_timeout_seconds=config.audio_timeout_seconds,
        )
        return SegmentProducer(
            text_generator,
            audio_synthesizer,
            text_timeout_seconds=config.text_timeout_seconds,
            audio_timeout_seconds=config.audio_timeout_seconds,
            voice_override=runtime.tts_voice,
            run_logger=self._run_logger,
        )

    async def plan_outline(self, config: EchoPathsConfig, route: RouteDetails) -> Outline:
        """Plan and return the outline for a route without narrating it."""

        config.validate()
        route.validate()
        runtime = config.resolved_provider_runtime()
        planner = self.create_planner(config, runtime)
        total_segments = calculate_total_segments(route.duration_seconds, config.segment_seconds)
        return await planner.plan(route, total_segments)

    async def narrate(
        self,
        config: EchoPathsConfig,
        route: RouteDetails | None = None,
        trip_id: str | None = None,
    ) -> NarrationResult:
        """Narrate a new route, or replay a saved trip's outline, end to end."""

        config.validate()
        runtime = config.resolved_provider_runtime()
        history = TripHistoryStore(config.history_path)

        outline: Outline | None = None
        if trip_id is not None:
            saved = self._load_saved_trip(history, trip_id)
            route, outline = saved.route, saved.outline
        if route is None:
            raise StoryStageError(
                stage="route",
                detail="A route or a saved trip id is required.",
                hint="Pass `--from`, `--to` and `--duration`, or `--trip <id>`.",
            )

        recorded: list[SavedTrip] = []

        def record_trip(started_route: RouteDetails, planned: Outline) -> None:
            recorded.append(history.save(started_route, planned))

        session = StorySession(
            self.create_planner(config, runtime),
            self.create_producer(config, runtime),
            lookahead=config.lookahead_segments,
            gap_policy=config.gap_policy,
            max_segment_attempts=config.max_segment_attempts,
            context_chars=config.context_chars,
            segment_seconds=config.segment_seconds,
            on_generation_started=record_trip,
            run_logger=self._run_logger,
        )
        session.sign_in("local")
        if outline is None:
            session.begin_planning()
        self._report_status("Starting story session...")

        store = ArtifactStore(config.output_dir)
        try:
            if not await session.start_story(route, outline):
                raise session.last_error or StoryStageError(
                    stage="session",
                    detail=session.error_message or "The first segment could not be produced.",
                )
            if session.scheduler is None:
                raise RuntimeError("Story session became playable without a buffer scheduler.")
            driver = PlaybackDriver(
                session.store,
                session.scheduler,
                sink=lambda segment: self._write_segment(store, segment),
                playback_speed=config.playback_speed,
                run_logger=self._run_logger,
            )
            report = await driver.play()
            story = session.store.snapshot()
            failures = list(session.scheduler.failures)
        finally:
            if session.state >= SessionState.PLANNING:
                await session.reset()

        merged_path = AudioMerger().merge(
            [segment for segment in story.segments if segment.index in report.played],
            config.output_dir / "story.wav",
        )
        result = NarrationResult(
            output_dir=config.output_dir,
            merged_audio_path=merged_path,
            session_path=config.output_dir / "session.json",
            outline=story.outline,
            total_segments=story.total_segments_estimate,
            played=list(report.played),
            skipped=list(report.skipped),
            failures=failures,
            completed=report.completed,
            trip_id=trip_id if trip_id is not None else (recorded[0].trip_id if recorded else None),
        )
        store.save_json(Path("session.json"), self._session_payload(route, runtime, result, report))
        return result

    def _load_saved_trip(self, history: TripHistoryStore, trip_id: str) -> SavedTrip:
        try:
            saved = history.get(trip_id)
        except ValueError as exc:
            raise StoryStageError(
                stage="history",
                detail=str(exc),
                hint="Delete or repair the trip history file.",
            ) from exc
        if saved is None:
            raise StoryStageError(
                stage="history",
                detail=f"Saved trip `{trip_id}` was not found.",
                hint="Run `echopaths history list` to see saved trips.",
            )
        return saved

    def _write_segment(self, store: ArtifactStore, segment: StorySegment) -> None:
        stem = store.segment_stem(segment.index)
        store.save_text(stem.with_suffix(".txt"), segment.text + "\n")
        store.save_audio(stem.with_suffix(".wav"), encode_wav(segment.audio))
        if self._status_callback is not None:
            self._status_callback(f"Playing segment {segment.index}")

    def _report_status(self, message: str) -> None:
        if self._status_callback is not None:
            self._status_callback(message)

    @staticmethod
    def _session_payload(
        route: RouteDetails,
        runtime: ProviderRuntimeConfig,
        result: NarrationResult,
        report: PlaybackReport,
    ) -> dict[str, object]:
        return {
            "route": route_to_payload(route),
            "outline": list(result.outline),
            "total_segments": result.total_segments,
            "played": list(report.played),
            "skipped": list(report.skipped),
            "completed": report.completed,
            "trip_id": result.trip_id,
            "merged_audio": str(result.merged_audio_path),
            "failures": [
                {
                    "index": failure.index,
                    "attempt": failure.attempt,
                    "stage": failure.stage,
                    "error_type": failure.error_type,
                    "detail": failure.detail,
                }
                for failure in result.failures
            ],
            "providers": runtime.as_session_metadata(),
        }
