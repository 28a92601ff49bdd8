"""Story session lifecycle.

Responsibilities:
- Gate the story pipeline behind an explicit, ordered state machine.
- Plan the outline (or replay a saved one) and produce segment 1 on startup.
- Start the buffer scheduler once the story is playable; tear it down on reset.

Key types:
- `SessionState`: ordered lifecycle states.
- `StorySession`: the state machine driving planner, producer, store, scheduler.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Callable

from ..errors import StoryStageError
from ..models.datatypes import AudioStory, Outline, RouteDetails
from ..telemetry.logger import RunLogger
from .outline import OutlinePlanner, calculate_total_segments, fit_outline
from .producer import SegmentProducer
from .scheduler import (
    CONTEXT_CHARS,
    FIRST_BEAT_FALLBACK,
    LOOKAHEAD,
    MAX_SEGMENT_ATTEMPTS,
    BufferScheduler,
    GapPolicy,
)
from .store import StoryStore

GenerationStartedHook = Callable[[RouteDetails, Outline], None]

STATUS_PLANNING_OUTLINE = "Crafting story arc..."
STATUS_RECALLING_OUTLINE = "Recalling story arc..."
STATUS_WRITING_FIRST_SEGMENT = "Writing first chapter..."
STATUS_PREPARING_AUDIO = "Preparing audio stream..."


class SessionState(IntEnum):
    """Ordered lifecycle states of one listening session."""

    AUTH_REQUIRED = 0
    DASHBOARD = 1
    PLANNING = 2
    GENERATING_INITIAL_SEGMENT = 3
    READY_TO_PLAY = 4


class InvalidTransition(RuntimeError):
    """Raised when an action is not allowed in the current session state."""


class StorySession:
    """Drive one listener from sign-in to a playable, self-buffering story."""

    def __init__(
        self,
        planner: OutlinePlanner,
        producer: SegmentProducer,
        lookahead: int = LOOKAHEAD,
        gap_policy: GapPolicy = GapPolicy.RETRY,
        max_segment_attempts: int = MAX_SEGMENT_ATTEMPTS,
        context_chars: int = CONTEXT_CHARS,
        segment_seconds: int = 60,
        on_generation_started: GenerationStartedHook | None = None,
        run_logger: RunLogger | None = None,
    ) -> None:
        self._planner = planner
        self._producer = producer
        self._lookahead = lookahead
        self._gap_policy = gap_policy
        self._max_segment_attempts = max_segment_attempts
        self._context_chars = context_chars
        self._segment_seconds = segment_seconds
        self._on_generation_started = on_generation_started
        self._run_logger = run_logger

        self.store = StoryStore()
        self.state = SessionState.AUTH_REQUIRED
        self.user_id: str | None = None
        self.route: RouteDetails | None = None
        self.outline: Outline | None = None
        self.status_message = ""
        self.error_message: str | None = None
        self.last_error: StoryStageError | None = None
        self.scheduler: BufferScheduler | None = None

    @property
    def story(self) -> AudioStory | None:
        if not self.store.has_story():
            return None
        return self.store.snapshot()

    def sign_in(self, user_id: str) -> None:
        self._require_state(SessionState.AUTH_REQUIRED, action="sign in")
        self.user_id = user_id
        self._transition(SessionState.DASHBOARD)

    async def sign_out(self) -> None:
        await self._clear()
        self.user_id = None
        self._transition(SessionState.AUTH_REQUIRED)

    def begin_planning(self) -> None:
        self._require_state(SessionState.DASHBOARD, action="plan a route")
        self.error_message = None
        self._transition(SessionState.PLANNING)

    async def start_story(self, route: RouteDetails, outline: Outline | None = None) -> bool:
        """Plan the outline, produce segment 1, and start background buffering.

        A supplied `outline` replays a saved trip and skips planning; replay is
        also allowed straight from the dashboard.

        Returns:
            `True` once the session is ready to play, `False` when the initial
            segment failed and the session fell back to planning.
        """

        if self.state not in {SessionState.PLANNING, SessionState.DASHBOARD}:
            raise InvalidTransition(f"Cannot start a story from state {self.state.name}.")
        if self.state is SessionState.DASHBOARD and outline is None:
            raise InvalidTransition("A new route must be planned before its story starts.")
        route.validate()

        await self._clear()
        self.route = route
        self.error_message = None
        self._transition(SessionState.GENERATING_INITIAL_SEGMENT)

        total_segments = calculate_total_segments(route.duration_seconds, self._segment_seconds)
        if outline is None:
            self.status_message = STATUS_PLANNING_OUTLINE
            planned = await self._planner.plan(route, total_segments)
            if self._on_generation_started is not None:
                self._on_generation_started(route, planned)
        else:
            self.status_message = STATUS_RECALLING_OUTLINE
            planned = fit_outline(list(outline), total_segments)
        self.outline = planned
        if self.state is not SessionState.GENERATING_INITIAL_SEGMENT:
            return False

        self.status_message = STATUS_WRITING_FIRST_SEGMENT
        try:
            first_segment = await self._producer.produce(
                route,
                1,
                total_segments,
                planned[0] if planned else FIRST_BEAT_FALLBACK,
                "",
            )
        except StoryStageError as exc:
            self.last_error = exc
            self.error_message = exc.detail
            self.status_message = ""
            if self.state is SessionState.GENERATING_INITIAL_SEGMENT:
                self._transition(SessionState.PLANNING)
            return False
        if self.state is not SessionState.GENERATING_INITIAL_SEGMENT:
            return False

        self.status_message = STATUS_PREPARING_AUDIO
        self.store.seed(total_segments, planned, first_segment)
        self.scheduler = BufferScheduler(
            self.store,
            self._producer,
            route,
            lookahead=self._lookahead,
            gap_policy=self._gap_policy,
            max_segment_attempts=self._max_segment_attempts,
            context_chars=self._context_chars,
            run_logger=self._run_logger,
        )
        self._transition(SessionState.READY_TO_PLAY)
        self.status_message = ""
        self.scheduler.start(playback_position=0)
        return True

    def report_playback_position(self, position: int) -> None:
        """Forward the index now playing to the scheduler while playable."""

        if self.state is not SessionState.READY_TO_PLAY or self.scheduler is None:
            return
        self.scheduler.report_playback_position(position)

    async def reset(self) -> None:
        """Return to the dashboard, discarding route, story and buffering."""

        if self.state < SessionState.PLANNING:
            raise InvalidTransition(f"Cannot reset from state {self.state.name}.")
        await self._clear()
        self.error_message = None
        self._transition(SessionState.DASHBOARD)

    async def _clear(self) -> None:
        if self.scheduler is not None:
            await self.scheduler.stop()
        self.scheduler = None
        self.store.clear()
        self.route = None
        self.outline = None
        self.status_message = ""
        self.last_error = None

    def _require_state(self, expected: SessionState, *, action: str) -> None:
        if self.state is not expected:
            raise InvalidTransition(f"Cannot {action} from state {self.state.name}.")

    def _transition(self, target: SessionState) -> None:
        previous = self.state
        self.state = target
        if self._run_logger is not None and previous is not target:
            self._run_logger.log_transition(previous.name, target.name)
