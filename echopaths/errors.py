"""Domain exceptions for story generation stages and CLI diagnostics."""

from __future__ import annotations


class StoryStageError(RuntimeError):
    """Raised when a specific story generation stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped story error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint


class PlanningError(StoryStageError):
    """Outline planning failed; callers degrade to a filler outline."""

    def __init__(self, detail: str, hint: str | None = None) -> None:
        super().__init__(stage="outline", detail=detail, hint=hint)


class GenerationError(StoryStageError):
    """Narrative text generation failed for one segment."""

    def __init__(self, detail: str, *, index: int, hint: str | None = None) -> None:
        super().__init__(stage="text", detail=detail, hint=hint)
        self.index = index


class SynthesisError(StoryStageError):
    """Speech synthesis returned no usable audio for one segment."""

    def __init__(self, detail: str, *, index: int | None = None, hint: str | None = None) -> None:
        super().__init__(stage="audio", detail=detail, hint=hint)
        self.index = index


class TimedOut(StoryStageError):
    """A text or audio stage exceeded its deadline."""

    def __init__(self, *, stage: str, index: int, timeout_seconds: float) -> None:
        label = "Text generation" if stage == "text" else "Audio generation"
        super().__init__(
            stage=stage,
            detail=f"{label} timed out for segment {index} after {timeout_seconds:g}s.",
            hint="Retry the route, or raise the stage timeout in the config file.",
        )
        self.index = index
        self.timeout_seconds = timeout_seconds
