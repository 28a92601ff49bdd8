"""Prompt template library for outline and narrative generation.

Responsibilities:
- Centralize prompt construction for the outline and per-segment narration calls.
- Keep style guidance deterministic per story style tag.
"""

from __future__ import annotations

from ..models.datatypes import RouteDetails, StoryStyle

_STYLE_INSTRUCTIONS = {
    StoryStyle.NOIR: (
        "Style: Noir Thriller. Gritty, cynical, atmospheric. Use inner monologue. "
        "The traveler is a detective or someone with a troubled past. The city is a "
        "character itself, dark, rainy, hiding secrets."
    ),
    StoryStyle.CHILDREN: (
        "Style: Children's Story. Whimsical, magical, full of wonder and gentle humor. "
        "The world is bright and alive; animate inanimate objects."
    ),
    StoryStyle.HISTORICAL: (
        "Style: Historical Epic. Grandiose, dramatic, and timeless. Treat the journey "
        "as a significant pilgrimage."
    ),
    StoryStyle.FANTASY: (
        "Style: Fantasy Adventure. Heroic, mystical, and epic. The real world is just a "
        "veil over a magical realm."
    ),
}
_DEFAULT_STYLE_INSTRUCTION = "Style: Immersive, 'in the moment' narration."


class PromptLibrary:
    """Build prompt strings for supported generation tasks."""

    def style_instruction(self, style: StoryStyle) -> str:
        return _STYLE_INSTRUCTIONS.get(style, _DEFAULT_STYLE_INSTRUCTION)

    def outline_system_prompt(self) -> str:
        """Return system prompt for strict JSON outline output."""

        return (
            "You are an expert storyteller planning serialized audio fiction. "
            'Return only a JSON object of the form {"chapters": ["...", "..."]}.'
        )

    def outline_prompt(self, route: RouteDetails, total_segments: int) -> str:
        """Return the outline request for a route and exact chapter count."""

        stops = (
            f"Intermediate stops: {', '.join(route.waypoints)}.\n" if route.waypoints else ""
        )
        return (
            f"Write an outline for a story that is exactly {total_segments} chapters long.\n\n"
            "Journey Details:\n"
            f"From: {route.start_address}\n"
            f"To: {route.end_address}\n"
            f"{stops}"
            f"Travel mode: {route.travel_mode.value.lower()}\n"
            f"Duration: {route.display_duration()}\n\n"
            f"{self.style_instruction(route.story_style)}\n\n"
            "Ensure the story arc includes the intermediate stops naturally as milestones "
            "in the journey.\n"
            f"Each of the {total_segments} entries is a one or two sentence chapter summary."
        )

    def segment_system_prompt(self) -> str:
        return (
            "You are a narrator writing one chapter of an immersive travel story that is "
            "read aloud while the listener travels. Output only the raw narrative text."
        )

    def segment_prompt(
        self,
        route: RouteDetails,
        index: int,
        total_segments: int,
        beat: str,
        recent_context: str,
        target_words: int,
    ) -> str:
        """Return the narration request for one segment."""

        stops = (
            f"Waypoints to keep in mind: {', '.join(route.waypoints)}.\n"
            if route.waypoints
            else ""
        )
        context = recent_context if recent_context else "(this is the opening chapter)"
        return (
            f"Generate segment {index} of {total_segments} for an immersive travel narrative.\n\n"
            f"Route: {route.start_address} to {route.end_address}, "
            f"{route.travel_mode.value.lower()}.\n"
            f"{stops}\n"
            f"{self.style_instruction(route.story_style)}\n"
            f"Current Goal: {beat}\n"
            f"Story so far (most recent text): {context}\n\n"
            f"Write about {target_words} words. Focus on the sensory experience of movement. "
            "Continue seamlessly from the story so far without recapping it."
        )
