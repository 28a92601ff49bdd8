"""Top-level package for EchoPaths.

EchoPaths narrates a travel route as a serialized audio story, producing text
and speech segment by segment while earlier segments are already playing. The
main orchestration entry point is `NarrationRunner`; the buffering core lives
in `echopaths.story`.
"""

from .runner import NarrationRunner

__all__ = ["NarrationRunner", "__version__"]

__version__ = "0.1.0"
