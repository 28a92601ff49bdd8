"""Input/output components for EchoPaths.

This package contains artifact storage and saved trip history used by the CLI.
"""

from .storage import ArtifactStore
from .trip_history import TripHistoryStore

__all__ = ["ArtifactStore", "TripHistoryStore"]
