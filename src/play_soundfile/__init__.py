"""Play sound files through the host's external audio player."""

from .errors import (
    LaunchError,
    PlaybackError,
    ProcessError,
    ResolutionError,
    RuntimeExitError,
    SessionConflictError,
)
from .models import PlaybackOptions, PlaybackResult, SessionState
from .player import Platform, PlayerRecipe, detect_platform, resolve
from .sessions import PlaybackSession, PlaybackSessionManager

__version__ = "0.1.0"

__all__ = [
    "LaunchError",
    "PlaybackError",
    "PlaybackOptions",
    "PlaybackResult",
    "PlaybackSession",
    "PlaybackSessionManager",
    "Platform",
    "PlayerRecipe",
    "ProcessError",
    "ResolutionError",
    "RuntimeExitError",
    "SessionConflictError",
    "SessionState",
    "detect_platform",
    "resolve",
]
