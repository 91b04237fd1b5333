"""Playback error taxonomy.

Player and process failures are delivered to callers through the per-session
completion callback, never raised out of ``PlaybackSessionManager.start``.
"""

from __future__ import annotations


class PlaybackError(Exception):
    """Base class for every failure a playback session can report."""


class ResolutionError(PlaybackError):
    """No suitable external player could be located for the host."""

    def __init__(self, message: str, candidates: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.candidates = candidates


class LaunchError(PlaybackError):
    """The player executable could not be started."""


class RuntimeExitError(PlaybackError):
    """The player exited with a non-zero status."""

    def __init__(self, exit_code: int) -> None:
        super().__init__(f"Player exited with code {exit_code}")
        self.exit_code = exit_code


class ProcessError(PlaybackError):
    """An OS-level error occurred on an already running player process."""


class SessionConflictError(ValueError):
    """A session with the same id is still active."""
