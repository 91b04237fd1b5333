"""Data models for playback sessions."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from play_soundfile.errors import PlaybackError


class PlaybackOptions(BaseModel):
    """Per-call player settings. Keys a platform cannot honor are ignored."""

    model_config = ConfigDict(extra="allow")

    volume: float | int | None = Field(None, description="0.0-1.0, passed through to afplay only")


class SessionState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    KILLED = "killed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.FAILED, SessionState.KILLED)


class PlaybackResult(BaseModel):
    """Outcome delivered once per session to its completion callback."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    session_id: str
    success: bool
    state: SessionState
    error: PlaybackError | None = Field(None, exclude=True)

    @property
    def error_message(self) -> str | None:
        return str(self.error) if self.error is not None else None
