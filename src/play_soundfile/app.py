"""Application factory: wires up the session manager and flow node from config."""

from __future__ import annotations

from play_soundfile.config import AppConfig
from play_soundfile.node import ErrorFn, SendFn, SoundfileNode, StatusFn
from play_soundfile.sessions import PlaybackSessionManager


def create_manager(config: AppConfig) -> PlaybackSessionManager:
    """Instantiate a session manager using the configured player."""
    return PlaybackSessionManager(preferred_player=config.player.command)


def create_node(
    config: AppConfig,
    send: SendFn | None = None,
    error: ErrorFn | None = None,
    status: StatusFn | None = None,
    manager: PlaybackSessionManager | None = None,
) -> SoundfileNode:
    """Instantiate the flow node described by ``config.node``."""
    return SoundfileNode(
        manager or create_manager(config),
        config.node,
        send=send,
        error=error,
        status=status,
    )
