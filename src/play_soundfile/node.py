"""Flow node that plays a sound file for each inbound message.

The node is the caller of the session manager: it decides which file to
play, whether a new playback may start, and where results go. A message is
forwarded downstream only after its playback succeeded; failures go to the
error channel instead.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Callable

from play_soundfile.config import NodeConfig
from play_soundfile.errors import SessionConflictError
from play_soundfile.models import PlaybackResult
from play_soundfile.sessions import PlaybackSession, PlaybackSessionManager

logger = logging.getLogger(__name__)

Message = dict[str, Any]
SendFn = Callable[[Message], Any]
ErrorFn = Callable[[str, Message], Any]
StatusFn = Callable[[dict[str, str]], Any]

PLAYING_STATUS = {"fill": "green", "shape": "dot", "text": "playing"}
STOP_TOPIC = "stop"


def build_path(directory: str, file: str) -> str:
    """Join a configured directory and file name into a normalized absolute path."""
    path = os.path.normpath(os.sep + directory + os.sep + file)
    # normpath keeps a doubled leading separator
    return os.sep + path.lstrip(os.sep)


def _ignore(*args: Any) -> None:
    pass


class SoundfileNode:
    """Plays the configured sound file whenever a message arrives."""

    def __init__(
        self,
        manager: PlaybackSessionManager,
        config: NodeConfig,
        send: SendFn | None = None,
        error: ErrorFn | None = None,
        status: StatusFn | None = None,
    ) -> None:
        self._manager = manager
        self._cfg = config
        self._send = send or _ignore
        self._error = error or _ignore
        self._status = status or _ignore

    @property
    def name(self) -> str:
        return self._cfg.name

    @property
    def manager(self) -> PlaybackSessionManager:
        return self._manager

    @property
    def config(self) -> NodeConfig:
        return self._cfg

    async def receive(self, msg: Message) -> PlaybackSession | None:
        """Handle one inbound message. Returns the started session, if any."""
        if msg.get("topic") == STOP_TOPIC:
            self.stop()
            return None

        if not self._cfg.allow_multiple and self._manager.is_busy():
            logger.debug("Playback active, dropping message %s", msg.get("_msgid"))
            return None

        directory = msg.get("directory", self._cfg.directory)
        file = msg.get("file", self._cfg.file)
        if not isinstance(directory, str) or not isinstance(file, str):
            self._error(f"Invalid file or directory: {directory!r}, {file!r}", msg)
            return None

        file_path = build_path(directory, file)
        if not os.path.isfile(file_path):
            self._error(f"File not found: {file_path}", msg)
            return None

        self._status(PLAYING_STATUS)
        session_id = msg.get("_msgid")
        try:
            return await self._start(file_path, msg, session_id)
        except SessionConflictError:
            # Same message id replayed while its first playback is running
            return await self._start(file_path, msg, None)

    def stop(self) -> None:
        """Kill every playback started through this node's manager."""
        self._manager.stop_all()
        self._status({})

    async def close(self) -> None:
        """Stop all playbacks and wait for their players to exit."""
        self.stop()
        await self._manager.wait_idle()

    async def _start(self, file_path: str, msg: Message, session_id: str | None) -> PlaybackSession:
        return await self._manager.start(
            file_path,
            self._cfg.options,
            on_complete=lambda result: self._on_complete(msg, result),
            session_id=session_id,
        )

    def _on_complete(self, msg: Message, result: PlaybackResult) -> None:
        if not self._manager.is_busy():
            self._status({})
        if result.success:
            self._send(msg)
        else:
            self._error(f"Error playing back file: {result.error_message}", msg)
