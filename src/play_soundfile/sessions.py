"""Playback session manager.

Every playback runs as an external player process supervised by a watcher
task on the running asyncio loop. Completion callbacks, ``start`` and
``stop_all`` all execute on that one loop, so the active session table needs
no locking.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Any, Callable

from play_soundfile.errors import (
    LaunchError,
    PlaybackError,
    ProcessError,
    ResolutionError,
    RuntimeExitError,
    SessionConflictError,
)
from play_soundfile.models import PlaybackOptions, PlaybackResult, SessionState
from play_soundfile.player import PlayerRecipe, resolve

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[PlaybackResult], Any]
Resolver = Callable[[], PlayerRecipe]


class PlaybackSession:
    """One in-flight playback and the handle callers use to control it.

    A session that failed before its process spawned has no process, so
    ``kill`` on it does nothing. A kill requested while the process is still
    spawning is remembered and carried out once the process exists.
    """

    def __init__(
        self,
        session_id: str,
        file_path: str,
        on_complete: CompletionCallback | None = None,
    ) -> None:
        self.session_id = session_id
        self.file_path = file_path
        self.state = SessionState.STARTING
        self.process: asyncio.subprocess.Process | None = None
        self.result: PlaybackResult | None = None
        self._on_complete = on_complete
        self._kill_requested = False
        self._finished = asyncio.Event()

    def __repr__(self) -> str:
        return f"<PlaybackSession {self.session_id} {self.state.value} {self.file_path!r}>"

    @property
    def done(self) -> bool:
        return self.state.is_terminal

    @property
    def pid(self) -> int | None:
        return self.process.pid if self.process is not None else None

    def kill(self) -> None:
        """Request forced termination. Returns without waiting for the exit."""
        if self.done or self._kill_requested:
            return
        self._kill_requested = True
        if self.process is None:
            return
        self._signal()

    def _signal(self) -> None:
        assert self.process is not None
        try:
            self.process.kill()
        except ProcessLookupError:
            # Exited between the last loop iteration and now
            return
        logger.debug("Killed player pid %s for session %s", self.process.pid, self.session_id)

    async def wait(self) -> PlaybackResult:
        """Wait until the session reaches a terminal state."""
        await self._finished.wait()
        assert self.result is not None
        return self.result

    def _finish(self, state: SessionState, error: PlaybackError | None = None) -> PlaybackResult | None:
        if self.done:
            return None
        self.state = state
        self.result = PlaybackResult(
            session_id=self.session_id,
            success=error is None,
            state=state,
            error=error,
        )
        self._finished.set()
        return self.result


class PlaybackSessionManager:
    """Starts, tracks and terminates concurrent playback sessions."""

    def __init__(self, resolver: Resolver | None = None, preferred_player: str = "auto") -> None:
        self._resolver = resolver or (lambda: resolve(preferred=preferred_player))
        self._active: dict[str, PlaybackSession] = {}
        self._starting: dict[str, PlaybackSession] = {}
        self._watchers: set[asyncio.Task] = set()
        # Bumped by stop_all so sessions still spawning get killed on arrival
        self._stop_generation = 0

    def __len__(self) -> int:
        return len(self._active)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._active

    def active_count(self) -> int:
        """Number of sessions whose player process is running."""
        return len(self._active)

    def is_busy(self) -> bool:
        """True while any session is running or still spawning."""
        return bool(self._active or self._starting)

    def get(self, session_id: str) -> PlaybackSession | None:
        return self._active.get(session_id)

    async def start(
        self,
        file_path: str | Path,
        options: PlaybackOptions | dict[str, Any] | None = None,
        on_complete: CompletionCallback | None = None,
        session_id: str | None = None,
    ) -> PlaybackSession:
        """Launch a player for *file_path* and return its session.

        Player failures never propagate out of this call: they arrive through
        *on_complete* on a later loop iteration.

        Raises:
            SessionConflictError: If *session_id* belongs to an active session.
        """
        if session_id is None:
            session_id = uuid.uuid4().hex
        if session_id in self._active or session_id in self._starting:
            raise SessionConflictError(f"Playback session {session_id!r} is already active")

        if options is None:
            options = PlaybackOptions()
        elif isinstance(options, dict):
            options = PlaybackOptions.model_validate(options)

        session = PlaybackSession(session_id, str(file_path), on_complete)
        generation = self._stop_generation

        try:
            recipe = self._resolver()
        except ResolutionError as e:
            self._fail_soon(session, e)
            return session

        cmd = recipe.command(session.file_path, options)
        self._starting[session_id] = session
        try:
            session.process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            error = LaunchError(f"Could not start {recipe.executable}: {e}")
            error.__cause__ = e
            self._fail_soon(session, error)
            return session
        finally:
            self._starting.pop(session_id, None)

        session.state = SessionState.RUNNING
        self._active[session_id] = session
        logger.info(
            "Playing %s with %s (pid %s, session %s)",
            session.file_path, recipe.executable, session.pid, session_id,
        )

        task = asyncio.create_task(self._watch(session))
        self._watchers.add(task)
        task.add_done_callback(self._watchers.discard)

        stopped = generation != self._stop_generation
        if stopped:
            # stop_all ran while the process was spawning
            del self._active[session_id]
        if stopped or session._kill_requested:
            session._kill_requested = True
            session._signal()
        return session

    def kill(self, session_id: str) -> bool:
        """Kill one running or spawning session by id. Returns False if there is none."""
        session = self._active.get(session_id) or self._starting.get(session_id)
        if session is None:
            return False
        session.kill()
        return True

    def stop_all(self) -> None:
        """Kill every active session and empty the active table.

        Each killed session still reports through its own callback, with a
        success result.
        """
        self._stop_generation += 1
        if not self._active:
            return
        sessions = list(self._active.values())
        self._active.clear()
        logger.info("Stopping %d playback session(s)", len(sessions))
        for session in sessions:
            session.kill()

    async def wait_idle(self) -> None:
        """Wait for every watched process to exit and report."""
        while self._watchers:
            await asyncio.gather(*list(self._watchers))

    async def _watch(self, session: PlaybackSession) -> None:
        assert session.process is not None
        try:
            code = await session.process.wait()
        except OSError as e:
            error = ProcessError(f"Player process error: {e}")
            error.__cause__ = e
            self._complete(session, SessionState.FAILED, error)
            return

        # A negative code means the player died from a signal, e.g. our kill.
        if code is None or code <= 0:
            state = SessionState.KILLED if session._kill_requested else SessionState.COMPLETED
            logger.debug("Session %s finished (%s, code %s)", session.session_id, state.value, code)
            self._complete(session, state)
        else:
            logger.warning("Player for session %s exited with code %s", session.session_id, code)
            self._complete(session, SessionState.FAILED, RuntimeExitError(code))

    def _complete(
        self, session: PlaybackSession, state: SessionState, error: PlaybackError | None = None
    ) -> None:
        result = session._finish(state, error)
        if result is None:
            return
        if self._active.get(session.session_id) is session:
            del self._active[session.session_id]
        self._notify(session, result)

    def _fail_soon(self, session: PlaybackSession, error: PlaybackError) -> None:
        logger.warning("Playback of %s failed: %s", session.file_path, error)
        result = session._finish(SessionState.FAILED, error)
        asyncio.get_running_loop().call_soon(self._notify, session, result)

    def _notify(self, session: PlaybackSession, result: PlaybackResult) -> None:
        if session._on_complete is None:
            return
        try:
            session._on_complete(result)
        except Exception:
            logger.exception("Completion callback for session %s raised", session.session_id)
