"""Player lookup: which external executable renders audio on this host."""

from __future__ import annotations

import shutil
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from play_soundfile.errors import ResolutionError
from play_soundfile.models import PlaybackOptions

ArgsBuilder = Callable[[str, PlaybackOptions], list[str]]


class Platform(str, Enum):
    MACOS = "macos"
    WINDOWS = "windows"
    OTHER = "other"


@dataclass(frozen=True)
class PlayerRecipe:
    """How to invoke one external player for a given file."""

    executable: str
    build_args: ArgsBuilder

    def command(self, file_path: str, options: PlaybackOptions | None = None) -> list[str]:
        """Full argv for playing *file_path*."""
        return [self.executable, *self.build_args(file_path, options or PlaybackOptions())]


def _file_only(file_path: str, options: PlaybackOptions) -> list[str]:
    return [file_path]


def _afplay_args(file_path: str, options: PlaybackOptions) -> list[str]:
    args = [file_path]
    if options.volume is not None:
        args += ["-v", str(options.volume)]
    return args


def _cvlc_args(file_path: str, options: PlaybackOptions) -> list[str]:
    return ["--play-and-exit", file_path]


_WINDOWS_SCRIPT = """
Add-Type -AssemblyName presentationCore
$player = New-Object System.Windows.Media.MediaPlayer
$player.Open([uri]'{path}')
$player.Play()
Start-Sleep -Milliseconds 500
while ($player.Position -lt $player.NaturalDuration.TimeSpan) {{
    Start-Sleep -Milliseconds 100
}}
$player.Stop()
$player.Close()
"""


def powershell_script(file_path: str) -> str:
    """MediaPlayer script that plays *file_path* to its natural end."""
    # PowerShell escapes a single quote inside a '...' literal by doubling it
    return _WINDOWS_SCRIPT.format(path=file_path.replace("'", "''"))


def _powershell_args(file_path: str, options: PlaybackOptions) -> list[str]:
    return ["-NoProfile", "-NonInteractive", "-Command", powershell_script(file_path)]


MACOS_RECIPE = PlayerRecipe("afplay", _afplay_args)
WINDOWS_RECIPE = PlayerRecipe("powershell", _powershell_args)

# Probed in order on Linux and other Unix-like hosts.
_PLAYER_COMMANDS: list[tuple[str, ArgsBuilder]] = [
    ("aplay", _file_only),
    ("mpg123", _file_only),
    ("mpg321", _file_only),
    ("play", _file_only),
    ("mplayer", _file_only),
    ("omxplayer", _file_only),
    ("cvlc", _cvlc_args),
]

CANDIDATES: tuple[str, ...] = tuple(name for name, _ in _PLAYER_COMMANDS)


def detect_platform(system: str | None = None) -> Platform:
    """Map ``sys.platform`` (or *system*) onto a player family."""
    system = system or sys.platform
    if system == "darwin":
        return Platform.MACOS
    if system in ("win32", "cygwin"):
        return Platform.WINDOWS
    return Platform.OTHER


def available_players() -> list[str]:
    """Every Unix candidate currently on the search path."""
    return [name for name in CANDIDATES if shutil.which(name)]


def find_unix_player() -> PlayerRecipe | None:
    for name, build_args in _PLAYER_COMMANDS:
        if shutil.which(name):
            return PlayerRecipe(name, build_args)
    return None


def resolve(platform: Platform | None = None, preferred: str = "auto") -> PlayerRecipe:
    """Pick the player recipe for *platform* (the host when omitted).

    Only the search path is consulted; neither the player nor the audio file
    is executed here.

    Raises:
        ResolutionError: If no usable player is available.
    """
    if preferred != "auto":
        if shutil.which(preferred):
            return PlayerRecipe(preferred, _file_only)
        raise ResolutionError(
            f"Configured audio player not found: {preferred}", candidates=(preferred,)
        )

    platform = platform or detect_platform()
    if platform is Platform.MACOS:
        return MACOS_RECIPE
    if platform is Platform.WINDOWS:
        return WINDOWS_RECIPE

    recipe = find_unix_player()
    if recipe is None:
        raise ResolutionError(
            "No audio player found. Please install one of: " + ", ".join(CANDIDATES),
            candidates=CANDIDATES,
        )
    return recipe
