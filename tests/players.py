"""Stand-in players built on the running Python interpreter."""

import sys

from play_soundfile.player import PlayerRecipe


def python_player(code: str) -> PlayerRecipe:
    """Recipe that runs *code* with the audio file path as ``sys.argv[1]``."""
    return PlayerRecipe(sys.executable, lambda path, options: ["-c", code, path])


EXITS_OK = python_player("import sys; sys.exit(0)")
EXITS_ONE = python_player("import sys; sys.exit(1)")
SLEEPS = python_player("import time; time.sleep(30)")
