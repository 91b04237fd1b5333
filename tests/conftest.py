"""Shared fixtures."""

from pathlib import Path

import pytest


@pytest.fixture
def sound_file(tmp_path: Path) -> Path:
    """A file for the node to find; stand-in players never read it."""
    path = tmp_path / "test.wav"
    path.write_bytes(b"RIFF\x00\x00\x00\x00WAVE")
    return path
