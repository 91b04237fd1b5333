"""Tests for the command line interface."""

import asyncio
import io
import json
import threading
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from play_soundfile import Platform, __version__
from play_soundfile.cli import _read_stdin, app
from play_soundfile.errors import ResolutionError
from play_soundfile.player import PlayerRecipe
from play_soundfile.sessions import PlaybackSessionManager
from tests.players import EXITS_ONE, EXITS_OK, SLEEPS

runner = CliRunner()


@pytest.fixture(autouse=True)
def _no_ambient_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PLAY_SOUNDFILE_PLAYER", raising=False)
    monkeypatch.setattr("play_soundfile.config._CONFIG_SEARCH_PATHS", [])


def _with_player(recipe: PlayerRecipe):
    return patch(
        "play_soundfile.app.PlaybackSessionManager",
        side_effect=lambda **kwargs: PlaybackSessionManager(resolver=lambda: recipe),
    )


class TestVersion:
    def test_prints_version(self) -> None:
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestPlay:
    """Test the play command."""

    def test_success(self, sound_file: Path) -> None:
        with _with_player(EXITS_OK):
            result = runner.invoke(app, ["play", str(sound_file)])
        assert result.exit_code == 0
        assert "done" in result.output

    def test_failure_exit_status(self, sound_file: Path) -> None:
        with _with_player(EXITS_ONE):
            result = runner.invoke(app, ["play", str(sound_file)])
        assert result.exit_code == 1
        assert "Player exited with code 1" in result.output

    def test_parallel(self, sound_file: Path) -> None:
        with _with_player(EXITS_OK):
            result = runner.invoke(app, ["play", str(sound_file), str(sound_file), "--parallel"])
        assert result.exit_code == 0
        assert result.output.count("done") == 2

    def test_timeout_stops_playback(self, sound_file: Path) -> None:
        with _with_player(SLEEPS):
            result = runner.invoke(app, ["play", str(sound_file), "--timeout", "0.2"])
        assert result.exit_code == 0
        assert "stopped" in result.output

    def test_no_player(self, sound_file: Path) -> None:
        with patch("play_soundfile.player.shutil.which", return_value=None):
            result = runner.invoke(app, ["play", str(sound_file)], env={"PLAY_SOUNDFILE_PLAYER": "paplay"})
        assert result.exit_code == 1
        assert "paplay" in result.output


class TestRun:
    """Test driving the flow node from stdin."""

    def _config(self, tmp_path: Path, sound_file: Path) -> Path:
        path = tmp_path / "config.toml"
        path.write_text(
            f'[node]\ndirectory = "{sound_file.parent.as_posix()}"\nfile = "{sound_file.name}"\n'
        )
        return path

    def test_echoes_played_messages(self, tmp_path: Path, sound_file: Path) -> None:
        config = self._config(tmp_path, sound_file)
        stdin = json.dumps({"payload": "hello", "_msgid": "m1"}) + "\n"
        with _with_player(EXITS_OK):
            result = runner.invoke(app, ["run", "--config", str(config)], input=stdin)
        assert result.exit_code == 0
        forwarded = [json.loads(line) for line in result.stdout.splitlines() if line.startswith("{")]
        assert forwarded == [{"payload": "hello", "_msgid": "m1"}]

    def test_skips_invalid_lines(self, tmp_path: Path, sound_file: Path) -> None:
        config = self._config(tmp_path, sound_file)
        stdin = "not json\n[1, 2]\n\n" + json.dumps({"payload": "ok"}) + "\n"
        with _with_player(EXITS_OK):
            result = runner.invoke(app, ["run", "--config", str(config)], input=stdin)
        assert result.exit_code == 0
        forwarded = [json.loads(line) for line in result.stdout.splitlines() if line.startswith("{")]
        assert [m["payload"] for m in forwarded] == ["ok"]
        assert "_msgid" in forwarded[0]

    def test_bad_override_does_not_end_run(self, tmp_path: Path, sound_file: Path) -> None:
        config = self._config(tmp_path, sound_file)
        stdin = json.dumps({"file": None}) + "\n" + json.dumps({"payload": "ok", "_msgid": "m2"}) + "\n"
        with _with_player(EXITS_OK):
            result = runner.invoke(app, ["run", "--config", str(config)], input=stdin)
        assert result.exit_code == 0
        assert "Invalid file or directory" in result.output
        forwarded = [json.loads(line) for line in result.stdout.splitlines() if line.startswith("{")]
        assert forwarded == [{"payload": "ok", "_msgid": "m2"}]

    def test_stdin_read_on_daemon_thread(self, tmp_path: Path, sound_file: Path) -> None:
        config = self._config(tmp_path, sound_file)
        with (
            _with_player(EXITS_OK),
            patch("play_soundfile.cli.threading.Thread", wraps=threading.Thread) as thread,
        ):
            result = runner.invoke(app, ["run", "--config", str(config)], input="")
        assert result.exit_code == 0
        assert thread.call_args.kwargs["daemon"] is True


class TestStdinReader:
    """Test the background stdin reader used by run."""

    def test_feeds_lines_then_eof(self) -> None:
        async def scenario() -> list[str]:
            lines: asyncio.Queue[str] = asyncio.Queue()
            with patch("sys.stdin", io.StringIO("a\nb\n")):
                reader = threading.Thread(target=_read_stdin, args=(asyncio.get_running_loop(), lines))
                reader.start()
                got = [await lines.get() for _ in range(3)]
                reader.join()
            return got

        assert asyncio.run(scenario()) == ["a\n", "b\n", ""]

    def test_stops_once_loop_closed(self) -> None:
        loop = asyncio.new_event_loop()
        loop.close()
        with patch("sys.stdin", io.StringIO("a\nb\n")) as stdin:
            _read_stdin(loop, asyncio.Queue())
            assert stdin.readline() == "b\n"


class TestDoctor:
    """Test the doctor command."""

    def test_player_found(self) -> None:
        with (
            patch("play_soundfile.cli.detect_platform", return_value=Platform.OTHER),
            patch("play_soundfile.player.shutil.which", side_effect=lambda n: "/usr/bin/mpg123" if n == "mpg123" else None),
        ):
            result = runner.invoke(app, ["doctor"])
        assert result.exit_code == 0
        assert "Using mpg123" in result.output
        assert "found" in result.output

    def test_no_player(self) -> None:
        with patch("play_soundfile.cli.resolve", side_effect=ResolutionError("No audio player found")):
            result = runner.invoke(app, ["doctor"])
        assert result.exit_code == 1
        assert "No audio player found" in result.output


class TestConfigCommands:
    """Test config subcommands."""

    def test_init_then_show(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        result = runner.invoke(app, ["config", "init", "--config", str(path)])
        assert result.exit_code == 0
        assert path.exists()

        result = runner.invoke(app, ["config", "show", "--config", str(path)])
        assert result.exit_code == 0
        assert "auto" in result.output

    def test_init_keeps_existing_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text('[player]\ncommand = "aplay"\n')
        result = runner.invoke(app, ["config", "init", "--config", str(path)], input="n\n")
        assert result.exit_code == 0
        assert "Aborted" in result.output
        assert "aplay" in path.read_text()
