"""Configuration management via TOML files and environment variables."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from play_soundfile.models import PlaybackOptions

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

try:
    import tomli_w
except ImportError:
    tomli_w = None  # type: ignore


class PlayerConfig(BaseModel):
    command: str = Field("auto", description="Player executable, or 'auto' to detect per platform")


class NodeConfig(BaseModel):
    name: str = ""
    directory: str = ""
    file: str = ""
    options: PlaybackOptions = Field(default_factory=PlaybackOptions)
    allow_multiple: bool = False

    @field_validator("options", mode="before")
    @classmethod
    def _parse_options(cls, value: Any) -> Any:
        # Flow editors store the options bag as a JSON string
        if isinstance(value, str):
            return json.loads(value) if value.strip() else {}
        return value


class LoggingConfig(BaseModel):
    level: str = "INFO"


class AppConfig(BaseModel):
    player: PlayerConfig = Field(default_factory=PlayerConfig)
    node: NodeConfig = Field(default_factory=NodeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


_CONFIG_SEARCH_PATHS = [
    Path("config.toml"),
    Path.home() / ".config" / "play-soundfile" / "config.toml",
]

PLAYER_ENV_VAR = "PLAY_SOUNDFILE_PLAYER"


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from TOML file, falling back to defaults."""
    if path and path.exists():
        return _apply_env(_parse_config(path))

    for candidate in _CONFIG_SEARCH_PATHS:
        if candidate.exists():
            return _apply_env(_parse_config(candidate))

    return _apply_env(AppConfig())


def _parse_config(path: Path) -> AppConfig:
    with open(path, "rb") as f:
        data: dict[str, Any] = tomllib.load(f)
    return AppConfig.model_validate(data)


def _apply_env(cfg: AppConfig) -> AppConfig:
    player = os.environ.get(PLAYER_ENV_VAR)
    if player:
        cfg.player.command = player
    return cfg


def get_config_path() -> Path:
    """Return the user config path (~/.config/play-soundfile/config.toml)."""
    return Path.home() / ".config" / "play-soundfile" / "config.toml"


def save_config(config: AppConfig, path: Path | None = None) -> Path:
    """Save configuration to TOML file.

    Args:
        config: The configuration to save
        path: Target path. Defaults to ~/.config/play-soundfile/config.toml

    Returns:
        The path where config was saved

    Raises:
        ImportError: If tomli_w is not installed
    """
    if tomli_w is None:
        raise ImportError("tomli_w is required to save config. Install with: pip install tomli-w")

    if path is None:
        path = get_config_path()

    path.parent.mkdir(parents=True, exist_ok=True)

    # TOML has no null, so unset options are left out
    data = config.model_dump(mode="json", exclude_none=True)

    with open(path, "wb") as f:
        tomli_w.dump(data, f)

    return path
