# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Configuration management for linecue.
Handles loading and saving settings from a YAML config file.
"""

import copy
import logging
from pathlib import Path
from typing import Any, TypedDict

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME: str = ".linecue.yaml"


class DisplaySettings(TypedDict):
    """Type definition for display configuration settings."""
    fontSize: int
    pastLines: int
    futureLines: int
    renderMarkdown: bool
    readColor: str
    unreadColor: str
    dimColor: str
    backgroundColor: str


class TrackingSettings(TypedDict):
    """Type definition for tracking configuration settings."""
    tail_size: int
    recent_size: int
    prefix_min_match: int
    lookahead: int
    in_line_window: int
    min_match_count: int
    fuzzy_threshold: float


class TranscriptionConfig(TypedDict):
    """Type definition for transcription configuration settings."""
    provider: str  # Only "vosk" is built in
    model_id: str  # Model identifier (e.g., "vosk-cn-small")
    model_path: str | None  # Optional custom path


class Config(TypedDict):
    """Type definition for the complete configuration."""
    transcription: TranscriptionConfig
    # Server settings
    host: str
    port: int
    audio_device: int | None
    chunk_ms: int
    # UI settings
    display: DisplaySettings
    tracking: TrackingSettings


# Default configuration values
DEFAULT_CONFIG: Config = {
    "transcription": {
        "provider": "vosk",
        "model_id": "vosk-cn-small",
        "model_path": None,
    },

    # Server settings
    "host": "127.0.0.1",
    "port": 8000,
    "audio_device": None,
    "chunk_ms": 100,

    # UI display settings
    "display": {
        "fontSize": 32,
        "pastLines": 1,
        "futureLines": 1,
        "renderMarkdown": False,
        "readColor": "#FFFFFF",
        "unreadColor": "#808080",
        "dimColor": "#737373",
        "backgroundColor": "#1a1a1a",
    },

    # Tracking thresholds
    "tracking": {
        # Trailing transcript tokens matched against the current line
        "tail_size": 25,
        # Trailing tokens searched for the start of an upcoming line
        "recent_size": 12,
        "prefix_min_match": 3,
        # Max lines ahead a prefix match may jump to
        "lookahead": 3,
        "in_line_window": 3,
        "min_match_count": 2,
        "fuzzy_threshold": 0.35,
    },
}


# Tracking settings that size a token window, at least 1
WINDOW_SETTINGS: tuple[str, ...] = ("tail_size", "recent_size", "in_line_window")


def get_config_path() -> Path:
    """The config file is looked up in the current working directory."""
    return Path.cwd() / CONFIG_FILENAME


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return base updated with override, merging nested sections key by key."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Path | None = None) -> Config:
    """
    Load the config file over the defaults.

    A missing, unreadable or malformed file is not an error: the defaults
    are used and a warning is logged.

    Args:
        config_path: Config file, or None for get_config_path().

    Returns:
        A complete config; the caller may modify it freely.
    """
    path: Path = config_path or get_config_path()
    config: dict[str, Any] = copy.deepcopy(dict(DEFAULT_CONFIG))
    if not path.exists():
        return config  # type: ignore[return-value]

    try:
        with open(path, encoding='utf-8') as f:
            overrides: Any = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Could not load config from %s: %s", path, e)
        return config  # type: ignore[return-value]

    if isinstance(overrides, dict):
        config = _deep_merge(config, overrides)
    elif overrides is not None:
        logger.warning("Ignoring config %s: expected a mapping, got %s",
                       path, type(overrides).__name__)
    return config  # type: ignore[return-value]


def save_config(config: Config, config_path: Path | None = None) -> bool:
    """
    Write config as YAML (Chinese text is kept readable).

    Returns:
        True on success. Failures are logged rather than raised.
    """
    path: Path = config_path or get_config_path()
    try:
        with open(path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(dict(config), f, default_flow_style=False,
                           sort_keys=False, allow_unicode=True)
    except (OSError, yaml.YAMLError) as e:
        logger.error("Error saving config to %s: %s", path, e)
        return False
    logger.info("Saved config to %s", path)
    return True


def _section(config: Config, name: str) -> Any:
    """Copy of one config section, falling back to its default."""
    return dict(config.get(name) or DEFAULT_CONFIG[name])  # type: ignore[literal-required]


def get_display_settings(config: Config) -> DisplaySettings:
    """Display section of the config."""
    return _section(config, "display")


def get_tracking_settings(config: Config) -> TrackingSettings:
    """Tracking section of the config."""
    return _section(config, "tracking")


def get_transcription_settings(config: Config) -> TranscriptionConfig:
    """Transcription section of the config."""
    return _section(config, "transcription")


def tracker_kwargs(tracking_settings: TrackingSettings) -> dict[str, Any]:
    """
    Map tracking settings onto LineTracker keyword arguments.

    Unknown keys are ignored and missing keys take their defaults. YAML
    strings such as "3" are coerced to the tracker's types, and window
    sizes are raised to at least one token.
    """
    kwargs: dict[str, Any] = {}
    for key, default in DEFAULT_CONFIG["tracking"].items():
        value = tracking_settings.get(key, default)
        kwargs[key] = type(default)(value)
        if key in WINDOW_SETTINGS:
            kwargs[key] = max(1, kwargs[key])
    return kwargs


def update_config_display(config: Config, display_settings: DisplaySettings) -> Config:
    """Return a copy of config with display_settings merged into its display section."""
    updated: dict[str, Any] = copy.deepcopy(dict(config))
    updated["display"] = _deep_merge(updated.get("display", {}), dict(display_settings))
    return updated  # type: ignore[return-value]
