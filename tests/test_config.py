# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for configuration management.
"""

import tempfile
from pathlib import Path

import pytest
import yaml

from linecue.config import (
    CONFIG_FILENAME,
    DEFAULT_CONFIG,
    get_config_path,
    get_display_settings,
    get_tracking_settings,
    get_transcription_settings,
    load_config,
    save_config,
    tracker_kwargs,
    update_config_display,
)
from linecue.tracker import LineTracker


def test_default_tracking_settings():
    """Verify tracking defaults match the tracker defaults."""
    tracking = DEFAULT_CONFIG["tracking"]
    tracker = LineTracker()
    for key, value in tracking.items():
        assert getattr(tracker, key) == value


def test_config_path_in_working_directory():
    """The config file lives in the current working directory."""
    assert get_config_path() == Path.cwd() / CONFIG_FILENAME


def test_load_config_missing_file_uses_defaults():
    """A missing config file gives the defaults."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config = load_config(Path(tmpdir) / CONFIG_FILENAME)
        assert config == DEFAULT_CONFIG


def test_load_config_merges_nested_sections():
    """Partial sections are merged with defaults."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / CONFIG_FILENAME
        config_data = {
            "port": 9000,
            "tracking": {"lookahead": 5},
            "display": {"pastLines": 2},
        }
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(config_data, f)

        config = load_config(config_path)

        assert config["port"] == 9000
        assert config["host"] == DEFAULT_CONFIG["host"]
        assert config["tracking"]["lookahead"] == 5
        assert config["tracking"]["tail_size"] == DEFAULT_CONFIG["tracking"]["tail_size"]
        assert config["display"]["pastLines"] == 2
        assert config["display"]["futureLines"] == DEFAULT_CONFIG["display"]["futureLines"]


def test_load_config_does_not_modify_defaults():
    """Loading must not leak file values into DEFAULT_CONFIG."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / CONFIG_FILENAME
        config_path.write_text("tracking:\n  lookahead: 7\n", encoding="utf-8")

        load_config(config_path)

        assert DEFAULT_CONFIG["tracking"]["lookahead"] == 3


@pytest.mark.parametrize("content", [
    "tracking: [unclosed",
    "- just\n- a list\n",
])
def test_load_config_invalid_file_uses_defaults(content, caplog):
    """Broken or non-mapping files are ignored with a warning."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / CONFIG_FILENAME
        config_path.write_text(content, encoding="utf-8")

        config = load_config(config_path)

        assert config == DEFAULT_CONFIG
        assert "config" in caplog.text.lower()


def test_save_and_reload_config():
    """Saved config should load back unchanged."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / CONFIG_FILENAME
        config = load_config(config_path)
        config["transcription"]["model_id"] = "vosk-cn-large"
        config["display"]["fontSize"] = 48

        assert save_config(config, config_path)
        reloaded = load_config(config_path)

        assert reloaded["transcription"]["model_id"] == "vosk-cn-large"
        assert reloaded["display"]["fontSize"] == 48


def test_save_config_failure_returns_false():
    """Saving into a missing directory reports failure."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "missing" / CONFIG_FILENAME
        assert not save_config(DEFAULT_CONFIG, config_path)


def test_settings_getters_return_copies():
    """Section getters should not share state with the config."""
    config = load_config(Path("/nonexistent") / CONFIG_FILENAME)

    display = get_display_settings(config)
    display["fontSize"] = 1
    tracking = get_tracking_settings(config)
    tracking["lookahead"] = 99

    assert config["display"]["fontSize"] == DEFAULT_CONFIG["display"]["fontSize"]
    assert config["tracking"]["lookahead"] == 3
    assert get_transcription_settings(config)["provider"] == "vosk"


def test_tracker_kwargs_casts_values():
    """Values from YAML are coerced to the tracker's types."""
    kwargs = tracker_kwargs({"lookahead": "4", "fuzzy_threshold": "0.4"})

    assert kwargs["lookahead"] == 4
    assert kwargs["fuzzy_threshold"] == pytest.approx(0.4)
    assert kwargs["tail_size"] == 25
    assert set(kwargs) == set(DEFAULT_CONFIG["tracking"])


def test_tracker_kwargs_ignores_unknown_keys():
    """Unknown keys are dropped so the tracker accepts the result."""
    kwargs = tracker_kwargs({"unknown": 1})

    tracker = LineTracker(["nihao"], **kwargs)
    assert tracker.lookahead == 3


def test_update_config_display():
    """Display updates return a new config."""
    config = load_config(Path("/nonexistent") / CONFIG_FILENAME)

    updated = update_config_display(config, {"fontSize": 64})

    assert updated["display"]["fontSize"] == 64
    assert updated["display"]["pastLines"] == 1
    assert config["display"]["fontSize"] == DEFAULT_CONFIG["display"]["fontSize"]


def test_tracker_kwargs_keeps_windows_bounded():
    """Zero or negative window sizes are raised to one token."""
    kwargs = tracker_kwargs({"tail_size": 0, "recent_size": -2, "lookahead": 0})

    assert kwargs["tail_size"] == 1
    assert kwargs["recent_size"] == 1
    assert kwargs["lookahead"] == 0
