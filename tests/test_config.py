import json

import pytest
from pydantic import ValidationError

from gaze_monitor.analysis import DEFAULT_MAX_DISTANCE, DEFAULT_MIN_DURATION_MS
from gaze_monitor.configs import AppSettings, HTTPSettings, LoggingConfig, load_check_config
from gaze_monitor.errors import ConfigError
from gaze_monitor.models import CheckRegion


def write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_check_config_with_on_disk_key_names(tmp_path):
    path = write_json(tmp_path / "config.json", {
        "fixation": {"max distance": 30, "min msec": 200},
        "targets": [{"x": 0, "y": 0, "width": 50, "height": 50, "name": "logo"}],
    })
    config = load_check_config(path)

    assert config.fixation.max_distance == 30
    assert config.fixation.min_duration_ms == 200
    assert config.regions == [CheckRegion(0, 0, 50, 50, "logo")]


def test_missing_fixation_keys_use_defaults(tmp_path):
    path = write_json(tmp_path / "config.json", {"fixation": {"min msec": 250}, "targets": [None]})
    config = load_check_config(path)

    assert config.fixation.max_distance == DEFAULT_MAX_DISTANCE
    assert config.fixation.min_duration_ms == 250
    assert config.targets == []


def test_missing_file_gives_defaults(tmp_path):
    config = load_check_config(tmp_path / "nope.json")
    assert config.fixation.min_duration_ms == DEFAULT_MIN_DURATION_MS
    assert config.regions == []


def test_malformed_check_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_check_config(path)

    write_json(path, {"targets": [{"x": 0, "name": "incomplete"}]})
    with pytest.raises(ConfigError):
        load_check_config(path)


def test_settings_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    settings = AppSettings()

    assert settings.tracker.host == "localhost"
    assert settings.tracker.port == 6555
    assert settings.http.port == 8888
    assert settings.heatmap.brush_size == 100
    assert settings.replay.cutoffs_s == [-1, 5, 10, 15]
    assert settings.default_window_ms == 10_000


def test_settings_from_environment(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("GAZE__TRACKER__PORT", "7000")
    monkeypatch.setenv("GAZE__LOG_SINK__ENABLED", "false")
    settings = AppSettings()

    assert settings.tracker.port == 7000
    assert settings.log_sink.enabled is False


def test_tls_needs_both_cert_and_key(tmp_path):
    with pytest.raises(ValidationError):
        HTTPSettings(ssl_cert=tmp_path / "cert.pem")
    assert HTTPSettings(ssl_cert=tmp_path / "c.pem", ssl_key=tmp_path / "k.pem").ssl_key is not None


def test_log_level_is_validated():
    assert LoggingConfig(level="debug").level == "DEBUG"
    with pytest.raises(ValidationError):
        LoggingConfig(level="chatty")
