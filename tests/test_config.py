"""Tests for configuration system."""

import pytest

from leak_hunter.config import (
    AlertsConfig,
    CollectorConfig,
    Config,
    DetectionConfig,
    EngineConfig,
    RetentionConfig,
    SystemConfig,
)


def test_engine_config_defaults():
    """EngineConfig has correct defaults."""
    config = EngineConfig()
    assert config.sample_interval == 600.0
    assert config.window_duration == 86400.0
    assert config.confidence_alert_threshold == 0.7
    assert config.hysteresis_margin == 0.1
    assert config.min_absolute_growth_mb == 50.0
    assert config.min_samples_for_trend == 8
    assert config.min_samples_for_fft == 32
    assert config.noise_floor_multiple == 3.0
    assert config.release_threshold == pytest.approx(0.6)


def test_engine_config_defaults_validate():
    EngineConfig().validate()


@pytest.mark.parametrize(
    "overrides",
    [
        {"sample_interval": 0},
        {"window_duration": -1},
        {"confidence_alert_threshold": 1.2},
        {"hysteresis_margin": 0.8},
        {"hysteresis_margin": -0.1},
        {"min_absolute_growth_mb": -5},
        {"min_samples_for_trend": 1},
        {"min_samples_for_fft": 2},
        {"noise_floor_multiple": 0},
        {"fit_weight": 0, "growth_weight": 0, "duration_weight": 0},
        {"fit_weight": -1.0},
        {"dismiss_cooldown_hours": -1},
        {"history_max_entries": 0},
        {"registry_shards": 0},
    ],
)
def test_engine_config_rejects_invalid(overrides):
    with pytest.raises(ValueError):
        EngineConfig(**overrides).validate()


def test_engine_config_is_frozen():
    config = EngineConfig()
    with pytest.raises(AttributeError):
        config.sample_interval = 1  # type: ignore[misc]


def test_section_defaults():
    """Section dataclasses have correct defaults."""
    assert RetentionConfig().episodes_days == 90
    assert SystemConfig().heartbeat_samples == 6
    assert SystemConfig().auto_prune_interval_hours == 24
    assert CollectorConfig().min_tracked_mb == 50.0
    assert "kernel_task" in CollectorConfig().exclude
    assert AlertsConfig().enabled is True
    assert AlertsConfig().min_severity == "medium"


def test_detection_converts_units():
    """Minutes and hours become engine seconds."""
    engine = DetectionConfig(sample_interval_minutes=5, window_hours=12).to_engine_config()
    assert engine.sample_interval == 300.0
    assert engine.window_duration == 43200.0


def test_detection_to_engine_validates():
    with pytest.raises(ValueError, match="confidence_alert_threshold"):
        DetectionConfig(confidence_alert_threshold=2.0).to_engine_config()


def test_config_paths():
    """Config uses XDG-style paths."""
    config = Config()
    assert config.config_path.name == "config.toml"
    assert config.config_dir.name == "leak-hunter"
    assert config.db_path.name == "data.db"
    assert config.pid_path.name == "daemon.pid"
    assert config.log_path.name == "daemon.log"


def test_load_missing_file_returns_defaults(tmp_path):
    assert Config.load(tmp_path / "missing.toml") == Config()


def test_save_load_round_trip(tmp_path):
    path = tmp_path / "config.toml"
    config = Config(
        retention=RetentionConfig(episodes_days=30),
        detection=DetectionConfig(window_hours=12.0, confidence_alert_threshold=0.8),
        collector=CollectorConfig(min_tracked_mb=100.0, exclude=["Finder"]),
        alerts=AlertsConfig(sound=False, min_severity="high"),
    )
    config.save(path)

    loaded = Config.load(path)

    assert loaded.retention.episodes_days == 30
    assert loaded.detection.window_hours == 12.0
    assert loaded.detection.confidence_alert_threshold == 0.8
    assert loaded.collector.min_tracked_mb == 100.0
    assert loaded.collector.exclude == ["Finder"]
    assert not loaded.alerts.sound
    assert loaded.alerts.min_severity == "high"


def test_load_partial_file_fills_defaults(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[detection]\nwindow_hours = 6.0\n")

    loaded = Config.load(path)

    assert loaded.detection.window_hours == 6.0
    assert loaded.detection.sample_interval_minutes == 10.0
    assert loaded.retention.episodes_days == 90


def test_load_rejects_invalid_severity(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('[alerts]\nmin_severity = "extreme"\n')

    with pytest.raises(ValueError, match="min_severity"):
        Config.load(path)


def test_load_rejects_invalid_detection(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[detection]\nhysteresis_margin = 0.9\n")

    with pytest.raises(ValueError, match="hysteresis_margin"):
        Config.load(path)


def test_load_rejects_negative_collector_floor(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[collector]\nmin_tracked_mb = -1\n")

    with pytest.raises(ValueError, match="min_tracked_mb"):
        Config.load(path)


def test_load_rejects_malformed_toml(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[detection\nwindow_hours = ")

    with pytest.raises(ValueError, match="Failed to parse"):
        Config.load(path)
