"""Configuration system for leak-hunter."""

import math
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit


@dataclass(frozen=True)
class EngineConfig:
    """Detection parameters consumed by the engine.

    Frozen so a sampling cycle can hold one consistent snapshot while
    reconfigure() swaps in a replacement. Durations are in seconds unless
    the name says otherwise.
    """

    sample_interval: float = 600.0  # Seconds between samples (10 minutes)
    window_duration: float = 24 * 3600.0  # Retention window per process
    confidence_alert_threshold: float = 0.7
    hysteresis_margin: float = 0.1
    min_absolute_growth_mb: float = 50.0  # slope x duration must reach this
    min_samples_for_trend: int = 8
    min_samples_for_fft: int = 32
    noise_floor_multiple: float = 3.0
    reference_growth_rate_mb_per_hour: float = 10.0  # Growth that saturates the rate signal
    sufficient_observation_hours: float = 6.0  # Duration that saturates the duration signal
    fit_weight: float = 0.5
    growth_weight: float = 0.3
    duration_weight: float = 0.2
    dismiss_cooldown_hours: float = 24.0  # 0 disables re-detection suppression
    history_max_entries: int = 500
    registry_shards: int = 16

    def validate(self) -> None:
        """Raise ValueError if any value is out of range."""
        if self.sample_interval <= 0:
            raise ValueError(f"sample_interval must be > 0, got {self.sample_interval}")
        if self.window_duration <= 0:
            raise ValueError(f"window_duration must be > 0, got {self.window_duration}")
        if not 0.0 <= self.confidence_alert_threshold <= 1.0:
            raise ValueError(
                "confidence_alert_threshold must be within [0, 1], "
                f"got {self.confidence_alert_threshold}"
            )
        if not 0.0 <= self.hysteresis_margin <= self.confidence_alert_threshold:
            raise ValueError(
                "hysteresis_margin must be within [0, confidence_alert_threshold], "
                f"got {self.hysteresis_margin}"
            )
        if self.min_absolute_growth_mb < 0:
            raise ValueError(
                f"min_absolute_growth_mb must be >= 0, got {self.min_absolute_growth_mb}"
            )
        if self.min_samples_for_trend < 2:
            raise ValueError(
                f"min_samples_for_trend must be >= 2, got {self.min_samples_for_trend}"
            )
        if self.min_samples_for_fft < 4:
            raise ValueError(f"min_samples_for_fft must be >= 4, got {self.min_samples_for_fft}")
        if self.noise_floor_multiple <= 0:
            raise ValueError(
                f"noise_floor_multiple must be > 0, got {self.noise_floor_multiple}"
            )
        if self.reference_growth_rate_mb_per_hour <= 0:
            raise ValueError(
                "reference_growth_rate_mb_per_hour must be > 0, "
                f"got {self.reference_growth_rate_mb_per_hour}"
            )
        if self.sufficient_observation_hours <= 0:
            raise ValueError(
                "sufficient_observation_hours must be > 0, "
                f"got {self.sufficient_observation_hours}"
            )
        weights = (self.fit_weight, self.growth_weight, self.duration_weight)
        if any(w < 0 or not math.isfinite(w) for w in weights) or sum(weights) <= 0:
            raise ValueError(f"confidence weights must be >= 0 with a positive sum, got {weights}")
        if self.dismiss_cooldown_hours < 0:
            raise ValueError(
                f"dismiss_cooldown_hours must be >= 0, got {self.dismiss_cooldown_hours}"
            )
        if self.history_max_entries < 1:
            raise ValueError(f"history_max_entries must be >= 1, got {self.history_max_entries}")
        if self.registry_shards < 1:
            raise ValueError(f"registry_shards must be >= 1, got {self.registry_shards}")

    @property
    def release_threshold(self) -> float:
        """Confidence a suspect must fall below before it returns to tracking."""
        return self.confidence_alert_threshold - self.hysteresis_margin


@dataclass
class RetentionConfig:
    """Data retention configuration."""

    episodes_days: int = 90


@dataclass
class SystemConfig:
    """Daemon configuration."""

    heartbeat_samples: int = 6  # Log heartbeat every N sampling cycles (~1h at 10 min)
    auto_prune_interval_hours: int = 24  # Hours between auto-prune runs
    # Log file rotation
    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


@dataclass
class DetectionConfig:
    """User-editable detection settings.

    Stored in human units (minutes/hours) and converted to an EngineConfig
    by to_engine_config().
    """

    sample_interval_minutes: float = 10.0
    window_hours: float = 24.0
    confidence_alert_threshold: float = 0.7
    hysteresis_margin: float = 0.1
    min_absolute_growth_mb: float = 50.0
    min_samples_for_trend: int = 8
    min_samples_for_fft: int = 32
    noise_floor_multiple: float = 3.0
    reference_growth_rate_mb_per_hour: float = 10.0
    sufficient_observation_hours: float = 6.0
    fit_weight: float = 0.5
    growth_weight: float = 0.3
    duration_weight: float = 0.2
    dismiss_cooldown_hours: float = 24.0
    history_max_entries: int = 500

    def to_engine_config(self) -> EngineConfig:
        """Build and validate the engine snapshot for these settings."""
        engine = EngineConfig(
            sample_interval=self.sample_interval_minutes * 60.0,
            window_duration=self.window_hours * 3600.0,
            confidence_alert_threshold=self.confidence_alert_threshold,
            hysteresis_margin=self.hysteresis_margin,
            min_absolute_growth_mb=self.min_absolute_growth_mb,
            min_samples_for_trend=self.min_samples_for_trend,
            min_samples_for_fft=self.min_samples_for_fft,
            noise_floor_multiple=self.noise_floor_multiple,
            reference_growth_rate_mb_per_hour=self.reference_growth_rate_mb_per_hour,
            sufficient_observation_hours=self.sufficient_observation_hours,
            fit_weight=self.fit_weight,
            growth_weight=self.growth_weight,
            duration_weight=self.duration_weight,
            dismiss_cooldown_hours=self.dismiss_cooldown_hours,
            history_max_entries=self.history_max_entries,
        )
        engine.validate()
        return engine


@dataclass
class CollectorConfig:
    """Process sampling configuration."""

    min_tracked_mb: float = 50.0  # Processes below this RSS are not sampled
    exclude: list[str] = field(default_factory=lambda: ["kernel_task", "launchd"])


@dataclass
class AlertsConfig:
    """Desktop notification configuration."""

    enabled: bool = True
    sound: bool = True
    min_severity: str = "medium"  # medium, high or critical


VALID_SEVERITIES = ("medium", "high", "critical")


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    retention: RetentionConfig = field(default_factory=RetentionConfig)
    system: SystemConfig = field(default_factory=SystemConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    collector: CollectorConfig = field(default_factory=CollectorConfig)
    alerts: AlertsConfig = field(default_factory=AlertsConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "leak-hunter"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def data_dir(self) -> Path:
        """Data directory."""
        return Path.home() / ".local" / "share" / "leak-hunter"

    @property
    def state_dir(self) -> Path:
        """State directory for logs and other expendable persistent state."""
        return Path.home() / ".local" / "state" / "leak-hunter"

    @property
    def db_path(self) -> Path:
        """Episode database path."""
        return self.data_dir / "data.db"

    @property
    def log_path(self) -> Path:
        """Daemon log path."""
        return self.state_dir / "daemon.log"

    @property
    def pid_path(self) -> Path:
        """PID file path."""
        return self.state_dir / "daemon.pid"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("retention", "system", "detection", "collector", "alerts"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions, so Config() and
        Config.load() on a missing file are identical.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        retention_data = data.get("retention", {})
        system_data = data.get("system", {})

        ret_defaults = defaults.retention
        sys_defaults = defaults.system

        return cls(
            retention=RetentionConfig(
                episodes_days=retention_data.get("episodes_days", ret_defaults.episodes_days),
            ),
            system=SystemConfig(
                heartbeat_samples=system_data.get(
                    "heartbeat_samples", sys_defaults.heartbeat_samples
                ),
                auto_prune_interval_hours=system_data.get(
                    "auto_prune_interval_hours", sys_defaults.auto_prune_interval_hours
                ),
                log_max_bytes=system_data.get("log_max_bytes", sys_defaults.log_max_bytes),
                log_backup_count=system_data.get("log_backup_count", sys_defaults.log_backup_count),
            ),
            detection=_load_detection_config(data.get("detection", {})),
            collector=_load_collector_config(data.get("collector", {})),
            alerts=_load_alerts_config(data.get("alerts", {})),
        )


def _load_detection_config(data: dict) -> DetectionConfig:
    """Load detection config from TOML data, validating via the engine config."""
    d = DetectionConfig()
    detection = DetectionConfig(
        **{f.name: data.get(f.name, getattr(d, f.name)) for f in fields(DetectionConfig)}
    )
    # Raises ValueError with the offending field name
    detection.to_engine_config()
    return detection


def _load_collector_config(data: dict) -> CollectorConfig:
    """Load collector config from TOML data."""
    d = CollectorConfig()
    min_tracked_mb = data.get("min_tracked_mb", d.min_tracked_mb)
    if min_tracked_mb < 0:
        raise ValueError(f"min_tracked_mb must be >= 0, got {min_tracked_mb}")
    return CollectorConfig(
        min_tracked_mb=min_tracked_mb,
        exclude=list(data.get("exclude", d.exclude)),
    )


def _load_alerts_config(data: dict) -> AlertsConfig:
    """Load alerts config from TOML data."""
    d = AlertsConfig()
    min_severity = data.get("min_severity", d.min_severity)
    if min_severity not in VALID_SEVERITIES:
        raise ValueError(
            f"Invalid min_severity: {min_severity!r}. Must be one of {VALID_SEVERITIES}"
        )
    return AlertsConfig(
        enabled=data.get("enabled", d.enabled),
        sound=data.get("sound", d.sound),
        min_severity=min_severity,
    )
