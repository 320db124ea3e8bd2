"""
Configuration management and loading.

Handles storage, tracker, chart and logging settings.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from credit_usage.core.series import DEFAULT_MAX_TICKS, DEFAULT_TICK_LADDER, DEFAULT_WINDOW_DAYS
from credit_usage.storage.db import DEFAULT_DB_PATH

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class StorageConfig:
    """Where the ledger and usage state live."""
    path: str = DEFAULT_DB_PATH

    def __post_init__(self):
        if not self.path or not self.path.strip():
            raise ValueError("storage path cannot be empty")


@dataclass(frozen=True)
class TrackerConfig:
    """Daily usage tracker settings."""
    timezone: Optional[str] = None
    retention_days: int = 30
    usage_log_url: Optional[str] = None
    usage_log_timeout: float = 5.0

    def __post_init__(self):
        """Validate tracker values."""
        if self.retention_days <= 0:
            raise ValueError("retention_days must be > 0")
        if self.usage_log_timeout <= 0:
            raise ValueError("usage_log_timeout must be > 0")
        if self.timezone is not None:
            try:
                ZoneInfo(self.timezone)
            except (ZoneInfoNotFoundError, ValueError):
                raise ValueError(f"Unknown timezone: {self.timezone}")


@dataclass(frozen=True)
class ChartConfig:
    """Usage chart settings."""
    window_days: int = DEFAULT_WINDOW_DAYS
    max_ticks: int = DEFAULT_MAX_TICKS
    tick_ladder: Tuple[int, ...] = DEFAULT_TICK_LADDER

    def __post_init__(self):
        """Validate chart values."""
        if self.window_days <= 0:
            raise ValueError("window_days must be > 0")
        if self.max_ticks <= 0:
            raise ValueError("max_ticks must be > 0")
        if not self.tick_ladder:
            raise ValueError("tick_ladder cannot be empty")
        if any(step <= 0 for step in self.tick_ladder):
            raise ValueError("tick_ladder steps must be > 0")
        if list(self.tick_ladder) != sorted(set(self.tick_ladder)):
            raise ValueError("tick_ladder must be strictly ascending")


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"

    def __post_init__(self):
        if self.level not in LOG_LEVELS:
            raise ValueError(f"logging level must be one of: {list(LOG_LEVELS)}")


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    storage: StorageConfig = field(default_factory=StorageConfig)
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    chart: ChartConfig = field(default_factory=ChartConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def default_config() -> AppConfig:
    """Configuration used when no file is given."""
    return AppConfig()


def load_config(path: str) -> AppConfig:
    """Load and validate application configuration from YAML file.

    Every section is optional; omitted values keep their defaults. Unknown
    keys are rejected so typos don't silently fall back to defaults.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        return default_config()
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'storage', 'tracker', 'chart', 'logging'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    storage_data = _section(raw_config, 'storage', {'path'})
    tracker_data = _section(
        raw_config, 'tracker',
        {'timezone', 'retention_days', 'usage_log_url', 'usage_log_timeout'}
    )
    chart_data = _section(raw_config, 'chart', {'window_days', 'max_ticks', 'tick_ladder'})
    logging_data = _section(raw_config, 'logging', {'level'})

    storage = StorageConfig(
        path=_optional_str(storage_data, 'path', 'storage') or DEFAULT_DB_PATH
    )

    tracker = TrackerConfig(
        timezone=_optional_str(tracker_data, 'timezone', 'tracker'),
        retention_days=_int(tracker_data, 'retention_days', 'tracker', 30),
        usage_log_url=_optional_str(tracker_data, 'usage_log_url', 'tracker'),
        usage_log_timeout=_number(tracker_data, 'usage_log_timeout', 'tracker', 5.0)
    )

    ladder = chart_data.get('tick_ladder', list(DEFAULT_TICK_LADDER))
    if not isinstance(ladder, list) or not all(_is_int(step) for step in ladder):
        raise ValueError("'tick_ladder' in chart must be a list of integers")

    chart = ChartConfig(
        window_days=_int(chart_data, 'window_days', 'chart', DEFAULT_WINDOW_DAYS),
        max_ticks=_int(chart_data, 'max_ticks', 'chart', DEFAULT_MAX_TICKS),
        tick_ladder=tuple(ladder)
    )

    level = logging_data.get('level', 'INFO')
    if not isinstance(level, str):
        raise ValueError("'level' in logging must be a string")

    return AppConfig(
        storage=storage,
        tracker=tracker,
        chart=chart,
        logging=LoggingConfig(level=level.upper())
    )


def _section(raw_config: Dict, name: str, allowed_keys: set) -> Dict[str, Any]:
    """Return a validated config section (empty when omitted)."""
    data = raw_config.get(name)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {name}: {unknown_keys}")
    return data


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _int(data: Dict, key: str, path: str, default: int) -> int:
    value = data.get(key, default)
    if not _is_int(value):
        raise ValueError(f"'{key}' in {path} must be an integer")
    return value


def _number(data: Dict, key: str, path: str, default: float) -> float:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' in {path} must be a number")
    return float(value)


def _optional_str(data: Dict, key: str, path: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' in {path} must be a string")
    return value
