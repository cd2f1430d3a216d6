"""
Engine configuration.

Values come from, in increasing priority:
1. Defaults below
2. A YAML config file (optional)
3. Environment variables

Environment variables:
    PROACTIVE_INTERVAL       - Seconds between cycles (default: 60)
    PROACTIVE_TIMEZONE       - IANA timezone for day boundaries (default: "UTC")
    PROACTIVE_STATE_FILE     - JSON file holding calendar-day throttle flags
    PROACTIVE_SNAPSHOT_FILE  - JSON file the host exports its data to
    PROACTIVE_LOG_DIR        - Directory for log files (default: ./logs)
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

DEFAULT_BASE_DIR = Path(os.getenv("PROACTIVE_HOME", str(Path.home() / ".proactive-signals")))

ENV_OVERRIDES = {
    "PROACTIVE_INTERVAL": "interval_seconds",
    "PROACTIVE_TIMEZONE": "timezone",
    "PROACTIVE_STATE_FILE": "state_file",
    "PROACTIVE_SNAPSHOT_FILE": "snapshot_file",
    "PROACTIVE_LOG_DIR": "log_dir",
}


@dataclass
class EngineConfig:
    interval_seconds: float = 60
    timezone: str = "UTC"
    goal_lookahead_days: int = 7
    goal_stale_days: int = 3
    sleep_threshold_hours: float = 6.0
    state_file: Path = field(default_factory=lambda: DEFAULT_BASE_DIR / "suppression.json")
    snapshot_file: Path = field(default_factory=lambda: DEFAULT_BASE_DIR / "snapshot.json")
    log_dir: Path = field(default_factory=lambda: DEFAULT_BASE_DIR / "logs")

    def __post_init__(self):
        self.interval_seconds = float(self.interval_seconds)
        self.goal_lookahead_days = int(self.goal_lookahead_days)
        self.goal_stale_days = int(self.goal_stale_days)
        self.sleep_threshold_hours = float(self.sleep_threshold_hours)
        self.state_file = Path(self.state_file).expanduser()
        self.snapshot_file = Path(self.snapshot_file).expanduser()
        self.log_dir = Path(self.log_dir).expanduser()

        if self.interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {self.interval_seconds}")
        if self.goal_lookahead_days < 1:
            raise ValueError(f"goal_lookahead_days must be >= 1, got {self.goal_lookahead_days}")
        if self.goal_stale_days < 0:
            raise ValueError(f"goal_stale_days must be >= 0, got {self.goal_stale_days}")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone {self.timezone!r}") from e

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    # Allow the settings to be nested under a "proactive:" key
    if isinstance(data.get("proactive"), dict):
        data = data["proactive"]
    return data


def load_config(path: Optional[Path] = None, environ: Optional[Dict[str, str]] = None) -> EngineConfig:
    """Build an EngineConfig from defaults, an optional YAML file and the environment."""
    environ = os.environ if environ is None else environ
    known = {f.name for f in fields(EngineConfig)}
    values: Dict[str, Any] = {}

    if path is not None:
        file_values = _read_yaml(Path(path))
        unknown = sorted(set(file_values) - known)
        if unknown:
            raise ValueError(f"{path}: unknown config keys: {', '.join(unknown)}")
        values.update(file_values)

    for env_name, key in ENV_OVERRIDES.items():
        if environ.get(env_name):
            values[key] = environ[env_name]

    try:
        return EngineConfig(**values)
    except (TypeError, ValueError) as e:
        raise ValueError(f"invalid configuration: {e}") from e
