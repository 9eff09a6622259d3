"""Configuration models and paths for oken."""

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

APP_NAME = "oken"
CONFIG_FILE = "config.yaml"
HOSTS_FILE = "hosts.yaml"
TUNNELS_FILE = "tunnels.yaml"
HISTORY_DB = "history.db"
AUDIT_LOG = "audit.log"


class OkenConfig(BaseModel):
    """User settings from config.yaml."""

    reconnect: bool = True
    reconnect_retries: int = Field(default=3, ge=0)
    reconnect_delay: str = "5s"
    keepalive_interval: int = Field(default=60, ge=1)
    keepalive_count_max: int = Field(default=3, ge=1)
    # ssh exits with 255 both on link loss and on its own errors; we can't tell them apart.
    connection_lost_exit_code: int = 255
    danger_tags: list[str] = ["prod", "production"]

    @field_validator("reconnect_delay")
    @classmethod
    def validate_duration(cls, v: str) -> str:
        parse_duration(v)
        return v

    @property
    def reconnect_delay_secs(self) -> int:
        return parse_duration(self.reconnect_delay)


def parse_duration(duration_str: str) -> int:
    """Parse duration string to seconds. Supports: 30s, 5m, 2h, 1d."""
    duration_str = duration_str.strip().lower()
    if not duration_str:
        raise ValueError("Empty duration string")

    multipliers = {"s": 1, "m": 60, "h": 3600, "d": 86400}
    unit = duration_str[-1]

    if unit not in multipliers:
        raise ValueError(f"Invalid duration unit: {unit}. Use s, m, h, or d.")

    try:
        value = int(duration_str[:-1])
    except ValueError:
        raise ValueError(f"Invalid duration value: {duration_str[:-1]}")

    return value * multipliers[unit]


def _xdg_dir(env_var: str, fallback: str) -> Path:
    base = os.environ.get(env_var)
    if base and Path(base).is_absolute():
        root = Path(base)
    else:
        root = Path.home() / fallback
    path = root / APP_NAME
    path.mkdir(parents=True, exist_ok=True)
    return path


def config_dir() -> Path:
    """$XDG_CONFIG_HOME/oken, or ~/.config/oken."""
    return _xdg_dir("XDG_CONFIG_HOME", ".config")


def data_dir() -> Path:
    """$XDG_DATA_HOME/oken, or ~/.local/share/oken."""
    return _xdg_dir("XDG_DATA_HOME", ".local/share")


def ssh_config_path() -> Path:
    return Path.home() / ".ssh" / "config"


def load_config(path: Path | None = None) -> OkenConfig:
    """Load configuration from YAML. Missing or invalid files give the defaults."""
    if path is None:
        path = config_dir() / CONFIG_FILE
    if not path.exists():
        return OkenConfig()

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return OkenConfig(**data)
    except (OSError, UnicodeDecodeError, yaml.YAMLError, ValidationError, TypeError) as e:
        logger.warning(f"Ignoring invalid {path}: {e}")
        return OkenConfig()


def get_config_template() -> str:
    """Get the default configuration template."""
    return """# oken configuration

# Re-run ssh automatically when the connection drops.
reconnect: true
reconnect_retries: 3
reconnect_delay: 5s  # s, m, h or d

# Prepended as -o ServerAliveInterval=N -o ServerAliveCountMax=M
# unless you pass ServerAliveInterval yourself.
keepalive_interval: 60
keepalive_count_max: 3

# Exit code treated as "connection lost". ssh also uses it for its own
# errors (bad host key, refused auth), which will be retried too.
connection_lost_exit_code: 255

# Hosts carrying any of these tags ask for confirmation before connecting.
danger_tags:
  - prod
  - production
"""
