"""Device configuration management.

Settings live in ``~/.rigshift/config.toml``::

    [device]
    id = "MOBILE-001"

    [sync]
    server_url = "https://rigshift.example.invalid"
    max_retries = 3
    interval_seconds = 300.0
    timeout_seconds = 5.0

    [ledger]
    path = "~/.rigshift/ledger.jsonl"
    hash = "rolling"

    [workflow]
    clear_lock_on_reset = false
    safety_violation_lock_threshold = 3

    [catalog]
    path = "/etc/rigshift/catalog.toml"

Every key is optional; missing keys fall back to the defaults above.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import toml  # type: ignore[import-untyped]

DEFAULT_DEVICE_ID = "MOBILE-001"
DEFAULT_SERVER_URL = "https://rigshift.example.invalid"
DEFAULT_MAX_RETRIES = 3
DEFAULT_SYNC_INTERVAL = 300.0
DEFAULT_TIMEOUT = 5.0
DEFAULT_LOCK_THRESHOLD = 3
HASH_ALGORITHMS = ("rolling", "sha256")


def _rigshift_dir() -> Path:
    """Return ~/.rigshift for the current HOME."""
    return Path.home() / ".rigshift"


class ConfigError(Exception):
    """Raised when the config file holds a value of the wrong shape."""


class RigshiftConfig:
    """Manage device configuration"""

    def __init__(self, config_file: Path | None = None) -> None:
        if config_file is None:
            self.config_dir = _rigshift_dir()
            self.config_file = self.config_dir / "config.toml"
        else:
            self.config_file = Path(config_file)
            self.config_dir = self.config_file.parent

    def _load(self) -> dict[str, Any]:
        if not self.config_file.exists():
            return {}
        try:
            data: dict[str, Any] = toml.load(self.config_file)
        except toml.TomlDecodeError as exc:
            raise ConfigError(f"Invalid config file {self.config_file}: {exc}") from exc
        return data

    def _section(self, name: str) -> dict[str, Any]:
        section = self._load().get(name)
        if isinstance(section, dict):
            return section
        return {}

    def _get(self, section: str, key: str, expected: type | tuple[type, ...], default: Any) -> Any:
        value = self._section(section).get(key)
        if value is None:
            return default
        # bool is an int subclass; only accept it where bool is asked for
        wrong_bool = isinstance(value, bool) and expected is not bool
        if wrong_bool or not isinstance(value, expected):
            raise ConfigError(f"[{section}] {key} must be {expected}, got {value!r}")
        return value

    def _set(self, section: str, key: str, value: Any) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        config = self._load()
        section_data = config.get(section)
        if not isinstance(section_data, dict):
            section_data = {}
            config[section] = section_data
        section_data[key] = value
        with open(self.config_file, "w", encoding="utf-8") as f:
            toml.dump(config, f)

    # device

    def get_device_id(self) -> str:
        return self._get("device", "id", str, DEFAULT_DEVICE_ID)

    # sync

    def get_server_url(self) -> str:
        """Get server URL from config"""
        return self._get("sync", "server_url", str, DEFAULT_SERVER_URL).rstrip("/")

    def set_server_url(self, url: str) -> None:
        """Set server URL in config"""
        self._set("sync", "server_url", url)

    def get_max_retries(self) -> int:
        value = self._get("sync", "max_retries", int, DEFAULT_MAX_RETRIES)
        if value < 1:
            raise ConfigError(f"[sync] max_retries must be at least 1, got {value}")
        return value

    def get_sync_interval(self) -> float:
        return float(self._get("sync", "interval_seconds", (int, float), DEFAULT_SYNC_INTERVAL))

    def get_timeout(self) -> float:
        return float(self._get("sync", "timeout_seconds", (int, float), DEFAULT_TIMEOUT))

    # ledger

    def get_ledger_path(self) -> Path:
        raw = self._get("ledger", "path", str, None)
        if raw is None:
            return self.config_dir / "ledger.jsonl"
        return Path(raw).expanduser()

    def get_hash_algorithm(self) -> str:
        value = self._get("ledger", "hash", str, "rolling").lower()
        if value not in HASH_ALGORITHMS:
            raise ConfigError(
                f"[ledger] hash must be one of {', '.join(HASH_ALGORITHMS)}, got {value!r}"
            )
        return value

    # workflow

    def clear_lock_on_reset(self) -> bool:
        """Whether ``reset_workflow`` also lifts a safety lock."""
        return self._get("workflow", "clear_lock_on_reset", bool, False)

    def get_lock_threshold(self) -> int:
        """Number of reported safety violations that locks the workflow."""
        return self._get(
            "workflow", "safety_violation_lock_threshold", int, DEFAULT_LOCK_THRESHOLD
        )

    # catalog

    def get_catalog_path(self) -> Path | None:
        raw = self._get("catalog", "path", str, None)
        return Path(raw).expanduser() if raw else None

    def as_dict(self) -> dict[str, Any]:
        """Return the effective configuration, defaults filled in."""
        catalog_path = self.get_catalog_path()
        return {
            "device": {"id": self.get_device_id()},
            "sync": {
                "server_url": self.get_server_url(),
                "max_retries": self.get_max_retries(),
                "interval_seconds": self.get_sync_interval(),
                "timeout_seconds": self.get_timeout(),
            },
            "ledger": {
                "path": str(self.get_ledger_path()),
                "hash": self.get_hash_algorithm(),
            },
            "workflow": {
                "clear_lock_on_reset": self.clear_lock_on_reset(),
                "safety_violation_lock_threshold": self.get_lock_threshold(),
            },
            "catalog": {"path": str(catalog_path) if catalog_path else None},
        }
