"""Configuration management for TaskSync.

This module handles loading and saving application configuration to/from
a JSON file. The config directory can be customized via CLI argument or the
TASKSYNC_CONFIG_DIR environment variable.

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from .models import DEFAULT_USER_ID
from .validation import ValidationError

logger = logging.getLogger(__name__)

__all__ = ["Config", "DEFAULT_CONFIG", "STORE_BACKENDS"]

CONFIG_DIR_ENV = "TASKSYNC_CONFIG_DIR"

STORE_BACKENDS = ("sqlite", "memory")

DEFAULT_CONFIG: Dict[str, Any] = {
    "database_file": None,  # None means <config_dir>/tasks.db
    "store": "sqlite",
    "default_user_id": DEFAULT_USER_ID,
    "server_host": "127.0.0.1",
    "server_port": 3000,
    "log_level": "INFO",
    "api_url": "http://localhost:3000/api",
}


class Config:
    """Manages application configuration stored in JSON format.

    Attributes:
        config_dir: Path to the configuration directory
        config_data: Current configuration values (defaults merged in)
    """

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        """Initialize configuration manager.

        Args:
            config_dir: Custom config directory path. If None, uses
                $TASKSYNC_CONFIG_DIR or ~/.config/tasksync/
        """
        if config_dir is None:
            env_dir = os.environ.get(CONFIG_DIR_ENV)
            config_dir = Path(env_dir) if env_dir else Path.home() / ".config" / "tasksync"
        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_data = self.load_config()

    @property
    def config_file(self) -> Path:
        """Get the config file path."""
        return self.config_dir / "config.json"

    def load_config(self) -> Dict[str, Any]:
        """Load configuration, creating the file with defaults if missing.

        Raises:
            ValidationError: If the file exists but is not a JSON object
        """
        if not self.config_file.exists():
            data = dict(DEFAULT_CONFIG)
            self.save_config(data)
            logger.info(f"Created default config at {self.config_file}")
            return data

        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                stored = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError("config", f"invalid JSON in {self.config_file}: {e}") from None

        if not isinstance(stored, dict):
            raise ValidationError("config", f"{self.config_file} must contain a JSON object")

        data = dict(DEFAULT_CONFIG)
        data.update(stored)
        return data

    def save_config(self, config: Dict[str, Any]) -> None:
        """Write configuration to the config file."""
        with open(self.config_file, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2, ensure_ascii=False)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        value = self.config_data.get(key)
        return value if value is not None else default

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value and save to file."""
        self.config_data[key] = value
        self.save_config(self.config_data)

    def get_config_dir(self) -> Path:
        """Get the configuration directory path."""
        return self.config_dir

    def get_database_file(self) -> Path:
        """Get the SQLite database path."""
        configured = self.get("database_file")
        if configured:
            return Path(configured).expanduser()
        return self.config_dir / "tasks.db"

    def get_store_backend(self) -> str:
        """Get the task store backend name ("sqlite" or "memory")."""
        backend = str(self.get("store", "sqlite")).lower()
        if backend not in STORE_BACKENDS:
            raise ValidationError("store", f"must be one of {', '.join(STORE_BACKENDS)}, got '{backend}'")
        return backend

    def get_default_user_id(self) -> str:
        """Get the owner assigned to tasks and queries without a user."""
        return str(self.get("default_user_id", DEFAULT_USER_ID))

    def get_server_host(self) -> str:
        """Get the host the web server binds to."""
        return str(self.get("server_host", DEFAULT_CONFIG["server_host"]))

    def get_server_port(self) -> int:
        """Get the web server port."""
        return self._validate_port(self.get("server_port", DEFAULT_CONFIG["server_port"]))

    def set_server_port(self, port: int) -> None:
        """Set the web server port."""
        self.set("server_port", self._validate_port(port))

    def get_log_level(self) -> str:
        """Get the logging level name."""
        return str(self.get("log_level", "INFO")).upper()

    def get_api_url(self) -> str:
        """Get the base URL of the remote TaskSync API."""
        return str(self.get("api_url", DEFAULT_CONFIG["api_url"])).rstrip("/")

    @staticmethod
    def _validate_port(port: Any) -> int:
        try:
            value = int(port)
        except (TypeError, ValueError):
            raise ValidationError("server_port", f"must be an integer, got '{port}'") from None
        if not 1 <= value <= 65535:
            raise ValidationError("server_port", f"must be between 1 and 65535, got {value}")
        return value
