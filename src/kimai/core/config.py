"""Configuration management for Kimai."""

import copy
import logging
import os
import secrets
from pathlib import Path
from typing import Any, Optional

import yaml  # type: ignore[import-untyped]
from jsonschema import ValidationError, validate  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

# environment variable naming the config file when no path is given
CONFIG_ENV = "KIMAI_CONFIG"


class ConfigManager:
    """Manage application configuration."""

    DEFAULT_CONFIG = {
        "version": "1.0",
        "general": {
            "data_dir": "~/.kimai/data",
            "timezone": "UTC",
            "locale": "en",
            "currency": "EUR",
            "title": "Kimai",
        },
        "timesheet": {
            "mode": "default",
            "default_begin": "08:00",
            "recent_size": 10,
            "meta_fields": [],
            "active_entries": {
                "hard_limit": 1,
            },
            "rules": {
                "allow_zero_duration": False,
                "allow_future_times": True,
            },
        },
        "quick_entry": {
            "recent_activities": 5,
            "recent_activity_weeks": 3,
            "minimum_rows": 3,
        },
        "invoice": {
            "number_format": "{Y}/{cy,3}",
            "documents_dir": "~/.kimai/invoices/documents",
            "archive_dir": "~/.kimai/invoices/archive",
        },
        "plugins": {
            "directory": "~/.kimai/plugins",
            "marketplace_url": "https://www.kimai.org/plugins.json",
            "cache_ttl": 86400,
        },
        "translations": {
            "directory": "~/.kimai/translations",
        },
        "logging": {
            "level": "INFO",
            "file": None,
        },
        "api": {
            "enabled": False,
            "host": "localhost",
            "port": 8000,
            "workers": 1,
            "authentication": {
                "enabled": True,
                "token_expiry_hours": 24,
                "secret_key": None,
            },
            "cors": {
                "enabled": True,
                "origins": ["http://localhost:3000", "http://localhost:5173"],
            },
            "ssl": {
                "enabled": False,
                "cert_file": None,
                "key_file": None,
            },
            "advanced": {
                "reload": False,
                "log_level": "info",
                "access_log": True,
            },
        },
    }

    CONFIG_SCHEMA = {
        "type": "object",
        "properties": {
            "version": {"type": "string"},
            "general": {
                "type": "object",
                "properties": {
                    "data_dir": {"type": "string"},
                    "timezone": {"type": "string"},
                    "locale": {"type": "string"},
                    "currency": {"type": "string", "pattern": "^[A-Z]{3}$"},
                    "title": {"type": "string"},
                },
            },
            "timesheet": {
                "type": "object",
                "properties": {
                    "mode": {"type": "string", "enum": ["default", "punch", "duration"]},
                    "default_begin": {
                        "type": "string",
                        "pattern": "^([01][0-9]|2[0-3]):[0-5][0-9]$",
                    },
                    "recent_size": {"type": "integer", "minimum": 1, "maximum": 100},
                    "meta_fields": {"type": "array", "items": {"type": "string"}},
                    "active_entries": {
                        "type": "object",
                        "properties": {
                            "hard_limit": {"type": "integer", "minimum": 1},
                        },
                    },
                    "rules": {
                        "type": "object",
                        "properties": {
                            "allow_zero_duration": {"type": "boolean"},
                            "allow_future_times": {"type": "boolean"},
                        },
                    },
                },
            },
            "quick_entry": {
                "type": "object",
                "properties": {
                    "recent_activities": {"type": "integer", "minimum": 0},
                    "recent_activity_weeks": {"type": "integer", "minimum": 0},
                    "minimum_rows": {"type": "integer", "minimum": 1},
                },
            },
            "invoice": {
                "type": "object",
                "properties": {
                    "number_format": {"type": "string", "minLength": 1},
                    "documents_dir": {"type": "string"},
                    "archive_dir": {"type": "string"},
                },
            },
            "plugins": {
                "type": "object",
                "properties": {
                    "directory": {"type": "string"},
                    "marketplace_url": {"type": "string"},
                    "cache_ttl": {"type": "integer", "minimum": 0},
                },
            },
            "translations": {
                "type": "object",
                "properties": {
                    "directory": {"type": "string"},
                },
            },
            "logging": {
                "type": "object",
                "properties": {
                    "level": {
                        "type": "string",
                        "enum": ["DEBUG", "INFO", "WARNING", "ERROR"],
                    },
                    "file": {"type": ["string", "null"]},
                },
            },
            "api": {
                "type": "object",
                "properties": {
                    "enabled": {"type": "boolean"},
                    "host": {"type": "string"},
                    "port": {"type": "integer", "minimum": 1, "maximum": 65535},
                    "workers": {"type": "integer", "minimum": 1, "maximum": 16},
                    "authentication": {
                        "type": "object",
                        "properties": {
                            "enabled": {"type": "boolean"},
                            "token_expiry_hours": {
                                "type": "integer",
                                "minimum": 1,
                                "maximum": 8760,
                            },
                            "secret_key": {"type": ["string", "null"]},
                        },
                    },
                    "cors": {
                        "type": "object",
                        "properties": {
                            "enabled": {"type": "boolean"},
                            "origins": {
                                "type": "array",
                                "items": {"type": "string"},
                            },
                        },
                    },
                    "ssl": {
                        "type": "object",
                        "properties": {
                            "enabled": {"type": "boolean"},
                            "cert_file": {"type": ["string", "null"]},
                            "key_file": {"type": ["string", "null"]},
                        },
                    },
                    "advanced": {
                        "type": "object",
                        "properties": {
                            "reload": {"type": "boolean"},
                            "log_level": {"type": "string"},
                            "access_log": {"type": "boolean"},
                        },
                    },
                },
            },
        },
        "required": ["version"],
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to config file. Defaults to $KIMAI_CONFIG or
                ~/.kimai/config.yml
        """
        if config_path is None:
            env_path = os.environ.get(CONFIG_ENV)
            config_path = Path(env_path) if env_path else Path.home() / ".kimai" / "config.yml"
        self.config_path = Path(config_path)
        self._config: dict[str, Any] = {}
        self._load_or_create()

    def _load_or_create(self) -> None:
        """Load existing config or create default."""
        if self.config_path.exists():
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f) or {}
            # Merge with defaults to ensure all keys exist
            self._config = self._merge_with_defaults(loaded_config)
            try:
                self.validate()
            except ValueError as e:
                backup_path = self.config_path.with_suffix(".yml.backup")
                self.config_path.rename(backup_path)
                self._config = copy.deepcopy(self.DEFAULT_CONFIG)
                self.save()
                logger.warning(f"Invalid configuration moved to {backup_path}")
                raise ValueError(
                    f"Config validation failed, backed up to {backup_path}. "
                    f"Using defaults. Error: {e}"
                )
        else:
            self._config = copy.deepcopy(self.DEFAULT_CONFIG)
            self.save()

    def _merge_with_defaults(self, config: dict[str, Any]) -> dict[str, Any]:
        result = copy.deepcopy(self.DEFAULT_CONFIG)
        self._deep_merge(result, config)
        return result

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> None:
        """Deep merge override into base dictionary (in-place)."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key: Configuration key in dot notation (e.g., 'timesheet.rules.allow_zero_duration')
            default: Default value if key not found

        Returns:
            Configuration value or default

        Example:
            >>> config.get('timesheet.mode')
            'default'
            >>> config.get('nonexistent.key', 'default')
            'default'
        """
        keys = key.split(".")
        value: Any = self._config
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
            if value is None:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key: Configuration key in dot notation
            value: Value to set

        Raises:
            ValueError: If configuration is invalid after setting
        """
        keys = key.split(".")
        previous = copy.deepcopy(self._config)
        config = self._config
        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]
        config[keys[-1]] = value
        try:
            self.validate()
        except ValueError:
            self._config = previous
            raise
        self.save()

    def validate(self) -> bool:
        """Validate configuration against schema.

        Raises:
            ValueError: If configuration is invalid
        """
        try:
            validate(instance=self._config, schema=self.CONFIG_SCHEMA)
            return True
        except ValidationError as e:
            raise ValueError(f"Invalid configuration: {e.message}")

    def save(self) -> None:
        """Save configuration to file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.dump(
                self._config, f, default_flow_style=False, sort_keys=False, allow_unicode=True
            )

    def reset(self) -> None:
        """Reset to default configuration."""
        self._config = copy.deepcopy(self.DEFAULT_CONFIG)
        self.save()

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._config)

    def get_all_keys(self, prefix: str = "") -> list[str]:
        """Get all configuration keys in dot notation.

        Example:
            >>> config.get_all_keys()
            ['version', 'general.data_dir', 'general.timezone', ...]
        """
        keys = []
        config = self._config if not prefix else self.get(prefix, {})

        if isinstance(config, dict):
            for key, value in config.items():
                full_key = f"{prefix}.{key}" if prefix else key
                if isinstance(value, dict):
                    keys.extend(self.get_all_keys(full_key))
                else:
                    keys.append(full_key)
        return keys

    def get_path(self, key: str) -> Path:
        """Get a configured directory as an expanded path."""
        return Path(str(self.get(key))).expanduser()

    def ensure_api_secret_key(self) -> str:
        """Ensure API secret key exists, generate if needed.

        Returns:
            The API secret key
        """
        secret_key: Optional[str] = self.get("api.authentication.secret_key")
        if not secret_key:
            # 256 bits
            secret_key = secrets.token_urlsafe(32)
            self.set("api.authentication.secret_key", secret_key)
        return secret_key
