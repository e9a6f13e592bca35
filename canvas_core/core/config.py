"""Configuration for canvas-core clients.

``ClientConfig`` is what a :class:`~canvas_core.core.http_client.CanvasClient`
is built from. ``Settings`` fills one in from several sources:
- YAML/TOML configuration files
- Environment variables (.env)
- Default values

Includes validation so a client never starts without a base URL or
credential.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import yaml
from dotenv import load_dotenv

from canvas_core.core.errors import ConfigurationError
from canvas_core.core.rate_limiter import DEFAULT_REQUESTS_PER_SECOND

DEFAULT_TIMEOUT = 30.0
DEFAULT_USER_AGENT = "canvas-cli"
DEFAULT_QUOTA_TOTAL = 700.0

ENV_PREFIX = "CANVAS_"


@dataclass
class ClientConfig:
    """Settings for one Canvas client instance."""

    base_url: str = ""
    token: str = ""
    token_source: Any = None
    requests_per_sec: float = DEFAULT_REQUESTS_PER_SECOND
    timeout: float = DEFAULT_TIMEOUT
    as_user_id: int = 0
    cache: Any = None
    cache_enabled: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    max_results: int = 0
    dry_run: bool = False
    show_token: bool = False
    quota_total: float = DEFAULT_QUOTA_TOTAL
    version_store: Any = None
    transport: Optional[httpx.AsyncBaseTransport] = None

    def validate(self) -> None:
        """Check required settings and fill defaults for zero values.

        Raises:
            ConfigurationError: If the base URL or credential is missing
        """
        if not self.base_url:
            raise ConfigurationError("base URL is required")
        if not self.token and self.token_source is None:
            raise ConfigurationError("token or token source is required")

        self.base_url = self.base_url.rstrip("/")
        if self.requests_per_sec <= 0:
            self.requests_per_sec = DEFAULT_REQUESTS_PER_SECOND
        if self.timeout <= 0:
            self.timeout = DEFAULT_TIMEOUT
        if not self.user_agent:
            self.user_agent = DEFAULT_USER_AGENT
        if self.quota_total <= 0:
            self.quota_total = DEFAULT_QUOTA_TOTAL


@dataclass
class ValidationResult:
    """Result of settings validation."""

    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Add an error message."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)

    def __str__(self) -> str:
        lines = []
        if self.errors:
            lines.append("Errors:")
            lines.extend(f"  - {e}" for e in self.errors)
        if self.warnings:
            lines.append("Warnings:")
            lines.extend(f"  - {w}" for w in self.warnings)
        if not lines:
            return "Configuration is valid."
        return "\n".join(lines)


DEFAULTS: Dict[str, Any] = {
    "base_url": "",
    "token": "",
    "requests_per_sec": DEFAULT_REQUESTS_PER_SECOND,
    "timeout": DEFAULT_TIMEOUT,
    "as_user_id": 0,
    "cache_enabled": False,
    "user_agent": DEFAULT_USER_AGENT,
    "max_results": 0,
    "dry_run": False,
    "show_token": False,
    "quota_total": DEFAULT_QUOTA_TOTAL,
    "logging": {"level": "INFO", "file": "", "json": False},
}

_BOOL_TRUE = {"1", "true", "yes", "on"}


class Settings:
    """Layered settings source for canvas-core."""

    def __init__(self, config_file: Optional[str] = None, env_file: Optional[str] = ".env"):
        """
        Initialize settings.

        Args:
            config_file: Path to YAML or TOML config file (optional)
            env_file: Path to a .env file loaded if present
        """
        self.logger = logging.getLogger(self.__class__.__name__)
        self._config: Dict[str, Any] = {}

        if env_file and Path(env_file).exists():
            load_dotenv(env_file)
            self.logger.info("Loaded environment variables from %s", env_file)

        if config_file:
            self._load_config_file(config_file)

        self._load_defaults()

    def _load_config_file(self, config_file: str) -> None:
        """Load configuration from YAML or TOML file."""
        config_path = Path(config_file)

        if not config_path.exists():
            self.logger.warning("Config file not found: %s", config_file)
            return

        with open(config_path, "rb") as f:
            if config_file.endswith((".yaml", ".yml")):
                loaded = yaml.safe_load(f) or {}
            elif config_file.endswith(".toml"):
                loaded = tomllib.load(f)
            else:
                raise ConfigurationError(f"Unsupported config format: {config_file}")

        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Config file {config_file} must contain a mapping")

        # A [canvas] table / canvas: section is accepted as the root
        self._config = loaded.get("canvas", loaded)
        self.logger.info("Loaded config from %s", config_file)

    def _load_defaults(self) -> None:
        """Merge default values under the loaded configuration."""
        for key, value in DEFAULTS.items():
            if key not in self._config:
                self._config[key] = dict(value) if isinstance(value, dict) else value
            elif isinstance(value, dict):
                self._config[key] = {**value, **self._config.get(key, {})}

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value.

        Supports dot notation for nested keys: "logging.level". Environment
        variables (``CANVAS_LOGGING_LEVEL``) take priority.

        Args:
            key: Configuration key (supports dot notation)
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        env_value = os.getenv(ENV_PREFIX + key.upper().replace(".", "_"))
        if env_value is not None:
            return env_value

        value: Any = self._config
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def _get_bool(self, key: str) -> bool:
        value = self.get(key, False)
        if isinstance(value, str):
            return value.strip().lower() in _BOOL_TRUE
        return bool(value)

    def _get_number(self, key: str, cast: type) -> Any:
        value = self.get(key, DEFAULTS.get(key))
        try:
            return cast(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"{key} must be a number, got {value!r}") from e

    def validate(self) -> ValidationResult:
        """
        Validate the settings.

        Returns:
            ValidationResult with errors and warnings
        """
        result = ValidationResult(is_valid=True)

        if not self.get("base_url"):
            result.add_error("base_url is required")
        elif not str(self.get("base_url")).startswith("https://"):
            result.add_warning("base_url does not use https")

        if not self.get("token"):
            result.add_warning("no token configured; a token source must be supplied")

        for key in ("requests_per_sec", "timeout", "quota_total"):
            try:
                if self._get_number(key, float) <= 0:
                    result.add_error(f"{key} must be a positive number")
            except ConfigurationError as e:
                result.add_error(str(e))

        for key in ("as_user_id", "max_results"):
            try:
                if self._get_number(key, int) < 0:
                    result.add_error(f"{key} must be a non-negative integer")
            except ConfigurationError as e:
                result.add_error(str(e))

        level = str(self.get("logging.level", "INFO")).upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            result.add_error(f"Invalid logging level '{level}'")

        for error in result.errors:
            self.logger.error("Config validation error: %s", error)
        for warning in result.warnings:
            self.logger.warning("Config validation warning: %s", warning)

        return result

    def to_client_config(self, **overrides: Any) -> ClientConfig:
        """
        Build a ClientConfig from these settings.

        Args:
            **overrides: Fields set directly, e.g. ``cache=`` or ``token_source=``

        Returns:
            ClientConfig (validated when the client is created)
        """
        config = ClientConfig(
            base_url=str(self.get("base_url", "")),
            token=str(self.get("token", "")),
            requests_per_sec=self._get_number("requests_per_sec", float),
            timeout=self._get_number("timeout", float),
            as_user_id=self._get_number("as_user_id", int),
            cache_enabled=self._get_bool("cache_enabled"),
            user_agent=str(self.get("user_agent", DEFAULT_USER_AGENT)),
            max_results=self._get_number("max_results", int),
            dry_run=self._get_bool("dry_run"),
            show_token=self._get_bool("show_token"),
            quota_total=self._get_number("quota_total", float),
        )
        for key, value in overrides.items():
            if not hasattr(config, key):
                raise ConfigurationError(f"Unknown client setting: {key}")
            setattr(config, key, value)
        return config
