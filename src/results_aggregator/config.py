"""
Configuration management (SSOT).

This module defines ALL configuration for the results aggregator.
All config keys are defined here; no other module should invent config keys.

Key invariants:
- The database schema is only migrated automatically when
  storage.auto_migrate is set; otherwise the `migration` command must be run
  before the service starts.
- Debug auth (bearer JWT instead of the identity header) is never enabled
  implicitly.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class StorageConfig:
    """Database settings."""

    db_path: Path = field(default_factory=lambda: Path("data/aggregator.db"))
    # Migrate to the latest schema version when the service starts
    auto_migrate: bool = False


@dataclass
class ServerConfig:
    """REST API settings."""

    host: str = "127.0.0.1"
    port: int = 8080
    api_prefix: str = "api/v1/"
    # Require an identity for protected endpoints
    auth: bool = True
    # Accept "Authorization: Bearer <jwt>" instead of the x-rh-identity header
    auth_debug: bool = False


@dataclass
class Config:
    """Application configuration (SSOT)."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if not str(self.storage.db_path):
            errors.append("storage.db_path is required")
        if not 0 < self.server.port < 65536:
            errors.append("server.port must be between 1 and 65535")
        if self.server.api_prefix.startswith("/") or not self.server.api_prefix.endswith("/"):
            errors.append("server.api_prefix must not start with '/' and must end with '/'")
        if self.server.auth_debug and not self.server.auth:
            errors.append("server.auth_debug requires server.auth")

        return errors

    def validate_or_raise(self) -> None:
        errors = self.validate()
        if errors:
            raise ConfigValidationError("; ".join(errors))


def _parse_bool(value: str) -> bool | None:
    lowered = value.lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    return None


def _env_bool(name: str, default: bool) -> bool:
    """Read a boolean override; unset or unrecognized values keep the default."""
    parsed = _parse_bool(os.environ.get(name, ""))
    return default if parsed is None else parsed


def _yaml_bool(value, key: str) -> bool:
    """Accept YAML booleans and their common string spellings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        parsed = _parse_bool(value)
        if parsed is not None:
            return parsed
    raise ConfigValidationError(f"{key} must be a boolean, got {value!r}")


def _section(data: dict, name: str) -> dict:
    """A top-level config section; a present but empty section counts as empty."""
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigValidationError(f"{name} must be a mapping, got {section!r}")
    return section


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - AGGREGATOR_DB_PATH
    - AGGREGATOR_AUTO_MIGRATE (true/false)
    - AGGREGATOR_AUTH_ENABLED (true/false)
    - AGGREGATOR_AUTH_DEBUG (true/false)
    - AGGREGATOR_API_PREFIX
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}
    if not isinstance(data, dict):
        raise ConfigValidationError(f"{config_path} must contain a mapping")

    storage_data = _section(data, "storage")
    storage = StorageConfig(
        db_path=Path(
            os.environ.get("AGGREGATOR_DB_PATH", storage_data.get("db_path", "data/aggregator.db"))
        ),
        auto_migrate=_env_bool(
            "AGGREGATOR_AUTO_MIGRATE",
            _yaml_bool(storage_data.get("auto_migrate", False), "storage.auto_migrate"),
        ),
    )

    server_data = _section(data, "server")
    server = ServerConfig(
        host=server_data.get("host", "127.0.0.1"),
        port=int(server_data.get("port", 8080)),
        api_prefix=os.environ.get(
            "AGGREGATOR_API_PREFIX", server_data.get("api_prefix", "api/v1/")
        ),
        auth=_env_bool(
            "AGGREGATOR_AUTH_ENABLED", _yaml_bool(server_data.get("auth", True), "server.auth")
        ),
        auth_debug=_env_bool(
            "AGGREGATOR_AUTH_DEBUG",
            _yaml_bool(server_data.get("auth_debug", False), "server.auth_debug"),
        ),
    )

    return Config(storage=storage, server=server)


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Results Aggregator Configuration

storage:
  db_path: "data/aggregator.db"   # SQLite database file
  auto_migrate: false             # Migrate to latest schema on start-service

server:
  host: "127.0.0.1"
  port: 8080
  api_prefix: "api/v1/"
  auth: true                      # Require x-rh-identity for protected endpoints
  auth_debug: false               # Accept "Authorization: Bearer <jwt>" instead (local only)
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
