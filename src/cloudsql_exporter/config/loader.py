"""Configuration loading from TOML."""

import os
import tomllib
from pathlib import Path

from pydantic import ValidationError

from cloudsql_exporter.config.models import ExporterConfig

DEFAULT_CONFIG_FILE = "cloudsql-exporter.toml"
CONFIG_ENV_VAR = "CLOUDSQL_EXPORTER_CONFIG"
PASSWORD_ENV_VAR = "CLOUDSQL_PASSWORD"


def _resolve_config_path(config_path: Path | None, env_prefix: str) -> Path | None:
    """Pick the config file: explicit path, env var, then ./cloudsql-exporter.toml."""
    if config_path is not None:
        return config_path

    env_path = os.environ.get(f"{env_prefix}{CONFIG_ENV_VAR}")
    if env_path:
        return Path(env_path)

    default_path = Path.cwd() / DEFAULT_CONFIG_FILE
    if default_path.exists():
        return default_path
    return None


def load_config(config_path: Path | None = None, env_prefix: str = "") -> ExporterConfig:
    """Load exporter configuration from TOML file.

    Reads the ``[exporter]`` table.  Without a file, defaults are used.

    Args:
        config_path: Path to a TOML file.  When ``None``, uses
            ``{env_prefix}CLOUDSQL_EXPORTER_CONFIG`` or
            ``./cloudsql-exporter.toml`` if present.
        env_prefix: Prefix for environment variable lookup.

    Returns:
        ExporterConfig

    Raises:
        FileNotFoundError: If an explicitly given config file doesn't exist
        ValueError: If config format is invalid
    """
    path = _resolve_config_path(config_path, env_prefix)
    if path is None:
        return ExporterConfig()

    if not path.exists():
        raise FileNotFoundError(f"Exporter config not found: {path}")

    with open(path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML in {path}: {e}") from e

    try:
        return ExporterConfig(**data.get("exporter", {}))
    except ValidationError as e:
        raise ValueError(f"Invalid exporter config in {path}:\n{e}") from e


def password_from_env(env_prefix: str = "") -> str | None:
    """Database password from ``{env_prefix}CLOUDSQL_PASSWORD``, if set."""
    return os.environ.get(f"{env_prefix}{PASSWORD_ENV_VAR}") or None
