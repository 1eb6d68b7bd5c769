"""Configuration management: TOML loading and option models.

Usage:
    >>> from cloudsql_exporter.config import load_config, BackupOptions, RestoreOptions
"""

from cloudsql_exporter.config.loader import load_config, password_from_env
from cloudsql_exporter.config.models import BackupOptions, ExporterConfig, RestoreOptions

__all__ = [
    "load_config",
    "password_from_env",
    "ExporterConfig",
    "BackupOptions",
    "RestoreOptions",
]
