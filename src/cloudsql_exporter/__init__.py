"""cloudsql-exporter: back up and restore Google Cloud SQL databases.

Exports every database of one or all Cloud SQL instances of a project to
SQL dumps in a Cloud Storage bucket, and restores a dump into a dedicated
restore instance with a row-count integrity check.

Usage:
    from cloudsql_exporter import create_services, backup_instances, restore_instance
    from cloudsql_exporter import BackupOptions, RestoreOptions, load_config

    services = create_services("my-project", load_config())
    locations = await backup_instances(services, BackupOptions(
        bucket="my-bucket", project="my-project",
    ))
"""

__version__ = "0.1.0"

# Orchestrators
from cloudsql_exporter.backup.export import backup_instances
from cloudsql_exporter.backup.restore import restore_instance

# Artifacts
from cloudsql_exporter.backup.location import BackupLocation
from cloudsql_exporter.backup.models import RestoreResult, TableStatistic

# Config
from cloudsql_exporter.config.loader import load_config
from cloudsql_exporter.config.models import BackupOptions, ExporterConfig, RestoreOptions

# Factory
from cloudsql_exporter.factory import Services, create_services

# Errors
from cloudsql_exporter.errors import (
    ConfigurationError,
    ExporterError,
    IntegrityValidationError,
    OperationFailedError,
    OperationTimeoutError,
)

__all__ = [
    # Orchestrators
    "backup_instances",
    "restore_instance",
    # Artifacts
    "BackupLocation",
    "RestoreResult",
    "TableStatistic",
    # Config
    "load_config",
    "ExporterConfig",
    "BackupOptions",
    "RestoreOptions",
    # Factory
    "Services",
    "create_services",
    # Errors
    "ExporterError",
    "ConfigurationError",
    "OperationFailedError",
    "OperationTimeoutError",
    "IntegrityValidationError",
]
