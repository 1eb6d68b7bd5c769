"""Backup artifacts, export and restore orchestration.

Only the artifact models are re-exported here: the ``cloudsql`` modules
import them, so the orchestrators are imported from their own modules.

Usage:
    from cloudsql_exporter.backup import BackupLocation, TableStatistic
    from cloudsql_exporter.backup.export import backup_instances
    from cloudsql_exporter.backup.restore import restore_instance
"""

from cloudsql_exporter.backup.location import BackupLocation, new_timestamp
from cloudsql_exporter.backup.models import RestoreResult, RowCountMismatch, TableStatistic

__all__ = [
    "BackupLocation",
    "new_timestamp",
    "RestoreResult",
    "RowCountMismatch",
    "TableStatistic",
]
