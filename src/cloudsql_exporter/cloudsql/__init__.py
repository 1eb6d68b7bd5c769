"""Cloud SQL building blocks: operation polling, bucket IAM, enumeration,
users, credentials and table statistics.

Usage:
    from cloudsql_exporter.cloudsql import OperationWaiter, PermissionGrantor
    from cloudsql_exporter.cloudsql import enumerate_instances, bucket_access
"""

from cloudsql_exporter.cloudsql.credentials import generate_password, secret_id_for
from cloudsql_exporter.cloudsql.iam import (
    LEGACY_BUCKET_READER,
    OBJECT_CREATOR,
    OBJECT_VIEWER,
    PermissionGrantor,
    bucket_access,
    service_account_member,
)
from cloudsql_exporter.cloudsql.instances import enumerate_instances, list_databases
from cloudsql_exporter.cloudsql.operations import (
    OperationState,
    OperationWaiter,
    operation_state,
)
from cloudsql_exporter.cloudsql.statistics import (
    CloudSQLStatisticsCollector,
    compare_statistics,
    dump_statistics,
    load_statistics,
)

__all__ = [
    "OperationWaiter",
    "OperationState",
    "operation_state",
    "PermissionGrantor",
    "bucket_access",
    "service_account_member",
    "OBJECT_CREATOR",
    "OBJECT_VIEWER",
    "LEGACY_BUCKET_READER",
    "enumerate_instances",
    "list_databases",
    "generate_password",
    "secret_id_for",
    "CloudSQLStatisticsCollector",
    "compare_statistics",
    "dump_statistics",
    "load_statistics",
]
