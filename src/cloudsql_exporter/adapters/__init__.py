"""Remote service adapters package.

Provides the capability Protocols the orchestrators depend on and the
Google Cloud implementations of them.

The concrete adapters import their Google SDKs at module import time, so
they are imported from their own modules rather than re-exported here.

Usage:
    from cloudsql_exporter.adapters import SqlAdminClient, StorageClient
    from cloudsql_exporter.adapters.sqladmin import GoogleSqlAdminAdapter
"""

from cloudsql_exporter.adapters.base import (
    BucketPolicy,
    Operation,
    RoleBinding,
    SecretStore,
    SqlAdminClient,
    StatisticsSource,
    StorageClient,
)

__all__ = [
    "Operation",
    "BucketPolicy",
    "RoleBinding",
    "SqlAdminClient",
    "StorageClient",
    "SecretStore",
    "StatisticsSource",
]
