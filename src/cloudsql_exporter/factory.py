"""Services factory.

Bundles the collaborators of a backup or restore run into one ``Services``
object.  Orchestrators only see the capability Protocols, so tests build a
``Services`` out of fakes and production code calls ``create_services``.
"""

import asyncio
import time

from cloudsql_exporter.adapters.base import (
    SecretStore,
    SqlAdminClient,
    StatisticsSource,
    StorageClient,
)
from cloudsql_exporter.cloudsql.iam import PermissionGrantor
from cloudsql_exporter.cloudsql.operations import OperationWaiter
from cloudsql_exporter.config.models import ExporterConfig


class Services:
    """Collaborators of one run, all scoped to a single project.

    ``grantor`` and ``waiter`` are derived from ``storage`` and ``sqladmin``
    when not given.
    """

    def __init__(
        self,
        project: str,
        sqladmin: SqlAdminClient,
        storage: StorageClient,
        secrets: SecretStore,
        statistics: StatisticsSource,
        config: ExporterConfig | None = None,
        waiter: OperationWaiter | None = None,
        grantor: PermissionGrantor | None = None,
    ) -> None:
        self.project = project
        self.sqladmin = sqladmin
        self.storage = storage
        self.secrets = secrets
        self.statistics = statistics
        self.config = config or ExporterConfig()
        self.waiter = waiter or OperationWaiter(sqladmin, project)
        self.grantor = grantor or PermissionGrantor(storage)


def compute_deadline(
    config: ExporterConfig, clock=time.monotonic
) -> float | None:
    """Absolute deadline of a run on the ``clock`` timeline."""
    if config.operation_timeout is None:
        return None
    return clock() + config.operation_timeout


def create_services(
    project: str,
    config: ExporterConfig | None = None,
    cancel_event: asyncio.Event | None = None,
) -> Services:
    """Create Google-backed services using application default credentials.

    Args:
        project: GCP project of the instances and secrets.
        config: Exporter settings.  Defaults apply when omitted.
        cancel_event: Event that stops any wait in progress once set.

    Returns:
        Services wired to Cloud SQL Admin, Cloud Storage and Secret Manager.
    """
    # Deferred so that importing the package does not load the Google SDKs
    from cloudsql_exporter.adapters.secrets import SecretManagerAdapter
    from cloudsql_exporter.adapters.sqladmin import GoogleSqlAdminAdapter
    from cloudsql_exporter.adapters.storage import GcsStorageAdapter
    from cloudsql_exporter.cloudsql.statistics import CloudSQLStatisticsCollector

    config = config or ExporterConfig()
    sqladmin = GoogleSqlAdminAdapter()
    storage = GcsStorageAdapter(project=project)

    return Services(
        project=project,
        sqladmin=sqladmin,
        storage=storage,
        secrets=SecretManagerAdapter(),
        statistics=CloudSQLStatisticsCollector(
            project=project,
            region=config.region,
            ip_type=config.ip_type,
            host=config.statistics_host,
            port=config.statistics_port,
        ),
        config=config,
        waiter=OperationWaiter(
            sqladmin,
            project,
            cancel_event=cancel_event,
            deadline=compute_deadline(config),
        ),
    )
