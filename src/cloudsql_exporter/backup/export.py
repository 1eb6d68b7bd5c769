"""Export Cloud SQL databases to SQL dumps in a bucket.

Instances are processed one after another.  For each instance the user
list, the optional table statistics and one SQL dump per database are
written under ``{instance}/cloudsql/`` with a shared timestamp.  The first
failure stops the run; artifacts already written are left in place.

Usage:
    from cloudsql_exporter.backup.export import backup_instances
    from cloudsql_exporter.config import BackupOptions

    locations = await backup_instances(services, BackupOptions(
        bucket="my-bucket",
        project="my-project",
        compression=True,
        ensure_iam_bindings_temp=True,
    ))
"""

import logging
from contextlib import AsyncExitStack

from cloudsql_exporter.backup.location import BackupLocation
from cloudsql_exporter.backup.restore import restore_instance
from cloudsql_exporter.cloudsql.iam import (
    EXPORT_ROLES,
    bucket_access,
    service_account_member,
)
from cloudsql_exporter.cloudsql.instances import (
    enumerate_instances,
    instance_service_account,
)
from cloudsql_exporter.cloudsql.statistics import export_statistics
from cloudsql_exporter.cloudsql.users import export_users
from cloudsql_exporter.config.models import BackupOptions, RestoreOptions
from cloudsql_exporter.factory import Services

logger = logging.getLogger(__name__)


async def export_instance(
    services: Services,
    options: BackupOptions,
    instance: str,
    databases: list[str],
) -> list[str]:
    """Back up every database of one instance.

    Returns:
        Dump URIs written for this instance, in database order.
    """
    project = services.project
    locations: list[str] = []

    async with AsyncExitStack() as stack:
        if options.ensure_iam_bindings or options.ensure_iam_bindings_temp:
            email = await instance_service_account(services.sqladmin, project, instance)
            revoke = EXPORT_ROLES if options.ensure_iam_bindings_temp else ()
            await stack.enter_async_context(
                bucket_access(
                    services.grantor,
                    options.bucket,
                    service_account_member(email),
                    roles=EXPORT_ROLES,
                    revoke_on_exit=revoke,
                )
            )

        location = BackupLocation.create(
            options.bucket, instance, compression=options.compression
        )

        await export_users(services.sqladmin, services.storage, project, location)

        if options.export_stats:
            await export_statistics(
                services.storage,
                services.statistics,
                location,
                databases,
                options.user,
                options.password.get_secret_value(),
            )

        for database in databases:
            uri = location.database_location(database)
            logger.info(f"Exporting {instance}/{database} to {uri}")
            operation = await services.sqladmin.export_sql(project, instance, database, uri)
            await services.waiter.wait(operation, services.config.export_poll_interval)
            logger.info(f"Exported {instance}/{database}")
            locations.append(uri)

    return locations


async def backup_instances(services: Services, options: BackupOptions) -> list[str]:
    """Back up all instances of the project, or only ``options.instance``.

    Args:
        services: Collaborators of the run.
        options: Backup options.

    Returns:
        Dump URIs of every exported database, across all instances.

    Raises:
        HttpError: If a requested instance does not exist (raised by the
            first database listing, before any IAM change).
        OperationFailedError: If an export failed.
        OperationTimeoutError: If the deadline elapsed or the run was cancelled.
    """
    instances = await enumerate_instances(
        services.sqladmin, services.project, options.instance
    )

    locations: list[str] = []
    for instance, databases in instances.items():
        logger.info(f"Backing up instance {instance} ({len(databases)} database(s))")
        exported = await export_instance(services, options, instance, databases)

        if options.validate_restore:
            for uri in exported:
                logger.info(f"Validating {uri} with a test restore")
                await restore_instance(
                    services,
                    RestoreOptions(
                        bucket=options.bucket,
                        project=options.project,
                        instance=instance,
                        file=uri,
                        user=options.user,
                        cleanup=True,
                    ),
                )

        locations.extend(exported)

    logger.info(f"Backup complete: {len(locations)} dump(s)")
    return locations
