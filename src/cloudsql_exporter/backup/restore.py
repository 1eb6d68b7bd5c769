"""Restore a SQL dump into a dedicated restore instance.

The restore instance is named ``{restore_prefix}{source instance}``.  It is
provisioned on first use with a random root password; later runs reuse it
and read the password back from Secret Manager.  After the import the row
counts of the restored database are checked against the statistics
artifact written at backup time, when there is one.

Usage:
    from cloudsql_exporter.backup.restore import restore_instance
    from cloudsql_exporter.config import RestoreOptions

    result = await restore_instance(services, RestoreOptions(
        bucket="my-bucket",
        project="my-project",
        instance="payment-service",
        file="gs://my-bucket/payment-service/cloudsql/payments-20240601T101500.sql.gz",
        store_secret=True,
        cleanup=True,
    ))
"""

import logging
from typing import Any

from cloudsql_exporter.backup.location import BackupLocation
from cloudsql_exporter.backup.models import RestoreResult
from cloudsql_exporter.cloudsql.credentials import (
    generate_password,
    load_root_password,
    secret_id_for,
    store_root_password,
)
from cloudsql_exporter.cloudsql.iam import (
    IMPORT_REVOKED_ROLES,
    IMPORT_ROLES,
    bucket_access,
    service_account_member,
)
from cloudsql_exporter.cloudsql.instances import instance_service_account
from cloudsql_exporter.cloudsql.statistics import load_statistics, validate_statistics
from cloudsql_exporter.cloudsql.users import create_missing_users, read_users
from cloudsql_exporter.config.models import ExporterConfig, RestoreOptions
from cloudsql_exporter.errors import ConfigurationError
from cloudsql_exporter.factory import Services

logger = logging.getLogger(__name__)


def restore_instance_name(config: ExporterConfig, instance: str) -> str:
    """Name of the restore instance of ``instance``."""
    return f"{config.restore_prefix}{instance}"


def build_instance_body(config: ExporterConfig, name: str, root_password: str) -> dict[str, Any]:
    """Cloud SQL instance resource of a new restore instance."""
    return {
        "name": name,
        "instanceType": "CLOUD_SQL_INSTANCE",
        "region": config.region,
        "databaseVersion": config.database_version,
        "rootPassword": root_password,
        "settings": {
            "tier": config.tier,
            "activationPolicy": "ALWAYS",
            "databaseFlags": [
                {"name": "cloudsql.iam_authentication", "value": "on"},
            ],
            "insightsConfig": {"queryInsightsEnabled": True},
            "userLabels": {"service": name, "kind": "restore"},
        },
    }


async def _provision_instance(
    services: Services, options: RestoreOptions, name: str
) -> tuple[str, str | None]:
    """Create the restore instance if needed.

    Returns:
        Tuple of (root password, secret id or None).
    """
    config = services.config

    if await services.sqladmin.get_instance(services.project, name) is not None:
        logger.info(f"Restore instance {name} exists, reading stored root password")
        password = await load_root_password(services.secrets, services.project, name)
        return password, secret_id_for(name)

    password = generate_password(config.password_length)
    secret_id = None
    if options.store_secret:
        secret_id = await store_root_password(
            services.secrets, services.project, name, password, config.region
        )

    logger.info(f"Creating restore instance {name} ({config.database_version}, {config.tier})")
    operation = await services.sqladmin.insert_instance(
        services.project, build_instance_body(config, name, password)
    )
    await services.waiter.wait(operation, config.export_poll_interval)
    logger.info(f"Restore instance {name} created")
    return password, secret_id


async def _ensure_database(services: Services, instance: str, database: str) -> None:
    existing = await services.sqladmin.get_database(services.project, instance, database)
    if existing is not None:
        logger.debug(f"Database {database} already exists on {instance}")
        return

    logger.info(f"Creating database {database} on {instance}")
    operation = await services.sqladmin.insert_database(services.project, instance, database)
    await services.waiter.wait(operation, services.config.provision_poll_interval)


async def _delete_instance(services: Services, name: str) -> None:
    logger.info(f"Deleting restore instance {name}")
    operation = await services.sqladmin.delete_instance(services.project, name)
    await services.waiter.wait(operation, services.config.export_poll_interval)


async def _check_integrity(
    services: Services,
    location: BackupLocation,
    instance: str,
    root_password: str,
) -> int | None:
    """Compare restored row counts with the statistics artifact.

    Returns:
        Number of tables checked, or ``None`` when there is no artifact.

    Raises:
        MissingTableStatisticError: If a backed-up table is missing.
        IntegrityValidationError: If any row count differs.
    """
    stats_object = location.stats_location()
    if not await services.storage.exists(location.bucket, stats_object):
        logger.warning(f"No statistics artifact at {stats_object}, skipping integrity check")
        return None

    backup = load_statistics(await services.storage.read_text(location.bucket, stats_object))
    restored = await services.statistics.collect(
        instance, location.database, services.config.stats_user, root_password
    )

    validate_statistics(backup, restored)

    logger.info(f"Row counts of {len(backup)} table(s) match the backup")
    return len(backup)


async def restore_instance(services: Services, options: RestoreOptions) -> RestoreResult:
    """Restore one SQL dump into the restore instance of ``options.instance``.

    Args:
        services: Collaborators of the run.
        options: Restore options.

    Returns:
        ``RestoreResult`` describing the restored database.

    Raises:
        InvalidLocationError: If ``options.file`` is not a dump location.
        ConfigurationError: If ``options.file`` is not in ``options.bucket``.
        SecretNotFoundError: If the restore instance exists but its root
            password was never stored.
        OperationFailedError: If a remote operation failed.
        OperationTimeoutError: If the deadline elapsed or the run was cancelled.
        MissingTableStatisticError: If a backed-up table is missing.
        IntegrityValidationError: If restored row counts differ.

    With ``options.cleanup`` the restore instance is deleted on every exit
    path.  When the restore itself failed, a failed deletion is only logged
    and the restore error propagates.
    """
    config = services.config
    project = services.project
    name = restore_instance_name(config, options.instance)

    # Reject bad references before any remote call
    location = BackupLocation.parse(options.file)
    if location.bucket != options.bucket:
        raise ConfigurationError(
            f"Dump {options.file} is not in bucket '{options.bucket}'"
        )

    instance_created = False
    cleaned_up = False
    try:
        root_password, secret_id = await _provision_instance(services, options, name)
        instance_created = True

        await _ensure_database(services, name, location.database)

        users = await read_users(services.storage, location)
        created = await create_missing_users(
            services.sqladmin,
            services.waiter,
            project,
            name,
            users,
            config.provision_poll_interval,
            config.password_length,
        )
        if created:
            logger.info(f"Created {len(created)} user(s) on {name}")

        email = await instance_service_account(services.sqladmin, project, name)
        async with bucket_access(
            services.grantor,
            location.bucket,
            service_account_member(email),
            roles=IMPORT_ROLES,
            revoke_on_exit=IMPORT_REVOKED_ROLES,
        ):
            logger.info(f"Importing {options.file} into {name}/{location.database}")
            operation = await services.sqladmin.import_sql(
                project, name, location.database, options.file, import_user=options.user
            )
            await services.waiter.wait(operation, config.export_poll_interval)

        tables_checked = await _check_integrity(services, location, name, root_password)
    except BaseException:
        if options.cleanup and instance_created:
            try:
                await _delete_instance(services, name)
            except Exception as e:
                logger.error(f"Failed to delete restore instance {name}: {e}")
        raise

    if options.cleanup:
        await _delete_instance(services, name)
        cleaned_up = True

    logger.info(f"Restore of {location.database} into {name} complete")
    return RestoreResult(
        instance=name,
        database=location.database,
        root_password=root_password,
        secret_id=secret_id,
        validated=tables_checked is not None,
        tables_checked=tables_checked or 0,
        cleaned_up=cleaned_up,
    )
