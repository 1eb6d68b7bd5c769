"""Instance and database enumeration.

Usage:
    instances = await enumerate_instances(sqladmin, "my-project")
    # {"payment-service": ["payment-events", "payments"], ...}
"""

import logging

from cloudsql_exporter.adapters.base import SqlAdminClient
from cloudsql_exporter.errors import InstanceNotFoundError

logger = logging.getLogger(__name__)

# Engine-reserved databases, never backed up.  Deliberately narrow: other
# engine-specific system databases pass through.
SYSTEM_DATABASES = frozenset({"mysql", "postgres"})


async def list_databases(
    sqladmin: SqlAdminClient, project: str, instance: str
) -> list[str]:
    """Databases of ``instance`` without the system databases."""
    databases: list[str] = []
    for name in await sqladmin.list_databases(project, instance):
        if name in SYSTEM_DATABASES:
            logger.info(f"Skipping database {name}")
            continue
        logger.info(f"Found database {name} for instance {instance}")
        databases.append(name)
    return databases


async def enumerate_instances(
    sqladmin: SqlAdminClient,
    project: str,
    instance: str | None = None,
) -> dict[str, list[str]]:
    """Map instance name to its databases.

    Args:
        sqladmin: Cloud SQL Admin client.
        project: GCP project ID.
        instance: Only process this instance.  It is not checked for
            existence here; a missing instance fails on the first call that
            touches it.

    Returns:
        Dict of instance name -> database names, in listing order.
    """
    logger.info(f"Enumerating Cloud SQL instances in project {project}")

    if instance:
        names = [instance]
    else:
        names = await sqladmin.list_instances(project)

    instances: dict[str, list[str]] = {}
    for name in names:
        logger.info(f"Found instance {name}")
        instances[name] = await list_databases(sqladmin, project, name)
    return instances


async def instance_service_account(
    sqladmin: SqlAdminClient, project: str, instance: str
) -> str:
    """Service account email Cloud SQL uses for ``instance``.

    Raises:
        InstanceNotFoundError: If the instance does not exist.
    """
    resource = await sqladmin.get_instance(project, instance)
    if resource is None:
        raise InstanceNotFoundError(instance)
    return resource["serviceAccountEmailAddress"]
