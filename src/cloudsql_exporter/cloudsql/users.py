"""User list artifact: export at backup time, recreate at restore time.

The artifact is UTF-8 text with one user name per line, each line ending in
a newline.  Passwords are not part of a Cloud SQL export, so restored users
get freshly generated passwords.
"""

import logging

from cloudsql_exporter.adapters.base import SqlAdminClient, StorageClient
from cloudsql_exporter.backup.location import BackupLocation
from cloudsql_exporter.cloudsql.credentials import generate_password
from cloudsql_exporter.cloudsql.operations import OperationWaiter

logger = logging.getLogger(__name__)

SYSTEM_USERS = frozenset({"mysql", "postgres"})


def format_user_list(users: list[str]) -> str:
    """Serialize user names, one per line."""
    return "".join(f"{name}\n" for name in users)


def parse_user_list(data: str) -> list[str]:
    """Parse a user list artifact, ignoring blank lines."""
    return [line.strip() for line in data.splitlines() if line.strip()]


async def export_users(
    sqladmin: SqlAdminClient,
    storage: StorageClient,
    project: str,
    location: BackupLocation,
) -> list[str]:
    """Write the non-system users of the instance to the user list artifact.

    Returns:
        The exported user names.
    """
    object_name = location.user_location()
    logger.info(f"Exporting users for instance {location.instance} to {object_name}")

    users = [
        name
        for name in await sqladmin.list_users(project, location.instance)
        if name not in SYSTEM_USERS
    ]
    await storage.write_text(location.bucket, object_name, format_user_list(users))
    return users


async def read_users(storage: StorageClient, location: BackupLocation) -> list[str]:
    """Read the user list artifact of a backup run."""
    data = await storage.read_text(location.bucket, location.user_location())
    return parse_user_list(data)


async def create_missing_users(
    sqladmin: SqlAdminClient,
    waiter: OperationWaiter,
    project: str,
    instance: str,
    users: list[str],
    poll_interval: float,
    password_length: int,
) -> list[str]:
    """Create every user in ``users`` that ``instance`` does not have yet.

    Returns:
        The names of the users that were created.
    """
    existing = set(await sqladmin.list_users(project, instance))
    created: list[str] = []
    for name in users:
        if name in existing:
            continue
        operation = await sqladmin.insert_user(
            project, instance, name, generate_password(password_length)
        )
        await waiter.wait(operation, poll_interval)
        logger.info(f"Created user {name} on instance {instance}")
        created.append(name)
    return created
