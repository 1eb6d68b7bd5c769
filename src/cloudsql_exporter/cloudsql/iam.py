"""Bucket role bindings for Cloud SQL service accounts.

Cloud SQL reads and writes bucket objects with the service account of the
instance, so that account needs roles on the bucket before an export or
import.  ``PermissionGrantor`` adds or removes one binding with a single
read-modify-write of the bucket policy.  There is no ETag retry: two runs
changing the same bucket policy at the same time can overwrite each other.

``bucket_access`` brackets a block of work: roles are granted on entry and
the requested subset is revoked on every exit path.

Usage:
    grantor = PermissionGrantor(storage)
    member = service_account_member("p123-abc@gcp-sa-cloud-sql.iam.gserviceaccount.com")

    async with bucket_access(
        grantor, "my-bucket", member,
        roles=[OBJECT_CREATOR, OBJECT_VIEWER],
        revoke_on_exit=[OBJECT_CREATOR, OBJECT_VIEWER],
    ):
        ...  # export
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable

from cloudsql_exporter.adapters.base import StorageClient

logger = logging.getLogger(__name__)

OBJECT_CREATOR = "roles/storage.objectCreator"
OBJECT_VIEWER = "roles/storage.objectViewer"
LEGACY_BUCKET_READER = "roles/storage.legacyBucketReader"

# Roles needed by the instance to write dumps, revoked again in temp mode
EXPORT_ROLES = (OBJECT_CREATOR, OBJECT_VIEWER)
# Roles needed to read dumps during import; only the legacy reader is revoked
IMPORT_ROLES = (LEGACY_BUCKET_READER, OBJECT_VIEWER)
IMPORT_REVOKED_ROLES = (LEGACY_BUCKET_READER,)


def service_account_member(email: str) -> str:
    """IAM member string of a service account."""
    return f"serviceAccount:{email}"


class PermissionGrantor:
    """Adds and removes role bindings on bucket IAM policies."""

    def __init__(self, storage: StorageClient) -> None:
        self._storage = storage

    async def grant(self, bucket: str, role: str, member: str) -> bool:
        """Ensure ``member`` holds ``role`` on ``bucket``.

        Returns:
            ``True`` if the policy was changed, ``False`` if the binding
            already existed.
        """
        logger.info(f"Ensuring role {role} on bucket {bucket} for {member}")
        policy = await self._storage.get_bucket_policy(bucket)
        if policy.has_role(member, role):
            return False
        policy.add(member, role)
        await self._storage.set_bucket_policy(bucket, policy)
        return True

    async def revoke(self, bucket: str, role: str, member: str) -> bool:
        """Ensure ``member`` does not hold ``role`` on ``bucket``.

        Returns:
            ``True`` if the policy was changed, ``False`` if there was
            nothing to remove.
        """
        logger.info(f"Removing role {role} on bucket {bucket} for {member}")
        policy = await self._storage.get_bucket_policy(bucket)
        if not policy.has_role(member, role):
            return False
        policy.remove(member, role)
        await self._storage.set_bucket_policy(bucket, policy)
        return True


async def _revoke_all(
    grantor: PermissionGrantor,
    bucket: str,
    member: str,
    roles: Iterable[str],
) -> list[Exception]:
    """Attempt every revoke and return the failures."""
    failures: list[Exception] = []
    for role in roles:
        try:
            await grantor.revoke(bucket, role, member)
        except Exception as e:
            logger.error(f"Failed to remove role binding {role} for {member}: {e}")
            failures.append(e)
    return failures


@asynccontextmanager
async def bucket_access(
    grantor: PermissionGrantor,
    bucket: str,
    member: str,
    roles: Iterable[str],
    revoke_on_exit: Iterable[str] = (),
) -> AsyncIterator[str]:
    """Grant ``roles`` for the duration of the block.

    Roles listed in ``revoke_on_exit`` are revoked when the block exits,
    whether it returned or raised.  Roles granted before a failing grant are
    revoked too.

    If the block raised, revoke failures are only logged and the block's
    exception propagates.  If the block succeeded, every revoke is still
    attempted and the first failure is then raised.

    Yields:
        The member the roles were granted to.
    """
    revoke_on_exit = list(revoke_on_exit)
    try:
        for role in roles:
            await grantor.grant(bucket, role, member)
        yield member
    except BaseException:
        await _revoke_all(grantor, bucket, member, revoke_on_exit)
        raise
    failures = await _revoke_all(grantor, bucket, member, revoke_on_exit)
    if failures:
        raise failures[0]
