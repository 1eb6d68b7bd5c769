"""Cloud Storage adapter.

Provides ``GcsStorageAdapter``, an implementation of the ``StorageClient``
protocol using ``google-cloud-storage``.  The client is blocking, so each
call runs in a worker thread.
"""

import asyncio
from typing import Any

from google.api_core.exceptions import NotFound
from google.api_core.iam import Policy
from google.cloud import storage

from cloudsql_exporter.adapters.base import BucketPolicy, RoleBinding

# Version 3 keeps conditional bindings intact on read-modify-write
IAM_POLICY_VERSION = 3


def policy_from_iam(policy: Policy) -> BucketPolicy:
    """Convert an ``google.api_core.iam.Policy`` to a ``BucketPolicy``."""
    return BucketPolicy(
        bindings=[
            RoleBinding(
                role=binding["role"],
                members=set(binding.get("members", ())),
                condition=binding.get("condition"),
            )
            for binding in policy.bindings
        ],
        etag=policy.etag,
        version=policy.version,
    )


def policy_to_iam(policy: BucketPolicy) -> Policy:
    """Convert a ``BucketPolicy`` back to an IAM ``Policy``."""
    iam_policy = Policy(etag=policy.etag, version=policy.version or IAM_POLICY_VERSION)
    bindings: list[dict[str, Any]] = []
    for binding in policy.bindings:
        entry: dict[str, Any] = {"role": binding.role, "members": set(binding.members)}
        if binding.condition is not None:
            entry["condition"] = binding.condition
        bindings.append(entry)
    iam_policy.bindings = bindings
    return iam_policy


class GcsStorageAdapter:
    """``StorageClient`` backed by ``google.cloud.storage.Client``.

    Args:
        project: Project used for billing/quota of storage calls.
        client: Prebuilt storage client (tests, custom credentials).
    """

    def __init__(self, project: str | None = None, client: Any = None) -> None:
        self._client = client or storage.Client(project=project)

    def _blob(self, bucket: str, name: str) -> Any:
        return self._client.bucket(bucket).blob(name)

    async def get_bucket_policy(self, bucket: str) -> BucketPolicy:
        policy = await asyncio.to_thread(
            self._client.bucket(bucket).get_iam_policy,
            requested_policy_version=IAM_POLICY_VERSION,
        )
        return policy_from_iam(policy)

    async def set_bucket_policy(self, bucket: str, policy: BucketPolicy) -> None:
        await asyncio.to_thread(
            self._client.bucket(bucket).set_iam_policy, policy_to_iam(policy)
        )

    async def write_text(
        self, bucket: str, name: str, data: str, content_type: str = "text/plain"
    ) -> None:
        blob = self._blob(bucket, name)
        await asyncio.to_thread(blob.upload_from_string, data, content_type=content_type)

    async def read_text(self, bucket: str, name: str) -> str:
        blob = self._blob(bucket, name)
        return await asyncio.to_thread(blob.download_as_text, encoding="utf-8")

    async def exists(self, bucket: str, name: str) -> bool:
        """Check object existence via a metadata fetch.

        ``NotFound`` means absent; every other error propagates.
        """
        blob = self._blob(bucket, name)
        try:
            await asyncio.to_thread(blob.reload)
        except NotFound:
            return False
        return True
