"""Capability interfaces for the remote services used by backup and restore.

The orchestrators never talk to a Google SDK directly.  They depend on the
narrow Protocols below, which the concrete adapters in this package
implement and which tests replace with in-memory fakes.

All methods are ``async def``.  Adapters that wrap blocking SDK clients run
the call in a worker thread.

Usage:
    from cloudsql_exporter.adapters.base import SqlAdminClient, Operation

    async def export(client: SqlAdminClient) -> Operation:
        return await client.export_sql(
            "my-project", "my-instance", "orders", "gs://bucket/x.sql"
        )
"""

from typing import Any, Protocol

from pydantic import BaseModel, Field

from cloudsql_exporter.backup.models import TableStatistic


# ============================================================================
# Wire-level models
# ============================================================================


class Operation(BaseModel):
    """Handle of a long-running Cloud SQL Admin operation."""

    name: str
    status: str = "PENDING"             # PENDING, RUNNING, DONE
    operation_type: str = ""            # EXPORT, IMPORT, CREATE, ...
    target_id: str = ""
    error_messages: list[str] = Field(default_factory=list)

    @property
    def done(self) -> bool:
        """Whether the remote side reports the operation as finished."""
        return self.status == "DONE"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Operation":
        """Build from a ``sql#operation`` resource dict."""
        errors = (data.get("error") or {}).get("errors") or []
        return cls(
            name=data["name"],
            status=data.get("status", "PENDING"),
            operation_type=data.get("operationType", ""),
            target_id=data.get("targetId", ""),
            error_messages=[
                e.get("message") or e.get("code", "unknown error") for e in errors
            ],
        )


class RoleBinding(BaseModel):
    """One role -> members entry of a bucket IAM policy."""

    role: str
    members: set[str] = Field(default_factory=set)
    condition: dict[str, Any] | None = None     # conditional bindings pass through


class BucketPolicy(BaseModel):
    """Bucket IAM policy document."""

    bindings: list[RoleBinding] = Field(default_factory=list)
    etag: str | None = None
    version: int | None = None

    def _unconditional(self, role: str) -> RoleBinding | None:
        for binding in self.bindings:
            if binding.role == role and binding.condition is None:
                return binding
        return None

    def has_role(self, member: str, role: str) -> bool:
        """Whether ``member`` holds ``role`` through an unconditional binding."""
        binding = self._unconditional(role)
        return binding is not None and member in binding.members

    def add(self, member: str, role: str) -> None:
        """Add ``member`` to ``role``."""
        binding = self._unconditional(role)
        if binding is None:
            self.bindings.append(RoleBinding(role=role, members={member}))
        else:
            binding.members.add(member)

    def remove(self, member: str, role: str) -> None:
        """Remove ``member`` from ``role``, dropping the binding when empty."""
        binding = self._unconditional(role)
        if binding is None:
            return
        binding.members.discard(member)
        if not binding.members:
            self.bindings.remove(binding)


# ============================================================================
# Protocols
# ============================================================================


class SqlAdminClient(Protocol):
    """Cloud SQL Admin API operations used by backup and restore."""

    async def list_instances(self, project: str) -> list[str]:
        """Names of all instances in ``project``."""
        ...

    async def get_instance(self, project: str, instance: str) -> dict | None:
        """Instance resource, or ``None`` when it does not exist."""
        ...

    async def insert_instance(self, project: str, body: dict) -> Operation:
        """Create an instance from a ``DatabaseInstance`` resource body."""
        ...

    async def delete_instance(self, project: str, instance: str) -> Operation:
        """Delete an instance."""
        ...

    async def list_databases(self, project: str, instance: str) -> list[str]:
        """Names of all databases of ``instance``, system databases included."""
        ...

    async def get_database(
        self, project: str, instance: str, database: str
    ) -> dict | None:
        """Database resource, or ``None`` when it does not exist."""
        ...

    async def insert_database(
        self, project: str, instance: str, database: str
    ) -> Operation:
        """Create a database."""
        ...

    async def list_users(self, project: str, instance: str) -> list[str]:
        """Names of all users of ``instance``."""
        ...

    async def insert_user(
        self, project: str, instance: str, name: str, password: str
    ) -> Operation:
        """Create a built-in user."""
        ...

    async def export_sql(
        self, project: str, instance: str, database: str, uri: str
    ) -> Operation:
        """Export one database as a SQL file to ``uri``."""
        ...

    async def import_sql(
        self,
        project: str,
        instance: str,
        database: str,
        uri: str,
        import_user: str | None = None,
    ) -> Operation:
        """Import a SQL file from ``uri`` into ``database``."""
        ...

    async def get_operation(self, project: str, operation: str) -> Operation:
        """Re-fetch the status of an operation."""
        ...


class StorageClient(Protocol):
    """Cloud Storage operations: bucket policy and text objects."""

    async def get_bucket_policy(self, bucket: str) -> BucketPolicy:
        """Read the IAM policy of ``bucket``."""
        ...

    async def set_bucket_policy(self, bucket: str, policy: BucketPolicy) -> None:
        """Replace the IAM policy of ``bucket``."""
        ...

    async def write_text(
        self, bucket: str, name: str, data: str, content_type: str = "text/plain"
    ) -> None:
        """Write ``data`` to object ``name``."""
        ...

    async def read_text(self, bucket: str, name: str) -> str:
        """Read object ``name`` as UTF-8 text."""
        ...

    async def exists(self, bucket: str, name: str) -> bool:
        """Whether object ``name`` exists.

        Raises:
            Exception: For any failure other than "not found".
        """
        ...


class SecretStore(Protocol):
    """Secret Manager operations used for restore root credentials."""

    async def secret_exists(self, project: str, secret_id: str) -> bool:
        ...

    async def delete_secret(self, project: str, secret_id: str) -> None:
        ...

    async def create_secret(
        self, project: str, secret_id: str, replica_location: str
    ) -> None:
        ...

    async def add_secret_version(
        self, project: str, secret_id: str, payload: str
    ) -> None:
        ...

    async def access_latest(self, project: str, secret_id: str) -> str:
        """Payload of the latest version.

        Raises:
            SecretNotFoundError: If the secret or its version is missing.
        """
        ...


class StatisticsSource(Protocol):
    """Live table statistics of a database."""

    async def collect(
        self, instance: str, database: str, user: str, password: str
    ) -> dict[str, TableStatistic]:
        """Refresh planner statistics and return per-table statistics.

        Returns:
            Dict keyed by full table name (``schema.table``).
        """
        ...
