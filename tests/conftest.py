"""Shared fixtures: in-memory fakes of the remote service Protocols."""

import itertools

import pytest

from cloudsql_exporter.adapters.base import BucketPolicy, Operation
from cloudsql_exporter.backup.models import TableStatistic
from cloudsql_exporter.config.models import ExporterConfig
from cloudsql_exporter.errors import SecretNotFoundError
from cloudsql_exporter.factory import Services


class FakeSqlAdmin:
    """Cloud SQL Admin fake.

    Every trigger call returns a PENDING operation that is DONE on its first
    poll, unless its type is listed in ``failures``.
    """

    def __init__(self) -> None:
        self.instances: dict[str, dict] = {}
        self.failures: dict[str, list[str]] = {}
        self.calls: list[tuple] = []
        self.exports: list[tuple[str, str, str]] = []
        self.imports: list[tuple[str, str, str, str | None]] = []
        self._ops: dict[str, Operation] = {}
        self._counter = itertools.count(1)

    def add_instance(
        self,
        name: str,
        databases: list[str] | None = None,
        users: list[str] | None = None,
    ) -> None:
        self.instances[name] = {
            "name": name,
            "serviceAccountEmailAddress": f"{name}@gcp-sa-cloud-sql.iam.gserviceaccount.com",
            "databases": list(databases or []),
            "users": list(users or []),
        }

    def _operation(self, operation_type: str, target: str) -> Operation:
        op = Operation(
            name=f"op-{next(self._counter)}",
            status="PENDING",
            operation_type=operation_type,
            target_id=target,
        )
        self._ops[op.name] = op
        return op

    async def list_instances(self, project):
        self.calls.append(("list_instances", project))
        return list(self.instances)

    async def get_instance(self, project, instance):
        self.calls.append(("get_instance", project, instance))
        resource = self.instances.get(instance)
        return dict(resource) if resource else None

    async def insert_instance(self, project, body):
        self.calls.append(("insert_instance", project, body))
        self.add_instance(body["name"], users=["postgres"])
        return self._operation("CREATE", body["name"])

    async def delete_instance(self, project, instance):
        self.calls.append(("delete_instance", project, instance))
        self.instances.pop(instance, None)
        return self._operation("DELETE", instance)

    async def list_databases(self, project, instance):
        self.calls.append(("list_databases", project, instance))
        if instance not in self.instances:
            # Cloud SQL answers 404 for databases of an unknown instance
            raise LookupError(f"instance {instance} not found")
        return list(self.instances[instance]["databases"])

    async def get_database(self, project, instance, database):
        self.calls.append(("get_database", project, instance, database))
        if database in self.instances[instance]["databases"]:
            return {"name": database, "instance": instance}
        return None

    async def insert_database(self, project, instance, database):
        self.calls.append(("insert_database", project, instance, database))
        self.instances[instance]["databases"].append(database)
        return self._operation("CREATE_DATABASE", instance)

    async def list_users(self, project, instance):
        self.calls.append(("list_users", project, instance))
        return list(self.instances[instance]["users"])

    async def insert_user(self, project, instance, name, password):
        self.calls.append(("insert_user", project, instance, name))
        self.instances[instance]["users"].append(name)
        return self._operation("CREATE_USER", instance)

    async def export_sql(self, project, instance, database, uri):
        self.calls.append(("export_sql", project, instance, database, uri))
        self.exports.append((instance, database, uri))
        return self._operation("EXPORT", instance)

    async def import_sql(self, project, instance, database, uri, import_user=None):
        self.calls.append(("import_sql", project, instance, database, uri))
        self.imports.append((instance, database, uri, import_user))
        return self._operation("IMPORT", instance)

    async def get_operation(self, project, operation):
        op = self._ops[operation]
        messages = self.failures.get(op.operation_type)
        if messages:
            return op.model_copy(update={"status": "DONE", "error_messages": messages})
        return op.model_copy(update={"status": "DONE"})


class FakeStorage:
    """Cloud Storage fake holding objects and bucket policies in dicts."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], str] = {}
        self.policies: dict[str, BucketPolicy] = {}
        self.policy_writes = 0
        self.fail_policy_writes: Exception | None = None

    async def get_bucket_policy(self, bucket):
        policy = self.policies.setdefault(bucket, BucketPolicy(etag="etag-0", version=3))
        return policy.model_copy(deep=True)

    async def set_bucket_policy(self, bucket, policy):
        if self.fail_policy_writes is not None:
            raise self.fail_policy_writes
        self.policy_writes += 1
        self.policies[bucket] = policy.model_copy(deep=True)

    async def write_text(self, bucket, name, data, content_type="text/plain"):
        self.objects[(bucket, name)] = data

    async def read_text(self, bucket, name):
        return self.objects[(bucket, name)]

    async def exists(self, bucket, name):
        return (bucket, name) in self.objects

    def members(self, bucket: str, role: str) -> set[str]:
        policy = self.policies.get(bucket, BucketPolicy())
        for binding in policy.bindings:
            if binding.role == role and binding.condition is None:
                return set(binding.members)
        return set()


class FakeSecretStore:
    """Secret Manager fake keyed by (project, secret id)."""

    def __init__(self) -> None:
        self.secrets: dict[tuple[str, str], list[str]] = {}
        self.deleted: list[str] = []

    async def secret_exists(self, project, secret_id):
        return (project, secret_id) in self.secrets

    async def delete_secret(self, project, secret_id):
        self.deleted.append(secret_id)
        del self.secrets[(project, secret_id)]

    async def create_secret(self, project, secret_id, replica_location):
        self.secrets[(project, secret_id)] = []

    async def add_secret_version(self, project, secret_id, payload):
        self.secrets[(project, secret_id)].append(payload)

    async def access_latest(self, project, secret_id):
        versions = self.secrets.get((project, secret_id))
        if not versions:
            raise SecretNotFoundError(secret_id)
        return versions[-1]


class FakeStatistics:
    """Statistics source returning canned results per (instance, database)."""

    def __init__(self) -> None:
        self.results: dict[tuple[str, str], dict[str, TableStatistic]] = {}
        self.calls: list[tuple[str, str, str]] = []
        self.passwords: list[str] = []

    async def collect(self, instance, database, user, password):
        self.calls.append((instance, database, user))
        self.passwords.append(password)
        return dict(self.results.get((instance, database), {}))


def _make_stat(name: str, row_count: int) -> TableStatistic:
    return TableStatistic(
        full_table_name=name,
        table_size_bytes=8192,
        table_size_bytes_without_indexes=8192,
        total_size_bytes=16384,
        row_count=row_count,
    )


@pytest.fixture
def make_stat():
    """Factory for ``TableStatistic`` with fixed sizes."""
    return _make_stat


@pytest.fixture
def sqladmin():
    return FakeSqlAdmin()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def secret_store():
    return FakeSecretStore()


@pytest.fixture
def statistics():
    return FakeStatistics()


@pytest.fixture
def config():
    return ExporterConfig(
        export_poll_interval=0,
        provision_poll_interval=0,
        operation_timeout=None,
    )


@pytest.fixture
def services(sqladmin, storage, secret_store, statistics, config):
    return Services(
        project="test-project",
        sqladmin=sqladmin,
        storage=storage,
        secrets=secret_store,
        statistics=statistics,
        config=config,
    )
