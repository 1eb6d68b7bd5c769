"""Tests for the Google adapters with mocked SDK clients."""

from unittest.mock import MagicMock

import httplib2
import pytest
from google.api_core.exceptions import NotFound
from google.api_core.iam import Policy
from googleapiclient.errors import HttpError

from cloudsql_exporter.adapters.base import BucketPolicy, Operation, RoleBinding
from cloudsql_exporter.adapters.secrets import SecretManagerAdapter
from cloudsql_exporter.adapters.sqladmin import GoogleSqlAdminAdapter
from cloudsql_exporter.adapters.storage import (
    GcsStorageAdapter,
    policy_from_iam,
    policy_to_iam,
)
from cloudsql_exporter.errors import SecretNotFoundError


def _http_error(status: int) -> HttpError:
    return HttpError(httplib2.Response({"status": status}), b"{}")


def _request(response=None, error=None) -> MagicMock:
    request = MagicMock()
    if error is not None:
        request.execute.side_effect = error
    else:
        request.execute.return_value = response
    return request


class TestOperationFromApi:
    """Operation.from_api."""

    def test_pending(self):
        op = Operation.from_api(
            {"name": "op-1", "status": "RUNNING", "operationType": "EXPORT", "targetId": "svc"}
        )
        assert op.name == "op-1"
        assert not op.done
        assert op.operation_type == "EXPORT"
        assert op.error_messages == []

    def test_errors(self):
        op = Operation.from_api({
            "name": "op-1",
            "status": "DONE",
            "error": {"errors": [{"code": "ERROR_RDBMS", "message": "syntax error"}, {"code": "X"}]},
        })
        assert op.done
        assert op.error_messages == ["syntax error", "X"]


class TestSqlAdminAdapter:
    """GoogleSqlAdminAdapter over a mocked discovery resource."""

    async def test_list_instances_paginates(self):
        service = MagicMock()
        instances = service.instances.return_value
        first = _request({"items": [{"name": "a"}], "nextPageToken": "t"})
        second = _request({"items": [{"name": "b"}]})
        instances.list.return_value = first
        instances.list_next.side_effect = [second, None]

        names = await GoogleSqlAdminAdapter(service=service).list_instances("p")

        assert names == ["a", "b"]
        instances.list.assert_called_once_with(project="p")

    async def test_get_instance_not_found(self):
        service = MagicMock()
        service.instances.return_value.get.return_value = _request(error=_http_error(404))

        assert await GoogleSqlAdminAdapter(service=service).get_instance("p", "x") is None

    async def test_get_instance_other_error_propagates(self):
        service = MagicMock()
        service.instances.return_value.get.return_value = _request(error=_http_error(403))

        with pytest.raises(HttpError):
            await GoogleSqlAdminAdapter(service=service).get_instance("p", "x")

    async def test_export_body(self):
        service = MagicMock()
        service.instances.return_value.export.return_value = _request(
            {"name": "op-7", "status": "PENDING", "operationType": "EXPORT"}
        )

        op = await GoogleSqlAdminAdapter(service=service).export_sql(
            "p", "svc", "orders", "gs://b/svc/cloudsql/orders-1.sql"
        )

        assert op.name == "op-7"
        kwargs = service.instances.return_value.export.call_args.kwargs
        assert kwargs["project"] == "p"
        assert kwargs["instance"] == "svc"
        assert kwargs["body"] == {
            "exportContext": {
                "kind": "sql#exportContext",
                "fileType": "SQL",
                "databases": ["orders"],
                "uri": "gs://b/svc/cloudsql/orders-1.sql",
            }
        }

    async def test_import_body_with_user(self):
        service = MagicMock()
        service.instances.return_value.import_.return_value = _request({"name": "op-8"})

        await GoogleSqlAdminAdapter(service=service).import_sql(
            "p", "restore-svc", "orders", "gs://b/x-1.sql", import_user="app"
        )

        body = service.instances.return_value.import_.call_args.kwargs["body"]
        assert body["importContext"]["database"] == "orders"
        assert body["importContext"]["importUser"] == "app"

    async def test_list_databases_empty(self):
        service = MagicMock()
        service.databases.return_value.list.return_value = _request({})

        assert await GoogleSqlAdminAdapter(service=service).list_databases("p", "svc") == []


class TestStorageAdapter:
    """GcsStorageAdapter over a mocked storage client."""

    def test_policy_conversion(self):
        policy = Policy(etag="abc", version=3)
        policy.bindings = [
            {"role": "roles/storage.objectViewer", "members": {"serviceAccount:a@x"}},
        ]

        converted = policy_from_iam(policy)

        assert converted.etag == "abc"
        assert converted.has_role("serviceAccount:a@x", "roles/storage.objectViewer")

        back = policy_to_iam(converted)
        assert back.etag == "abc"
        assert back.bindings[0]["role"] == "roles/storage.objectViewer"

    def test_conditional_binding_kept(self):
        condition = {"title": "t", "expression": "true"}
        policy = BucketPolicy(
            bindings=[RoleBinding(role="r", members={"user:a"}, condition=condition)],
            version=3,
        )
        assert policy_to_iam(policy).bindings[0]["condition"] == condition

    async def test_exists_not_found(self):
        client = MagicMock()
        client.bucket.return_value.blob.return_value.reload.side_effect = NotFound("gone")

        assert await GcsStorageAdapter(client=client).exists("b", "x") is False

    async def test_exists(self):
        client = MagicMock()
        assert await GcsStorageAdapter(client=client).exists("b", "x") is True

    async def test_write_text(self):
        client = MagicMock()
        blob = client.bucket.return_value.blob.return_value

        await GcsStorageAdapter(client=client).write_text("b", "svc/users.txt", "app\n")

        client.bucket.assert_called_with("b")
        client.bucket.return_value.blob.assert_called_with("svc/users.txt")
        blob.upload_from_string.assert_called_once_with("app\n", content_type="text/plain")


class TestSecretManagerAdapter:
    """SecretManagerAdapter over a mocked client."""

    async def test_access_latest(self):
        client = MagicMock()
        client.access_secret_version.return_value.payload.data = b"pw"

        assert await SecretManagerAdapter(client=client).access_latest("p", "ID") == "pw"
        request = client.access_secret_version.call_args.kwargs["request"]
        assert request == {"name": "projects/p/secrets/ID/versions/latest"}

    async def test_access_missing(self):
        client = MagicMock()
        client.access_secret_version.side_effect = NotFound("no secret")

        with pytest.raises(SecretNotFoundError):
            await SecretManagerAdapter(client=client).access_latest("p", "ID")

    async def test_create_secret_replication(self):
        client = MagicMock()

        await SecretManagerAdapter(client=client).create_secret("p", "ID", "europe-west3")

        request = client.create_secret.call_args.kwargs["request"]
        assert request["parent"] == "projects/p"
        assert request["secret"]["replication"]["user_managed"]["replicas"] == [
            {"location": "europe-west3"}
        ]

    async def test_secret_exists(self):
        client = MagicMock()
        client.get_secret.side_effect = NotFound("no")
        assert await SecretManagerAdapter(client=client).secret_exists("p", "ID") is False
