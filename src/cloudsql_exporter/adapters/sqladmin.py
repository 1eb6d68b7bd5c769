"""Cloud SQL Admin API adapter.

Provides ``GoogleSqlAdminAdapter``, an implementation of the
``SqlAdminClient`` protocol on top of the discovery-based
``google-api-python-client``.  Requests are blocking, so each one is
executed in a worker thread.

Usage:
    from cloudsql_exporter.adapters.sqladmin import GoogleSqlAdminAdapter

    sqladmin = GoogleSqlAdminAdapter()             # application default credentials
    names = await sqladmin.list_instances("my-project")
"""

import asyncio
from typing import Any

from googleapiclient import discovery
from googleapiclient.errors import HttpError

from cloudsql_exporter.adapters.base import Operation


def _is_not_found(error: HttpError) -> bool:
    return getattr(error.resp, "status", None) == 404


class GoogleSqlAdminAdapter:
    """Cloud SQL Admin API v1 implementation of ``SqlAdminClient``.

    Args:
        credentials: ``google.auth`` credentials.  ``None`` uses application
            default credentials.
        service: Prebuilt discovery resource (tests, custom transports).
    """

    def __init__(self, credentials: Any = None, service: Any = None) -> None:
        if service is None:
            service = discovery.build(
                "sqladmin", "v1", credentials=credentials, cache_discovery=False
            )
        self._service = service

    async def _execute(self, request: Any) -> dict:
        return await asyncio.to_thread(request.execute)

    async def _get_or_none(self, request: Any) -> dict | None:
        try:
            return await self._execute(request)
        except HttpError as e:
            if _is_not_found(e):
                return None
            raise

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    async def list_instances(self, project: str) -> list[str]:
        """List instance names, following pagination."""
        instances = self._service.instances()
        request = instances.list(project=project)
        names: list[str] = []
        while request is not None:
            response = await self._execute(request)
            names.extend(item["name"] for item in response.get("items", []))
            request = instances.list_next(request, response)
        return names

    async def get_instance(self, project: str, instance: str) -> dict | None:
        return await self._get_or_none(
            self._service.instances().get(project=project, instance=instance)
        )

    async def insert_instance(self, project: str, body: dict) -> Operation:
        response = await self._execute(
            self._service.instances().insert(project=project, body=body)
        )
        return Operation.from_api(response)

    async def delete_instance(self, project: str, instance: str) -> Operation:
        response = await self._execute(
            self._service.instances().delete(project=project, instance=instance)
        )
        return Operation.from_api(response)

    # ------------------------------------------------------------------
    # Databases
    # ------------------------------------------------------------------

    async def list_databases(self, project: str, instance: str) -> list[str]:
        response = await self._execute(
            self._service.databases().list(project=project, instance=instance)
        )
        return [item["name"] for item in response.get("items", [])]

    async def get_database(
        self, project: str, instance: str, database: str
    ) -> dict | None:
        return await self._get_or_none(
            self._service.databases().get(
                project=project, instance=instance, database=database
            )
        )

    async def insert_database(
        self, project: str, instance: str, database: str
    ) -> Operation:
        response = await self._execute(
            self._service.databases().insert(
                project=project,
                instance=instance,
                body={"name": database, "instance": instance, "project": project},
            )
        )
        return Operation.from_api(response)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def list_users(self, project: str, instance: str) -> list[str]:
        response = await self._execute(
            self._service.users().list(project=project, instance=instance)
        )
        return [item["name"] for item in response.get("items", [])]

    async def insert_user(
        self, project: str, instance: str, name: str, password: str
    ) -> Operation:
        response = await self._execute(
            self._service.users().insert(
                project=project,
                instance=instance,
                body={"name": name, "password": password},
            )
        )
        return Operation.from_api(response)

    # ------------------------------------------------------------------
    # Export / Import
    # ------------------------------------------------------------------

    async def export_sql(
        self, project: str, instance: str, database: str, uri: str
    ) -> Operation:
        """Export ``database`` to ``uri``.

        Cloud SQL gzips the file when ``uri`` ends in ``.gz``.
        """
        body = {
            "exportContext": {
                "kind": "sql#exportContext",
                "fileType": "SQL",
                "databases": [database],
                "uri": uri,
            }
        }
        response = await self._execute(
            self._service.instances().export(
                project=project, instance=instance, body=body
            )
        )
        return Operation.from_api(response)

    async def import_sql(
        self,
        project: str,
        instance: str,
        database: str,
        uri: str,
        import_user: str | None = None,
    ) -> Operation:
        context: dict[str, Any] = {
            "kind": "sql#importContext",
            "fileType": "SQL",
            "database": database,
            "uri": uri,
        }
        if import_user:
            context["importUser"] = import_user
        # "import" is a keyword, the discovery client exposes it as import_
        response = await self._execute(
            self._service.instances().import_(
                project=project, instance=instance, body={"importContext": context}
            )
        )
        return Operation.from_api(response)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def get_operation(self, project: str, operation: str) -> Operation:
        response = await self._execute(
            self._service.operations().get(project=project, operation=operation)
        )
        return Operation.from_api(response)
