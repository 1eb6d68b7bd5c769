"""Secret Manager adapter.

Provides ``SecretManagerAdapter``, an implementation of the ``SecretStore``
protocol using ``google-cloud-secret-manager``.
"""

import asyncio
from typing import Any

from google.api_core.exceptions import NotFound
from google.cloud import secretmanager

from cloudsql_exporter.errors import SecretNotFoundError


class SecretManagerAdapter:
    """``SecretStore`` backed by ``SecretManagerServiceClient``.

    Args:
        client: Prebuilt Secret Manager client (tests, custom credentials).
    """

    def __init__(self, client: Any = None) -> None:
        self._client = client or secretmanager.SecretManagerServiceClient()

    @staticmethod
    def _secret_name(project: str, secret_id: str) -> str:
        return f"projects/{project}/secrets/{secret_id}"

    async def secret_exists(self, project: str, secret_id: str) -> bool:
        try:
            await asyncio.to_thread(
                self._client.get_secret,
                request={"name": self._secret_name(project, secret_id)},
            )
        except NotFound:
            return False
        return True

    async def delete_secret(self, project: str, secret_id: str) -> None:
        await asyncio.to_thread(
            self._client.delete_secret,
            request={"name": self._secret_name(project, secret_id)},
        )

    async def create_secret(
        self, project: str, secret_id: str, replica_location: str
    ) -> None:
        await asyncio.to_thread(
            self._client.create_secret,
            request={
                "parent": f"projects/{project}",
                "secret_id": secret_id,
                "secret": {
                    "replication": {
                        "user_managed": {
                            "replicas": [{"location": replica_location}],
                        },
                    },
                },
            },
        )

    async def add_secret_version(
        self, project: str, secret_id: str, payload: str
    ) -> None:
        await asyncio.to_thread(
            self._client.add_secret_version,
            request={
                "parent": self._secret_name(project, secret_id),
                "payload": {"data": payload.encode("utf-8")},
            },
        )

    async def access_latest(self, project: str, secret_id: str) -> str:
        try:
            response = await asyncio.to_thread(
                self._client.access_secret_version,
                request={"name": f"{self._secret_name(project, secret_id)}/versions/latest"},
            )
        except NotFound as e:
            raise SecretNotFoundError(secret_id) from e
        return response.payload.data.decode("utf-8")
