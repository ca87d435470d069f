"""
Azure Blob Storage object client.

Implements the ObjectStorageClient contract on top of the async Blob SDK
(azure.storage.blob.aio), with managed identity authentication and a
connection-string fallback for local development.

The client is created by the process entry point and passed into
ObjectStorageProvider; call `close()` on shutdown.
"""

from __future__ import annotations

from azure.core import MatchConditions
from azure.core.exceptions import (
    ResourceExistsError,
    ResourceModifiedError,
    ResourceNotFoundError,
)
from azure.identity.aio import DefaultAzureCredential
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import ContainerClient

from memocache.config import Settings
from memocache.logger import get_logger

from ..errors import CacheConfigError
from .object_storage import ObjectStorageClient

logger = get_logger(__name__)


class AzureBlobObjectStorageClient(ObjectStorageClient):
    def __init__(
        self,
        container: ContainerClient,
        *,
        credential: DefaultAzureCredential | None = None,
    ) -> None:
        self._container = container
        self._credential = credential
        self._container_ready = False

    @classmethod
    def from_settings(cls, cfg: Settings) -> AzureBlobObjectStorageClient:
        """Build a client using key auth locally and managed identity elsewhere."""
        if cfg.azure_blob_connection_string and not cfg.use_managed_identity:
            container = ContainerClient.from_connection_string(
                cfg.azure_blob_connection_string,
                container_name=cfg.azure_blob_container,
            )
            logger.info("azure_blob_init", auth_method="connection_string")
            return cls(container)

        if not cfg.azure_blob_account_url:
            raise CacheConfigError(
                "AZURE_BLOB_ACCOUNT_URL is required for the object-storage cache provider"
            )

        credential = DefaultAzureCredential()
        container = ContainerClient(
            account_url=cfg.azure_blob_account_url,
            container_name=cfg.azure_blob_container,
            credential=credential,
        )
        logger.info("azure_blob_init", auth_method="managed_identity")
        return cls(container, credential=credential)

    async def _ensure_container(self) -> None:
        if self._container_ready:
            return
        try:
            await self._container.create_container()
            logger.info("container_created", container=self._container.container_name)
        except ResourceExistsError:
            pass
        self._container_ready = True

    async def get_object(self, name: str) -> bytes | None:
        try:
            downloader = await self._container.download_blob(name)
        except ResourceNotFoundError:
            return None
        return await downloader.readall()

    async def put_object(
        self, name: str, body: bytes, *, content_type: str = "application/json"
    ) -> None:
        await self._ensure_container()
        await self._container.upload_blob(
            name,
            body,
            overwrite=True,
            content_settings=ContentSettings(content_type=content_type),
        )

    async def get_object_with_etag(self, name: str) -> tuple[bytes, str] | None:
        try:
            downloader = await self._container.download_blob(name)
        except ResourceNotFoundError:
            return None
        body = await downloader.readall()
        return body, downloader.properties.etag

    async def put_object_if_unchanged(
        self, name: str, body: bytes, *, etag: str, content_type: str = "application/json"
    ) -> bool:
        try:
            await self._container.upload_blob(
                name,
                body,
                overwrite=True,
                content_settings=ContentSettings(content_type=content_type),
                etag=etag,
                match_condition=MatchConditions.IfNotModified,
            )
        except (ResourceModifiedError, ResourceNotFoundError):
            # 412: replaced or deleted since it was read.
            return False
        return True

    async def delete_object(self, name: str) -> bool:
        try:
            await self._container.delete_blob(name)
        except ResourceNotFoundError:
            return False
        return True

    async def list_objects(self, prefix: str) -> list[str]:
        try:
            return [blob.name async for blob in self._container.list_blobs(name_starts_with=prefix)]
        except ResourceNotFoundError:
            # Container not created yet: nothing cached.
            return []

    async def close(self) -> None:
        await self._container.close()
        if self._credential is not None:
            await self._credential.close()
