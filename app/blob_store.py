# app/blob_store.py
import os
import re
from typing import List, Optional

import structlog
from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.identity import DefaultAzureCredential
from azure.storage.blob import BlobServiceClient, ContainerClient, ContentSettings
from dotenv import load_dotenv

from utils.errors import BlobNotFoundError, StorageUnavailableError

load_dotenv()

STORAGE_ACCOUNT_NAME = os.getenv("AZURE_STORAGE_ACCOUNT", "parkingchargenotices")
STORAGE_CONTAINER_NAME = os.getenv("AZURE_STORAGE_CONTAINER", "cpo")

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")

logger = structlog.get_logger(__name__)


def sanitize_file_name(file_name: str) -> str:
    return _UNSAFE_NAME_CHARS.sub("_", file_name)


class AzureBlobStore:
    """
    Spreadsheets live in one Azure Blob Storage container. A connection
    string wins when configured; otherwise the managed identity is used.
    """

    def __init__(
        self,
        connection_string: Optional[str] = None,
        container_name: str = STORAGE_CONTAINER_NAME,
    ):
        self.container_name = container_name
        self._connection_string = connection_string or os.getenv("AZURE_STORAGE_CONNECTION_STRING")
        self._container: Optional[ContainerClient] = None
        self._container_checked = False
        self._available = False

        try:
            if self._connection_string:
                service = BlobServiceClient.from_connection_string(self._connection_string)
                logger.info("blob_store_initialized", auth="connection_string")
            else:
                account_url = f"https://{STORAGE_ACCOUNT_NAME}.blob.core.windows.net"
                service = BlobServiceClient(account_url, credential=DefaultAzureCredential())
                logger.info("blob_store_initialized", auth="managed_identity", account=STORAGE_ACCOUNT_NAME)
            self._container = service.get_container_client(container_name)
            self._available = True
        except (ValueError, AzureError) as e:
            logger.error("blob_store_init_failed", error=str(e))

    def is_available(self) -> bool:
        return self._available

    def _unavailable(self) -> StorageUnavailableError:
        if self._connection_string:
            return StorageUnavailableError(
                "Azure Storage is not available. Please check your connection string configuration."
            )
        return StorageUnavailableError(
            "Azure Storage is not available. For managed identity: ensure proper permissions. "
            "For development: set AZURE_STORAGE_CONNECTION_STRING or run \"az login\"."
        )

    def _container_client(self) -> ContainerClient:
        if not self._available or self._container is None:
            raise self._unavailable()
        if not self._container_checked:
            self._container_checked = True
            try:
                self._container.create_container()
                logger.info("blob_container_created", container=self.container_name)
            except ResourceExistsError:
                pass
            except AzureError as e:
                # may exist already and we just lack create permission
                logger.warning("blob_container_check_failed", container=self.container_name, error=str(e))
        return self._container

    def fetch_bytes(self, file_name: str) -> bytes:
        container = self._container_client()
        try:
            return container.get_blob_client(file_name).download_blob().readall()
        except ResourceNotFoundError:
            raise BlobNotFoundError(file_name)
        except AzureError as e:
            logger.error("blob_download_failed", file_name=file_name, error=str(e))
            raise StorageUnavailableError(f"Download failed: {e}") from e

    def upload_file(self, file_name: str, data: bytes, content_type: Optional[str] = None) -> str:
        container = self._container_client()
        blob_name = sanitize_file_name(file_name)
        try:
            blob = container.upload_blob(
                blob_name,
                data,
                overwrite=True,
                content_settings=ContentSettings(content_type=content_type or "application/octet-stream"),
            )
        except AzureError as e:
            logger.error("blob_upload_failed", file_name=blob_name, error=str(e))
            raise StorageUnavailableError(f"Upload failed: {e}") from e
        logger.info("blob_uploaded", file_name=blob_name, size=len(data))
        return blob.url

    def list_files(self) -> List[str]:
        container = self._container_client()
        try:
            return [blob.name for blob in container.list_blobs()]
        except AzureError as e:
            logger.error("blob_list_failed", error=str(e))
            raise StorageUnavailableError(f"Listing failed: {e}") from e


_blob_store: Optional[AzureBlobStore] = None


def get_blob_store() -> AzureBlobStore:
    """FastAPI dependency: one store per process."""
    global _blob_store
    if _blob_store is None:
        _blob_store = AzureBlobStore()
    return _blob_store
