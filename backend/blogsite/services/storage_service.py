import logging
import mimetypes
import uuid
from typing import Any, Optional

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContainerClient, ContentSettings
from starlette.concurrency import run_in_threadpool

from ..core.config import settings
from ..core.exceptions import UploadFailedException
from ..schemas.post import ImageRef

logger = logging.getLogger(__name__)

BLOB_PREFIX = "blogs"


class PostStorageService:
    """
    Post images in Azure Blob Storage.

    Uploads are validated locally (content type and size) before any network
    call. Removal is best effort: failures are logged, never raised.
    """

    def __init__(self, container_client: Optional[ContainerClient] = None):
        self._container_client = container_client

    def _ensure_initialized(self) -> ContainerClient:
        if self._container_client is None:
            connection_string = settings.AZURE_STORAGE_CONNECTION_STRING.get_secret_value()
            if not connection_string:
                raise UploadFailedException(
                    "Image storage is not configured",
                    code="storage_not_configured",
                    status_code=502
                )
            service_client = BlobServiceClient.from_connection_string(
                connection_string,
                connection_timeout=settings.STORAGE_TIMEOUT,
                read_timeout=settings.STORAGE_TIMEOUT,
            )
            self._container_client = service_client.get_container_client(settings.AZURE_STORAGE_CONTAINER)
            logger.info(f"Azure Storage container client ready: container={settings.AZURE_STORAGE_CONTAINER}")
        return self._container_client

    def validate(self, data: bytes, content_type: Optional[str]) -> None:
        if not content_type or content_type.lower() not in settings.ALLOWED_IMAGE_TYPES:
            raise UploadFailedException(
                f"Unsupported image type: {content_type or 'unknown'}",
                code="unsupported_type"
            )
        if not data:
            raise UploadFailedException("Image file is empty", code="empty_file")
        if len(data) > settings.MAX_IMAGE_BYTES:
            raise UploadFailedException(
                f"Image exceeds the {settings.MAX_IMAGE_BYTES // (1024 * 1024)} MiB limit",
                code="too_large"
            )

    def url_for(self, storage_id: str) -> str:
        container = self._ensure_initialized()
        return f"{container.url.rstrip('/')}/{storage_id}"

    def _safe_url(self, storage_id: str) -> str:
        try:
            return self.url_for(storage_id)
        except UploadFailedException:
            logger.warning(f"Storage not configured, cannot build URL for blob={storage_id}")
            return storage_id

    def _upload_blob(self, blob_name: str, data: bytes, content_type: str) -> str:
        container = self._ensure_initialized()
        container.upload_blob(
            name=blob_name,
            data=data,
            overwrite=False,
            content_settings=ContentSettings(content_type=content_type),
            timeout=settings.STORAGE_TIMEOUT,
        )
        return self.url_for(blob_name)

    async def store(self, data: bytes, content_type: Optional[str]) -> ImageRef:
        """Validate and upload an image. Raises ``UploadFailedException``."""
        self.validate(data, content_type)
        extension = mimetypes.guess_extension(content_type) or ""
        blob_name = f"{BLOB_PREFIX}/{uuid.uuid4().hex}{extension}"
        try:
            url = await run_in_threadpool(self._upload_blob, blob_name, data, content_type)
        except UploadFailedException:
            raise
        except AzureError as e:
            logger.error(f"Image upload rejected by storage: blob={blob_name}, error={e}")
            raise UploadFailedException("Image upload failed", code="remote_rejected", status_code=502)
        logger.info(f"Image uploaded: blob={blob_name}, bytes={len(data)}")
        return ImageRef(url=url, storage_id=blob_name)

    def _delete_blob(self, storage_id: str) -> None:
        container = self._ensure_initialized()
        container.delete_blob(storage_id, delete_snapshots="include", timeout=settings.STORAGE_TIMEOUT)

    async def remove(self, storage_id: Optional[str]) -> None:
        if not storage_id:
            return
        try:
            await run_in_threadpool(self._delete_blob, storage_id)
            logger.info(f"Image removed from storage: blob={storage_id}")
        except ResourceNotFoundError:
            logger.warning(f"Image already absent from storage: blob={storage_id}")
        except Exception as e:
            logger.error(f"Image removal failed (ignored): blob={storage_id}, error={e}")

    def resolve(self, raw: Any) -> Optional[ImageRef]:
        """
        Normalize a stored image reference. Posts written by older clients
        hold a bare storage id; newer ones hold ``{"url", "storage_id"}``.
        """
        if not raw:
            return None
        if isinstance(raw, str):
            return ImageRef(url=self._safe_url(raw), storage_id=raw)
        if isinstance(raw, dict):
            storage_id = raw.get("storage_id") or raw.get("storageId") or raw.get("public_id")
            url = raw.get("url")
            if not storage_id and not url:
                return None
            if not url:
                url = self._safe_url(storage_id)
            return ImageRef(url=url, storage_id=storage_id or "")
        logger.warning(f"Unrecognized image reference type: {type(raw).__name__}")
        return None


def storage_id_of(raw: Any) -> Optional[str]:
    """Storage id of a stored image reference in either format, without touching storage."""
    if isinstance(raw, str):
        return raw or None
    if isinstance(raw, dict):
        return raw.get("storage_id") or raw.get("storageId") or raw.get("public_id")
    return None


post_storage_service = PostStorageService()


def get_storage_service() -> PostStorageService:
    return post_storage_service
