"""
Object storage access for uploaded study materials.
"""
from urllib.parse import quote

import httpx

from studia.core.errors import DownloadError
from studia.core.logging_config import get_logger

logger = get_logger(__name__)


class StorageClient:
    """Downloads objects from the backend's storage API with service credentials."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        supabase_url: str,
        service_role_key: str,
        bucket: str = "study-materials",
    ):
        self.http_client = http_client
        self.supabase_url = supabase_url.rstrip("/")
        self.service_role_key = service_role_key
        self.bucket = bucket

    def object_url(self, storage_path: str) -> str:
        path = quote(storage_path.lstrip("/"), safe="/")
        return f"{self.supabase_url}/storage/v1/object/{self.bucket}/{path}"

    async def download(self, storage_path: str) -> bytes:
        """Fetch the object at ``storage_path``. Any failure raises DownloadError."""
        if not storage_path or not storage_path.strip("/"):
            raise DownloadError("Download failed: empty storage path")
        if not self.supabase_url:
            raise DownloadError("Download failed: storage is not configured")

        headers = {
            "Authorization": f"Bearer {self.service_role_key}",
            "apikey": self.service_role_key,
        }
        logger.info(f"Downloading file | bucket={self.bucket} | path={storage_path}")
        try:
            resp = await self.http_client.get(self.object_url(storage_path), headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Storage download failed | path={storage_path} | error={e}")
            raise DownloadError(f"Download failed: {e}")

        if resp.status_code != 200:
            logger.error(
                f"Storage download failed | path={storage_path} | status={resp.status_code} | "
                f"body={resp.text[:200]}"
            )
            raise DownloadError(f"Download failed: HTTP {resp.status_code}")

        if not resp.content:
            raise DownloadError("Download failed: file is empty")

        logger.debug(f"Downloaded {len(resp.content)} bytes from {storage_path}")
        return resp.content
