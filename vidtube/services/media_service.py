"""Media host (Cloudinary) uploads and local temp file staging."""

import time
from pathlib import Path
from typing import Optional
from uuid import uuid4

import cloudinary.utils
import httpx
import structlog
from fastapi import UploadFile
from pydantic import BaseModel, ConfigDict

from vidtube.config import Settings
from vidtube.models.media import UploadResult

logger = structlog.get_logger(__name__)


class MediaUploadConfig(BaseModel):
    """Media host credentials, built once at startup and passed by reference."""

    model_config = ConfigDict(frozen=True)

    cloud_name: str
    api_key: str
    api_secret: str
    api_base_url: str = "https://api.cloudinary.com/v1_1"
    timeout_seconds: int = 60
    temp_dir: Path = Path("./public/temp")

    @classmethod
    def from_settings(cls, settings: Settings) -> "MediaUploadConfig":
        """Build the upload config from application settings."""
        return cls(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            api_base_url=settings.cloudinary_api_base_url,
            timeout_seconds=settings.upload_timeout_seconds,
            temp_dir=Path(settings.temp_upload_dir),
        )

    @property
    def upload_url(self) -> str:
        return f"{self.api_base_url}/{self.cloud_name}/auto/upload"


UPLOAD_CHUNK_SIZE = 1024 * 1024


async def stash_upload(upload: Optional[UploadFile], temp_dir: Path) -> Optional[Path]:
    """Stream an incoming multipart file into the temp directory.

    Args:
        upload: File from the request, or None when the field was omitted
        temp_dir: Directory for staged files

    Returns:
        Path of the staged file, or None when no file (or an empty one) was sent
    """
    if upload is None or not upload.filename:
        return None

    temp_dir.mkdir(parents=True, exist_ok=True)
    path = temp_dir / f"{uuid4().hex}_{Path(upload.filename).name}"

    written = 0
    with path.open("wb") as f:
        while True:
            chunk = await upload.read(UPLOAD_CHUNK_SIZE)
            if not chunk:
                break
            written += len(chunk)
            f.write(chunk)

    if written == 0:
        path.unlink(missing_ok=True)
        return None

    logger.debug("upload_staged", path=str(path), size=written)
    return path


class MediaUploadService:
    """Uploads staged files to the media host."""

    def __init__(self, config: MediaUploadConfig):
        self.config = config
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout_seconds)
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def upload(self, local_path: Optional[Path]) -> Optional[UploadResult]:
        """Upload a local file and delete it afterwards.

        The local file is removed whether or not the upload succeeded.

        Args:
            local_path: Staged file, or None

        Returns:
            UploadResult with the hosted URL, or None on a missing path or failure
        """
        if local_path is None:
            return None

        try:
            return await self._send(local_path)
        except (httpx.HTTPError, OSError, ValueError) as e:
            logger.error(
                "media_upload_failed",
                file=local_path.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None
        finally:
            local_path.unlink(missing_ok=True)

    async def _send(self, local_path: Path) -> UploadResult:
        params = {"timestamp": str(int(time.time()))}
        data = {
            **params,
            "api_key": self.config.api_key,
            "signature": cloudinary.utils.api_sign_request(params, self.config.api_secret),
        }

        client = await self._get_client()
        with local_path.open("rb") as fh:
            response = await client.post(
                self.config.upload_url,
                data=data,
                files={"file": (local_path.name, fh)},
            )

        response.raise_for_status()
        result = UploadResult(**response.json())

        logger.info(
            "media_uploaded",
            public_id=result.public_id,
            resource_type=result.resource_type,
        )
        return result
