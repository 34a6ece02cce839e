"""
Media and Document Upload Service using Cloudinary

DESIGN DECISION: File bytes never live in the core. Recap photos and
uploaded documents go to Cloudinary; the core only keeps the returned URL
and a human readable size descriptor.

This service handles:
1. Upload size checks (before any network call)
2. Upload to Cloudinary, images and raw files alike
3. Returning the URL, public id and byte count
"""

import hashlib
from typing import Optional

import cloudinary
import cloudinary.uploader
from pydantic import BaseModel, Field
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from opsdesk.config import get_settings


class MediaUploadError(Exception):
    """Failed to upload a file to Cloudinary."""
    pass


class FileTooLargeError(MediaUploadError):
    """File exceeds the configured upload limit."""
    pass


class UploadedMedia(BaseModel):
    """Result of a successful upload."""

    url: str
    public_id: str
    size_bytes: int = Field(ge=0)

    @property
    def size_label(self) -> str:
        return format_size(self.size_bytes)


def format_size(size_bytes: int) -> str:
    """Render a byte count the way the document list shows it ("2.40 MB")."""
    return f"{size_bytes / 1024 / 1024:.2f} MB"


class CloudinaryMediaService:
    """
    Service for storing recap media and documents on Cloudinary.

    Flow:
    1. Receive raw file bytes and the original file name
    2. Reject files over the size limit
    3. Upload under ``<folder>/<kind>/``
    4. Return the secure URL
    """

    def __init__(self):
        self._settings = get_settings().cloudinary
        self._app_settings = get_settings().app
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    def _generate_public_id(self, kind: str, owner_id: str, filename: str) -> str:
        """
        Generate a unique public ID for Cloudinary.

        Format: {kind}/{owner_id}_{filename_hash}
        """
        filename_hash = hashlib.md5(filename.encode()).hexdigest()[:8]
        return f"{kind}/{owner_id}_{filename_hash}"

    @retry(
        retry=retry_if_not_exception_type(FileTooLargeError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def upload(
        self,
        file_bytes: bytes,
        filename: str,
        kind: str,
        owner_id: str,
        resource_type: Optional[str] = None,
    ) -> UploadedMedia:
        """
        Upload one file.

        Args:
            file_bytes: Raw file content
            filename: Original file name (used for the public id)
            kind: "recaps" or "documents"
            owner_id: Entity the file belongs to
            resource_type: Cloudinary resource type, "auto" by default

        Raises:
            FileTooLargeError: If the file is over the configured limit
            MediaUploadError: If the upload fails
        """
        size = len(file_bytes)
        if size > self._app_settings.max_upload_size_bytes:
            raise FileTooLargeError(
                f"{filename} is {format_size(size)}, limit is "
                f"{self._app_settings.max_upload_size_mb} MB"
            )

        self._configure()

        try:
            result = cloudinary.uploader.upload(
                file_bytes,
                public_id=self._generate_public_id(kind, owner_id, filename),
                folder=self._settings.folder,
                resource_type=resource_type or "auto",
            )
        except cloudinary.exceptions.Error as e:
            raise MediaUploadError(f"Cloudinary error: {e}")
        except Exception as e:
            raise MediaUploadError(f"Failed to upload {filename}: {e}")

        url = result.get("secure_url", result.get("url", ""))
        if not url:
            raise MediaUploadError("No URL returned from Cloudinary")

        return UploadedMedia(
            url=url,
            public_id=result.get("public_id", ""),
            size_bytes=int(result.get("bytes", size)),
        )
