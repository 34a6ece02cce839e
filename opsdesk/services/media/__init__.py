"""Media and document upload services package."""

from opsdesk.services.media.cloudinary_service import (
    CloudinaryMediaService,
    FileTooLargeError,
    MediaUploadError,
    UploadedMedia,
    format_size,
)

__all__ = [
    "CloudinaryMediaService",
    "FileTooLargeError",
    "MediaUploadError",
    "UploadedMedia",
    "format_size",
]
