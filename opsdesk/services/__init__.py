"""Services package."""

from opsdesk.services.media import (
    CloudinaryMediaService,
    FileTooLargeError,
    MediaUploadError,
    UploadedMedia,
)
from opsdesk.services.storage import (
    AuditStorageInterface,
    EntityKind,
    EntityStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsEntityStorage,
    StorageConnectionError,
    StorageError,
)

__all__ = [
    # Media services
    "CloudinaryMediaService",
    "FileTooLargeError",
    "MediaUploadError",
    "UploadedMedia",
    # Storage services
    "AuditStorageInterface",
    "EntityKind",
    "EntityStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsEntityStorage",
    "StorageConnectionError",
    "StorageError",
]
