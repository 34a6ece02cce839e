"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements Google Sheets as the backend, but designed to be swappable.
"""

from opsdesk.services.storage.interface import (
    AuditStorageInterface,
    EntityKind,
    EntityStorageInterface,
    StorageConnectionError,
    StorageError,
)
from opsdesk.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsEntityStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "EntityKind",
    "EntityStorageInterface",
    # Exceptions
    "StorageConnectionError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsEntityStorage",
]
