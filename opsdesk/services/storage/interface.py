"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the in-memory core decoupled from the storage schema

Storage is a collaborator, not the source of truth for a running session.
The controller applies every write in memory first and then syncs here on
a best-effort basis; a failed sync is logged and audited but never rolls
back local state. The next ``reload`` reconciles from storage.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Union
from uuid import UUID

from opsdesk.models.audit import AuditEvent
from opsdesk.models.entities import (
    AppData,
    CalendarEvent,
    Comment,
    Document,
    Recap,
    Transaction,
    User,
)


class EntityKind(str, Enum):
    """Record groups the storage backend keeps apart."""
    USERS = "users"
    RECAPS = "recaps"
    COMMENTS = "comments"
    EVENTS = "events"
    DOCUMENTS = "documents"
    TRANSACTIONS = "transactions"


StoredEntity = Union[User, Recap, CalendarEvent, Document, Transaction]


class EntityStorageInterface(ABC):
    """
    Abstract interface for entity storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def insert(self, kind: EntityKind, entity: StoredEntity) -> bool:
        """
        Insert a new entity of the given kind.

        Comments are not inserted through here; see ``append_comment``.

        Raises:
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def append_comment(self, recap_id: str, comment: Comment) -> bool:
        """
        Append a comment to a recap's thread.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, kind: EntityKind, entity_id: str) -> bool:
        """
        Delete an entity by ID.

        Returns:
            True if a row was deleted, False if nothing matched
        """
        pass

    @abstractmethod
    async def list_users(self) -> list[User]:
        """List the roster in insertion order."""
        pass

    @abstractmethod
    async def list_all(self) -> AppData:
        """
        Load every record kind, each in insertion order.

        Recaps come back with their comments attached in order.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one utterance).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
