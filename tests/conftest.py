"""
Shared fixtures for OpsDesk tests.

No real API calls in tests: storage, the intent parser and the media
service are replaced with in-memory fakes.
"""

from decimal import Decimal
from typing import Optional

import pytest

from opsdesk.agents import IntentParserInterface
from opsdesk.audit import AuditLogger
from opsdesk.controller import AppState, SessionController
from opsdesk.ledger import CurrencyTable, LedgerEngine
from opsdesk.models import AppData, Comment, User, UserRole
from opsdesk.services.media import UploadedMedia
from opsdesk.services.storage import EntityKind, EntityStorageInterface, StorageError
from opsdesk.store import EntityStore


class FakeEntityStorage(EntityStorageInterface):
    """Records every call; serves a fixed dataset on reload."""

    def __init__(self, users: Optional[list[User]] = None, data: Optional[AppData] = None):
        self.inserted: list[tuple[EntityKind, object]] = []
        self.comments: list[tuple[str, Comment]] = []
        self.deleted: list[tuple[EntityKind, str]] = []
        self.users = list(users or [])
        self.data = data or AppData()

    async def insert(self, kind, entity) -> bool:
        self.inserted.append((kind, entity))
        return True

    async def append_comment(self, recap_id, comment) -> bool:
        self.comments.append((recap_id, comment))
        return True

    async def delete(self, kind, entity_id) -> bool:
        self.deleted.append((kind, entity_id))
        return True

    async def list_users(self) -> list[User]:
        return list(self.users)

    async def list_all(self) -> AppData:
        return self.data.model_copy(deep=True)


class FailingStorage(EntityStorageInterface):
    """Every call fails, as if the spreadsheet were unreachable."""

    async def insert(self, kind, entity) -> bool:
        raise StorageError("sheets unavailable")

    async def append_comment(self, recap_id, comment) -> bool:
        raise StorageError("sheets unavailable")

    async def delete(self, kind, entity_id) -> bool:
        raise StorageError("sheets unavailable")

    async def list_users(self) -> list[User]:
        raise StorageError("sheets unavailable")

    async def list_all(self) -> AppData:
        raise StorageError("sheets unavailable")


class FakeIntentParser(IntentParserInterface):
    def __init__(self, payloads: list):
        self.payloads = payloads
        self.calls: list[tuple[str, str]] = []

    async def parse(self, text, actor) -> list[dict]:
        self.calls.append((text, actor.id))
        return list(self.payloads)


class FakeMediaService:
    def __init__(self):
        self.uploads: list[tuple[str, str, str]] = []

    async def upload(self, file_bytes, filename, kind, owner_id, resource_type=None):
        self.uploads.append((filename, kind, owner_id))
        return UploadedMedia(
            url=f"https://media.example/{kind}/{owner_id}/{filename}",
            public_id=f"{kind}/{owner_id}",
            size_bytes=len(file_bytes),
        )


@pytest.fixture
def rates():
    return {"EUR": Decimal("1"), "USD": Decimal("1.09"), "XOF": Decimal("655.96")}


@pytest.fixture
def table(rates):
    return CurrencyTable(rates)


@pytest.fixture
def owner():
    return User(id="u1", name="Patron", role=UserRole.PATRON)


@pytest.fixture
def store(owner):
    return EntityStore([owner])


@pytest.fixture
def ledger(table, store):
    return LedgerEngine(table, store)


@pytest.fixture
def storage():
    return FakeEntityStorage()


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def media_service():
    return FakeMediaService()


@pytest.fixture
def controller(owner, store, ledger, storage, audit_logger, media_service):
    return SessionController(
        owner=owner,
        store=store,
        ledger=ledger,
        storage=storage,
        audit_logger=audit_logger,
        media_service=media_service,
        state=AppState(),
    )


@pytest.fixture
def failing_storage():
    return FailingStorage()


@pytest.fixture
def intent_parser():
    return FakeIntentParser([])


@pytest.fixture
def make_controller(owner, store, ledger, audit_logger):
    """Build a controller around the shared store with chosen collaborators."""
    def _make(**collaborators):
        return SessionController(
            owner=owner,
            store=store,
            ledger=ledger,
            audit_logger=audit_logger,
            state=AppState(),
            **collaborators,
        )
    return _make
