"""
In-memory Entity Store

Holds the roster and the four record collections for one tenant. It is
owned by the session controller and mutated only through the append and
remove operations below, one call at a time.

The store never filters: it returns everything, and the controller puts
the visibility filter in front of every read it exposes.
"""

from typing import Iterable, Optional

import structlog

from opsdesk.errors import NotFoundError
from opsdesk.models.entities import (
    AppData,
    CalendarEvent,
    Comment,
    Document,
    Recap,
    Transaction,
    User,
    UserRole,
)


logger = structlog.get_logger(__name__)


class EntityStore:
    """
    Append-only collections plus the user roster.

    Lists are kept in insertion order. The only in-place mutations are
    appending a comment to a recap and removing a calendar event.
    """

    def __init__(self, users: Iterable[User] = ()):
        self._users: dict[str, User] = {}
        self._recaps: list[Recap] = []
        self._events: list[CalendarEvent] = []
        self._documents: list[Document] = []
        self._transactions: list[Transaction] = []
        for user in users:
            self.add_user(user)

    # -------------------------------------------------------------------------
    # Roster
    # -------------------------------------------------------------------------

    def add_user(self, user: User) -> User:
        if user.id in self._users:
            raise ValueError(f"User already exists: {user.id}")
        self._users[user.id] = user
        return user

    def get_user(self, user_id: Optional[str]) -> Optional[User]:
        """Resolve a user, or None. Read paths use this and never raise."""
        if user_id is None:
            return None
        return self._users.get(user_id)

    def require_user(self, user_id: Optional[str]) -> User:
        user = self.get_user(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    def list_users(self) -> list[User]:
        return list(self._users.values())

    def list_managers(self) -> list[User]:
        return [u for u in self._users.values() if u.role == UserRole.RESPONSABLE]

    def owner(self) -> Optional[User]:
        for user in self._users.values():
            if user.role == UserRole.PATRON:
                return user
        return None

    # -------------------------------------------------------------------------
    # Appends
    # -------------------------------------------------------------------------

    def append_recap(self, recap: Recap) -> Recap:
        self._recaps.append(recap)
        return recap

    def append_event(self, event: CalendarEvent) -> CalendarEvent:
        self._events.append(event)
        return event

    def append_document(self, document: Document) -> Document:
        self._documents.append(document)
        return document

    def append_transaction(self, transaction: Transaction) -> Transaction:
        self._transactions.append(transaction)
        return transaction

    # -------------------------------------------------------------------------
    # Recaps and comments
    # -------------------------------------------------------------------------

    def get_recap(self, recap_id: str) -> Optional[Recap]:
        for recap in self._recaps:
            if recap.id == recap_id:
                return recap
        return None

    def append_comment(self, recap_id: str, comment: Comment) -> Recap:
        """
        Append to a recap's thread, preserving order.

        Raises:
            NotFoundError: unknown recap; nothing is changed
        """
        recap = self.get_recap(recap_id)
        if recap is None:
            raise NotFoundError("recap", recap_id)
        recap.comments.append(comment)
        return recap

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def get_event(self, event_id: str) -> Optional[CalendarEvent]:
        for event in self._events:
            if event.id == event_id:
                return event
        return None

    def remove_event(self, event_id: str) -> CalendarEvent:
        event = self.get_event(event_id)
        if event is None:
            raise NotFoundError("event", event_id)
        self._events.remove(event)
        return event

    # -------------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------------

    def list_recaps(self) -> list[Recap]:
        return list(self._recaps)

    def list_events(self) -> list[CalendarEvent]:
        return list(self._events)

    def list_documents(self) -> list[Document]:
        return list(self._documents)

    def list_transactions(self) -> list[Transaction]:
        return list(self._transactions)

    def snapshot(self) -> AppData:
        """Unfiltered view of everything. Never hand this to the display layer."""
        return AppData(
            recaps=self.list_recaps(),
            events=self.list_events(),
            documents=self.list_documents(),
            transactions=self.list_transactions(),
        )

    def load(self, users: Iterable[User], data: AppData) -> None:
        """
        Replace the whole state, e.g. after reloading from storage.

        The new state is built aside and swapped in at the end. Rows that
        repeat an id already seen (a retried append) are dropped, so a
        credit or an expense is never counted twice.
        """
        roster = {user.id: user for user in _unique("user", users)}
        recaps = _unique("recap", data.recaps)
        events = _unique("event", data.events)
        documents = _unique("document", data.documents)
        transactions = _unique("transaction", data.transactions)

        self._users = roster
        self._recaps = recaps
        self._events = events
        self._documents = documents
        self._transactions = transactions


def _unique(kind: str, entities: Iterable) -> list:
    """First occurrence of each id wins."""
    seen: set[str] = set()
    kept = []
    for entity in entities:
        if entity.id in seen:
            logger.warning("duplicate_row_dropped", kind=kind, entity_id=entity.id)
            continue
        seen.add(entity.id)
        kept.append(entity)
    return kept
