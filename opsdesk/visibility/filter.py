"""
Visibility Filter

The single tenancy boundary. Every collection handed to the display layer,
and every transaction set handed to the ledger, goes through ``apply``.

Rules:
- A Manager sees what they wrote, plus events and documents the Owner
  wrote (those are broadcast). Owner recaps and transactions stay hidden.
- The Owner sees what the selected manager wrote, plus their own events
  and documents. Without a selected manager everything is empty.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from opsdesk.models.entities import (
    AppData,
    CalendarEvent,
    Document,
    Recap,
    Transaction,
    UserRole,
)


class ViewingContext(BaseModel):
    """Who is looking, and at whom."""
    model_config = ConfigDict(frozen=True)

    actor_role: UserRole
    actor_id: Optional[str]
    selected_subject_id: Optional[str]
    owner_id: str

    @property
    def subject_id(self) -> Optional[str]:
        """Author whose private records are in scope."""
        if self.actor_role == UserRole.RESPONSABLE:
            return self.actor_id
        return self.selected_subject_id


class VisibilityFilter:
    """Predicates per entity kind for one viewing context."""

    def __init__(self, context: ViewingContext):
        self._context = context

    @property
    def context(self) -> ViewingContext:
        return self._context

    def _in_scope(self) -> bool:
        return self._context.subject_id is not None

    def _is_subject(self, author_id: str) -> bool:
        return self._in_scope() and author_id == self._context.subject_id

    def _is_broadcast(self, author_id: str) -> bool:
        return self._in_scope() and author_id == self._context.owner_id

    def can_see_recap(self, recap: Recap) -> bool:
        return self._is_subject(recap.author_id)

    def can_see_transaction(self, transaction: Transaction) -> bool:
        return self._is_subject(transaction.author_id)

    def can_see_event(self, event: CalendarEvent) -> bool:
        return self._is_subject(event.author_id) or self._is_broadcast(event.author_id)

    def can_see_document(self, document: Document) -> bool:
        return self._is_subject(document.author_id) or self._is_broadcast(document.author_id)

    def apply(self, data: AppData) -> AppData:
        """Narrow all four collections. Order is preserved."""
        return AppData(
            recaps=[r for r in data.recaps if self.can_see_recap(r)],
            events=[e for e in data.events if self.can_see_event(e)],
            documents=[d for d in data.documents if self.can_see_document(d)],
            transactions=[t for t in data.transactions if self.can_see_transaction(t)],
        )
