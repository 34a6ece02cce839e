"""
Session Controller for OpsDesk

This module ties together all the components and defines the end-to-end
flows of one session:
1. Context (active role, selected manager, active view, display currency)
2. Writes (recaps, comments, events, documents, budget credits, expenses)
3. Natural language (utterance → intents → the same write paths)
4. Reconciliation with persistence

DESIGN DECISION: The controller enforces the boundaries:
- Every read handed to the display layer goes through the visibility filter
- Every expense is admitted against the filtered scope balance
- Owner financial writes are authored by the selected manager
- Every write and every rejection is audited

Persistence is optimistic: memory is updated first, then the storage
collaborator is awaited. A failed sync is logged and audited and the
local write is kept. There is no rollback.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional
from urllib.parse import quote_plus
from uuid import UUID

import structlog
from pydantic import BaseModel

from opsdesk.agents import GeminiIntentParser, IntentParserInterface
from opsdesk.audit import AuditLogger, configure_logging, create_correlation_id
from opsdesk.config import get_settings, validate_all_settings
from opsdesk.errors import (
    InsufficientFundsError,
    NotFoundError,
    OpsDeskError,
    PermissionDeniedError,
    UnsupportedActionError,
)
from opsdesk.ledger import CurrencyTable, LedgerEngine, LedgerSeries
from opsdesk.models import (
    AppData,
    AuditEventBuilder,
    AuditEventType,
    CalendarEvent,
    Comment,
    CreateEventIntent,
    CreateExpenseIntent,
    CreateRecapIntent,
    CurrencyCode,
    Document,
    DocumentCategory,
    Intent,
    IntentOutcome,
    LedgerSummary,
    Recap,
    RecapKind,
    Transaction,
    User,
    UserRole,
    coerce_intent,
)
from opsdesk.models.entities import as_utc, utc_now
from opsdesk.services.media import CloudinaryMediaService, MediaUploadError, format_size
from opsdesk.services.storage import (
    EntityKind,
    EntityStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsEntityStorage,
)
from opsdesk.store import EntityStore
from opsdesk.validation import validate_currency
from opsdesk.visibility import ViewingContext, VisibilityFilter


logger = structlog.get_logger(__name__)


DEFAULT_BUDGET_REASON = "Ajout budget"


class View(str, Enum):
    DASHBOARD = "dashboard"
    RECAPS = "recaps"
    CALENDAR = "calendar"
    DOCUMENTS = "documents"
    FINANCES = "finances"


class AppState(BaseModel):
    """Explicit session state. One instance per controller."""

    active_role: UserRole = UserRole.PATRON
    selected_subject_id: Optional[str] = None
    active_view: View = View.DASHBOARD
    display_currency: CurrencyCode = CurrencyCode.EUR


def default_avatar(name: str) -> str:
    return f"https://ui-avatars.com/api/?name={quote_plus(name)}&background=random"


class SessionController:
    """
    Orchestrates one tenant session.

    The controller owns the state, the store and the ledger. Storage, the
    intent parser and the media service are optional collaborators: without
    them the session works fully in memory.
    """

    def __init__(
        self,
        owner: User,
        store: Optional[EntityStore] = None,
        ledger: Optional[LedgerEngine] = None,
        storage: Optional[EntityStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        intent_parser: Optional[IntentParserInterface] = None,
        media_service: Optional[CloudinaryMediaService] = None,
        state: Optional[AppState] = None,
    ):
        if owner.role != UserRole.PATRON:
            raise ValueError(f"Owner must have role PATRON, got {owner.role.value}")

        self._owner = owner
        self._store = store or EntityStore()
        if self._store.get_user(owner.id) is None:
            self._store.add_user(owner)
        self._ledger = ledger or LedgerEngine(CurrencyTable.from_settings(), self._store)
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._intent_parser = intent_parser
        self._media_service = media_service
        self._state = state or AppState()
        self._ensure_subject()

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def owner(self) -> User:
        return self._owner

    @property
    def store(self) -> EntityStore:
        return self._store

    @property
    def ledger(self) -> LedgerEngine:
        return self._ledger

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    # -------------------------------------------------------------------------
    # Context
    # -------------------------------------------------------------------------

    def _ensure_subject(self) -> None:
        """Keep the selection pointing at an existing manager, or at nobody."""
        current = self._store.get_user(self._state.selected_subject_id)
        if current is not None and current.role == UserRole.RESPONSABLE:
            return
        managers = self._store.list_managers()
        self._state.selected_subject_id = managers[0].id if managers else None

    async def switch_role(self, correlation_id: Optional[UUID] = None) -> UserRole:
        """Toggle between Owner and Manager. The view goes back to the dashboard."""
        correlation_id = correlation_id or create_correlation_id()
        if self._state.active_role == UserRole.PATRON:
            self._state.active_role = UserRole.RESPONSABLE
        else:
            self._state.active_role = UserRole.PATRON
        self._state.active_view = View.DASHBOARD

        await self._audit_logger.log(AuditEventBuilder.role_switched(
            role=self._state.active_role.value,
            actor_id=self.viewing_context().actor_id,
            correlation_id=correlation_id,
        ))
        return self._state.active_role

    def navigate(self, view: Any) -> View:
        self._state.active_view = View(view)
        return self._state.active_view

    async def select_subject(
        self,
        manager_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> User:
        """
        Choose which manager is in scope.

        Raises:
            NotFoundError: unknown id, or the user is not a manager
        """
        user = self._store.get_user(manager_id)
        if user is None or user.role != UserRole.RESPONSABLE:
            raise NotFoundError("manager", manager_id)

        self._state.selected_subject_id = user.id
        await self._audit_logger.log(AuditEventBuilder.subject_selected(
            subject_id=user.id,
            actor_id=self.viewing_context().actor_id,
            correlation_id=correlation_id or create_correlation_id(),
        ))
        return user

    def set_display_currency(self, code: Any) -> CurrencyCode:
        self._state.display_currency = validate_currency(code)
        return self._state.display_currency

    def current_actor(self) -> User:
        """
        The identity performing actions.

        The Owner in Owner role; the selected manager in Manager role.

        Raises:
            NotFoundError: Manager role with no manager to act as
        """
        if self._state.active_role == UserRole.PATRON:
            return self._owner
        user = self._store.get_user(self._state.selected_subject_id)
        if user is None or user.role != UserRole.RESPONSABLE:
            raise NotFoundError("manager", self._state.selected_subject_id)
        return user

    def viewing_context(self) -> ViewingContext:
        if self._state.active_role == UserRole.PATRON:
            actor_id: Optional[str] = self._owner.id
        else:
            actor_id = self._state.selected_subject_id
        return ViewingContext(
            actor_role=self._state.active_role,
            actor_id=actor_id,
            selected_subject_id=self._state.selected_subject_id,
            owner_id=self._owner.id,
        )

    def resolve_author(self, financial: bool) -> str:
        """
        Author id for a new record.

        Owner financial writes are attributed to the selected manager so
        that they land in that manager's ledger. Everything else is
        authored by the acting identity.
        """
        if financial and self._state.active_role == UserRole.PATRON:
            subject = self._store.get_user(self._state.selected_subject_id)
            if subject is None or subject.role != UserRole.RESPONSABLE:
                raise NotFoundError("manager", self._state.selected_subject_id)
            return subject.id
        return self.current_actor().id

    # -------------------------------------------------------------------------
    # Display boundary
    # -------------------------------------------------------------------------

    def _filter(self) -> VisibilityFilter:
        return VisibilityFilter(self.viewing_context())

    def filtered_data(self) -> AppData:
        return self._filter().apply(self._store.snapshot())

    def ledger_summary(self, currency: Any = None) -> LedgerSummary:
        return self._ledger.summary(
            self.filtered_data().transactions,
            currency or self._state.display_currency,
        )

    def ledger_series(self, currency: Any = None) -> LedgerSeries:
        return self._ledger.series(
            self.filtered_data().transactions,
            currency or self._state.display_currency,
        )

    def upcoming_events(self, now: Optional[datetime] = None) -> list[CalendarEvent]:
        """Visible events starting from ``now`` on, soonest first."""
        now = as_utc(now) if now else utc_now()
        events = [e for e in self.filtered_data().events if e.starts_at >= now]
        return sorted(events, key=lambda e: e.starts_at)

    def latest_recap(self) -> Optional[Recap]:
        recaps = self.filtered_data().recaps
        if not recaps:
            return None
        return max(recaps, key=lambda r: r.created_at)

    # -------------------------------------------------------------------------
    # Persistence sync
    # -------------------------------------------------------------------------

    async def _sync(
        self,
        operation: str,
        kind: EntityKind,
        entity_id: Optional[str],
        call: Callable[[], Awaitable[Any]],
        correlation_id: Optional[UUID],
    ) -> bool:
        """Best-effort write-through. Local state is kept whatever happens."""
        if self._storage is None:
            return True
        try:
            await call()
            return True
        except Exception as e:
            logger.error(
                "storage_sync_failed",
                operation=operation,
                entity_type=kind.value,
                entity_id=entity_id,
                error=str(e),
            )
            await self._audit_logger.log_sync_failed(
                operation=operation,
                entity_type=kind.value,
                entity_id=entity_id,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return False

    async def _upload(
        self,
        file_bytes: bytes,
        filename: str,
        kind: EntityKind,
        owner_id: str,
        correlation_id: UUID,
    ):
        if self._media_service is None:
            raise MediaUploadError("Media service is not configured")
        try:
            return await self._media_service.upload(
                file_bytes=file_bytes,
                filename=filename,
                kind=kind.value,
                owner_id=owner_id,
            )
        except MediaUploadError as e:
            await self._audit_logger.log_external_service_error(
                service="cloudinary",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

    # -------------------------------------------------------------------------
    # Team
    # -------------------------------------------------------------------------

    async def add_manager(
        self,
        name: str,
        avatar: Optional[str] = None,
        contact: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> User:
        """Add a manager to the roster. The first manager becomes the selection."""
        correlation_id = correlation_id or create_correlation_id()
        user = User(
            name=name,
            role=UserRole.RESPONSABLE,
            avatar=avatar or default_avatar(name.strip()),
            contact=contact or None,
        )
        self._store.add_user(user)
        if self._state.selected_subject_id is None:
            self._state.selected_subject_id = user.id

        await self._audit_logger.log(AuditEventBuilder.manager_added(
            manager_id=user.id,
            name=user.name,
            actor_id=self.viewing_context().actor_id,
            correlation_id=correlation_id,
        ))
        await self._sync(
            "insert", EntityKind.USERS, user.id,
            lambda: self._storage.insert(EntityKind.USERS, user),
            correlation_id,
        )
        return user

    # -------------------------------------------------------------------------
    # Recaps and comments
    # -------------------------------------------------------------------------

    async def create_recap(
        self,
        title: str,
        description: str,
        kind: RecapKind = RecapKind.DAILY,
        media_urls: Iterable[str] = (),
        media_files: Iterable[tuple[str, bytes]] = (),
        correlation_id: Optional[UUID] = None,
    ) -> Recap:
        """
        Create a recap authored by the acting identity.

        Args:
            media_urls: Already hosted media references
            media_files: (filename, content) pairs uploaded before the
                recap is stored

        Raises:
            MediaUploadError: an upload failed; nothing is stored
        """
        correlation_id = correlation_id or create_correlation_id()
        recap = Recap(
            title=title,
            description=description,
            kind=RecapKind(kind),
            author_id=self.resolve_author(financial=False),
            media_urls=list(media_urls),
        )
        for filename, content in media_files:
            uploaded = await self._upload(
                content, filename, EntityKind.RECAPS, recap.id, correlation_id
            )
            recap.media_urls.append(uploaded.url)

        self._store.append_recap(recap)
        await self._audit_logger.log(AuditEventBuilder.entity_created(
            event_type=AuditEventType.RECAP_CREATED,
            entity_type="recap",
            entity_id=recap.id,
            actor_id=self.current_actor().id,
            correlation_id=correlation_id,
            details={"title": recap.title, "kind": recap.kind.value, "media": len(recap.media_urls)},
        ))
        await self._sync(
            "insert", EntityKind.RECAPS, recap.id,
            lambda: self._storage.insert(EntityKind.RECAPS, recap),
            correlation_id,
        )
        return recap

    async def add_comment(
        self,
        recap_id: str,
        content: str,
        correlation_id: Optional[UUID] = None,
    ) -> Comment:
        """
        Append a comment to a visible recap.

        Raises:
            NotFoundError: the recap does not exist in the current scope;
                the comment is discarded
        """
        correlation_id = correlation_id or create_correlation_id()
        actor = self.current_actor()
        comment = Comment(author_id=actor.id, content=content)

        recap = self._store.get_recap(recap_id)
        if recap is None or not self._filter().can_see_recap(recap):
            await self._audit_logger.log(AuditEventBuilder.comment_rejected(
                recap_id=recap_id,
                actor_id=actor.id,
                correlation_id=correlation_id,
            ))
            raise NotFoundError("recap", recap_id)

        self._store.append_comment(recap_id, comment)
        await self._audit_logger.log(AuditEventBuilder.entity_created(
            event_type=AuditEventType.COMMENT_ADDED,
            entity_type="comment",
            entity_id=comment.id,
            actor_id=actor.id,
            correlation_id=correlation_id,
            details={"recap_id": recap_id},
        ))
        await self._sync(
            "append_comment", EntityKind.COMMENTS, comment.id,
            lambda: self._storage.append_comment(recap_id, comment),
            correlation_id,
        )
        return comment

    # -------------------------------------------------------------------------
    # Calendar
    # -------------------------------------------------------------------------

    async def create_event(
        self,
        title: str,
        description: str,
        starts_at: datetime,
        correlation_id: Optional[UUID] = None,
    ) -> CalendarEvent:
        correlation_id = correlation_id or create_correlation_id()
        event = CalendarEvent(
            title=title,
            description=description or "",
            starts_at=starts_at,
            author_id=self.resolve_author(financial=False),
        )
        self._store.append_event(event)
        await self._audit_logger.log(AuditEventBuilder.entity_created(
            event_type=AuditEventType.EVENT_CREATED,
            entity_type="event",
            entity_id=event.id,
            actor_id=event.author_id,
            correlation_id=correlation_id,
            details={"title": event.title, "starts_at": event.starts_at.isoformat()},
        ))
        await self._sync(
            "insert", EntityKind.EVENTS, event.id,
            lambda: self._storage.insert(EntityKind.EVENTS, event),
            correlation_id,
        )
        return event

    async def delete_event(
        self,
        event_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> CalendarEvent:
        """
        Remove a calendar event.

        Raises:
            NotFoundError: the event is not visible in the current scope
            PermissionDeniedError: a manager deleting an event they did
                not write
        """
        correlation_id = correlation_id or create_correlation_id()
        actor = self.current_actor()

        event = self._store.get_event(event_id)
        if event is None or not self._filter().can_see_event(event):
            raise NotFoundError("event", event_id)
        if actor.role != UserRole.PATRON and event.author_id != actor.id:
            raise PermissionDeniedError(f"Only the author or the owner may delete event {event_id}")

        self._store.remove_event(event_id)
        await self._audit_logger.log(AuditEventBuilder.entity_created(
            event_type=AuditEventType.EVENT_DELETED,
            entity_type="event",
            entity_id=event.id,
            actor_id=actor.id,
            correlation_id=correlation_id,
            details={"title": event.title},
        ))
        await self._sync(
            "delete", EntityKind.EVENTS, event.id,
            lambda: self._storage.delete(EntityKind.EVENTS, event.id),
            correlation_id,
        )
        return event

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    async def add_document(
        self,
        name: str,
        category: DocumentCategory = DocumentCategory.OTHER,
        size: Optional[str] = None,
        file_bytes: Optional[bytes] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Document:
        """
        Register a document.

        When ``file_bytes`` is given the file is uploaded first and the size
        descriptor comes from the byte count.
        """
        correlation_id = correlation_id or create_correlation_id()
        document = Document(
            name=name,
            category=DocumentCategory(category),
            author_id=self.resolve_author(financial=False),
            size=size or "",
        )
        if file_bytes is not None:
            uploaded = await self._upload(
                file_bytes, document.name, EntityKind.DOCUMENTS, document.id, correlation_id
            )
            document = document.model_copy(update={
                "url": uploaded.url,
                "size": format_size(len(file_bytes)),
            })

        self._store.append_document(document)
        await self._audit_logger.log(AuditEventBuilder.entity_created(
            event_type=AuditEventType.DOCUMENT_ADDED,
            entity_type="document",
            entity_id=document.id,
            actor_id=document.author_id,
            correlation_id=correlation_id,
            details={"name": document.name, "category": document.category.value},
        ))
        await self._sync(
            "insert", EntityKind.DOCUMENTS, document.id,
            lambda: self._storage.insert(EntityKind.DOCUMENTS, document),
            correlation_id,
        )
        return document

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    async def record_budget_credit(
        self,
        amount: Any,
        currency: Any,
        reason: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Credit the selected manager's budget. Owner only.

        Raises:
            PermissionDeniedError: called in Manager role
            NotFoundError: no manager selected
        """
        correlation_id = correlation_id or create_correlation_id()
        if self._state.active_role != UserRole.PATRON:
            raise PermissionDeniedError("Only the owner may credit a budget")

        subject_id = self.resolve_author(financial=True)
        tx = self._ledger.record_budget_credit(
            amount=amount,
            currency=currency,
            reason=reason or DEFAULT_BUDGET_REASON,
            author_id=subject_id,
        )
        await self._audit_logger.log(AuditEventBuilder.budget_credited(
            transaction_id=tx.id,
            amount=tx.amount,
            currency=tx.currency.value,
            subject_id=subject_id,
            actor_id=self._owner.id,
            correlation_id=correlation_id,
        ))
        await self._sync(
            "insert", EntityKind.TRANSACTIONS, tx.id,
            lambda: self._storage.insert(EntityKind.TRANSACTIONS, tx),
            correlation_id,
        )
        return tx

    async def record_expense(
        self,
        amount: Any,
        currency: Any,
        reason: str = "",
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Record an expense against the scope in view.

        Raises:
            InvalidAmountError / UnsupportedCurrencyError: bad input
            InsufficientFundsError: the converted amount exceeds the scope
                balance in the display currency
        """
        correlation_id = correlation_id or create_correlation_id()
        author_id = self.resolve_author(financial=True)
        actor_id = self.current_actor().id

        try:
            tx = self._ledger.record_expense(
                amount=amount,
                currency=currency,
                reason=reason,
                author_id=author_id,
                scope_transactions=self.filtered_data().transactions,
                display_currency=self._state.display_currency,
            )
        except OpsDeskError as e:
            details: dict = {"amount": str(amount), "currency": str(currency)}
            if isinstance(e, InsufficientFundsError):
                details.update({
                    "attempted": str(e.attempted),
                    "available": str(e.available),
                    "display_currency": e.currency,
                })
            await self._audit_logger.log_expense_rejected(e, actor_id, correlation_id, details)
            raise

        await self._audit_logger.log(AuditEventBuilder.expense_recorded(
            transaction_id=tx.id,
            amount=tx.amount,
            currency=tx.currency.value,
            author_id=author_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))
        await self._sync(
            "insert", EntityKind.TRANSACTIONS, tx.id,
            lambda: self._storage.insert(EntityKind.TRANSACTIONS, tx),
            correlation_id,
        )
        return tx

    # -------------------------------------------------------------------------
    # Natural language
    # -------------------------------------------------------------------------

    async def handle_utterance(
        self,
        text: str,
        correlation_id: Optional[UUID] = None,
    ) -> list[IntentOutcome]:
        """
        Turn one utterance into zero or more applied intents.

        Each intent is handled on its own: a rejected expense does not
        prevent the recap dictated in the same sentence from being stored.

        Raises:
            UnsupportedActionError: no intent parser is configured
        """
        correlation_id = correlation_id or create_correlation_id()
        if self._intent_parser is None:
            raise UnsupportedActionError("Intent parser is not configured")

        actor = self.current_actor()
        payloads = await self._intent_parser.parse(text, actor)
        await self._audit_logger.log(AuditEventBuilder.intent_received(
            utterance=text,
            intent_count=len(payloads),
            actor_id=actor.id,
            correlation_id=correlation_id,
        ))

        outcomes = []
        for payload in payloads:
            try:
                intent = coerce_intent(payload, text)
            except UnsupportedActionError as e:
                category = payload.get("category") if isinstance(payload, dict) else None
                outcome = IntentOutcome(
                    applied=False,
                    error_code=e.code,
                    error_message=str(e),
                )
                await self._audit_logger.log(AuditEventBuilder.intent_handled(
                    category=str(category) if category is not None else None,
                    applied=False,
                    entity_id=None,
                    error_code=e.code,
                    error_message=str(e),
                    actor_id=actor.id,
                    correlation_id=correlation_id,
                ))
                outcomes.append(outcome)
                continue
            outcomes.append(await self.apply_intent(intent, correlation_id=correlation_id))
        return outcomes

    async def apply_intent(
        self,
        intent: Intent,
        correlation_id: Optional[UUID] = None,
    ) -> IntentOutcome:
        """Apply one typed intent through the regular write paths."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            if isinstance(intent, CreateRecapIntent):
                entity = await self.create_recap(
                    title=intent.title,
                    description=intent.description,
                    kind=intent.kind,
                    correlation_id=correlation_id,
                )
            elif isinstance(intent, CreateEventIntent):
                entity = await self.create_event(
                    title=intent.title,
                    description=intent.description,
                    starts_at=intent.starts_at,
                    correlation_id=correlation_id,
                )
            elif isinstance(intent, CreateExpenseIntent):
                entity = await self.record_expense(
                    amount=intent.amount,
                    currency=intent.currency,
                    reason=intent.reason,
                    correlation_id=correlation_id,
                )
            else:
                raise UnsupportedActionError(f"Unsupported intent: {type(intent).__name__}")
        except OpsDeskError as e:
            outcome = IntentOutcome(
                intent=intent,
                applied=False,
                error_code=e.code,
                error_message=str(e),
            )
        else:
            outcome = IntentOutcome(intent=intent, applied=True, entity_id=entity.id)

        await self._audit_logger.log(AuditEventBuilder.intent_handled(
            category=intent.category.value,
            applied=outcome.applied,
            entity_id=outcome.entity_id,
            error_code=outcome.error_code,
            error_message=outcome.error_message,
            actor_id=self.viewing_context().actor_id,
            correlation_id=correlation_id,
        ))
        return outcome

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    async def reload(self, correlation_id: Optional[UUID] = None) -> AppData:
        """
        Replace the in-memory state with what persistence holds.

        The owner is kept even if the users sheet does not list it. The
        selection falls back to the first manager when the selected one is
        gone.
        """
        correlation_id = correlation_id or create_correlation_id()
        if self._storage is None:
            return self._store.snapshot()

        try:
            users = await self._storage.list_users()
            data = await self._storage.list_all()
        except Exception as e:
            logger.error("store_reload_failed", error=str(e))
            await self._audit_logger.log_external_service_error(
                service="storage",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        roster = [self._owner] + [u for u in users if u.id != self._owner.id]
        self._store.load(roster, data)
        self._ensure_subject()

        await self._audit_logger.log(AuditEventBuilder.store_reloaded(
            counts={
                "users": len(roster),
                "recaps": len(data.recaps),
                "events": len(data.events),
                "documents": len(data.documents),
                "transactions": len(data.transactions),
            },
            correlation_id=correlation_id,
        ))
        return self._store.snapshot()


def create_app_components(
    use_storage: bool = True,
    use_ai: bool = True,
    use_media: bool = True,
) -> SessionController:
    """
    Factory function to create a fully wired session controller.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False for a purely in-memory session.
        use_ai: Whether to initialize the Gemini intent parser.
        use_media: Whether to initialize Cloudinary uploads.

    Collaborators that are not configured are skipped with a warning.
    Call ``await controller.reload()`` afterwards to pull persisted data.
    """
    status = validate_all_settings()
    logger.info(
        "settings_checked",
        **{name: ok for name, ok in status.items() if not name.endswith("_error")}
    )

    settings = get_settings()
    app_settings = settings.app
    ledger_settings = settings.ledger
    configure_logging(app_settings.debug_mode)

    owner = User(
        id=app_settings.owner_id,
        name=app_settings.owner_name,
        role=UserRole.PATRON,
        avatar=default_avatar(app_settings.owner_name),
    )

    entity_storage = None
    audit_logger = None
    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            entity_storage = GoogleSheetsEntityStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            entity_storage = None
            audit_logger = None
    audit_logger = audit_logger or AuditLogger()  # Local-only logging

    intent_parser = None
    if use_ai:
        try:
            intent_parser = GeminiIntentParser()
        except Exception as e:
            logger.warning("intent_parser_not_configured", error=str(e))

    media_service = None
    if use_media:
        try:
            media_service = CloudinaryMediaService()
        except Exception as e:
            logger.warning("media_not_configured", error=str(e))

    store = EntityStore([owner])
    ledger = LedgerEngine(CurrencyTable.from_settings(ledger_settings), store)
    state = AppState(display_currency=validate_currency(ledger_settings.default_display_currency))
    state.active_view = View(app_settings.default_view)

    return SessionController(
        owner=owner,
        store=store,
        ledger=ledger,
        storage=entity_storage,
        audit_logger=audit_logger,
        intent_parser=intent_parser,
        media_service=media_service,
        state=state,
    )
