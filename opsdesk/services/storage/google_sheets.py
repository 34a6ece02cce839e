"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. The Patron can look at the raw data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (fine for one small business)
- No transactions (the controller treats sync as best-effort anyway)
- Limited query capabilities (we load everything and filter in Python)

Each entity kind lives in its own worksheet. The column headers follow the
shared sheet schema (``authorId``, ``type``, ``date``...), which is not the
same as our model field names; the mapping happens in the row converters
below and nowhere else.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from opsdesk.config import get_settings
from opsdesk.models.audit import AuditEvent, AuditEventType, AuditSeverity
from opsdesk.models.entities import (
    AppData,
    CalendarEvent,
    Comment,
    CurrencyCode,
    Document,
    DocumentCategory,
    Recap,
    RecapKind,
    Transaction,
    TransactionKind,
    User,
    UserRole,
)
from opsdesk.services.storage.interface import (
    AuditStorageInterface,
    EntityKind,
    EntityStorageInterface,
    StorageConnectionError,
    StorageError,
    StoredEntity,
)


logger = structlog.get_logger(__name__)


# Column mappings, one worksheet per kind
COLUMNS: dict[EntityKind, list[str]] = {
    EntityKind.USERS: ["id", "name", "role", "avatar", "contact"],
    EntityKind.RECAPS: [
        "id", "title", "type", "description", "date", "authorId", "mediaUrls",
    ],
    EntityKind.COMMENTS: ["recapId", "id", "authorId", "content", "date"],
    EntityKind.EVENTS: ["id", "title", "description", "date", "authorId"],
    EntityKind.DOCUMENTS: ["id", "name", "type", "date", "authorId", "size", "url"],
    EntityKind.TRANSACTIONS: [
        "id", "amount", "reason", "date", "type", "currency", "authorId",
    ],
}

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "actor_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
    "is_user_action",
]


def _cell(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows and empty values."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def sheet_name(self, kind: EntityKind) -> str:
        return getattr(self._settings, f"{kind.value}_sheet_name")

    def get_sheet(self, kind: EntityKind) -> gspread.Worksheet:
        """Get or create the worksheet for an entity kind."""
        return self._get_or_create(self.sheet_name(kind), COLUMNS[kind], rows=1000)

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsEntityStorage(EntityStorageInterface):
    """
    Google Sheets implementation of entity storage.

    One row per entity. Media URL lists are JSON-serialized; comments live
    in their own sheet keyed by recap id.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # -------------------------------------------------------------------------
    # Row converters (the only place that knows the sheet schema)
    # -------------------------------------------------------------------------

    def _user_to_row(self, user: User) -> list:
        return [user.id, user.name, user.role.value, user.avatar, user.contact or ""]

    def _row_to_user(self, row: list) -> User:
        return User(
            id=_cell(row, 0),
            name=_cell(row, 1),
            role=UserRole(_cell(row, 2)),
            avatar=_cell(row, 3),
            contact=_cell(row, 4) or None,
        )

    def _recap_to_row(self, recap: Recap) -> list:
        return [
            recap.id,
            recap.title,
            recap.kind.value,
            recap.description,
            recap.created_at.isoformat(),
            recap.author_id,
            json.dumps(recap.media_urls),
        ]

    def _row_to_recap(self, row: list) -> Recap:
        media_json = _cell(row, 6)
        return Recap(
            id=_cell(row, 0),
            title=_cell(row, 1),
            kind=RecapKind(_cell(row, 2, RecapKind.DAILY.value)),
            description=_cell(row, 3),
            created_at=datetime.fromisoformat(_cell(row, 4)),
            author_id=_cell(row, 5),
            media_urls=json.loads(media_json) if media_json else [],
        )

    def _comment_to_row(self, recap_id: str, comment: Comment) -> list:
        return [
            recap_id,
            comment.id,
            comment.author_id,
            comment.content,
            comment.created_at.isoformat(),
        ]

    def _row_to_comment(self, row: list) -> tuple[str, Comment]:
        return _cell(row, 0), Comment(
            id=_cell(row, 1),
            author_id=_cell(row, 2),
            content=_cell(row, 3),
            created_at=datetime.fromisoformat(_cell(row, 4)),
        )

    def _event_to_row(self, event: CalendarEvent) -> list:
        return [
            event.id,
            event.title,
            event.description,
            event.starts_at.isoformat(),
            event.author_id,
        ]

    def _row_to_event(self, row: list) -> CalendarEvent:
        return CalendarEvent(
            id=_cell(row, 0),
            title=_cell(row, 1),
            description=_cell(row, 2),
            starts_at=datetime.fromisoformat(_cell(row, 3)),
            author_id=_cell(row, 4),
        )

    def _document_to_row(self, document: Document) -> list:
        return [
            document.id,
            document.name,
            document.category.value,
            document.created_at.isoformat(),
            document.author_id,
            document.size,
            document.url or "",
        ]

    def _row_to_document(self, row: list) -> Document:
        return Document(
            id=_cell(row, 0),
            name=_cell(row, 1),
            category=DocumentCategory(_cell(row, 2, DocumentCategory.OTHER.value)),
            created_at=datetime.fromisoformat(_cell(row, 3)),
            author_id=_cell(row, 4),
            size=_cell(row, 5),
            url=_cell(row, 6) or None,
        )

    def _transaction_to_row(self, tx: Transaction) -> list:
        return [
            tx.id,
            str(tx.amount),
            tx.reason,
            tx.created_at.isoformat(),
            tx.kind.value,
            tx.currency.value,
            tx.author_id,
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        return Transaction(
            id=_cell(row, 0),
            amount=Decimal(_cell(row, 1)),
            reason=_cell(row, 2),
            created_at=datetime.fromisoformat(_cell(row, 3)),
            kind=TransactionKind(_cell(row, 4)),
            currency=CurrencyCode(_cell(row, 5)),
            author_id=_cell(row, 6),
        )

    def _to_row(self, kind: EntityKind, entity: StoredEntity) -> list:
        converters: dict[EntityKind, Callable] = {
            EntityKind.USERS: self._user_to_row,
            EntityKind.RECAPS: self._recap_to_row,
            EntityKind.EVENTS: self._event_to_row,
            EntityKind.DOCUMENTS: self._document_to_row,
            EntityKind.TRANSACTIONS: self._transaction_to_row,
        }
        if kind not in converters:
            raise StorageError(f"Cannot insert {kind.value} directly")
        return converters[kind](entity)

    def _read_rows(self, kind: EntityKind, parse: Callable[[list], object]) -> list:
        """Parse every data row of a sheet, skipping malformed rows."""
        sheet = self._client.get_sheet(kind)
        parsed = []
        for index, row in enumerate(sheet.get_all_values()[1:], start=2):
            if not row or not any(row):
                continue
            try:
                parsed.append(parse(row))
            except (ValueError, TypeError, ArithmeticError) as e:
                logger.warning(
                    "storage_row_skipped",
                    sheet=kind.value,
                    row=index,
                    error=str(e),
                )
        return parsed

    # -------------------------------------------------------------------------
    # Interface
    # -------------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def insert(self, kind: EntityKind, entity: StoredEntity) -> bool:
        """Append one entity as a new row."""
        row = self._to_row(kind, entity)
        try:
            sheet = self._client.get_sheet(kind)
            sheet.append_row(row, value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to insert into {kind.value}: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_comment(self, recap_id: str, comment: Comment) -> bool:
        """Append a comment row for a recap."""
        try:
            sheet = self._client.get_sheet(EntityKind.COMMENTS)
            sheet.append_row(
                self._comment_to_row(recap_id, comment),
                value_input_option="RAW",
            )
            return True
        except Exception as e:
            raise StorageError(f"Failed to append comment: {e}")

    async def delete(self, kind: EntityKind, entity_id: str) -> bool:
        """Delete the first row whose id matches."""
        id_column = 1 if kind == EntityKind.COMMENTS else 0
        try:
            sheet = self._client.get_sheet(kind)
            all_rows = sheet.get_all_values()

            # Row 1 is the header
            for idx, row in enumerate(all_rows[1:], start=2):
                if row and len(row) > id_column and row[id_column] == entity_id:
                    sheet.delete_rows(idx)
                    return True

            return False
        except Exception as e:
            raise StorageError(f"Failed to delete from {kind.value}: {e}")

    async def list_users(self) -> list[User]:
        try:
            return self._read_rows(EntityKind.USERS, self._row_to_user)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list users: {e}")

    async def list_all(self) -> AppData:
        """Load every kind and attach comments to their recaps."""
        try:
            recaps = self._read_rows(EntityKind.RECAPS, self._row_to_recap)
            comments = self._read_rows(EntityKind.COMMENTS, self._row_to_comment)

            by_id = {recap.id: recap for recap in recaps}
            for recap_id, comment in comments:
                recap = by_id.get(recap_id)
                if recap is None:
                    # A comment cannot outlive its recap
                    logger.warning("orphan_comment_skipped", recap_id=recap_id, comment_id=comment.id)
                    continue
                recap.comments.append(comment)

            return AppData(
                recaps=recaps,
                events=self._read_rows(EntityKind.EVENTS, self._row_to_event),
                documents=self._read_rows(EntityKind.DOCUMENTS, self._row_to_document),
                transactions=self._read_rows(EntityKind.TRANSACTIONS, self._row_to_transaction),
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load data: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            entity_type=_cell(row, 4) or None,
            entity_id=_cell(row, 5) or None,
            actor_id=_cell(row, 6) or None,
            correlation_id=UUID(_cell(row, 7)) if _cell(row, 7) else None,
            description=_cell(row, 8),
            details=json.loads(_cell(row, 9)) if _cell(row, 9) else {},
            error_code=_cell(row, 10) or None,
            error_message=_cell(row, 11) or None,
            is_user_action=_cell(row, 12).lower() == "true",
        )

    def _load_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, TypeError, ArithmeticError) as e:
                logger.warning("audit_row_skipped", error=str(e))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Never raises: audit must not break the main flow."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            logger.warning("audit_write_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._load_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._load_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._load_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        # Newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
