"""
Integration tests for the session controller.

Flows run against the in-memory store with fake storage, intent parser
and media collaborators.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from opsdesk.controller import SessionController, View, create_app_components
from opsdesk.errors import (
    InsufficientFundsError,
    InvalidAmountError,
    NotFoundError,
    PermissionDeniedError,
    UnsupportedActionError,
    UnsupportedCurrencyError,
)
from opsdesk.models import (
    AppData,
    AuditEventType,
    CurrencyCode,
    DocumentCategory,
    Recap,
    RecapKind,
    Transaction,
    TransactionKind,
    User,
    UserRole,
)
from opsdesk.services.storage import EntityKind, StorageError


FUTURE = datetime.now(timezone.utc) + timedelta(days=3)


def audit_types(controller):
    return [event.event_type for event in controller.audit_logger.events]


async def add_team(controller):
    m1 = await controller.add_manager("Moussa")
    m2 = await controller.add_manager("Awa")
    return m1, m2


class TestContext:
    """Tests for role, view and subject selection."""

    @pytest.mark.asyncio
    async def test_switch_role_resets_view(self, controller):
        """Test that a role switch goes back to the dashboard."""
        controller.navigate("finances")
        assert controller.state.active_view == View.FINANCES

        role = await controller.switch_role()

        assert role == UserRole.RESPONSABLE
        assert controller.state.active_view == View.DASHBOARD
        assert AuditEventType.ROLE_SWITCHED in audit_types(controller)

        assert await controller.switch_role() == UserRole.PATRON

    def test_navigate_rejects_unknown_view(self, controller):
        """Test that views are a closed set."""
        with pytest.raises(ValueError):
            controller.navigate("settings")

    @pytest.mark.asyncio
    async def test_first_manager_is_auto_selected(self, controller, storage):
        """Test the automatic selection and the roster sync."""
        m1, m2 = await add_team(controller)

        assert controller.state.selected_subject_id == m1.id
        assert m1.role == UserRole.RESPONSABLE
        assert "ui-avatars.com" in m1.avatar
        assert [entity for kind, entity in storage.inserted if kind == EntityKind.USERS] == [m1, m2]

    @pytest.mark.asyncio
    async def test_select_subject(self, controller, owner):
        """Test selecting a manager, an unknown id and a non-manager."""
        _, m2 = await add_team(controller)

        assert await controller.select_subject(m2.id) == m2
        assert controller.state.selected_subject_id == m2.id

        with pytest.raises(NotFoundError):
            await controller.select_subject("nobody")
        with pytest.raises(NotFoundError):
            await controller.select_subject(owner.id)
        assert controller.state.selected_subject_id == m2.id

    @pytest.mark.asyncio
    async def test_current_actor_follows_role(self, controller, owner):
        """Test the acting identity in both roles."""
        m1, _ = await add_team(controller)
        assert controller.current_actor() == owner

        await controller.switch_role()
        assert controller.current_actor() == m1

    @pytest.mark.asyncio
    async def test_manager_role_without_managers(self, controller):
        """Test the Manager role with an empty roster."""
        await controller.switch_role()

        with pytest.raises(NotFoundError):
            controller.current_actor()
        assert controller.filtered_data().is_empty

    def test_owner_without_selection_sees_nothing(self, controller, store, owner):
        """Test that no selected manager means an empty view."""
        store.append_recap(Recap(title="A", description="a", author_id=owner.id))
        assert controller.state.selected_subject_id is None
        assert controller.filtered_data().is_empty

    def test_display_currency(self, controller):
        """Test switching and validating the display currency."""
        assert controller.set_display_currency("xof") == CurrencyCode.XOF
        with pytest.raises(UnsupportedCurrencyError):
            controller.set_display_currency("GBP")
        assert controller.state.display_currency == CurrencyCode.XOF

    def test_owner_must_be_patron(self):
        """Test that the controller refuses a manager as owner."""
        with pytest.raises(ValueError):
            SessionController(owner=User(name="Awa", role=UserRole.RESPONSABLE))


class TestBudgetAndExpenses:
    """Tests for financial writes and their authorship."""

    @pytest.mark.asyncio
    async def test_budget_credit_rejected_in_manager_role(self, controller, store):
        """Test that managers cannot credit budgets."""
        await add_team(controller)
        await controller.switch_role()

        with pytest.raises(PermissionDeniedError):
            await controller.record_budget_credit("500", "EUR")
        assert store.list_transactions() == []

    @pytest.mark.asyncio
    async def test_owner_credit_is_authored_by_subject(self, controller, owner, storage):
        """Test that the owner's credit lands in the selected manager's ledger."""
        m1, _ = await add_team(controller)

        tx = await controller.record_budget_credit("500", "EUR", "Avance chantier")

        assert tx.author_id == m1.id
        assert tx.kind == TransactionKind.BUDGET_ADD
        assert (EntityKind.TRANSACTIONS, tx) in storage.inserted
        credited = [e for e in controller.audit_logger.events
                    if e.event_type == AuditEventType.BUDGET_CREDITED]
        assert credited[0].actor_id == owner.id
        assert credited[0].details["subject_id"] == m1.id

        await controller.switch_role()
        assert controller.ledger_summary().total_budget == Decimal("500")

    @pytest.mark.asyncio
    async def test_owner_credit_requires_selection(self, controller):
        """Test that crediting with no manager fails."""
        with pytest.raises(NotFoundError):
            await controller.record_budget_credit("500", "EUR")

    @pytest.mark.asyncio
    async def test_expense_admission(self, controller, store):
        """Test that an expense above the balance is rejected and audited."""
        await add_team(controller)
        await controller.record_budget_credit("1000", "EUR")
        await controller.switch_role()

        with pytest.raises(InsufficientFundsError) as exc_info:
            await controller.record_expense("1000.01", "EUR", "Ciment")
        assert exc_info.value.available == Decimal("1000")
        assert AuditEventType.EXPENSE_REJECTED in audit_types(controller)
        assert len(store.list_transactions()) == 1

        expense = await controller.record_expense("1000", "EUR", "Ciment")
        assert controller.ledger_summary().balance == Decimal("0")
        assert store.list_transactions()[-1] == expense

    @pytest.mark.asyncio
    async def test_budget_of_one_manager_does_not_fund_another(self, controller):
        """Test that admission only counts the scope's transactions."""
        m1, m2 = await add_team(controller)
        await controller.record_budget_credit("1000", "EUR")

        await controller.select_subject(m2.id)
        with pytest.raises(InsufficientFundsError):
            await controller.record_expense("10", "EUR", "Gasoil")

    @pytest.mark.asyncio
    async def test_owner_expense_is_authored_by_subject(self, controller):
        """Test owner-entered expenses against the selected manager."""
        m1, _ = await add_team(controller)
        await controller.record_budget_credit("100", "EUR")

        expense = await controller.record_expense("109", "USD", "Outillage")

        assert expense.author_id == m1.id
        assert controller.ledger_summary().balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_invalid_expense_is_audited(self, controller):
        """Test that validation failures are rejected before any write."""
        await add_team(controller)
        with pytest.raises(InvalidAmountError):
            await controller.record_expense("abc", "EUR", "x")
        rejected = [e for e in controller.audit_logger.events
                    if e.event_type == AuditEventType.EXPENSE_REJECTED]
        assert rejected[0].error_code == "invalid_amount"

    @pytest.mark.asyncio
    async def test_summary_in_display_currency(self, controller):
        """Test ledger figures follow the display currency."""
        await add_team(controller)
        await controller.record_budget_credit("10", "EUR")

        controller.set_display_currency("XOF")

        assert controller.ledger_summary().total_budget == Decimal("6559.60")
        assert controller.ledger_summary("EUR").total_budget == Decimal("10")
        assert [p.amount for p in controller.ledger_series()] == [Decimal("6559.60")]


class TestRecordsAndComments:
    """Tests for recaps, comments, events and documents."""

    @pytest.mark.asyncio
    async def test_manager_recap_with_media(self, controller, media_service):
        """Test that media files are uploaded before the recap is stored."""
        m1, _ = await add_team(controller)
        await controller.switch_role()

        recap = await controller.create_recap(
            "Coulage dalle",
            "Dalle R+1 coulée",
            kind=RecapKind.WEEKLY,
            media_urls=["https://media.example/existing.jpg"],
            media_files=[("dalle.jpg", b"jpeg-bytes")],
        )

        assert recap.author_id == m1.id
        assert recap.media_urls == [
            "https://media.example/existing.jpg",
            f"https://media.example/recaps/{recap.id}/dalle.jpg",
        ]
        assert media_service.uploads == [("dalle.jpg", "recaps", recap.id)]
        assert controller.latest_recap() == recap

    @pytest.mark.asyncio
    async def test_comment_in_scope(self, controller, storage, owner):
        """Test the owner commenting on a manager's recap."""
        await add_team(controller)
        await controller.switch_role()
        recap = await controller.create_recap("Terrassement", "Fini")
        await controller.switch_role()

        comment = await controller.add_comment(recap.id, "Bravo")

        assert comment.author_id == owner.id
        assert controller.filtered_data().recaps[0].comments == [comment]
        assert storage.comments == [(recap.id, comment)]

    @pytest.mark.asyncio
    async def test_comment_outside_scope_is_discarded(self, controller, store):
        """Test that a recap of another manager cannot be commented."""
        m1, m2 = await add_team(controller)
        await controller.switch_role()
        recap = await controller.create_recap("Terrassement", "Fini")

        await controller.switch_role()
        await controller.select_subject(m2.id)

        with pytest.raises(NotFoundError):
            await controller.add_comment(recap.id, "Bravo")
        with pytest.raises(NotFoundError):
            await controller.add_comment("missing", "Bravo")

        assert store.get_recap(recap.id).comments == []
        assert audit_types(controller).count(AuditEventType.COMMENT_REJECTED) == 2

    @pytest.mark.asyncio
    async def test_owner_event_is_broadcast(self, controller, owner):
        """Test that owner events show up for every manager."""
        m1, m2 = await add_team(controller)
        event = await controller.create_event("Visite client", "Site B", FUTURE)
        assert event.author_id == owner.id

        await controller.switch_role()
        assert controller.upcoming_events() == [event]

        await controller.switch_role()
        await controller.select_subject(m2.id)
        assert controller.upcoming_events() == [event]

    @pytest.mark.asyncio
    async def test_upcoming_events_sorted(self, controller):
        """Test that past events are dropped and the rest sorted."""
        await add_team(controller)
        later = await controller.create_event("B", "", FUTURE + timedelta(days=1))
        sooner = await controller.create_event("A", "", FUTURE)
        await controller.create_event("Old", "", FUTURE - timedelta(days=30))

        assert controller.upcoming_events() == [sooner, later]

    @pytest.mark.asyncio
    async def test_naive_start_time_sorts_with_aware_ones(self, controller):
        """Test that a naive start time is read as UTC next to aware ones."""
        await add_team(controller)
        naive = await controller.create_event("Réunion", "", datetime(2099, 1, 1, 10, 0))
        aware = await controller.create_event("Visite", "", FUTURE)

        assert naive.starts_at.tzinfo is not None
        assert controller.upcoming_events() == [aware, naive]
        assert controller.upcoming_events(now=datetime(2099, 1, 1, 9, 0)) == [naive]

    @pytest.mark.asyncio
    async def test_manager_cannot_delete_owner_event(self, controller, store):
        """Test the deletion policy for broadcast events."""
        await add_team(controller)
        event = await controller.create_event("Visite client", "", FUTURE)
        await controller.switch_role()

        with pytest.raises(PermissionDeniedError):
            await controller.delete_event(event.id)
        assert store.get_event(event.id) == event

    @pytest.mark.asyncio
    async def test_manager_deletes_own_event(self, controller, store, storage):
        """Test a manager removing their own event."""
        await add_team(controller)
        await controller.switch_role()
        event = await controller.create_event("Livraison", "", FUTURE)

        await controller.delete_event(event.id)

        assert store.get_event(event.id) is None
        assert (EntityKind.EVENTS, event.id) in storage.deleted
        assert AuditEventType.EVENT_DELETED in audit_types(controller)

    @pytest.mark.asyncio
    async def test_owner_deletes_manager_event(self, controller, store):
        """Test the owner removing a selected manager's event."""
        await add_team(controller)
        await controller.switch_role()
        event = await controller.create_event("Livraison", "", FUTURE)
        await controller.switch_role()

        await controller.delete_event(event.id)
        assert store.list_events() == []

    @pytest.mark.asyncio
    async def test_event_of_other_manager_is_not_found(self, controller):
        """Test that events outside the scope cannot be deleted."""
        m1, m2 = await add_team(controller)
        await controller.switch_role()
        event = await controller.create_event("Livraison", "", FUTURE)
        await controller.switch_role()
        await controller.select_subject(m2.id)

        with pytest.raises(NotFoundError):
            await controller.delete_event(event.id)

    @pytest.mark.asyncio
    async def test_document_upload(self, controller, media_service):
        """Test that uploaded bytes give the url and the size label."""
        await add_team(controller)
        await controller.switch_role()

        document = await controller.add_document(
            "devis.pdf",
            DocumentCategory.QUOTE,
            file_bytes=b"x" * (1024 * 1024),
        )

        assert document.size == "1.00 MB"
        assert document.url == f"https://media.example/documents/{document.id}/devis.pdf"
        assert controller.filtered_data().documents == [document]

    @pytest.mark.asyncio
    async def test_document_metadata_only(self, controller, media_service):
        """Test registering a document without uploading it."""
        await add_team(controller)
        document = await controller.add_document("charte.pdf", "CONTRACT", size="2.40 MB")

        assert document.category == DocumentCategory.CONTRACT
        assert document.size == "2.40 MB"
        assert document.url is None
        assert media_service.uploads == []


class TestPersistenceSync:
    """Tests for the optimistic write-through."""

    @pytest.mark.asyncio
    async def test_sync_failure_keeps_local_write(self, make_controller, failing_storage, store, audit_logger):
        """Test that a failed sync is audited and nothing is rolled back."""
        controller = make_controller(storage=failing_storage)
        manager = await controller.add_manager("Moussa")
        tx = await controller.record_budget_credit("300", "XOF")

        assert store.get_user(manager.id) == manager
        assert store.list_transactions() == [tx]
        failures = [e for e in audit_logger.events if e.event_type == AuditEventType.SYNC_FAILED]
        assert [f.entity_type for f in failures] == ["users", "transactions"]
        assert "sheets unavailable" in failures[0].error_message

    @pytest.mark.asyncio
    async def test_reload_replaces_state(self, make_controller, storage, owner, store):
        """Test pulling the persisted dataset back into memory."""
        manager = User(id="m9", name="Ibrahima", role=UserRole.RESPONSABLE)
        recap = Recap(title="Stock", description="Inventaire", author_id="m9")
        storage.users = [manager]
        storage.data = AppData(recaps=[recap])
        controller = make_controller(storage=storage)

        await controller.reload()

        assert store.list_users() == [owner, manager]
        assert controller.state.selected_subject_id == "m9"
        assert [r.id for r in controller.filtered_data().recaps] == [recap.id]
        assert AuditEventType.STORE_RELOADED in audit_types(controller)

    @pytest.mark.asyncio
    async def test_reload_with_repeated_rows(self, make_controller, storage, owner, store):
        """Test that retried appends do not double a credit or break the roster."""
        controller = make_controller(storage=storage)
        await controller.add_manager("Marc")
        manager = User(id="m9", name="Ibrahima", role=UserRole.RESPONSABLE)
        recap = Recap(title="Stock", description="Inventaire", author_id="m9")
        credit = Transaction(
            amount=Decimal("1000"), kind=TransactionKind.BUDGET_ADD,
            currency=CurrencyCode.EUR, author_id="m9",
        )
        storage.users = [manager, manager]
        storage.data = AppData(recaps=[recap], transactions=[credit, credit])

        await controller.reload()

        assert store.list_users() == [owner, manager]
        assert controller.state.selected_subject_id == "m9"
        assert [r.id for r in controller.filtered_data().recaps] == [recap.id]
        assert controller.ledger_summary().total_budget == Decimal("1000")

    @pytest.mark.asyncio
    async def test_reload_failure_is_raised(self, make_controller, failing_storage, owner, store):
        """Test that a failed reload leaves memory untouched."""
        controller = make_controller(storage=failing_storage)
        with pytest.raises(StorageError):
            await controller.reload()
        assert store.list_users() == [owner]
        assert AuditEventType.EXTERNAL_SERVICE_ERROR in audit_types(controller)


class TestUtterances:
    """Tests for natural language handling."""

    @pytest.mark.asyncio
    async def test_each_intent_is_handled_independently(self, make_controller, intent_parser, store):
        """Test a recap applied next to a rejected expense and an unknown action."""
        intent_parser.payloads = [
            {"category": "RECAP", "description": "Coffrage terminé"},
            {"category": "EXPENSE", "amount": "45", "reason": "Déjeuner équipe"},
            {"category": "WEATHER"},
        ]
        controller = make_controller(intent_parser=intent_parser)
        m1 = await controller.add_manager("Moussa")
        await controller.switch_role()

        correlation_id = uuid4()
        outcomes = await controller.handle_utterance(
            "coffrage fini, déjeuner 45 euros", correlation_id=correlation_id
        )

        assert [o.applied for o in outcomes] == [True, False, False]
        assert outcomes[0].entity_id == store.list_recaps()[0].id
        assert outcomes[1].error_code == "insufficient_funds"
        assert outcomes[2].error_code == "unsupported_action"
        assert store.list_recaps()[0].title == "Rapport vocal"
        assert store.list_recaps()[0].author_id == m1.id
        assert store.list_transactions() == []
        assert intent_parser.calls == [("coffrage fini, déjeuner 45 euros", m1.id)]
        trail = [e.event_type for e in controller.audit_logger.events_for(correlation_id)]
        assert trail[0] == AuditEventType.INTENT_RECEIVED
        assert AuditEventType.RECAP_CREATED in trail
        assert AuditEventType.EXPENSE_REJECTED in trail
        assert trail.count(AuditEventType.INTENT_REJECTED) == 2

    @pytest.mark.asyncio
    async def test_voice_expense_within_budget(self, make_controller, intent_parser, store):
        """Test that a dictated expense goes through the normal admission."""
        intent_parser.payloads = [{"category": "EXPENSE", "amount": "20000", "currency": "XOF"}]
        controller = make_controller(intent_parser=intent_parser)
        await controller.add_manager("Moussa")
        await controller.record_budget_credit("100", "EUR")
        await controller.switch_role()

        outcomes = await controller.handle_utterance("sable 20000 francs")

        assert outcomes[0].applied
        expense = store.list_transactions()[-1]
        assert expense.currency == CurrencyCode.XOF
        assert expense.reason == "Dépense vocale"

    @pytest.mark.asyncio
    async def test_no_parser_configured(self, controller):
        """Test that utterances need an intent parser."""
        with pytest.raises(UnsupportedActionError):
            await controller.handle_utterance("bonjour")


class TestFactory:
    """Tests for create_app_components."""

    def test_in_memory_components(self):
        """Test a session built without any external service."""
        controller = create_app_components(use_storage=False, use_ai=False, use_media=False)

        assert controller.owner.role == UserRole.PATRON
        assert controller.store.list_users() == [controller.owner]
        assert controller.state.active_role == UserRole.PATRON
        assert controller.filtered_data().is_empty

    @pytest.mark.asyncio
    async def test_default_view_applies_at_start_only(self, monkeypatch):
        """Test that the configured view is used at start-up, not after a role switch."""
        monkeypatch.setenv("DEFAULT_VIEW", "calendar")
        controller = create_app_components(use_storage=False, use_ai=False, use_media=False)
        assert controller.state.active_view == View.CALENDAR

        await controller.switch_role()

        assert controller.state.active_view == View.DASHBOARD
