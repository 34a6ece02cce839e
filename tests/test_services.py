"""Tests for the audit logger, the media service and the settings layer (no real API calls)."""

import logging

import pytest
from decimal import Decimal
from uuid import uuid4

from opsdesk.audit import AuditLogger, configure_logging, create_correlation_id
from opsdesk.config import LedgerSettings, validate_all_settings
from opsdesk.models import AuditEventBuilder, AuditEventType
from opsdesk.services.media import (
    CloudinaryMediaService,
    FileTooLargeError,
    UploadedMedia,
    format_size,
)
from opsdesk.services.storage import AuditStorageInterface


class BrokenAuditStorage(AuditStorageInterface):
    async def append_event(self, event):
        raise RuntimeError("quota exceeded")

    async def get_events_by_correlation_id(self, correlation_id):
        return []

    async def get_events_by_entity(self, entity_type, entity_id):
        return []

    async def get_recent_events(self, limit=100):
        return []


class TestAuditLogger:
    """Tests for AuditLogger."""

    @pytest.mark.asyncio
    async def test_local_only_logging(self):
        """Test that events are kept for the session without storage."""
        logger = AuditLogger()
        event = AuditEventBuilder.role_switched("RESPONSABLE", "m1", uuid4())

        assert await logger.log(event)
        assert logger.events == [event]

    @pytest.mark.asyncio
    async def test_storage_failure_never_raises(self):
        """Test that a broken audit sheet does not break the app."""
        logger = AuditLogger(BrokenAuditStorage())

        await logger.log_sync_failed("insert", "recaps", "r1", "timeout")

        assert [e.event_type for e in logger.events] == [AuditEventType.SYNC_FAILED]

    def test_correlation_ids_are_unique(self):
        """Test correlation id generation."""
        assert create_correlation_id() != create_correlation_id()

    @pytest.mark.asyncio
    async def test_session_events_are_capped(self):
        """Test that only the most recent events are kept in memory."""
        logger = AuditLogger(max_session_events=2)
        correlation_id = uuid4()
        first, second, third = (
            AuditEventBuilder.role_switched(role, "u1", correlation_id)
            for role in ("RESPONSABLE", "PATRON", "RESPONSABLE")
        )

        for event in (first, second, third):
            await logger.log(event)

        assert logger.events == [second, third]
        assert logger.events_for(correlation_id) == [second, third]

    def test_debug_mode_can_be_applied_after_import(self):
        """Test that reconfiguring logging changes the root level."""
        try:
            configure_logging(debug=True)
            assert logging.getLogger().level == logging.DEBUG
        finally:
            configure_logging()
        assert logging.getLogger().level == logging.INFO


class TestMediaService:
    """Tests for CloudinaryMediaService with the SDK patched out."""

    @pytest.fixture
    def media(self, monkeypatch):
        monkeypatch.setenv("CLOUDINARY_CLOUD_NAME", "demo")
        monkeypatch.setenv("CLOUDINARY_API_KEY", "key")
        monkeypatch.setenv("CLOUDINARY_API_SECRET", "secret")
        monkeypatch.setenv("MAX_UPLOAD_SIZE_MB", "1")
        return CloudinaryMediaService()

    def test_format_size(self):
        """Test the human readable size descriptor."""
        assert format_size(0) == "0.00 MB"
        assert format_size(2516582) == "2.40 MB"
        assert UploadedMedia(url="u", public_id="p", size_bytes=1048576).size_label == "1.00 MB"

    @pytest.mark.asyncio
    async def test_upload(self, media, monkeypatch):
        """Test a successful upload returns the secure URL."""
        calls = []

        def fake_upload(file_bytes, **options):
            calls.append(options)
            return {"secure_url": "https://res.cloudinary.com/demo/x.pdf", "public_id": "x", "bytes": 3}

        monkeypatch.setattr("cloudinary.uploader.upload", fake_upload)

        uploaded = await media.upload(b"abc", "devis.pdf", "documents", "d1")

        assert uploaded.url == "https://res.cloudinary.com/demo/x.pdf"
        assert uploaded.size_bytes == 3
        assert calls[0]["folder"] == "opsdesk"
        assert calls[0]["public_id"].startswith("documents/d1_")

    @pytest.mark.asyncio
    async def test_file_too_large(self, media, monkeypatch):
        """Test that oversized files are rejected before any network call."""
        def fail_upload(*args, **kwargs):
            raise AssertionError("upload should not be called")

        monkeypatch.setattr("cloudinary.uploader.upload", fail_upload)

        with pytest.raises(FileTooLargeError):
            await media.upload(b"x" * (1024 * 1024 + 1), "plan.pdf", "documents", "d1")


class TestSettings:
    """Tests for the settings layer."""

    def test_ledger_and_app_defaults_validate(self):
        """Test that the sections with defaults are always valid."""
        status = validate_all_settings()
        assert status["ledger"] is True
        assert status["app"] is True

    def test_missing_cloudinary_credentials_reported(self, monkeypatch):
        """Test that a section with missing secrets is reported, not raised."""
        for name in ("CLOUDINARY_CLOUD_NAME", "CLOUDINARY_API_KEY", "CLOUDINARY_API_SECRET"):
            monkeypatch.delenv(name, raising=False)
        status = validate_all_settings()
        assert status["cloudinary"] is False
        assert "cloudinary_error" in status

    def test_rates_must_be_positive(self):
        """Test the rate validator."""
        with pytest.raises(ValueError):
            LedgerSettings(rates={"EUR": Decimal("1"), "USD": Decimal("-1"), "XOF": Decimal("655.96")})
