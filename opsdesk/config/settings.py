"""
Configuration Management for OpsDesk

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.

The currency table is configuration, not data: rates are static and
approximate. Nothing in the system fetches live rates.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CloudinarySettings(BaseSettings):
    """Cloudinary media/document upload configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CLOUDINARY_",
        extra="ignore"
    )

    cloud_name: str = Field(
        ...,
        description="Cloudinary cloud name"
    )
    api_key: str = Field(
        ...,
        description="Cloudinary API key"
    )
    api_secret: str = Field(
        ...,
        description="Cloudinary API secret"
    )
    folder: str = Field(
        default="opsdesk",
        description="Root folder for uploaded media and documents"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet, one per entity kind
    users_sheet_name: str = Field(default="Users")
    recaps_sheet_name: str = Field(default="Recaps")
    comments_sheet_name: str = Field(default="Comments")
    events_sheet_name: str = Field(default="Events")
    documents_sheet_name: str = Field(default="Documents")
    transactions_sheet_name: str = Field(default="Transactions")
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration (voice/text intent parsing)."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class LedgerSettings(BaseSettings):
    """
    Ledger configuration.

    Rates are expressed against the base currency (rate 1).
    convert(x, A, B) = x / rate(A) * rate(B).
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    base_currency: str = Field(
        default="EUR",
        description="Reference currency, its rate must be 1"
    )
    rates: dict[str, Decimal] = Field(
        default_factory=lambda: {
            "EUR": Decimal("1"),
            "USD": Decimal("1.09"),
            "XOF": Decimal("655.96"),
        },
        description="Static exchange rates relative to the base currency"
    )
    default_display_currency: str = Field(
        default="EUR",
        description="Currency used for ledger figures until the user switches"
    )

    @field_validator('rates')
    @classmethod
    def validate_rates(cls, v: dict[str, Decimal]) -> dict[str, Decimal]:
        """Rates must be strictly positive."""
        for code, rate in v.items():
            if rate <= 0:
                raise ValueError(f"Rate for {code} must be positive, got {rate}")
        return {code.upper(): rate for code, rate in v.items()}


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Tenant owner (exactly one per tenant)
    owner_id: str = Field(
        default="u1",
        description="Identifier of the tenant owner (Patron)"
    )
    owner_name: str = Field(
        default="Patron",
        description="Display name of the tenant owner"
    )

    # File upload limits
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum upload file size in MB"
    )

    default_view: str = Field(
        default="dashboard",
        description="View selected at start-up; a role switch always returns to the dashboard"
    )

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    ``<name>_error`` entry for each failing section.
    """
    results = {}
    settings = get_settings()

    for name in ("cloudinary", "google_sheets", "gemini", "ledger", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
