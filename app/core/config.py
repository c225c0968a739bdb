"""
app/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (DB URI, provider keys, OAuth client, etc.)
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # MongoDB
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="lewhatsapp",
        description="MongoDB database name"
    )

    # Auth
    JWT_SECRET: str = Field(
        default="fallback_secret",
        description="Secret used to sign dashboard access tokens"
    )
    JWT_ALGORITHM: str = Field(default="HS256")
    JWT_EXPIRATION_HOURS: int = Field(
        default=24,
        description="Access token lifetime in hours"
    )

    # Unipile (WhatsApp)
    UNIPILE_DSN: str = Field(
        default="https://api15.unipile.com:14507",
        description="Unipile API base URL (DSN)"
    )
    UNIPILE_API_KEY: Optional[str] = Field(
        default=None,
        description="Unipile API key sent as X-API-KEY"
    )
    UNIPILE_TIMEOUT: float = Field(
        default=15.0,
        description="Unipile request timeout in seconds"
    )
    UNIPILE_LINK_EXPIRY_HOURS: int = Field(
        default=1,
        description="Lifetime of a hosted auth wizard link"
    )

    # GoHighLevel CRM
    CRM_CLIENT_ID: Optional[str] = Field(default=None, description="GHL OAuth client id")
    CRM_CLIENT_SECRET: Optional[str] = Field(default=None, description="GHL OAuth client secret")
    REDIRECT_URI: str = Field(
        default="http://localhost:5000/api/auth/crm/callback",
        description="OAuth redirect URI registered with GHL"
    )
    CRM_API_BASE_URL: str = Field(
        default="https://services.leadconnectorhq.com",
        description="GHL REST API base URL"
    )
    CRM_MARKETPLACE_URL: str = Field(
        default="https://marketplace.leadconnectorhq.com",
        description="GHL marketplace URL hosting the location chooser"
    )
    CRM_API_VERSION: str = Field(default="2021-07-28", description="GHL Version header")
    CRM_TIMEOUT: float = Field(default=15.0, description="GHL request timeout in seconds")
    CRM_SCOPES: list = Field(
        default=[
            "conversations.readonly",
            "conversations.write",
            "conversations/reports.readonly",
            "conversations/livechat.write",
            "contacts.readonly",
            "contacts.write",
            "saas/location.read",
            "oauth.write",
            "oauth.readonly",
            "locations.readonly",
            "locations/customValues.readonly",
            "locations/customValues.write",
            "locations/customFields.readonly",
            "locations/customFields.write",
            "locations/tags.readonly",
            "locations/tags.write",
        ],
        description="OAuth scopes requested from GHL"
    )

    # Relay
    FRONTEND_URL: str = Field(
        default="http://localhost:3000",
        description="Dashboard URL used for OAuth and hosted auth redirects"
    )
    WEBHOOK_BASE_URL: Optional[str] = Field(
        default=None,
        description="Public base URL of this service (for provider callbacks)"
    )
    PRIMARY_WHATSAPP_ACCOUNT_ID: Optional[str] = Field(
        default=None,
        description="Unipile account used for CRM conversation-provider sends"
    )
    PROVIDER_NAME: str = Field(
        default="LeWhatsApp",
        description="Name reported to GHL as the conversation provider"
    )

    # Auto-sync poller
    AUTO_SYNC_ENABLED: bool = Field(default=True)
    AUTO_SYNC_INTERVAL_SECONDS: float = Field(
        default=1.0,
        description="Delay between auto-sync passes"
    )
    AUTO_SYNC_CHAT_LIMIT: int = Field(default=10, description="Chats per account per pass")
    AUTO_SYNC_MESSAGE_LIMIT: int = Field(default=5, description="Messages fetched per chat")
    MANUAL_SYNC_MESSAGE_LIMIT: int = Field(default=20, description="Messages fetched per chat on /sync")

    # Claude
    ANTHROPIC_API_KEY: Optional[str] = Field(default=None, description="Anthropic API key")
    CLAUDE_MODEL: str = Field(default="claude-3-5-sonnet-latest")
    CLAUDE_MAX_TOKENS: int = Field(default=1024)

    # Application
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    API_PREFIX: str = Field(
        default="/api",
        description="API route prefix"
    )
    CORS_ORIGINS: list = Field(
        default=["http://localhost:3000", "https://wa.lemlin.com"],
        description="Allowed CORS origins"
    )
    PORT: int = Field(default=5000)

    @field_validator("JWT_SECRET")
    @classmethod
    def validate_jwt_secret(cls, v: str, info: ValidationInfo) -> str:
        """Ensure the token secret is changed in production."""
        if info.data.get("ENVIRONMENT") == "production" and v == "fallback_secret":
            raise ValueError("JWT_SECRET must be changed in production environment")
        return v

    @field_validator("UNIPILE_API_KEY")
    @classmethod
    def validate_unipile_key(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        """Ensure Unipile key is set in production."""
        if info.data.get("ENVIRONMENT") == "production" and not v:
            raise ValueError("UNIPILE_API_KEY is required in production environment")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    @property
    def crm_configured(self) -> bool:
        return bool(self.CRM_CLIENT_ID and self.CRM_CLIENT_SECRET)


# Global settings instance
settings = Settings()


def validate_settings():
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    errors = []

    if not settings.MONGODB_URL:
        errors.append("MONGODB_URL is required")

    if not settings.UNIPILE_DSN:
        errors.append("UNIPILE_DSN is required")

    # Production-specific validations
    if settings.is_production:
        if not settings.UNIPILE_API_KEY:
            errors.append("UNIPILE_API_KEY is required in production")
        if not settings.crm_configured:
            errors.append("CRM_CLIENT_ID and CRM_CLIENT_SECRET are required in production")
        if not settings.WEBHOOK_BASE_URL:
            errors.append("WEBHOOK_BASE_URL is required in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
