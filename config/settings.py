"""
Zoom/GHL Bridge Configuration Settings
"""
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Server
    port: int = Field(default=3000, alias="PORT")
    host: str = Field(default="0.0.0.0", alias="BRIDGE_HOST")
    log_level: str = Field(default="INFO", alias="BRIDGE_LOG_LEVEL")

    # Storage
    db_path: Path = Field(
        default=Path("./data/bridge.db"),
        alias="BRIDGE_DB_PATH",
        description="SQLite file holding the event ledger, contacts and global settings"
    )

    # Zoom (no prefix - standard env var names)
    zoom_secret_token: str = Field(
        default="",
        alias="ZOOM_SECRET_TOKEN",
        description="Secret token from the Zoom app, used for URL validation and signatures"
    )
    verify_zoom_signature: bool = Field(
        default=False,
        alias="VERIFY_ZOOM_SIGNATURE",
        description="Reject webhook deliveries whose x-zm-signature does not verify"
    )

    # GoHighLevel
    ghl_access_token: str = Field(default="", alias="GHL_ACCESS_TOKEN")
    ghl_location_id: str = Field(default="", alias="GHL_LOCATION_ID")
    ghl_workflow_id: str = Field(
        default="",
        alias="GHL_WORKFLOW_ID",
        description="Workflow to enroll newly tagged registrants in (optional)"
    )
    ghl_base_url: str = Field(
        default="https://services.leadconnectorhq.com",
        alias="GHL_BASE_URL"
    )
    ghl_api_version: str = Field(default="2021-07-28", alias="GHL_API_VERSION")
    ghl_timeout: float = Field(default=30.0, alias="GHL_TIMEOUT")  # seconds
    ghl_max_retries: int = Field(
        default=2,
        alias="GHL_MAX_RETRIES",
        description="Retries for idempotent GHL calls (search, tags) on 5xx/timeouts"
    )

    # Tagging
    default_global_tag: str = Field(
        default="Zoom Registration",
        alias="BRIDGE_DEFAULT_TAG",
        description="Tag applied when no globalZoomTag has been configured from GHL"
    )
    registration_tags_raw: str = Field(
        default="zoom registered",
        alias="BRIDGE_REGISTRATION_TAGS",
        description="Fixed tags applied to every registrant (comma-separated)"
    )
    contact_source: str = Field(
        default="Zoom Integration",
        alias="BRIDGE_CONTACT_SOURCE",
        description="Source label on contacts created in GHL"
    )

    @property
    def registration_tags(self) -> list[str]:
        """Parse comma-separated fixed tags into list."""
        if not self.registration_tags_raw:
            return []
        return [x.strip() for x in self.registration_tags_raw.split(",") if x.strip()]

    @property
    def ghl_configured(self) -> bool:
        """Check if GHL credentials are present."""
        return bool(self.ghl_access_token and self.ghl_location_id)

    @property
    def workflow_enabled(self) -> bool:
        """Check if workflow enrollment is configured."""
        return bool(self.ghl_workflow_id and self.ghl_workflow_id.strip())


settings = Settings()
