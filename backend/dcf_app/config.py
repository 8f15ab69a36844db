"""Application configuration."""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings are loaded in this priority order (highest to lowest):
    1. Environment variables
    2. .env file (for local development)
    3. Default values

    For local development, copy .env.example to .env and fill in your values.
    For production, set environment variables directly.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Application
    # =========================================================================
    app_name: str = "DCF Report Tool API"
    debug: bool = False

    # =========================================================================
    # Database
    # =========================================================================
    # Local store of published report versions. The tool runs on a single
    # desktop, so a SQLite file is the default.
    database_url: str = Field(
        default="sqlite+aiosqlite:///./dcf_reports.db",
        description="SQLAlchemy async connection URL",
    )

    # =========================================================================
    # CORS
    # =========================================================================
    cors_origins: list[str] = ["http://localhost:3000"]

    # =========================================================================
    # API Settings
    # =========================================================================
    api_v1_prefix: str = "/api/v1"

    # =========================================================================
    # Data Collection Framework (DCF)
    # =========================================================================
    dcf_base_url: str = Field(
        default="https://dcf.example.org/api",
        description="Base URL of the data collection service",
    )
    dcf_username: str | None = Field(
        default=None,
        description="Account used to list and download datasets",
    )
    dcf_password: SecretStr | None = Field(
        default=None,
        description="Password of the DCF account",
    )
    dcf_timeout: float = Field(
        default=60.0,
        description="HTTP timeout in seconds for DCF requests",
    )
    download_dir: str = Field(
        default="data/dcf",
        description="Directory where downloaded dataset files are stored",
    )

    # =========================================================================
    # Report shape
    # =========================================================================
    # Field holding the natural key of a record inside a <result> block.
    row_id_field: str = Field(default="resId")
    # Field holding "<senderDatasetId>.<version>" inside a <result> block.
    version_field: str = Field(default="senderDatasetId")

    # =========================================================================
    # Outgoing messages
    # =========================================================================
    message_type: str = Field(default="GDE2", description="<header><type>")
    message_version: str = Field(default="1.0", description="<header><version>")
    sender_org_code: str | None = Field(default=None)
    receiver_org_code: str | None = Field(default=None)
    export_dir: str = Field(
        default="data/export",
        description="Directory where exported message files are written",
    )


settings = Settings()
