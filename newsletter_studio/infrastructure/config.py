"""Configuration management for Newsletter Studio."""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApplicationConfig(BaseSettings):
    """Application configuration with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="NEWSLETTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///newsletter_studio.db",
        description="Database connection URL"
    )

    # Builtin AI backend
    openai_api_key: str = Field(
        default="",
        description="API key for the builtin generation backend"
    )
    openai_base_url: Optional[str] = Field(
        default=None,
        description="Base URL of an OpenAI-compatible gateway (None uses api.openai.com)"
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="Chat model used by the builtin backend"
    )
    openai_max_tokens: int = Field(
        default=8000,
        description="Maximum tokens for a newsletter generation call"
    )
    openai_temperature: float = Field(
        default=0.7,
        description="Temperature setting for newsletter generation"
    )

    # Webhook backend
    webhook_timeout: float = Field(
        default=60.0,
        description="Hard timeout in seconds for a webhook generation call"
    )
    public_base_url: str = Field(
        default="",
        description="Public URL of this service; enables callback_url in webhook payloads"
    )

    # Generation context
    context_row_limit: int = Field(
        default=10,
        description="Rows per spreadsheet included in the prompt"
    )
    type_sample_size: int = Field(
        default=10,
        description="Values sampled per column for type inference"
    )

    # Client polling
    poll_interval: float = Field(
        default=3.0,
        description="Seconds between status polls while a newsletter is generating"
    )

    # HTTP API
    api_host: str = Field(default="127.0.0.1", description="API bind host")
    api_port: int = Field(default=8000, description="API bind port")

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    log_format: str = Field(
        default="structured",
        description="Log format: structured or text"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Validate log format."""
        if v not in ("structured", "text"):
            raise ValueError("log_format must be 'structured' or 'text'")
        return v

    @property
    def async_database_url(self) -> str:
        """Database URL rewritten for the async SQLite driver."""
        if self.database_url.startswith("sqlite:///"):
            return self.database_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        return self.database_url

    @property
    def callback_url(self) -> Optional[str]:
        """Callback endpoint advertised to asynchronous webhook backends."""
        if not self.public_base_url:
            return None
        return f"{self.public_base_url.rstrip('/')}/newsletter-callback"


def load_config() -> ApplicationConfig:
    """Load application configuration from environment and files."""
    return ApplicationConfig()


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent.parent


def get_logs_dir() -> Path:
    """Get the logs directory."""
    logs_dir = get_project_root() / "logs"
    logs_dir.mkdir(exist_ok=True)
    return logs_dir
