"""
Application settings using Pydantic for validation and type safety.
Security: All sensitive values loaded from environment variables.
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration with validation and security best practices."""

    # Application
    app_name: str = Field(default="SlideCraft", description="Application name")
    debug: bool = Field(default=False, description="Debug mode flag")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=5001, ge=1, le=65535, description="Server port")

    # Paths (relative to workspace root)
    data_dir: Path = Field(default=Path("data"), description="Data directory")

    @property
    def history_file(self) -> Path:
        """Get the session history file path."""
        return self.data_dir / "history.json"

    # Azure OpenAI Configuration
    azure_openai_api_key: Optional[str] = Field(
        default=None,
        description="Azure OpenAI API key (sensitive)"
    )
    azure_openai_endpoint: Optional[str] = Field(
        default=None,
        description="Azure OpenAI endpoint URL"
    )
    azure_openai_deployment: str = Field(
        default="gpt-4o",
        description="Azure OpenAI deployment name for slide generation"
    )
    azure_openai_api_version: str = Field(
        default="2024-10-21",
        description="Azure OpenAI API version"
    )
    quota_note: str = Field(
        default="Rate limited by the Azure OpenAI deployment quota",
        description="Quota description reported by the health endpoint"
    )

    # Generation Configuration
    generation_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum model call attempts for overloaded responses"
    )
    generation_backoff_base_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Base delay for exponential backoff (delay = base * 2^attempt)"
    )
    history_context_messages: int = Field(
        default=3,
        ge=0,
        le=20,
        description="Number of recent messages sent as generation context"
    )
    retry_cooldown_seconds: int = Field(
        default=10,
        ge=0,
        le=600,
        description="Countdown before a manual retry is offered after an overload"
    )

    # Session Configuration
    thinking_tick_seconds: float = Field(
        default=1.5,
        ge=0,
        description="Interval between simulated thinking progress steps"
    )
    countdown_tick_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Interval of one retry countdown tick"
    )

    # History Configuration
    history_debounce_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Quiet period before a pending history write is flushed"
    )

    # Export Configuration
    image_fetch_timeout: int = Field(
        default=10,
        ge=1,
        le=120,
        description="Slide image download timeout in seconds"
    )
    pdf_font_path: Optional[Path] = Field(
        default=None,
        description="TrueType font used for PDF text; a system Unicode font is used when unset"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    # Tracing Configuration (Optional - disabled by default)
    tracing_enabled: bool = Field(
        default=False,
        description="Enable OpenTelemetry tracing for AI services"
    )
    tracing_service_name: str = Field(
        default="slidecraft",
        description="Service name for tracing"
    )
    applicationinsights_connection_string: Optional[str] = Field(
        default=None,
        description="Azure Application Insights connection string for cloud tracing"
    )

    @property
    def has_azure_openai(self) -> bool:
        """Check if Azure OpenAI is configured (key or credential-based)."""
        return bool(self.azure_openai_endpoint and self.azure_openai_deployment)

    @property
    def llm_provider(self) -> str:
        """Get the active LLM provider name."""
        if self.has_azure_openai:
            return "azure"
        return "none"

    @field_validator("data_dir")
    @classmethod
    def validate_data_dir(cls, v: Path) -> Path:
        """Ensure data directory path is valid."""
        return Path(v)

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_prefix = ""
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Using lru_cache ensures settings are loaded once and reused.
    """
    return Settings()
