"""
FeedEnricher Configuration System
=================================

Settings are grouped in three sections (processing, limits, logging) plus a
few top-level values. Each field can be overridden from the environment or
a ``.env`` file, using ``__`` between section and field:

    FEEDENRICHER_PROCESSING__MAX_CONCURRENT_FETCHES=10
    FEEDENRICHER_LIMITS__ARTICLE_TIMEOUT=15
    FEEDENRICHER_LOGGING__LEVEL=debug
    FEEDENRICHER_USER_AGENT="MyReader/2.0"
"""

from pathlib import Path
from typing import Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..utils.exceptions import ConfigurationError, ErrorCode


class LogLevel(str, Enum):
    """Log levels accepted in ``logging.level``."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ProcessingSettings(BaseModel):
    """How items are enriched."""
    max_concurrent_fetches: int = Field(default=5, ge=1, le=100, description="Article pages fetched at the same time")
    pacing_delay_seconds: float = Field(default=1.0, ge=0.0, le=60.0, description="Pause after each article fetch")
    requests_per_second: float = Field(default=0.0, ge=0.0, le=1000.0, description="Aggregate article request rate, 0 disables")
    fetch_extended: bool = Field(default=True, description="Fetch linked pages for extended body and image")


class LimitsSettings(BaseModel):
    """Deadlines and size caps for network work."""
    request_timeout: int = Field(default=30, ge=1, le=300, description="Per-request timeout in seconds")
    article_timeout: float = Field(default=20.0, ge=1.0, le=600.0, description="Per-item fetch and extract deadline in seconds")
    pipeline_timeout: float = Field(default=300.0, ge=0.0, description="Whole-run deadline in seconds, 0 disables")
    idle_connection_timeout: float = Field(default=5.0, ge=0.0, le=300.0, description="Keep-alive for idle pooled connections")
    max_content_length: int = Field(default=5 * 1024 * 1024, ge=1024, description="Max bytes read from a feed or article response")

    @field_validator('pipeline_timeout')
    @classmethod
    def validate_pipeline_timeout(cls, v):
        """0 disables the deadline; anything shorter than a second cannot fetch a feed."""
        if 0 < v < 1:
            raise ValueError("pipeline_timeout must be 0 (disabled) or at least 1 second")
        return v


class LoggingSettings(BaseModel):
    """Where log records go and how they look."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Level of the feedenricher logger")
    file_path: Optional[str] = Field(default="logs/feedenricher.log", description="Rotating JSON log file, empty disables")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Size at which the log file is rotated")
    backup_count: int = Field(default=5, ge=1, le=20, description="Rotated log files kept")
    structured_logging: bool = Field(default=False, description="JSON lines on the console instead of colored text")
    console_logging: bool = Field(default=True, description="Log to stderr")

    @field_validator('level', mode='before')
    @classmethod
    def normalize_level(cls, v):
        """Accept level names in any case."""
        return v.upper() if isinstance(v, str) else v

    @field_validator('file_path')
    @classmethod
    def empty_path_disables_file(cls, v):
        return v or None


class FeedEnricherSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="FEEDENRICHER_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    processing: ProcessingSettings = Field(default_factory=ProcessingSettings)
    limits: LimitsSettings = Field(default_factory=LimitsSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_name: str = Field(default="FeedEnricher", description="Product token of the default User-Agent")
    version: str = Field(default="1.0.0", description="Version token of the default User-Agent")
    user_agent: Optional[str] = Field(default=None, description="User-Agent header for outbound requests")
    debug: bool = Field(default=False, description="Force DEBUG logging")

    def validate_configuration(self) -> None:
        """Check constraints that span several fields.

        Raises:
            ConfigurationError: Listing every violated constraint
        """
        problems = []

        limits = self.limits
        if limits.pipeline_timeout and limits.pipeline_timeout < limits.article_timeout:
            problems.append(
                f"pipeline_timeout ({limits.pipeline_timeout}s) is shorter than "
                f"article_timeout ({limits.article_timeout}s)"
            )

        if self.logging.file_path and Path(self.logging.file_path).is_dir():
            problems.append(f"log file path {self.logging.file_path!r} is a directory")

        if problems:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(problems)}",
                error_code=ErrorCode.CONFIG_INVALID,
            )

    def get_user_agent(self) -> str:
        """User-Agent sent with every feed and article request."""
        return self.user_agent or f"{self.app_name}/{self.version}"

    def get_effective_log_level(self) -> str:
        """``logging.level``, or DEBUG when ``debug`` is set."""
        return LogLevel.DEBUG.value if self.debug else self.logging.level.value


def load_settings() -> FeedEnricherSettings:
    """Build settings from the environment, ``.env`` and field defaults.

    Raises:
        ConfigurationError: If a value does not parse or the combination is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        settings = FeedEnricherSettings()
    except ValueError as e:
        # pydantic's ValidationError is a ValueError
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID,
        ) from e

    settings.validate_configuration()
    return settings


_settings: Optional[FeedEnricherSettings] = None


def get_settings(reload: bool = False) -> FeedEnricherSettings:
    """Process-wide settings, loaded on first use.

    Args:
        reload: Discard the cached instance and load again
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
