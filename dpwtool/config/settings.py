"""DPW Validation Tool settings loaded from environment variables.

Base URLs, timeouts, cooldowns and the running plugin version are consumed
by the API clients; nothing in this package stores preferences itself.
"""

from dataclasses import dataclass
from enum import StrEnum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    """Deployment environment."""

    DEV = "dev"
    PROD = "prod"


class LogLevel(StrEnum):
    """Supported log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class Timeouts:
    """Connect/read timeouts in seconds for one class of call."""

    connect: float
    read: float


class Settings(BaseSettings):
    """Application-wide settings loaded from environment variables / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Backends ---
    DPW_API_BASE_URL: str = Field(
        default="https://app.spatialcollective.com/api",
        description="DPW Manager API base URL.",
    )
    TM_API_BASE_URL: str = Field(
        default="https://tasking-manager-tm4-production-api.hotosm.org/api/v2",
        description="HOT Tasking Manager API base URL.",
    )
    TM_INTEGRATION_ENABLED: bool = Field(
        default=False,
        description="Opt-in Tasking Manager integration.",
    )

    # --- Releases ---
    RELEASES_API_URL: str = Field(
        default=(
            "https://api.github.com/repos/SpatialCollectiveLtd/"
            "DPW-Validation-JOSM-Plugin/releases/latest"
        ),
        description="Release feed queried by the update checker.",
    )
    RELEASES_PAGE_URL: str = Field(
        default="https://github.com/SpatialCollectiveLtd/DPW-Validation-JOSM-Plugin/releases",
        description="Human-facing releases page for manual downloads.",
    )
    RELEASE_ASSET_EXTENSION: str = Field(
        default=".jar",
        description="File extension of the downloadable release asset.",
    )
    CURRENT_VERSION: str = Field(
        default="3.2.0",
        description="Version of the running plugin.",
    )

    # --- Timeouts (seconds) ---
    CONNECT_TIMEOUT_S: float = Field(default=10.0, description="Connect timeout for JSON calls.")
    READ_TIMEOUT_S: float = Field(default=10.0, description="Read timeout for JSON calls.")
    SUBMIT_TIMEOUT_S: float = Field(default=15.0, description="Connect/read timeout for submissions.")
    UPLOAD_TIMEOUT_S: float = Field(default=30.0, description="Connect/read timeout for file uploads.")
    DOWNLOAD_READ_TIMEOUT_S: float = Field(default=30.0, description="Read timeout for release downloads.")

    # --- Rate limiting / caching (enforced by callers) ---
    RATE_LIMIT_LOW_WATER: int = Field(
        default=10,
        description="Warn when X-RateLimit-Remaining drops below this value.",
    )
    MAPPER_FETCH_COOLDOWN_S: float = Field(default=10.0, description="Minimum gap between mapper refreshes.")
    USER_CACHE_TTL_S: float = Field(default=300.0, description="Lifetime of a fetched mapper list.")
    UPDATE_CHECK_COOLDOWN_S: float = Field(default=3600.0, description="Minimum gap between update checks.")

    # --- Logging ---
    LOG_LEVEL: LogLevel = Field(
        default=LogLevel.INFO,
        description="Application log level.",
    )

    # --- Environment ---
    ENVIRONMENT: Environment = Field(
        default=Environment.DEV,
        description="Deployment environment (dev/prod).",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.ENVIRONMENT == Environment.PROD

    @property
    def user_agent(self) -> str:
        return f"DPW-JOSM-Plugin/{self.CURRENT_VERSION}"

    @property
    def json_timeouts(self) -> Timeouts:
        return Timeouts(connect=self.CONNECT_TIMEOUT_S, read=self.READ_TIMEOUT_S)

    @property
    def submit_timeouts(self) -> Timeouts:
        return Timeouts(connect=self.SUBMIT_TIMEOUT_S, read=self.SUBMIT_TIMEOUT_S)

    @property
    def upload_timeouts(self) -> Timeouts:
        return Timeouts(connect=self.UPLOAD_TIMEOUT_S, read=self.UPLOAD_TIMEOUT_S)

    @property
    def download_timeouts(self) -> Timeouts:
        return Timeouts(connect=self.CONNECT_TIMEOUT_S, read=self.DOWNLOAD_READ_TIMEOUT_S)


def get_settings() -> Settings:
    """Factory function so callers can swap settings in tests."""
    return Settings()
