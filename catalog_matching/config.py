"""Configuration management using pydantic-settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
import structlog


class MatchingSettings(BaseSettings):
    """Matching engine configuration loaded from environment variables.

    All settings prefixed with MATCH_ (e.g., MATCH_IMPORT_THRESHOLD=0.7)

    Per-tenant policy (phases, review thresholds) is NOT configured here;
    it arrives with every import run as a TenantMatchingConfig snapshot.
    """

    # Similarity Matcher
    exact_confidence: float = Field(
        default=0.98,
        ge=0,
        le=1,
        description="Confidence assigned to an exact normalized-description match"
    )
    score_cutoff: float = Field(
        default=30.0,
        ge=0,
        le=100,
        description="Raw fuzzy scores below this are discarded before rescaling"
    )
    search_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Default number of candidates returned by similarity search"
    )
    search_threshold: float = Field(
        default=0.3,
        ge=0,
        le=1,
        description="Default minimum confidence for similarity search"
    )

    # Invoice import
    import_limit: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Candidates considered per invoice line"
    )
    import_threshold: float = Field(
        default=0.7,
        ge=0,
        le=1,
        description="Minimum confidence for a candidate to count as a match during import"
    )
    default_currency: str = Field(
        default="EUR",
        min_length=3,
        max_length=3,
        description="Currency used when a price observation carries none"
    )

    # Alternative Description Registry
    alternative_confidence: float = Field(
        default=0.8,
        ge=0,
        le=1,
        description="Confidence stored for non-original alternative descriptions"
    )

    # Retry policy
    create_max_attempts: int = Field(
        default=3,
        ge=2,
        le=10,
        description="Attempts to create a catalog entry before giving up on code collisions"
    )
    consolidation_max_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Attempts to consolidate a price before giving up on write conflicts"
    )
    retry_wait_max: float = Field(
        default=0.5,
        ge=0,
        le=10,
        description="Upper bound (seconds) of the randomized wait between retries"
    )

    model_config = SettingsConfigDict(
        env_prefix="MATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    database_url: str

    # Redis Configuration
    redis_host: str = "redis"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_url: Optional[str] = None

    # Queue Configuration
    queue_name: str = "catalog-matching-queue"

    # Worker Configuration
    max_workers: int = 5
    job_timeout: int = 300
    log_level: str = "INFO"
    environment: str = "development"

    # Database pool (ignored for SQLite URLs)
    db_pool_size: int = Field(default=20, ge=1, le=200)
    db_max_overflow: int = Field(default=10, ge=0, le=200)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def __init__(self, **kwargs):
        """Initialize settings and build derived values."""
        super().__init__(**kwargs)
        # Build Redis URL if not provided
        if not self.redis_url:
            auth = f":{self.redis_password}@" if self.redis_password else ""
            self.redis_url = f"redis://{auth}{self.redis_host}:{self.redis_port}/0"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


# Global settings instances
settings = Settings()
matching_settings = MatchingSettings()


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog for JSON logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


configure_logging(settings.log_level)
