"""
Name: Storefront Client Configuration (Settings)

Responsibilities:
  - Centralized, typed configuration using pydantic-settings
  - Validate environment variables at startup
  - Provide defaults that match the storefront's current behavior

Collaborators:
  - container.py: reads settings to wire API client, durable store and stores
  - crosscutting/logger.py: reads log_level / log_json
  - infrastructure/http/retry.py: reads retry attempts and delays

Constraints:
  - Lives in crosscutting, NOT in domain/application
  - No business logic — pure configuration

Notes:
  - Uses pydantic-settings for env parsing and validation
  - Singleton via lru_cache for performance
"""

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

STORAGE_BACKENDS = {"memory", "file", "redis"}


class Settings(BaseSettings):
    """
    Client settings loaded from environment variables.

    Attributes:
        app_env: Application environment (development/test/production)
        api_base_url: Base URL of the marketplace REST API
        api_timeout_seconds: Per-request timeout (default: 30s)
        storage_backend: memory | file | redis (default: file)
        storage_path: JSON document used by the file backend
        storage_namespace: Key prefix used by the redis backend
        redis_url: Redis connection string (redis backend only)
        notification_poll_interval_seconds: Unread-count poll period (default: 30)
        notification_list_limit: Notifications fetched per refresh (default: 50)
        retry_max_attempts: Attempts for idempotent reads (default: 3)
        retry_base_delay_seconds: Initial backoff delay
        retry_max_delay_seconds: Backoff ceiling
        log_level: Logger level (default: INFO)
        log_json: Emit JSON log lines (default: True)
        login_path: Sign-in entry point
        home_path: Public landing path
        admin_home_path: Administrator landing path
        vendor_home_path: Vendor landing path
    """

    # Environment
    app_env: str = "development"

    # Remote API
    api_base_url: str = "http://localhost:5000"
    api_timeout_seconds: float = 30.0

    # Durable store
    storage_backend: str = "file"
    storage_path: str = ".storefront/state.json"
    storage_namespace: str = "storefront:"
    redis_url: str = ""

    # Notifications (admin only)
    notification_poll_interval_seconds: float = 30.0
    notification_list_limit: int = 50

    # Retry/Resilience
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 0.5
    retry_max_delay_seconds: float = 8.0

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Navigation entry points
    login_path: str = "/login"
    home_path: str = "/"
    admin_home_path: str = "/admin/dashboard"
    vendor_home_path: str = "/vendor/dashboard"

    @field_validator("storage_backend")
    @classmethod
    def storage_backend_valid(cls, v: str) -> str:
        backend = (v or "file").strip().lower()
        if backend not in STORAGE_BACKENDS:
            raise ValueError("storage_backend must be memory, file, or redis")
        return backend

    @field_validator("api_base_url")
    @classmethod
    def api_base_url_strip(cls, v: str) -> str:
        url = (v or "").strip().rstrip("/")
        if not url:
            raise ValueError("api_base_url is required")
        return url

    @field_validator("api_timeout_seconds", "notification_poll_interval_seconds")
    @classmethod
    def must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("value must be greater than 0")
        return v

    @field_validator("notification_list_limit")
    @classmethod
    def notification_list_limit_range(cls, v: int) -> int:
        if v < 1 or v > 200:
            raise ValueError("notification_list_limit must be between 1 and 200")
        return v

    @field_validator("retry_max_attempts")
    @classmethod
    def retry_max_attempts_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("retry_max_attempts must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_storage_requirements(self):
        if self.storage_backend == "redis" and not self.redis_url.strip():
            raise ValueError("REDIS_URL is required when STORAGE_BACKEND=redis")
        return self

    @model_validator(mode="after")
    def validate_security_requirements(self):
        if not self.is_production():
            return self
        if not self.api_base_url.lower().startswith("https://"):
            raise ValueError("API_BASE_URL must use https in production")
        return self

    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get singleton Settings instance.

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()
