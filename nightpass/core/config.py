"""
Application configuration.
All settings are loaded from environment variables (or .env).
The settings object is immutable; runtime-adjustable flags live in
nightpass.services.runtime_settings.
"""
from functools import lru_cache

from pydantic import ValidationError as PydanticValidationError
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from nightpass.core.errors import ConfigurationError


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: token_secret has no default - it MUST be set in the environment.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"

    # ===========================================
    # TOKENS
    # ===========================================
    token_secret: str  # Required, no default
    token_ttl_hours: int = 18
    # Hex chars of the HMAC digest kept in the token (64 = full digest)
    token_digest_length: int = 16

    # ===========================================
    # ACCESS WINDOWS
    # ===========================================
    access_ad_hours: int = 18
    referral_bonus_hours: int = 8

    # ===========================================
    # REFERRAL PROGRAM
    # ===========================================
    referral_code_length: int = 8
    referral_code_max_attempts: int = 10
    # Pending redemption credits younger than this are left to the running commit
    referral_resume_grace_seconds: int = 300
    active_user_days: int = 30

    # ===========================================
    # STORE
    # ===========================================
    store_backend: str = "redis"  # redis, memory
    redis_url: str = "redis://localhost:6379/0"
    store_namespace: str = "nightpass"
    store_atomic_max_retries: int = 50

    # ===========================================
    # TELEGRAM (deep links, message cleanup)
    # ===========================================
    telegram_bot_username: str = ""
    telegram_bot_token: str = ""
    message_autodelete_seconds: int = 0  # 0 = keep messages

    # ===========================================
    # AD PROVIDER (URL shortener)
    # ===========================================
    ad_enabled: bool = False
    ad_provider_domain: str = "earnlinks.in"
    ad_provider_api_token: str = ""
    ad_provider_timeout_seconds: float = 5.0

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30

    # ===========================================
    # CELERY
    # ===========================================
    celery_broker_url: str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"
    reaper_interval_minutes: int = 30

    # ===========================================
    # LOGGING
    # ===========================================
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @field_validator("token_secret")
    @classmethod
    def validate_token_secret(cls, v: str) -> str:
        """Ensure the token secret is reasonably secure."""
        if len(v) < 16:
            raise ValueError("token_secret must be at least 16 characters")
        if v in ("default-secret-change-in-production", "changeme", "secret", "password"):
            raise ValueError("token_secret is a placeholder, please change it")
        return v

    @field_validator("token_digest_length")
    @classmethod
    def validate_digest_length(cls, v: int) -> int:
        if not 8 <= v <= 64:
            raise ValueError("token_digest_length must be between 8 and 64")
        return v

    @field_validator("reaper_interval_minutes")
    @classmethod
    def validate_reaper_interval(cls, v: int) -> int:
        # used as a crontab minute step
        if not 1 <= v <= 59:
            raise ValueError("reaper_interval_minutes must be between 1 and 59")
        return v

    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ("redis", "memory"):
            raise ValueError("store_backend must be 'redis' or 'memory'")
        return v

    @property
    def token_ttl_ms(self) -> int:
        return self.token_ttl_hours * 60 * 60 * 1000

    @property
    def access_ad_ms(self) -> int:
        return self.access_ad_hours * 60 * 60 * 1000

    @property
    def referral_bonus_ms(self) -> int:
        return self.referral_bonus_hours * 60 * 60 * 1000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process. Missing or invalid values are fatal."""
    try:
        return Settings()
    except PydanticValidationError as exc:
        raise ConfigurationError(f"invalid configuration: {exc}") from exc
