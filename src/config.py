import logging

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Only ever used outside production; startup refuses to run without a real secret there.
INSECURE_DEV_IMPERSONATION_SECRET = "insecure-dev-impersonation-secret-do-not-use-in-production"


class Settings(BaseSettings):
    database_url: str | None = None
    supabase_url: str
    supabase_service_role_key: str
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 60
    environment: str = "development"  # development | test | production
    impersonation_secret: str | None = None
    impersonation_token_ttl_seconds: int = 300
    support_reason_min_length: int = 10
    support_session_min_minutes: int = 15
    support_session_max_minutes: int = 480
    rate_limit_max_entries: int = 50000
    rate_limit_sweep_interval_seconds: int = 3600
    impersonation_rate_limit: int = 10
    impersonation_rate_limit_window_seconds: int = 300
    login_max_attempts: int = 5
    login_lockout_window_seconds: int = 900
    use_redis_rate_limit: bool = False
    redis_url: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _require_impersonation_secret_in_production(self) -> "Settings":
        if self.is_production and not self.impersonation_secret:
            raise ValueError("IMPERSONATION_SECRET must be set when ENVIRONMENT=production")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    def impersonation_signing_secret(self) -> str:
        """HMAC key for impersonation tokens; falls back to the insecure default outside production."""
        if self.impersonation_secret:
            return self.impersonation_secret
        logger.warning(
            "IMPERSONATION_SECRET is not set; using the insecure development default (environment=%s)",
            self.environment,
        )
        return INSECURE_DEV_IMPERSONATION_SECRET


settings = Settings()
