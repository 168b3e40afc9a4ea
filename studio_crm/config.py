from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Supabase settings
    SUPABASE_URL: str | None = None
    SUPABASE_JWKS_URL: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Datastore settings
    DATASTORE_BACKEND: str = "memory"  # "memory" or "supabase"
    DATASTORE_TIMEOUT_SECONDS: float = 15.0
    SNAPSHOT_POLL_SECONDS: float = 15.0

    # Automation webhook (reservation notifications)
    NOTIFY_WEBHOOK_URL: str | None = None
    WEBHOOK_TIMEOUT_SECONDS: float = 10.0
    NOTIFY_SOURCE_LABEL: str = "澤物管理系統"

    # OpenAI settings
    OPENAI_API_KEY: str | None = None
    OPENAI_REPORT_MODEL: str = "gpt-4o-mini"
    OPENAI_ANALYSIS_MODEL: str = "gpt-4o"
    OPENAI_MAX_TOKENS: int = 1200
    OPENAI_TEMPERATURE: float = 0.4
    OPENAI_TIMEOUT_SECONDS: float = 30.0
    OPENAI_MAX_RETRIES: int = 2

    # =================================================================
    # ATTRIBUTION SETTINGS
    # =================================================================
    # Manually reconciled friend count taken before connections were tracked
    ATTRIBUTION_BASELINE_COUNT: int = 858
    ATTRIBUTION_BASELINE_TIMESTAMP_MS: int = 1767196800000  # 2026-01-01 00:00 +08:00
    LOCAL_TIMEZONE: str = "Asia/Taipei"

    # Legacy behaviour keeps the connection bound after its contact is unlinked
    RESET_BOUND_ON_UNLINK: bool = False

    # Proxy settings
    TRUST_X_FORWARDED_FOR: bool = False
    TRUSTED_PROXY_IPS: list[str] = []

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # derive sensible defaults if not provided
    def jwks_url(self) -> str | None:
        if self.SUPABASE_JWKS_URL:
            return self.SUPABASE_JWKS_URL
        if not self.SUPABASE_URL:
            return None
        base = self.SUPABASE_URL.rstrip("/")
        return f"{base}/auth/v1/.well-known/jwks.json"

    def rest_url(self) -> str:
        """PostgREST base URL for the hosted document tables."""
        if not self.SUPABASE_URL:
            raise ValueError("SUPABASE_URL is required for the supabase datastore")
        return f"{self.SUPABASE_URL.rstrip('/')}/rest/v1"

    def get_datastore_config(self) -> dict:
        """
        Get datastore client configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "timeout": self.DATASTORE_TIMEOUT_SECONDS,
            "poll_interval": self.SNAPSHOT_POLL_SECONDS,
        }

        if self.environment == "development":
            # Faster feedback while developing against the hosted project
            config.update({"timeout": 10.0, "poll_interval": 5.0})

        return config


settings = Settings()
