"""Application configuration using Pydantic Settings."""
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # MongoDB
    mongodb_url: str
    mongodb_db_name: str = "habimori"

    # JWT
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 10080  # 7 days

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    # CORS
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    # Period boundaries are local midnights in this zone
    timezone: str = "UTC"

    # Mutation coalescing
    counter_debounce_ms: int = 500
    recalc_debounce_ms: int = 1200

    # Stats
    max_chart_buckets: int = 10

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def tzinfo(self) -> ZoneInfo:
        """Zone used for local-midnight period boundaries."""
        return ZoneInfo(self.timezone)


settings = Settings()
