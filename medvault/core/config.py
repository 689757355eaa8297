from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "local"
    api_v1_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Security
    secret_key: str = "changeme"  # override in .env
    access_token_expire_minutes: int = 60

    # Database
    database_url: str = "sqlite:///./medvault.db"

    # Access keys
    auto_key_grace_minutes: int = 60
    emergency_key_ttl_minutes: int = 15
    key_code_length: int = 6
    key_code_retention_hours: int = 24
    key_code_max_attempts: int = 20

    # Auto key scheduler
    scheduler_enabled: bool = True
    scheduler_interval_seconds: int = 30
    scheduler_lookahead_minutes: int = 120

    # Pydantic v2 style config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance so the .env is parsed once.
    """
    return Settings()
