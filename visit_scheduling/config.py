# visit_scheduling/config.py
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    ENV: str = "dev"
    APP_NAME: str = "Visit Scheduling Service"
    LOG_LEVEL: str = "INFO"

    # DB URL – SQLite local by default
    DATABASE_URL: str = "sqlite:///./visit_scheduling.db"

    # Bearer token auth (HS256 for now)
    JWT_SECRET: str = "dev-secret-change-me"
    JWT_ALG: str = "HS256"
    # Local development only: every request runs as a fixed principal
    AUTH_DISABLED: bool = False

    # Slot finder knobs
    SLOT_STEP_MINUTES: int = 30
    MAX_SLOT_RESULTS: int = 20
    MAX_SLOT_SEARCH_DAYS: int = 90
    DEFAULT_VISIT_DURATION_MINUTES: int = 60

    # Twilio config (participant SMS); leave empty to only log notifications
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_PHONE_NUMBER: Optional[str] = None  # our Twilio sender ID

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

_settings: Optional[Settings] = None

def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
