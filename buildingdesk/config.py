# buildingdesk/config.py
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Database ---
    database_url: str = "sqlite:///buildingdesk/buildingdesk_dev.db"

    # --- Logging ---
    log_level: str = "INFO"
    json_logs: bool = False

    # --- CORS ---
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:5174"]

    # --- Workflow defaults ---
    default_event_duration_hours: int = 2
    default_grace_period_days: int = 0
    default_max_reminders: int = 3
    default_reminder_days: List[int] = [7, 3, 1]
    currency: str = "GBP"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()

# Ensure path directory exists (for SQLite)
if settings.database_url.startswith("sqlite:///"):
    db_path = Path(settings.database_url.replace("sqlite:///", ""))
    db_path.parent.mkdir(parents=True, exist_ok=True)

# --- SQLAlchemy setup ---
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False}
    if settings.database_url.startswith("sqlite")
    else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()
