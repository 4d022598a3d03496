from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # App
    APP_NAME: str = "FieldTrack Location Integrity"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Database
    DATABASE_URL: str = "postgresql://fieldtrack_user:fieldtrack_pass@db:5432/fieldtrack_db"

    # Redis
    REDIS_URL: str = "redis://redis:6379/0"

    # Security (tokens are issued elsewhere, we only verify them)
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15

    # Location integrity
    LOCATION_BATCH_MAX: int = 500
    IMPOSSIBLE_TRAVEL_SPEED_KMH: float = 200.0

    # Geofence enforcement: "WARN" or "BLOCK"
    GEOFENCE_ENFORCEMENT_POLICY: Optional[str] = "WARN"

    # Office hours
    OFFICE_START_HOUR: int = 9
    LATE_THRESHOLD_MINUTES: int = 15
    HALF_DAY_HOURS: float = 4.0

    # Device client
    API_BASE_URL: str = "http://localhost:8000"
    OFFLINE_DB_URL: str = "sqlite:///./fieldtrack_offline.db"
    REQUEST_TIMEOUT_SECONDS: float = 20.0
    REPLAY_BATCH_LIMIT: int = 50
    LOCATION_SYNC_LIMIT: int = 500
    REPLAY_INTERVAL_MINUTES: int = 15
    REPLAY_BACKOFF_BASE_SECONDS: float = 30.0
    REPLAY_BACKOFF_MAX_SECONDS: float = 900.0

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
