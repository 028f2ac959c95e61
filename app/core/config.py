from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

class Settings(BaseSettings):
    APP_NAME: str = "MindMate API"
    APP_ENV: str = "dev"
    APP_DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "sqlite:///./mindmate.db"

    JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = "authenticated"
    ADMIN_ROUTES_ENABLED: bool = False

    # Classifier: "heuristic" runs in-process, "ollama" calls a generate endpoint
    CLASSIFIER_PROVIDER: str = "heuristic"
    CLASSIFIER_URL: str = "http://localhost:11434/api/generate"
    CLASSIFIER_MODEL: str = "gemma3:1b"
    CLASSIFIER_TEMPERATURE: float = 0.2
    CLASSIFIER_TIMEOUT_SECONDS: float = 30.0

    # Push gateway; unset means no durable push channel
    PUSH_GATEWAY_URL: Optional[str] = None
    PUSH_GATEWAY_API_KEY: Optional[str] = None
    FLAG_STORE_PATH: Optional[str] = None

    CHECKIN_COOLDOWN_HOURS: float = 24
    NOTIFICATION_FLAG_TTL_HOURS: float = 24
    DEDUP_WINDOW_SECONDS: float = 5
    DEVICE_REGISTRATION_ATTEMPTS: int = 3

    BASELINE_WINDOW_DAYS: int = 30
    BASELINE_MIN_SAMPLE_DAYS: int = 1
    STANDARD_WINDOW_DAYS: int = 14
    RECENT_WINDOW_DAYS: int = 3

    SUPPORT_WIDEN_AFTER_HOURS: float = 12
    SUPPORT_WIDEN_AFTER_REPEATS: int = 2
    SUPPORT_SKIP_EMPTY_TIERS: bool = True

    SCHEDULER_ENABLED: bool = True
    CADENCE_POLL_SECONDS: float = 30
    SUPPORT_SWEEP_SECONDS: float = 300

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

settings = Settings()  # type: ignore
