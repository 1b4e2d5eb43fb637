"""
Application Configuration — Environment & Settings
Centralizes all config from .env with Pydantic Settings for validation.
"""
from pathlib import Path
from functools import lru_cache
from pydantic_settings import BaseSettings

# Resolve paths relative to backend/ directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Core ---
    APP_NAME: str = "Partisipro Identity Registry API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # --- Database ---
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'data' / 'identity_registry.db'}"

    # --- Security ---
    CORS_ORIGINS: list[str] = ["*"]
    SYSTEM_OPERATOR_ID: str = "system"

    # --- Claim Catalog ---
    SEED_DEFAULT_TOPICS: bool = True

    # --- Verification ---
    MATERIALIZE_EXPIRY_ON_READ: bool = True
    NEAR_EXPIRY_DAYS: int = 30

    # --- Compliance Reporting ---
    COMPLIANCE_WEIGHT_UNVERIFIED: float = 0.4
    COMPLIANCE_WEIGHT_STALE_VERIFICATION: float = 0.3
    COMPLIANCE_WEIGHT_EXPIRED_CLAIMS: float = 0.2
    COMPLIANCE_WEIGHT_UNTRUSTED_ISSUER: float = 0.1
    COMPLIANCE_TARGET_VERIFICATION_RATE: float = 80.0
    COMPLIANCE_CHECK_INTERVAL_HOURS: int = 24

    # --- Batch Operations ---
    BATCH_MAX_ITEMS: int = 500

    # --- Logging ---
    LOG_DIR: str = str(BASE_DIR / "logs")
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = True

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
