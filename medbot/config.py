"""Configuration settings for MedBot."""
import os
import logging

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings loaded from environment variables."""

    # Storage Configuration
    DB_PATH: str = os.getenv("MEDBOT_DB_PATH", "./data/medbot.db")
    DB_TIMEOUT_SECONDS: float = float(os.getenv("DB_TIMEOUT_SECONDS", "10"))
    SEED_SAMPLE_DATA: bool = _env_bool("SEED_SAMPLE_DATA")

    # Cache Policy
    CACHE_TTL_HOURS: float = float(os.getenv("CACHE_TTL_HOURS", "24"))
    SERVE_STALE_ON_ERROR: bool = _env_bool("SERVE_STALE_ON_ERROR")

    # OpenFDA Configuration
    OPENFDA_BASE_URL: str = os.getenv("OPENFDA_BASE_URL", "https://api.fda.gov")
    OPENFDA_API_KEY: str = os.getenv("OPENFDA_API_KEY", "")
    OPENFDA_TIMEOUT_SECONDS: float = float(os.getenv("OPENFDA_TIMEOUT_SECONDS", "10"))
    OPENFDA_USER_AGENT: str = os.getenv("OPENFDA_USER_AGENT", "MedBot/1.0")

    # Result caps
    DRUG_SEARCH_LIMIT: int = int(os.getenv("DRUG_SEARCH_LIMIT", "10"))
    RECALL_SEARCH_LIMIT: int = int(os.getenv("RECALL_SEARCH_LIMIT", "20"))
    RECENT_RECALLS_LIMIT: int = int(os.getenv("RECENT_RECALLS_LIMIT", "10"))

    # API Configuration
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    API_WORKERS: int = int(os.getenv("API_WORKERS", "1"))

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR: str = os.getenv("LOG_DIR", "logs")

    def __init__(self, **overrides):
        for key, value in overrides.items():
            if not hasattr(type(self), key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)

    def validate(self) -> bool:
        """Validate settings that would otherwise fail deep inside a request."""
        if self.CACHE_TTL_HOURS <= 0:
            raise ValueError("CACHE_TTL_HOURS must be positive")
        for name in ("DRUG_SEARCH_LIMIT", "RECALL_SEARCH_LIMIT", "RECENT_RECALLS_LIMIT"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.OPENFDA_TIMEOUT_SECONDS <= 0:
            raise ValueError("OPENFDA_TIMEOUT_SECONDS must be positive")
        if not self.OPENFDA_API_KEY:
            logger.warning("OPENFDA_API_KEY not set. openFDA anonymous rate limits apply.")
        return True


# Global settings instance
settings = Settings()
