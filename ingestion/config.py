"""
Application configuration using pydantic-settings.
All settings read from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration for the cost-document ingestion core."""

    # ── Application ──────────────────────────────────────────
    APP_NAME: str = "cost-ingestion"
    APP_VERSION: str = "0.1.0"
    PIPELINE_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ── Database ─────────────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./ingestion.db"
    DB_ECHO: bool = False

    # ── Tabular Parsing ──────────────────────────────────────
    DEFAULT_LOCATION: str = "unknown"
    # Generic date parse reads 01/02/2024 as January 2nd unless set
    DATE_DAYFIRST: bool = False
    MAX_DOCUMENT_SIZE_MB: int = 10
    # high, medium or low
    MIN_AUTO_CONFIDENCE: str = "medium"

    # ── Invoices ─────────────────────────────────────────────
    DEFAULT_CURRENCY: str = "MXN"
    DEFAULT_TAX_RATE: float = 0.16
    LINE_TOTAL_TOLERANCE: float = 0.01
    # Feature flag: reject invoices without a fiscal stamp UUID
    REJECT_MISSING_FISCAL_ID: bool = False

    # ── Entity Resolution ────────────────────────────────────
    MATCH_ACCEPT_THRESHOLD: float = 0.60
    MAX_SUGGESTIONS: int = 3

    # ── Worker ───────────────────────────────────────────────
    MAX_PARALLEL_TENANTS: int = 4

    # ── Observability ────────────────────────────────────────
    PROMETHEUS_ENABLED: bool = True

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }


# Singleton instance
settings = Settings()
