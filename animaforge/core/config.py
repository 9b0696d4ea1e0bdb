import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Progression ladder
    FINAL_TIER: str = "SSS"  # "SSS" (13-tier ladder) | "S" (legacy ladder)

    # Shop economy
    DEFAULT_COOLDOWN_HOURS: int = 24
    DEFAULT_BASE_INFLATION: float = 0.25
    SHOP_TICKET_CATEGORY: str = "tickets"

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing or malformed keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("animaforge")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    problems = []
    if not getattr(cfg, "DATABASE_URL", None):
        problems.append("Missing required configuration: DATABASE_URL (using in-memory repository)")
    if cfg.FINAL_TIER not in {"S", "SSS"}:
        problems.append(f"FINAL_TIER must be 'S' or 'SSS', got {cfg.FINAL_TIER!r}")
    if cfg.DEFAULT_COOLDOWN_HOURS <= 0:
        problems.append("DEFAULT_COOLDOWN_HOURS must be positive")
    if cfg.DEFAULT_BASE_INFLATION < 0:
        problems.append("DEFAULT_BASE_INFLATION must not be negative")

    for message in problems:
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
