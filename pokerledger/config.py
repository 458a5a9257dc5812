import sys
from typing import Optional

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Settings loaded from POKERLEDGER_* environment variables or a .env file."""

    # Minor units a non-bank payer may pay beyond what it owes
    overpayment_tolerance: int = Field(default=0, ge=0)

    log_level: str = "INFO"

    api_title: str = "Poker Ledger API"
    cors_origins: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_prefix="POKERLEDGER_",
        env_file=".env",
        extra="ignore",
    )


settings = LedgerSettings()


def configure_logging(level: Optional[str] = None) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level or settings.log_level)
