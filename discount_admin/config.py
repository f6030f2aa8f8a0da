import logging
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

from . import rules


class Settings(BaseSettings):
    """Settings read from DISCOUNTS_* environment variables or .env"""

    percent_symbol: str = rules.DEFAULT_PERCENT_SYMBOL
    timezone: str = "UTC"
    pro_edition: bool = True
    granted_permissions: List[str] = [rules.MANAGE_PROMOTIONS]
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="DISCOUNTS_",
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )


def setup_logging(settings: Settings) -> None:
    """Configure logging settings"""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
