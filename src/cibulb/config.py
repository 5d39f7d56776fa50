from pathlib import Path
from typing import Literal, Optional
import logging

import dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

dotenv.load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore")

    REPOSITORY_DB_PATH: Path = Path("cibulb.sqlite3")

    WEBHOOK_SECRET: Optional[str] = None
    TRACKED_BRANCH: str = "master"

    NOTIFIER: Literal["ifttt", "sns"] = "ifttt"
    NOTIFICATION_TIMEOUT: float = 10

    IFTTT_BASE_URL: str = "https://maker.ifttt.com"
    IFTTT_KEY: Optional[str] = None
    IFTTT_EVENT_PREFIX: str = "ci_build_"

    SNS_TOPIC_ARN: Optional[str] = None
    AWS_REGION: Optional[str] = None

    TELEGRAM_TOKEN: Optional[str] = None
    TELEGRAM_CHAT_ID: Optional[str] = None

    OVERRIDE_LOGGING: str = "WARNING"

    DRY_RUN: bool = False

    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_TOKEN: Optional[str] = None

    BULB_NAME: str = "icolorlive"

    @property
    def log_level(self) -> int:
        level = logging.getLevelName(self.OVERRIDE_LOGGING.upper())
        if not isinstance(level, int):
            return logging.WARNING
        return level


SETTINGS = Settings()
