import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from santa.services.assignment import DEFAULT_MAX_RETRIES

load_dotenv()


@dataclass(frozen=True)
class Settings:
    database_url: str
    log_level: str
    log_path: Optional[str]
    max_retries: int


def load_settings() -> Settings:
    database_url = os.getenv("DATABASE_URL")
    log_level = os.getenv("LOG_LEVEL", "INFO")
    log_path = os.getenv("LOG_PATH", "logs/santa.log") or None
    max_retries = os.getenv("ASSIGNMENT_MAX_RETRIES", str(DEFAULT_MAX_RETRIES))

    if not database_url:
        raise ValueError("DATABASE_URL is required. Set it in the environment or .env file.")
    try:
        max_retries_value = int(max_retries)
    except ValueError as exc:
        raise ValueError(f"ASSIGNMENT_MAX_RETRIES must be an integer, got {max_retries!r}.") from exc
    if max_retries_value < 1:
        raise ValueError("ASSIGNMENT_MAX_RETRIES must be a positive integer.")

    return Settings(
        database_url=database_url,
        log_level=log_level.upper(),
        log_path=log_path,
        max_retries=max_retries_value,
    )
