"""Runtime configuration read from the environment (and ``.env``)."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from photo_uploader.exceptions import ConfigError

DEFAULT_WORKERS = 4
DEFAULT_QUEUE_SIZE = 100
DEFAULT_DB_PATH = "~/.googlephotos-uploader.db"
DEFAULT_TOKEN_FILE = "~/.googleuploads-token.json"
DEFAULT_REQUEST_TIMEOUT = 300.0
LOG_DIR = "logs"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


@dataclass
class UploaderConfig:
    workers: int = DEFAULT_WORKERS
    queue_size: int = DEFAULT_QUEUE_SIZE
    db_path: str = DEFAULT_DB_PATH
    credentials_file: str = "credentials.json"
    token_file: str = DEFAULT_TOKEN_FILE
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    log_dir: str = LOG_DIR

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if self.workers < 1:
            raise ConfigError(f"workers must be at least 1, got {self.workers}")
        if self.queue_size < 1:
            raise ConfigError(f"queue_size must be at least 1, got {self.queue_size}")
        if self.request_timeout < 0:
            raise ConfigError("request_timeout cannot be negative")

    @property
    def timeout(self) -> float | None:
        """Per-request timeout for the HTTP client; 0 means wait forever."""
        return self.request_timeout or None

    @classmethod
    def from_env(cls) -> UploaderConfig:
        load_dotenv()
        return cls(
            workers=_env_int("UPLOADER_WORKERS", DEFAULT_WORKERS),
            queue_size=_env_int("UPLOADER_QUEUE_SIZE", DEFAULT_QUEUE_SIZE),
            db_path=os.getenv("UPLOADER_DB", DEFAULT_DB_PATH),
            credentials_file=os.getenv("GOOGLE_CREDENTIALS_FILE", "credentials.json"),
            token_file=os.getenv("UPLOADER_TOKEN_FILE", DEFAULT_TOKEN_FILE),
            request_timeout=_env_float("UPLOADER_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            log_dir=os.getenv("UPLOADER_LOG_DIR", LOG_DIR),
        )
