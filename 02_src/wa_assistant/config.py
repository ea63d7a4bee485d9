"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "wa_assistant.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def resolve_log_path(env_value: str | None) -> PathLike | None:
    """Resolve LOG_FILE; "-" disables the file handler."""
    if env_value is None or env_value.strip() == "":
        return DEFAULT_LOG_PATH
    if env_value.strip() == "-":
        return None
    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


@dataclass
class Settings:
    """Runtime settings read from the environment."""

    # WhatsApp Cloud API
    meta_token: str = ""
    meta_verify_token: str = ""
    meta_app_secret: str | None = None
    meta_base_url: str = "https://graph.facebook.com/v21.0"
    whatsapp_phone_number_id: str = ""

    # Persistence
    database_url: str | None = None
    session_ttl_hours: int = 24
    cleanup_interval_seconds: float = 3600.0

    # Completion / transcription
    anthropic_api_key: str | None = None
    llm_model: str = "claude-3-5-sonnet-20241022"
    llm_timeout: float = 30.0
    openai_api_key: str | None = None

    # Outbound HTTP
    http_timeout: float = 15.0

    # Background processing
    worker_count: int = 4
    queue_size: int = 100

    # Server
    api_host: str = "localhost"
    api_port: int = 8000
    log_level: str = "INFO"

    # Logging
    log_file: PathLike | None = DEFAULT_LOG_PATH
    log_max_bytes: int = 10 * 1024 * 1024
    log_backup_count: int = 5

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        return cls(
            meta_token=os.getenv("META_TOKEN", ""),
            meta_verify_token=os.getenv("META_VERIFY_TOKEN", ""),
            meta_app_secret=os.getenv("META_APP_SECRET") or None,
            meta_base_url=os.getenv("META_BASE_URL", cls.meta_base_url).rstrip("/"),
            whatsapp_phone_number_id=os.getenv("WHATSAPP_PHONE_NUMBER_ID", ""),
            database_url=os.getenv("DATABASE_URL") or None,
            session_ttl_hours=_int_env("SESSION_TTL_HOURS", cls.session_ttl_hours),
            cleanup_interval_seconds=_float_env(
                "CLEANUP_INTERVAL_SECONDS", cls.cleanup_interval_seconds
            ),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
            llm_model=os.getenv("LLM_MODEL", cls.llm_model),
            llm_timeout=_float_env("LLM_TIMEOUT", cls.llm_timeout),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            http_timeout=_float_env("HTTP_TIMEOUT", cls.http_timeout),
            worker_count=_int_env("WORKER_COUNT", cls.worker_count),
            queue_size=_int_env("QUEUE_SIZE", cls.queue_size),
            api_host=os.getenv("API_HOST", cls.api_host),
            api_port=_int_env("API_PORT", cls.api_port),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            log_file=resolve_log_path(os.getenv("LOG_FILE")),
            log_max_bytes=_int_env("LOG_MAX_BYTES", cls.log_max_bytes),
            log_backup_count=_int_env("LOG_BACKUP_COUNT", cls.log_backup_count),
        )

    @property
    def session_ttl(self) -> timedelta | None:
        """Session lifetime, None when sessions never expire."""
        if self.session_ttl_hours <= 0:
            return None
        return timedelta(hours=self.session_ttl_hours)

    def validate(self) -> None:
        """Raise ValueError when a required setting is missing or out of range."""
        if not self.meta_verify_token:
            raise ValueError("META_VERIFY_TOKEN environment variable not set")
        if self.worker_count < 1:
            raise ValueError("WORKER_COUNT must be at least 1")
        if self.queue_size < 1:
            raise ValueError("QUEUE_SIZE must be at least 1")
