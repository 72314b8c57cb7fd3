"""Batch import defaults and their environment overrides."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

from .env import env_bool, env_float, env_int, env_milliseconds, env_str
from .errors import ConfigurationError

DEFAULT_BATCH_SIZE: Final[int] = 500
DEFAULT_MAX_BATCH_SIZE: Final[int] = 1000
DEFAULT_MAX_RETRIES: Final[int] = 3
DEFAULT_RETRY_DELAY_SECONDS: Final[float] = 5.0
DEFAULT_BATCH_TIMEOUT_SECONDS: Final[float] = 300.0
DEFAULT_PACING_DELAY_SECONDS: Final[float] = 1.0
DEFAULT_MAX_PARALLEL_BATCHES: Final[int] = 4
DEFAULT_ERROR_DISPLAY_LIMIT: Final[int] = 100
DEFAULT_MAX_FILE_SIZE_MB: Final[int] = 50
DEFAULT_ALLOWED_EXTENSIONS: Final[tuple[str, ...]] = (".xlsx", ".xlsm")
SYSTEM_USER: Final[str] = "system"


@dataclass(frozen=True, slots=True)
class ImportConfig:
    """Knobs consumed by the batch orchestrator and reconciliation engine."""

    batch_size: int = DEFAULT_BATCH_SIZE
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS
    retry_backoff: float = 1.0
    batch_timeout_seconds: float = DEFAULT_BATCH_TIMEOUT_SECONDS
    pacing_delay_seconds: float = DEFAULT_PACING_DELAY_SECONDS
    parallel_batches: bool = False
    max_parallel_batches: int = DEFAULT_MAX_PARALLEL_BATCHES
    error_display_limit: int = DEFAULT_ERROR_DISPLAY_LIMIT
    created_by: str = SYSTEM_USER

    def __post_init__(self) -> None:
        if self.max_batch_size < 1:
            raise ConfigurationError("max_batch_size must be positive")
        if not 1 <= self.batch_size <= self.max_batch_size:
            raise ConfigurationError(
                f"batch_size must be between 1 and {self.max_batch_size}, got {self.batch_size}"
            )
        if self.max_retries < 1:
            raise ConfigurationError("max_retries must allow at least one attempt")
        if self.retry_delay_seconds < 0 or self.pacing_delay_seconds < 0:
            raise ConfigurationError("delays must be non-negative")
        if self.retry_backoff < 1.0:
            raise ConfigurationError("retry_backoff must be >= 1.0")
        if self.batch_timeout_seconds <= 0:
            raise ConfigurationError("batch_timeout_seconds must be positive")
        if self.max_parallel_batches < 1:
            raise ConfigurationError("max_parallel_batches must be positive")

    def retry_delay_for(self, attempt: int) -> float:
        """Delay to wait after failed ``attempt`` (1-based) before the next one."""

        return self.retry_delay_seconds * (self.retry_backoff ** (attempt - 1))


@dataclass(frozen=True, slots=True)
class UploadConfig:
    max_file_size_mb: int = DEFAULT_MAX_FILE_SIZE_MB
    allowed_extensions: tuple[str, ...] = field(default=DEFAULT_ALLOWED_EXTENSIONS)

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


def get_import_config() -> ImportConfig:
    return ImportConfig(
        batch_size=env_int("STOCKSYNC_BATCH_SIZE", DEFAULT_BATCH_SIZE),
        max_batch_size=env_int("STOCKSYNC_MAX_BATCH_SIZE", DEFAULT_MAX_BATCH_SIZE),
        max_retries=env_int("STOCKSYNC_MAX_RETRIES", DEFAULT_MAX_RETRIES),
        retry_delay_seconds=env_milliseconds(
            "STOCKSYNC_RETRY_DELAY_MS", DEFAULT_RETRY_DELAY_SECONDS
        ),
        retry_backoff=env_float("STOCKSYNC_RETRY_BACKOFF", 1.0),
        batch_timeout_seconds=env_milliseconds(
            "STOCKSYNC_BATCH_TIMEOUT_MS", DEFAULT_BATCH_TIMEOUT_SECONDS
        ),
        pacing_delay_seconds=env_milliseconds(
            "STOCKSYNC_PACING_DELAY_MS", DEFAULT_PACING_DELAY_SECONDS
        ),
        parallel_batches=env_bool("STOCKSYNC_PARALLEL_BATCHES", default=False),
        max_parallel_batches=env_int(
            "STOCKSYNC_MAX_PARALLEL_BATCHES", DEFAULT_MAX_PARALLEL_BATCHES
        ),
        error_display_limit=env_int(
            "STOCKSYNC_ERROR_DISPLAY_LIMIT", DEFAULT_ERROR_DISPLAY_LIMIT, minimum=0
        ),
        created_by=env_str("STOCKSYNC_CREATED_BY", SYSTEM_USER),
    )


def get_upload_config() -> UploadConfig:
    raw_extensions = env_str("STOCKSYNC_ALLOWED_EXTENSIONS", ",".join(DEFAULT_ALLOWED_EXTENSIONS))
    extensions = tuple(
        ext if ext.startswith(".") else f".{ext}"
        for ext in (part.strip().lower() for part in raw_extensions.split(","))
        if ext
    )
    return UploadConfig(
        max_file_size_mb=env_int("STOCKSYNC_MAX_FILE_SIZE_MB", DEFAULT_MAX_FILE_SIZE_MB, minimum=1),
        allowed_extensions=extensions or DEFAULT_ALLOWED_EXTENSIONS,
    )
