"""Pydantic models used across the harvester configuration flow."""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from .databases import DatabaseEndpoint, lookup_database, supported_codes

CUTOFF_FORMAT = "%Y-%m-%d"
MAX_RECORD_NUMBER = 99_999


class RetryConfig(BaseModel):
    """Attempt ceiling and pause between attempts."""

    max_attempts: int = 3
    delay: float = 2.0
    backoff: float = 1.0

    @model_validator(mode="after")
    def _validate_bounds(self) -> "RetryConfig":
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay < 0:
            raise ValueError("delay must be non-negative")
        if self.backoff < 1:
            raise ValueError("backoff must be >= 1")
        return self


class GlobalConfig(BaseModel):
    """Controls shared by every harvest run."""

    workers: int = 100
    # Defaults to the worker count when unset
    queue_size: int | None = None
    request_timeout: float = 30.0
    fetch_retry: RetryConfig = Field(default_factory=RetryConfig)
    lock_retry: RetryConfig = Field(default_factory=lambda: RetryConfig(max_attempts=5, delay=2.0))
    user_agent: str = "ipd-harvester/0.1 (+https://www.ebi.ac.uk/ipd/)"
    enable_progress_bar: bool = True
    index_dir: Path = Field(default=Path("."))

    @field_validator("index_dir", mode="before")
    @classmethod
    def _coerce_dir(cls, value: Any) -> Path:
        return Path(value)

    @model_validator(mode="after")
    def _validate_pool(self) -> "GlobalConfig":
        if self.workers < 1:
            raise ValueError("workers must be >= 1")
        if self.queue_size is not None and self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        return self

    @property
    def effective_queue_size(self) -> int:
        return self.queue_size or self.workers


class HarvestRequest(BaseModel):
    """Parameters of a single harvest run."""

    code: str
    count: int
    cutoff: date
    index_dir: Path = Field(default=Path("."))
    output_dir: Path = Field(default_factory=Path.cwd)
    resume: bool = True

    @field_validator("code")
    @classmethod
    def _validate_code(cls, value: str) -> str:
        if lookup_database(value) is None:
            raise ValueError(
                f"Unsupported database code {value!r}; expected one of {', '.join(supported_codes())}"
            )
        return value

    @field_validator("count")
    @classmethod
    def _validate_count(cls, value: int) -> int:
        if value < 1:
            raise ValueError("count must be >= 1")
        if value > MAX_RECORD_NUMBER:
            raise ValueError(f"count cannot exceed {MAX_RECORD_NUMBER} (five-digit identifiers)")
        return value

    @field_validator("cutoff", mode="before")
    @classmethod
    def _parse_cutoff(cls, value: Any) -> date:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return datetime.strptime(value.strip(), CUTOFF_FORMAT).date()
            except ValueError as exc:
                raise ValueError(f"cutoff must use YYYY-MM-DD, got {value!r}") from exc
        raise ValueError("cutoff must be a date or YYYY-MM-DD string")

    @field_validator("index_dir", "output_dir", mode="before")
    @classmethod
    def _coerce_dirs(cls, value: Any) -> Path:
        return Path(value)

    @property
    def endpoint(self) -> DatabaseEndpoint:
        endpoint = lookup_database(self.code)
        assert endpoint is not None  # guaranteed by _validate_code
        return endpoint


__all__ = [
    "CUTOFF_FORMAT",
    "GlobalConfig",
    "HarvestRequest",
    "MAX_RECORD_NUMBER",
    "RetryConfig",
]
