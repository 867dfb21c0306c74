"""Exception hierarchy shared by the harvest pipeline."""

from __future__ import annotations


class HarvestError(Exception):
    """Base class for every error raised by ipd_harvester."""


class FatalHarvestError(HarvestError):
    """Abort the whole run; raised for configuration problems found mid-run."""


class RetryExhaustedError(HarvestError):
    """An operation kept failing until the retry ceiling was reached."""

    def __init__(self, description: str, attempts: int) -> None:
        super().__init__(f"{description} failed after {attempts} attempts")
        self.description = description
        self.attempts = attempts


class FetchError(HarvestError):
    """A record could not be retrieved from the remote database."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{message}: {url}")
        self.url = url


class IndexStoreError(HarvestError):
    """The date lookup file could not be read or written."""


class IndexLockError(IndexStoreError):
    """The advisory lock on the date lookup file was never obtained."""


class IdentifierOverflowError(ValueError):
    """Record numbers must fit the five-digit identifier field."""


__all__ = [
    "FatalHarvestError",
    "FetchError",
    "HarvestError",
    "IdentifierOverflowError",
    "IndexLockError",
    "IndexStoreError",
    "RetryExhaustedError",
]
