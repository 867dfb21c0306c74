"""Expand a numeric range into concrete fetch jobs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..config import lookup_database
from ..errors import IdentifierOverflowError

IDENTIFIER_WIDTH = 5
MAX_NUMBER = 10**IDENTIFIER_WIDTH - 1


def format_identifier(prefix: str, number: int) -> str:
    """``("NHP", 7) -> "NHP00007"``; numbers outside 1..99999 are rejected."""

    if number < 1 or number > MAX_NUMBER:
        raise IdentifierOverflowError(
            f"record number {number} does not fit a {IDENTIFIER_WIDTH}-digit identifier"
        )
    return f"{prefix}{number:0{IDENTIFIER_WIDTH}d}"


def parse_identifier(prefix: str, identifier: str) -> int | None:
    if not identifier.startswith(prefix):
        return None
    tail = identifier[len(prefix):]
    if not tail.isdigit():
        return None
    return int(tail)


@dataclass(frozen=True, slots=True)
class FetchJob:
    url: str
    identifier: str


class JobGenerator:
    """Turn a boundary set and a requested count into fetch jobs."""

    def __init__(self, code: str) -> None:
        self.code = code
        self.endpoint = lookup_database(code)

    def numbers(self, boundary: Iterable[int], count: int) -> list[int]:
        numbers = sorted(set(boundary))
        highest = numbers[-1] if numbers else 0
        numbers.extend(range(highest + 1, count + 1))
        return numbers

    def generate(self, boundary: Iterable[int], count: int) -> list[FetchJob]:
        # Unknown codes produce no work; callers validate codes up front.
        if self.endpoint is None:
            return []
        jobs: list[FetchJob] = []
        for number in self.numbers(boundary, count):
            identifier = format_identifier(self.endpoint.prefix, number)
            jobs.append(FetchJob(url=self.endpoint.url_for(identifier), identifier=identifier))
        return jobs


__all__ = [
    "FetchJob",
    "IDENTIFIER_WIDTH",
    "JobGenerator",
    "MAX_NUMBER",
    "format_identifier",
    "parse_identifier",
]
