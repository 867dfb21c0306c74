"""Classify dbfetch responses into flat-file, sequence-header or not-found records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Union

from .planner import parse_release_date

NOT_FOUND_SENTINEL = "ERROR 12 No entries found."
ERROR_PREFIX = "ERROR"
HEADER_MARKER = ">"
ID_PREFIX = "ID"
DATE_PREFIX = "DT"


@dataclass(frozen=True)
class FlatFileRecord:
    identifier: str
    release_date: date
    date_text: str
    body: bytes = field(repr=False)


@dataclass(frozen=True)
class HeaderRecord:
    identifier: str
    body: bytes = field(repr=False)


@dataclass(frozen=True)
class NotFound:
    body: bytes = field(repr=False)


@dataclass(frozen=True)
class Malformed:
    reason: str
    body: bytes = field(repr=False)


ParseResult = Union[FlatFileRecord, HeaderRecord, NotFound, Malformed]


def _is_safe_identifier(identifier: str) -> bool:
    # Identifiers become file names under the output directory
    return identifier not in (".", "..") and not any(sep in identifier for sep in ("/", "\\", "\x00"))


class RecordParser:
    """Parse a raw response body into exactly one :data:`ParseResult`."""

    def parse(self, body: bytes) -> ParseResult:
        text = body.decode("utf-8", errors="replace")
        lines = [line for line in text.splitlines() if line.strip()]
        if not lines:
            return Malformed(reason="empty body", body=body)

        # Sequence lines may start with "ID" or "DT", so a header decides the format first
        if lines[0].startswith(HEADER_MARKER):
            return self._parse_header(lines[0], body)

        id_line: str | None = None
        date_line: str | None = None
        for line in lines:
            if line.startswith(ERROR_PREFIX):
                if line.strip() == NOT_FOUND_SENTINEL:
                    return NotFound(body=body)
                return Malformed(reason=f"service error: {line.strip()}", body=body)
            if line.startswith(ID_PREFIX):
                id_line = line
            elif line.startswith(DATE_PREFIX):
                # Later DT lines carry the last-updated date
                date_line = line
        return self._parse_flat_file(id_line, date_line, body)

    @staticmethod
    def _parse_header(line: str, body: bytes) -> ParseResult:
        token = line[len(HEADER_MARKER):].split(" ", 1)[0]
        if ":" not in token:
            return Malformed(reason=f"header without identifier: {line.strip()!r}", body=body)
        identifier = token.split(":", 1)[1].strip()
        if not identifier:
            return Malformed(reason=f"header without identifier: {line.strip()!r}", body=body)
        if not _is_safe_identifier(identifier):
            return Malformed(reason=f"unsafe identifier {identifier!r}", body=body)
        return HeaderRecord(identifier=identifier, body=body)

    @staticmethod
    def _parse_flat_file(id_line: str | None, date_line: str | None, body: bytes) -> ParseResult:
        if id_line is None:
            return Malformed(reason="missing ID line", body=body)
        if date_line is None:
            return Malformed(reason="missing DT line", body=body)

        identifier = id_line[len(ID_PREFIX):].strip().split(";")[0].strip()
        if not identifier:
            return Malformed(reason=f"empty identifier in {id_line.strip()!r}", body=body)
        if not _is_safe_identifier(identifier):
            return Malformed(reason=f"unsafe identifier {identifier!r}", body=body)

        fields = date_line[len(DATE_PREFIX):].split()
        if not fields:
            return Malformed(reason="empty DT line", body=body)
        date_text = fields[0]
        try:
            released = parse_release_date(date_text)
        except ValueError:
            return Malformed(reason=f"unparsable release date {date_text!r}", body=body)
        return FlatFileRecord(
            identifier=identifier, release_date=released, date_text=date_text, body=body
        )


__all__ = [
    "FlatFileRecord",
    "HeaderRecord",
    "Malformed",
    "NOT_FOUND_SENTINEL",
    "NotFound",
    "ParseResult",
    "RecordParser",
]
