"""Write qualifying records to disk and record newly seen identifiers."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import date
from enum import Enum
from pathlib import Path
from typing import AbstractSet

import structlog

from ..errors import IndexStoreError
from ..infra import IndexStore
from .parser import FlatFileRecord, HeaderRecord, Malformed, NotFound, ParseResult

FLAT_FILE_EXTENSION = "embl"
HEADER_EXTENSION = "fasta"


class OutcomeKind(str, Enum):
    NOT_FOUND = "not_found"
    HEADER_WRITTEN = "header_written"
    WRITTEN = "written"
    INDEXED_ONLY = "indexed_only"
    SKIPPED = "skipped"
    MALFORMED = "malformed"


@dataclass(slots=True)
class PersistOutcome:
    kind: OutcomeKind
    identifier: str | None = None
    path: Path | None = None
    indexed: bool = False
    index_failed: bool = False
    reason: str | None = None


def write_artifact(path: Path, body: bytes) -> None:
    """Write ``body`` verbatim, replacing any previous copy atomically."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as stream:
            stream.write(body)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class RecordPersister:
    """Apply the cutoff and index rules to one parsed record."""

    def __init__(
        self,
        store: IndexStore,
        known_identifiers: AbstractSet[str],
        cutoff: date,
        output_dir: Path,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.store = store
        self.known_identifiers = frozenset(known_identifiers)
        self.cutoff = cutoff
        self.output_dir = Path(output_dir)
        self.logger = logger or structlog.get_logger("ipd_harvester.persister")

    def persist(self, result: ParseResult) -> PersistOutcome:
        if isinstance(result, NotFound):
            return PersistOutcome(kind=OutcomeKind.NOT_FOUND)
        if isinstance(result, Malformed):
            return PersistOutcome(kind=OutcomeKind.MALFORMED, reason=result.reason)
        if isinstance(result, HeaderRecord):
            return self._persist_header(result)
        if isinstance(result, FlatFileRecord):
            return self._persist_flat_file(result)
        raise TypeError(f"Unsupported parse result: {type(result).__name__}")

    def _persist_header(self, record: HeaderRecord) -> PersistOutcome:
        # Header records carry no release date, so they are never indexed
        path = self.output_dir / f"{record.identifier}.{HEADER_EXTENSION}"
        write_artifact(path, record.body)
        self.logger.info("record_written", identifier=record.identifier, path=str(path), format="fasta")
        return PersistOutcome(kind=OutcomeKind.HEADER_WRITTEN, identifier=record.identifier, path=path)

    def _persist_flat_file(self, record: FlatFileRecord) -> PersistOutcome:
        outcome = PersistOutcome(kind=OutcomeKind.SKIPPED, identifier=record.identifier)

        if record.identifier not in self.known_identifiers:
            try:
                self.store.upsert(record.identifier, record.date_text)
                outcome.indexed = True
            except IndexStoreError as exc:
                outcome.index_failed = True
                self.logger.error(
                    "index_upsert_failed", identifier=record.identifier, error=str(exc)
                )

        if record.release_date > self.cutoff:
            path = self.output_dir / f"{record.identifier}.{FLAT_FILE_EXTENSION}"
            write_artifact(path, record.body)
            outcome.kind = OutcomeKind.WRITTEN
            outcome.path = path
            self.logger.info(
                "record_written",
                identifier=record.identifier,
                path=str(path),
                release_date=record.date_text,
                format="embl",
            )
        elif outcome.indexed:
            outcome.kind = OutcomeKind.INDEXED_ONLY
        return outcome


__all__ = [
    "FLAT_FILE_EXTENSION",
    "HEADER_EXTENSION",
    "OutcomeKind",
    "PersistOutcome",
    "RecordPersister",
    "write_artifact",
]
