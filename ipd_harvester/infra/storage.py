"""Durable identifier -> release date index shared by workers and processes."""

from __future__ import annotations

import fcntl
import json
import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import Mapping

import structlog

from ..errors import IndexLockError, IndexStoreError, RetryExhaustedError
from .retry import RetryPolicy

INDEX_FILENAME_TEMPLATE = "{code}_date_lookup.json"


def dumps(mapping: Mapping[str, str]) -> str:
    """Serialise the index in its stable on-disk form."""

    return json.dumps(dict(mapping), indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def loads(text: str) -> dict[str, str]:
    """Parse the on-disk form; anything but a flat string mapping is rejected."""

    payload = json.loads(text) if text.strip() else {}
    if not isinstance(payload, dict):
        raise ValueError("date lookup must be a JSON object")
    return {str(key): str(value) for key, value in payload.items()}


class IndexStore:
    """File-backed mapping guarded by an advisory lock.

    Every :meth:`upsert` performs a full read-merge-write while holding both an
    in-process lock and an exclusive ``flock`` on ``<path>.lock``, so entries
    written by other workers or other processes are never lost.
    """

    def __init__(
        self,
        directory: Path,
        code: str,
        lock_policy: RetryPolicy | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.directory = Path(directory)
        self.code = code
        self.path = self.directory / INDEX_FILENAME_TEMPLATE.format(code=code)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_policy = lock_policy or RetryPolicy(max_attempts=5, delay=2.0)
        self.logger = logger or structlog.get_logger("ipd_harvester.index")
        self._lock = Lock()

    def load(self) -> dict[str, str]:
        """Unlocked point-in-time snapshot; a missing or unreadable file is empty."""

        if not self.path.exists():
            return {}
        try:
            return loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            self.logger.warning("index_unreadable", path=str(self.path), error=str(exc))
            return {}

    def upsert(self, identifier: str, date_text: str) -> None:
        with self._lock:
            handle = self._acquire()
            try:
                current = self._read_locked()
                current[identifier] = date_text
                self._write_locked(current)
            finally:
                fcntl.flock(handle, fcntl.LOCK_UN)
                handle.close()
        self.logger.debug("index_upserted", identifier=identifier, date=date_text)

    # ------------------------------------------------------------------
    def _acquire(self):
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            handle = self.lock_path.open("a+")
        except OSError as exc:
            raise IndexStoreError(f"cannot open lock file for {self.path}: {exc}") from exc

        def _try_lock(_attempt: int) -> None:
            fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)

        try:
            self.lock_policy.run(
                _try_lock,
                retry_on=(BlockingIOError,),
                describe=f"lock {self.lock_path.name}",
            )
        except RetryExhaustedError as exc:
            handle.close()
            raise IndexLockError(
                f"could not obtain lock on {self.path} after {exc.attempts} attempts"
            ) from exc
        except OSError as exc:
            handle.close()
            raise IndexLockError(f"failed to lock {self.path}: {exc}") from exc
        return handle

    def _read_locked(self) -> dict[str, str]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise IndexStoreError(f"failed to read {self.path}: {exc}") from exc
        try:
            return loads(text)
        except ValueError as exc:
            raise IndexStoreError(f"refusing to overwrite malformed {self.path}: {exc}") from exc

    def _write_locked(self, mapping: Mapping[str, str]) -> None:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as stream:
                stream.write(dumps(mapping))
                stream.flush()
                os.fsync(stream.fileno())
            os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise IndexStoreError(f"failed to write {self.path}: {exc}") from exc


__all__ = ["INDEX_FILENAME_TEMPLATE", "IndexStore", "dumps", "loads"]
