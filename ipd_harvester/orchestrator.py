"""Harvest orchestrator wiring planning, fetching, classification and persistence."""

from __future__ import annotations

import errno
import time
from dataclasses import dataclass, field, fields
from threading import Lock

import httpx
import structlog

from .config import GlobalConfig, HarvestRequest
from .engine import (
    FetchJob,
    Fetcher,
    JobGenerator,
    OutcomeKind,
    RangePlanner,
    RecordParser,
    RecordPersister,
    WorkerPool,
)
from .errors import FatalHarvestError, FetchError
from .infra import IndexStore, RetryPolicy
from .logging_conf import database_logger
from .ui import ProgressReporter

_FATAL_ERRNOS = {errno.ENOSPC, errno.EROFS, errno.EDQUOT}


@dataclass
class HarvestSummary:
    """Per-run counters; every job lands in exactly one outcome bucket."""

    code: str
    jobs: int = 0
    written: int = 0
    header_written: int = 0
    indexed_only: int = 0
    not_found: int = 0
    skipped: int = 0
    failed: int = 0
    indexed: int = 0
    index_failed: int = 0
    boundary: list[int] = field(default_factory=list)
    elapsed: float = 0.0
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def record(self, bucket: str, *, indexed: bool = False, index_failed: bool = False) -> None:
        with self._lock:
            setattr(self, bucket, getattr(self, bucket) + 1)
            if indexed:
                self.indexed += 1
            if index_failed:
                self.index_failed += 1

    def as_dict(self) -> dict:
        with self._lock:
            return {
                item.name: list(getattr(self, item.name))
                if item.name == "boundary"
                else getattr(self, item.name)
                for item in fields(self)
                if not item.name.startswith("_")
            }


_BUCKETS = {
    OutcomeKind.WRITTEN: "written",
    OutcomeKind.HEADER_WRITTEN: "header_written",
    OutcomeKind.INDEXED_ONLY: "indexed_only",
    OutcomeKind.NOT_FOUND: "not_found",
    OutcomeKind.SKIPPED: "skipped",
    OutcomeKind.MALFORMED: "failed",
}


class HarvestOrchestrator:
    """Central coordinator running one harvest for one database code."""

    def __init__(
        self,
        global_config: GlobalConfig,
        transport: httpx.BaseTransport | None = None,
        sleep=time.sleep,
    ) -> None:
        self.global_config = global_config
        self.transport = transport
        self.sleep = sleep

    def run(
        self,
        request: HarvestRequest,
        progress: ProgressReporter | None = None,
    ) -> HarvestSummary:
        started = time.monotonic()
        log = database_logger(request.code)
        endpoint = request.endpoint
        request.output_dir.mkdir(parents=True, exist_ok=True)

        store = IndexStore(
            request.index_dir,
            request.code,
            lock_policy=RetryPolicy.from_config(
                self.global_config.lock_retry, sleep=self.sleep, logger=log
            ),
            logger=log,
        )
        snapshot = store.load()
        if request.resume:
            boundary = RangePlanner(endpoint.prefix, logger=log).plan(snapshot, request.cutoff)
        else:
            boundary = []
        jobs = JobGenerator(request.code).generate(boundary, request.count)
        summary = HarvestSummary(code=request.code, jobs=len(jobs), boundary=boundary)
        log.info(
            "harvest_planned",
            cutoff=request.cutoff.isoformat(),
            indexed_entries=len(snapshot),
            boundary=boundary,
            jobs=len(jobs),
        )

        parser = RecordParser()
        persister = RecordPersister(
            store,
            known_identifiers=set(snapshot),
            cutoff=request.cutoff,
            output_dir=request.output_dir,
            logger=log,
        )
        fetcher = Fetcher(
            timeout=self.global_config.request_timeout,
            retry_policy=RetryPolicy.from_config(
                self.global_config.fetch_retry, sleep=self.sleep, logger=log
            ),
            user_agent=self.global_config.user_agent,
            logger=log,
            transport=self.transport,
            max_connections=self.global_config.workers,
        )
        progress = progress or ProgressReporter(enabled=False)
        progress.start(len(jobs))

        def _handle(job: FetchJob) -> None:
            bucket, indexed, index_failed = self._process(job, fetcher, parser, persister, log)
            summary.record(bucket, indexed=indexed, index_failed=index_failed)
            progress.advance(
                written=bucket in ("written", "header_written"),
                indexed=indexed,
                failed=bucket == "failed",
                current_id=job.identifier,
            )

        pool: WorkerPool[FetchJob] = WorkerPool(
            _handle,
            workers=self.global_config.workers,
            queue_size=self.global_config.effective_queue_size,
            logger=log,
        )
        try:
            pool.run(jobs)
        finally:
            progress.close()
            fetcher.close()
            summary.elapsed = time.monotonic() - started
            log.info("harvest_finished", **summary.as_dict())
        return summary

    def _process(
        self,
        job: FetchJob,
        fetcher: Fetcher,
        parser: RecordParser,
        persister: RecordPersister,
        log: structlog.BoundLogger,
    ) -> tuple[str, bool, bool]:
        try:
            response = fetcher.fetch(job.url)
        except FetchError as exc:
            log.error("fetch_failed", identifier=job.identifier, url=job.url, error=str(exc))
            return "failed", False, False

        result = parser.parse(response.content)
        try:
            outcome = persister.persist(result)
        except OSError as exc:
            if exc.errno in _FATAL_ERRNOS:
                raise FatalHarvestError(f"cannot write output for {job.identifier}: {exc}") from exc
            log.error("record_write_failed", identifier=job.identifier, error=str(exc))
            return "failed", False, False

        if outcome.kind is OutcomeKind.MALFORMED:
            log.error("record_malformed", identifier=job.identifier, reason=outcome.reason)
        elif outcome.kind is OutcomeKind.NOT_FOUND:
            log.debug("record_not_found", identifier=job.identifier)
        return _BUCKETS[outcome.kind], outcome.indexed, outcome.index_failed


__all__ = ["HarvestOrchestrator", "HarvestSummary"]
