"""Fixed-size worker pool draining a bounded job queue."""

from __future__ import annotations

from queue import Empty, Full, Queue
from threading import Event, Lock, Thread
from typing import Callable, Generic, Iterable, TypeVar

import structlog

from ..errors import FatalHarvestError

J = TypeVar("J")

_STOP = object()


class WorkerPool(Generic[J]):
    """Run ``handler`` for every job on ``workers`` threads.

    The producer blocks while the queue is full. :meth:`run` returns once every
    job has been handled and all threads have exited. A handler raising
    :class:`FatalHarvestError` cancels the run: queued jobs are discarded, the
    producer stops, and the error is re-raised from :meth:`run`. Any other
    exception is the handler's own per-job failure and is only logged.
    """

    def __init__(
        self,
        handler: Callable[[J], None],
        workers: int = 100,
        queue_size: int | None = None,
        logger: structlog.BoundLogger | None = None,
        thread_name_prefix: str = "harvester",
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self.handler = handler
        self.workers = workers
        self.queue_size = queue_size or workers
        self.logger = logger or structlog.get_logger("ipd_harvester.pool")
        self.thread_name_prefix = thread_name_prefix
        self._cancelled = Event()
        self._fatal: FatalHarvestError | None = None
        self._fatal_lock = Lock()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self, error: FatalHarvestError | None = None) -> None:
        with self._fatal_lock:
            if error is not None and self._fatal is None:
                self._fatal = error
        self._cancelled.set()

    def run(self, jobs: Iterable[J]) -> None:
        queue: Queue = Queue(maxsize=self.queue_size)
        threads = [
            Thread(
                target=self._worker,
                args=(queue,),
                name=f"{self.thread_name_prefix}-{index}",
                daemon=True,
            )
            for index in range(self.workers)
        ]
        for thread in threads:
            thread.start()
        try:
            for job in jobs:
                if not self._put(queue, job):
                    break
        finally:
            for _ in threads:
                self._put(queue, _STOP, force=True)
            for thread in threads:
                thread.join()
        if self._fatal is not None:
            raise self._fatal

    # ------------------------------------------------------------------
    def _put(self, queue: Queue, item: object, force: bool = False) -> bool:
        while True:
            if self._cancelled.is_set() and not force:
                return False
            try:
                queue.put(item, timeout=0.1)
                return True
            except Full:
                continue

    def _worker(self, queue: Queue) -> None:
        while True:
            try:
                job = queue.get(timeout=0.1)
            except Empty:
                continue
            if job is _STOP:
                return
            if self._cancelled.is_set():
                continue
            try:
                self.handler(job)
            except FatalHarvestError as exc:
                self.logger.error("run_cancelled", error=str(exc))
                self.cancel(exc)
            except Exception as exc:  # noqa: BLE001
                self.logger.error("job_error", job=repr(job), error=str(exc))


__all__ = ["WorkerPool"]
