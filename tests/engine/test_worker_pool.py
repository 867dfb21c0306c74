from __future__ import annotations

import threading
import time

import pytest

from ipd_harvester.engine import WorkerPool
from ipd_harvester.errors import FatalHarvestError


def test_every_job_is_handled_once() -> None:
    seen: list[int] = []
    lock = threading.Lock()

    def handler(job: int) -> None:
        with lock:
            seen.append(job)

    WorkerPool(handler, workers=8).run(range(500))
    assert sorted(seen) == list(range(500))


def test_handler_errors_do_not_abort_the_run() -> None:
    handled: list[int] = []
    lock = threading.Lock()

    def handler(job: int) -> None:
        if job % 3 == 0:
            raise RuntimeError(f"bad job {job}")
        with lock:
            handled.append(job)

    WorkerPool(handler, workers=4).run(range(30))
    assert sorted(handled) == [n for n in range(30) if n % 3]


def test_fatal_error_cancels_remaining_jobs_and_is_raised() -> None:
    handled: list[int] = []
    lock = threading.Lock()

    def handler(job: int) -> None:
        if job == 5:
            raise FatalHarvestError("disk full")
        time.sleep(0.001)
        with lock:
            handled.append(job)

    pool = WorkerPool(handler, workers=2, queue_size=2)
    with pytest.raises(FatalHarvestError, match="disk full"):
        pool.run(range(10_000))
    assert pool.cancelled
    assert len(handled) < 10_000


def test_producer_respects_queue_bound() -> None:
    release = threading.Event()
    produced: list[int] = []

    def jobs():
        for n in range(50):
            produced.append(n)
            yield n

    def handler(job: int) -> None:
        release.wait(timeout=5)

    pool = WorkerPool(handler, workers=2, queue_size=3)
    runner = threading.Thread(target=pool.run, args=(jobs(),))
    runner.start()
    time.sleep(0.3)
    # two jobs held by workers, three queued, one blocked in put
    assert len(produced) <= 2 + 3 + 1
    release.set()
    runner.join(timeout=10)
    assert not runner.is_alive()
    assert len(produced) == 50


def test_rejects_empty_pool() -> None:
    with pytest.raises(ValueError):
        WorkerPool(lambda job: None, workers=0)
