from __future__ import annotations

import threading

import pytest

from ipd_harvester.ui import ProgressReporter


def test_disabled_reporter_still_counts() -> None:
    reporter = ProgressReporter(enabled=False)
    reporter.start(total=3)
    reporter.advance(written=True, indexed=True, current_id="NHP00001")
    reporter.advance(failed=True, current_id="NHP00002")
    reporter.advance(current_id="NHP00003")
    reporter.close()
    assert reporter.summary() == {"written": 1, "indexed": 1, "failed": 1, "done": 3}
    assert reporter.state.current_id == "NHP00003"


def test_advance_before_start_is_an_error() -> None:
    with pytest.raises(RuntimeError):
        ProgressReporter(enabled=False).advance()


def test_summary_before_start_is_zero() -> None:
    assert ProgressReporter().summary() == {"written": 0, "indexed": 0, "failed": 0, "done": 0}


def test_non_terminal_output_disables_rendering() -> None:
    reporter = ProgressReporter(enabled=True)
    reporter.start(total=1)
    assert reporter.enabled is False
    reporter.advance(written=True)
    reporter.close()
    assert reporter.summary()["done"] == 1


def test_concurrent_updates_are_serialised() -> None:
    reporter = ProgressReporter(enabled=False)
    reporter.start(total=400)
    threads = [
        threading.Thread(target=lambda: [reporter.advance(indexed=True) for _ in range(100)])
        for _ in range(4)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert reporter.summary()["indexed"] == 400
    assert reporter.summary()["done"] == 400
