"""Terminal progress helpers with Rich-based rendering."""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock

from rich.console import Console
from rich.errors import LiveError
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    SpinnerColumn,
    Task,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.text import Text


@dataclass
class ProgressState:
    total: int
    written: int = 0
    indexed: int = 0
    failed: int = 0
    done: int = 0
    current_id: str | None = None


class RateColumn(ProgressColumn):
    """Records handled per second, e.g. ``12.5 rec/s``."""

    def render(self, task: Task) -> Text:
        speed = task.finished_speed or task.speed
        if speed is None:
            return Text("", style="progress.percentage")
        return Text(f"{speed:.1f} rec/s", style="progress.percentage")


class ProgressReporter:
    """Render progress and maintain counters for CLI feedback.

    Safe to call from worker threads; counter updates are serialised.
    """

    def __init__(self, enabled: bool = True, label: str = "harvest") -> None:
        self.enabled = enabled
        self._console: Console | None = None
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self._lock = Lock()
        self.state: ProgressState | None = None
        self._label = label

    def start(self, total: int) -> None:
        self.state = ProgressState(total=total)
        if not self.enabled:
            return
        if self._console is None:
            self._console = Console()
            if not self._console.is_terminal:
                self._console = None
                self.enabled = False
                return
        self._progress = Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[bold blue]{task.fields[label]:<8}", justify="left"),
            BarColumn(bar_width=None, complete_style="green", finished_style="green"),
            TaskProgressColumn(show_speed=False),
            TimeElapsedColumn(),
            RateColumn(),
            TextColumn("[green]✓{task.fields[written]:>4}", justify="right"),
            TextColumn("[cyan]+{task.fields[indexed]:>4}", justify="right"),
            TextColumn("[red]✗{task.fields[failed]:>4}", justify="right"),
            TextColumn("[dim]{task.fields[current_id]}", justify="left"),
            refresh_per_second=8,
            expand=True,
            transient=True,
            console=self._console,
        )
        try:
            self._progress.__enter__()
        except LiveError:
            self.enabled = False
            self._progress = None
            self._console = None
            return
        self._task_id = self._progress.add_task(
            "harvest",
            total=total,
            label=self._label,
            written=0,
            indexed=0,
            failed=0,
            current_id="",
        )

    def advance(
        self,
        written: bool = False,
        indexed: bool = False,
        failed: bool = False,
        current_id: str | None = None,
    ) -> None:
        if not self.state:
            raise RuntimeError("ProgressReporter.start must be called before advance")
        with self._lock:
            self.state.done += 1
            if current_id:
                self.state.current_id = current_id
            if written:
                self.state.written += 1
            if indexed:
                self.state.indexed += 1
            if failed:
                self.state.failed += 1
            if self._progress is not None and self._task_id is not None:
                self._progress.update(
                    self._task_id,
                    advance=1,
                    written=self.state.written,
                    indexed=self.state.indexed,
                    failed=self.state.failed,
                    current_id=self.state.current_id or "",
                )

    def close(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress.__exit__(None, None, None)
            self._progress = None
        self._task_id = None

    def summary(self) -> dict[str, int]:
        if not self.state:
            return {"written": 0, "indexed": 0, "failed": 0, "done": 0}
        return {
            "written": self.state.written,
            "indexed": self.state.indexed,
            "failed": self.state.failed,
            "done": self.state.done,
        }


__all__ = ["ProgressReporter", "ProgressState", "RateColumn"]
