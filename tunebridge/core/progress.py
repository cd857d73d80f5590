"""
Progress bar for track resolution, built on Rich.

The CLI drives it through the Resolution Pipeline's on_resolved callback.
Core modules never import it, so library callers get no console output
beyond logging.

Usage:
    from tunebridge.core.progress import ResolutionProgressBar

    with ResolutionProgressBar(total=len(tracks)) as progress:
        resolutions = pipeline.resolve(
            tracks, target, on_resolved=lambda i, r: progress.update(r)
        )
"""

import threading
from typing import Optional

from rich import get_console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Column
from rich.theme import Theme

from tunebridge.core.models import Failed, Matched, Resolution


RESOLUTION_THEME = Theme({
    "bar.back": "grey23",
    "bar.complete": "rgb(165,66,129)",
    "bar.finished": "rgb(114,156,31)",
    "bar.pulse": "rgb(165,66,129)",
})


class ResolutionProgressBar:
    """
    Progress bar for the resolution phase of convert and sync.

    Displays:
        Resolving   ✓ 45  ? 3  ✗ 1   ━━━━━━━━━━━━━━━━━  49/104  0:00:12

    where ✓ counts matched tracks, ? tracks without a confident match and
    ✗ tracks that failed. The total may be unknown up front (convert lists
    the source playlist inside the orchestrator); the bar then pulses and
    shows "n/?".

    update() may be called from pipeline worker threads.
    """

    def __init__(
        self,
        total: Optional[int] = None,
        description: str = "Resolving",
        status_width: int = 24
    ):
        self.total = total
        self.description = description
        self.completed = 0
        self.matched = 0
        self.no_match = 0
        self.failed = 0
        self._lock = threading.Lock()

        self.console = get_console()
        self.progress = Progress(
            TextColumn("[white]{task.description}", table_column=Column(width=12, no_wrap=True)),
            TextColumn("{task.fields[status]}", table_column=Column(width=status_width, no_wrap=True)),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=self.console,
            refresh_per_second=10,
        )
        self.task_id: Optional[TaskID] = None

    def __enter__(self) -> "ResolutionProgressBar":
        self.console.push_theme(RESOLUTION_THEME)
        self.progress.start()
        self.task_id = self.progress.add_task(
            self.description, total=self.total, status=self._status()
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.progress.stop()
        self.console.pop_theme()
        self.task_id = None

    def _status(self) -> str:
        return (
            f"[green]✓ {self.matched}[/green]  "
            f"[yellow]? {self.no_match}[/yellow]  "
            f"[red]✗ {self.failed}[/red]"
        )

    def update(self, resolution: Resolution) -> None:
        """Count one finished resolution."""
        with self._lock:
            self.completed += 1
            if isinstance(resolution.outcome, Matched):
                self.matched += 1
            elif isinstance(resolution.outcome, Failed):
                self.failed += 1
            else:
                self.no_match += 1

            if self.task_id is not None:
                self.progress.update(self.task_id, completed=self.completed, status=self._status())
