"""
Progress Indicators

Foreground progress display used while a user-initiated request is
awaited. ``update`` returns True once the user asked to cancel.
"""

from __future__ import annotations

from typing import Protocol

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn


class ProgressIndicator(Protocol):
    def update(self, title: str, info: str, progress: float) -> bool: ...

    def clear(self) -> None: ...


class NullProgressIndicator:
    """Shows nothing and never cancels."""

    def update(self, title: str, info: str, progress: float) -> bool:
        return False

    def clear(self) -> None:
        return None


class RichProgressIndicator:
    """Transient progress bar on the console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()
        self._progress: Progress | None = None
        self._task: TaskID | None = None

    def update(self, title: str, info: str, progress: float) -> bool:
        if self._progress is None:
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[bold cyan]{task.description}"),
                BarColumn(),
                TextColumn("[dim]{task.fields[info]}"),
                console=self.console,
                transient=True,
            )
            self._progress.start()
            self._task = self._progress.add_task(title, total=1.0, info=info)
        self._progress.update(self._task, completed=progress, info=info)
        return False

    def clear(self) -> None:
        if self._progress is not None:
            self._progress.stop()
        self._progress = None
        self._task = None
