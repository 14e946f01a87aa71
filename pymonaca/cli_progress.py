"""CLI progress display for transfer batches and builds.

This module provides Rich-based progress displays that consume the
TransferProgress events of the sync engine and the status updates of
the build orchestrator.
"""

from typing import Optional

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .build import BuildJob
from .sync.transfer import TransferProgress


class TransferProgressDisplay:
    """Rich-based progress bar for one transfer batch.

    Shows the number of settled files out of the batch size and the path
    of the file that settled last.
    """

    def __init__(self, description: str = "Syncing files") -> None:
        """Initialize the progress display."""
        self.description = description
        self.failed: list[str] = []
        self.completed = 0
        self.total = 0
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def handle_event(self, event: TransferProgress) -> None:
        """Progress callback for the sync engine."""
        self.completed = event.completed
        self.total = event.total
        if not event.ok:
            self.failed.append(event.path)
        if self._progress is None or self._task is None:
            return
        self._progress.update(
            self._task,
            total=event.total,
            completed=event.completed,
            path=event.path if event.ok else f"[red]{event.path} (failed)[/red]",
        )

    def __enter__(self) -> "TransferProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            TextColumn("[cyan]{task.fields[path]}"),
            refresh_per_second=4,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task(self.description, total=None, path="")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None


class BuildProgressDisplay:
    """Spinner showing the latest build status description."""

    def __init__(self) -> None:
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def handle_status(self, job: BuildJob) -> None:
        """Status callback for the build orchestrator."""
        if self._progress is None or self._task is None:
            return
        self._progress.update(
            self._task,
            description=f"[{job.attempt}] {job.description or 'Building...'}",
        )

    def __enter__(self) -> "BuildProgressDisplay":
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            transient=True,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task("Submitting build...", total=None)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None
