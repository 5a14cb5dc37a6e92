"""Console rendering and progress helpers for the tree-up CLI."""
from __future__ import annotations

from typing import Any, Dict, Optional
import time

from rich.console import Console, Group
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn
from rich.table import Table

from .models import UploadTask
from .progress import ProgressSnapshot, format_bytes

console = Console()

LABEL_WIDTH = 60


def _echo(message: str) -> None:
    console.print(message)


def _label(task: UploadTask) -> str:
    name = task.filename
    if len(name) > LABEL_WIDTH:
        name = "..." + name[-(LABEL_WIDTH - 3):]
    return name


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]tree-up[/bold green]",
        subtitle="[dim]tree uploader[/dim]",
        border_style="blue",
    )
    console.print(panel)


class BatchUploadProgressDisplay:
    """Event-based console display for one batch."""

    def __init__(self):
        self._active: Dict[int, TaskID] = {}
        self._stats: Dict[str, int] = {
            "expected": 0,
            "uploaded": 0,
            "failed": 0,
            "cancelled": 0,
        }
        self._started = 0
        self._overall_task_id: Optional[TaskID] = None
        self._live: Optional[Live] = None
        self._meta_progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=28),
            TextColumn("{task.completed}/{task.total}"),
            TextColumn("[dim]{task.fields[detail]}", justify="left"),
            expand=False,
            console=console,
        )
        self._file_progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold green]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[dim]{task.fields[detail]}", justify="left"),
            expand=False,
            console=console,
        )

    @property
    def stats(self) -> Dict[str, int]:
        return dict(self._stats)

    def _emit_timeline(self, status: str, name: str, size_bytes: Optional[int] = None, error: Optional[str] = None) -> None:
        stamp = time.strftime("%H:%M:%S")
        size_label = f" {format_bytes(size_bytes)}" if size_bytes else ""
        error_label = f" cause={error}" if error else ""
        palette = {"DONE": "green", "FAIL": "red", "STOP": "yellow", "SKIP": "yellow"}
        color = palette.get(status, "white")
        _echo(f"[dim]{stamp}[/dim] [{color}]{status:<4}[/{color}] {escape(name + size_label + error_label)}")

    def _start_live(self) -> None:
        if self._live is not None:
            return
        self._live = Live(
            Group(self._meta_progress, self._file_progress),
            console=console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()
        self._overall_task_id = self._meta_progress.add_task(
            "overall",
            label="Overall",
            total=max(self._stats["expected"], 1),
            completed=0,
            detail="uploaded=0 failed=0",
        )

    def _stop_live(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None

    def _update_overall(self) -> None:
        if self._overall_task_id is None:
            return
        done = self._stats["uploaded"] + self._stats["failed"] + self._stats["cancelled"]
        total = max(self._stats["expected"], self._started, done, 1)
        self._meta_progress.update(
            self._overall_task_id,
            completed=min(done, total),
            total=total,
            detail=f"uploaded={self._stats['uploaded']} failed={self._stats['failed']}",
        )

    def _drop_task(self, task: UploadTask) -> None:
        task_id = self._active.pop(id(task), None)
        if task_id is not None:
            self._file_progress.remove_task(task_id)

    def on_counted(self, expected: int) -> None:
        self._stats["expected"] = expected
        if expected == 0:
            _echo("[yellow]Nothing to upload.[/yellow]")
            return
        self._start_live()
        self._update_overall()

    def on_task_start(self, task: UploadTask) -> None:
        self._start_live()
        self._started += 1
        self._active[id(task)] = self._file_progress.add_task(
            "upload",
            label=_label(task),
            total=max(task.size_bytes, 1),
            detail="pending",
        )
        self._update_overall()

    def on_task_progress(self, task: UploadTask, snapshot: ProgressSnapshot) -> None:
        task_id = self._active.get(id(task))
        if task_id is None:
            return
        self._file_progress.update(
            task_id,
            completed=snapshot.bytes_loaded,
            total=snapshot.bytes_total,
            detail=snapshot.describe(),
        )

    def on_task_complete(self, task: UploadTask) -> None:
        self._drop_task(task)
        self._stats["uploaded"] += 1
        self._update_overall()
        self._emit_timeline("DONE", task.filename, size_bytes=task.size_bytes)

    def on_task_fail(self, task: UploadTask) -> None:
        self._drop_task(task)
        self._stats["failed"] += 1
        self._update_overall()
        self._emit_timeline("FAIL", task.filename, size_bytes=task.size_bytes, error=str(task.error))

    def on_task_cancel(self, task: UploadTask) -> None:
        self._drop_task(task)
        self._stats["cancelled"] += 1
        self._update_overall()
        self._emit_timeline("STOP", task.filename)

    def on_enumeration_error(self, failure: Exception) -> None:
        self._emit_timeline("SKIP", getattr(failure, "path", "") or "entry", error=str(failure))

    def on_error(self, error: Exception) -> None:
        self._stop_live()
        _echo(f"[red]Error:[/red] {error}")

    def on_finish(self, result: Any) -> None:
        self._stop_live()
        _echo(
            f"[bold]Finished[/bold] uploaded={result.uploaded_files} "
            f"total={result.total_files} failed={result.failed_files} "
            f"cancelled={result.cancelled_files}"
        )
