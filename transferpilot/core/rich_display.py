# transferpilot/core/rich_display.py
from rich.console import Console
from rich.progress import (
    Progress,
    TextColumn,
    BarColumn,
    TimeRemainingColumn,
    MofNCompleteColumn,
    DownloadColumn,
    TransferSpeedColumn,
    SpinnerColumn
)
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from threading import Lock
import logging
from typing import Optional

from transferpilot.core.interfaces.display import DisplayInterface
from transferpilot.core.interfaces.types import (
    Preflight, TransferPhase, TransferProgress, TransferSummary,
)
from transferpilot.core.exceptions import DisplayError
from transferpilot.core.utils import format_duration, format_size
from transferpilot import __version__, __project_name__

logger = logging.getLogger(__name__)

PHASE_STYLES = {
    TransferPhase.SCANNING: "yellow",
    TransferPhase.COPYING: "blue",
    TransferPhase.VERIFYING: "magenta",
    TransferPhase.DONE: "green",
    TransferPhase.CANCELLED: "yellow",
    TransferPhase.ERROR: "red",
}


class FileNameColumn(TextColumn):
    """Custom column for displaying filename with consistent width"""
    def __init__(self, width: int = 40):
        super().__init__(f"{{task.description:.{width}s}}")


class RichDisplay(DisplayInterface):
    """Terminal display for preflight reports and transfer progress"""

    def __init__(self, console: Optional[Console] = None):
        self.display_lock = Lock()
        self.console = console or Console()
        self.live: Optional[Live] = None
        self.progress: Optional[Progress] = None
        self.files_task_id = None
        self.bytes_task_id = None
        self._last_progress: Optional[TransferProgress] = None
        self.show_header()

    def show_header(self):
        """Display the application header."""
        header = Panel(
            Text(f"{__project_name__} | v{__version__}", style="bold blue", justify="center"),
            border_style="blue",
            padding=(0, 0)
        )
        self.console.print(header)

    def _create_progress_instance(self) -> Progress:
        return Progress(
            SpinnerColumn(),
            FileNameColumn(width=40),
            BarColumn(bar_width=None),
            MofNCompleteColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TextColumn("ETA:"),
            TimeRemainingColumn(),
            expand=True,
            console=self.console
        )

    def _start_live(self, progress: TransferProgress) -> None:
        self.progress = self._create_progress_instance()
        self.files_task_id = self.progress.add_task(
            "Files", total=max(progress.total_files, 1), completed=0
        )
        self.bytes_task_id = self.progress.add_task(
            "Total Progress", total=max(progress.bytes_total, 1), completed=0
        )
        self.live = Live(self.progress, console=self.console, refresh_per_second=10, transient=False)
        self.live.start()
        logger.debug("Progress display started")

    def show_progress(self, progress: TransferProgress) -> None:
        """Render a progress snapshot; usable directly as a progress sink."""
        with self.display_lock:
            try:
                self._last_progress = progress
                if progress.phase == TransferPhase.SCANNING:
                    return
                if progress.phase.is_terminal:
                    self._cleanup_progress()
                    return
                if self.live is None:
                    self._start_live(progress)

                label = "Verifying" if progress.phase == TransferPhase.VERIFYING else "Copying"
                name = progress.current_path.rsplit("/", 1)[-1] if progress.current_path else ""
                self.progress.update(
                    self.files_task_id,
                    completed=progress.current_file,
                    total=max(progress.total_files, 1),
                    description=f"{label}: {name}",
                )
                self.progress.update(
                    self.bytes_task_id,
                    completed=progress.bytes_done,
                    total=max(progress.bytes_total, 1),
                    description=f"Total Progress ({progress.percent:.1f}%)",
                )
            except Exception as e:
                self._handle_exception("Error updating progress display", e, "progress_update")

    def show_preflight(self, preflight: Preflight) -> None:
        """Print the composition table and whether the selection fits."""
        with self.display_lock:
            table = Table(title="Preflight", show_lines=False)
            table.add_column("Category", style="cyan")
            table.add_column("Files", justify="right")
            for category, count in preflight.by_category.items():
                table.add_row(category, str(count))
            self.console.print(table)

            if preflight.by_extension:
                extensions = ", ".join(f"{ext} ({count})" for ext, count in preflight.by_extension.items())
                self.console.print(f"Extensions: {extensions}", markup=False)

            self.console.print(
                f"{preflight.total_files} files in {preflight.total_folders} folders, "
                f"{format_size(preflight.total_bytes)} to transfer, "
                f"{format_size(preflight.dest_avail_bytes)} available",
                markup=False,
            )
            for path in preflight.unreadable_paths:
                self.console.print(Text(f"Unreadable: {path}", style="yellow"))
            if preflight.will_fit:
                self.console.print(Text("Selection fits on the destination", style="green bold"))
            else:
                self.console.print(Text(
                    f"Not enough space: {format_size(preflight.required_bytes)} required",
                    style="red bold",
                ))

    def show_summary(self, summary: TransferSummary) -> None:
        """Print the outcome of a finished session."""
        with self.display_lock:
            self._cleanup_progress()
            style = PHASE_STYLES.get(summary.phase, "white")
            lines = [
                f"Copied: {summary.copied_files}",
                f"Moved: {summary.moved_files}",
                f"Skipped: {summary.skipped_files}",
                f"Failed: {summary.error_files}",
                f"Files: {summary.processed_files}/{summary.total_files} ({format_size(summary.total_bytes)})",
                f"Duration: {format_duration(summary.duration_ms / 1000)}",
            ]
            if summary.output_session_dir:
                lines.append(f"Output: {summary.output_session_dir}")
            self.console.print(Panel(
                Text("\n".join(lines)),
                title=f"Transfer {summary.phase.value}",
                border_style=style,
            ))

    def show_status(self, message: str) -> None:
        """Display a status message."""
        try:
            if self.live is not None:
                self.live.console.print(message, markup=False)
            else:
                self.console.print(message, markup=False)
            logger.debug(f"Status: {message}")
        except Exception as e:
            self._handle_exception("Error displaying status message", e, "status_update")

    def show_error(self, message: str) -> None:
        """Display an error message."""
        with self.display_lock:
            try:
                self._cleanup_progress()
                self.console.print(Text(f"ERROR: {message}", style="bold red"))
                logger.error(f"Display error: {message}")
            except Exception as e:
                self._handle_exception("Error displaying error message", e, "error_display")

    def clear(self) -> None:
        """Stop any live progress and clear the console."""
        with self.display_lock:
            try:
                self._cleanup_progress()
                self.console.clear()
                self.show_header()
            except Exception as e:
                self._handle_exception("Error clearing display", e, "clear")

    def _cleanup_progress(self) -> None:
        if self.live is not None:
            if self.live.is_started:
                self.live.refresh()
                self.live.stop()
            self.live = None
            logger.debug("Progress display stopped")
        self.progress = None
        self.files_task_id = None
        self.bytes_task_id = None

    def _handle_exception(self, message, exception, error_type):
        """Centralized error handling for display operations."""
        error_msg = f"{message}: {str(exception)}"
        logger.error(error_msg)
        raise DisplayError(
            error_msg,
            display_type="rich",
            error_type=error_type
        ) from exception
