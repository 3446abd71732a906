"""Rich terminal output for imagehound."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.live import Live
from rich.table import Table

from imagehound.models import FetchResult, HuntResult

console = Console()
err_console = Console(stderr=True)


# ── Progress tracking ─────────────────────────────────────────────────


class ProgressTracker:
    """Live per-variant progress display for a hunt."""

    def __init__(self, variants: list[str], total_ips: int):
        self.variants = variants
        self.total_ips = total_ips
        self.progress: dict[str, int] = {v: 0 for v in variants}
        self.status: dict[str, str] = {v: "waiting" for v in variants}
        self.live: Optional[Live] = None

    @staticmethod
    def _label(url: str) -> str:
        # quality segment is the interesting part of a variant URL
        parts = url.split("/")
        return parts[-2] if len(parts) >= 2 and parts[-2] else url

    def _build_table(self) -> Table:
        table = Table(show_header=True, expand=False, border_style="dim")
        table.add_column("Variant", style="bold")
        table.add_column("Edges", min_width=20)
        table.add_column("Status")

        for url in self.variants:
            completed = self.progress[url]
            status = self.status[url]
            if status == "waiting":
                continue
            bar_width = 15
            filled = int((completed / self.total_ips) * bar_width) if self.total_ips > 0 else 0
            bar = "[green]" + "█" * filled + "[/green]" + "[dim]░[/dim]" * (bar_width - filled)
            progress_text = f"{bar} {completed}/{self.total_ips}"

            style = "green" if status == "found" else ("red" if status == "failed" else "yellow")
            status_text = f"[{style}]{status}[/{style}]"

            table.add_row(self._label(url), progress_text, status_text)

        return table

    def start(self) -> None:
        self.live = Live(self._build_table(), console=console, refresh_per_second=4)
        self.live.start()

    def update(self, url: str, result: FetchResult, accepted: bool) -> None:
        self.progress[url] += 1
        if accepted:
            self.status[url] = "found"
        elif self.progress[url] >= self.total_ips:
            self.status[url] = "failed"
        else:
            self.status[url] = "racing"
        if self.live:
            self.live.update(self._build_table())

    def finish(self) -> None:
        if self.live:
            self.live.stop()


# ── Messages ───────────────────────────────────────────────────────────


def render_attempt_failure(result: FetchResult) -> None:
    """One line per failed edge (verbose mode)."""
    if result.is_error:
        reason = str(result.error)
    else:
        reason = f"HTTP {result.status_code}"
    err_console.print(f"[red]\\[FAILED][/red] {result.ip} [dim]|[/dim] {reason}")


def render_success(result: HuntResult, saved_to: Optional[Path] = None) -> None:
    """Report the winning edge and where the image went."""
    r = result.result
    console.print(
        f"[bold green]\\[SUCCESS][/bold green] {result.url} [dim]|[/dim] "
        f"{r.ip} [dim]|[/dim] {len(r.body)} bytes"
    )
    if saved_to is not None:
        console.print(f"Saved {result.url} to [bold]{saved_to}[/bold]")


def render_info(message: str) -> None:
    console.print(message)


def render_error(message: str) -> None:
    """Display an error message."""
    err_console.print(f"[bold red]Error:[/bold red] {message}")


def render_warning(message: str) -> None:
    """Display a warning message."""
    err_console.print(f"[yellow]Warning:[/yellow] {message}")
