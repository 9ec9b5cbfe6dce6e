"""
Rich Terminal UI components.
Provides status lines, tables and panels with an ASCII fallback.
"""
import sys
from contextlib import contextmanager
from typing import Dict, Generator, List

import typer
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.text import Text

from .models import ArchiveIdentity, BackupReport

# Detect ASCII fallback
try:
    "📦".encode(sys.stdout.encoding if sys.stdout and sys.stdout.encoding else "utf-8")
    HAS_UNICODE = True
except Exception:
    HAS_UNICODE = False

ICONS: Dict[str, str] = {
    "backup": "📦",
    "restore": "⏪",
    "purge": "🧹",
    "mirror": "☁️",
    "success": "✅",
    "error": "❌",
    "warn": "⚠️",
    "info": "ℹ️",
    "daemon": "👻",
    "doctor": "🩺",
    "monitor": "👀",
    "delete": "🗑️",
    "profile": "🎮",
}

ASCII_ICONS: Dict[str, str] = {
    "backup": "[BK]",
    "restore": "[RST]",
    "purge": "[PRG]",
    "mirror": "[MIR]",
    "success": "[OK]",
    "error": "[ERR]",
    "warn": "[WARN]",
    "info": "[INF]",
    "daemon": "[DMN]",
    "doctor": "[DOC]",
    "monitor": "[MON]",
    "delete": "[DEL]",
    "profile": "[PRF]",
}

def icon(name: str) -> str:
    return ICONS.get(name, "") if HAS_UNICODE else ASCII_ICONS.get(name, "")

console = Console(width=120)
err_console = Console(stderr=True, width=120)

SEPARATOR = "-" * 50

def render_banner() -> None:
    """Render the SaveWarden title panel."""
    banner_text = Text("SAVEWARDEN", style="bold color(39)")
    banner_text.append("\nGame save backup & retention manager", style="dim cyan")
    console.print(Panel(banner_text, border_style="cyan", expand=False))

def render_status(action: str, message: str, style: str = "white") -> None:
    """Print a single line status update."""
    i = icon(action)
    console.print(f"{i} [{style}]{message}[/]", highlight=False)

def render_error(message: str) -> None:
    """Print a styled error panel."""
    i = icon("error")
    err_console.print()
    err_console.print(Panel(Text(message, style="red"), border_style="red", expand=False, title=f"{i} ERROR"))

def render_warning(message: str) -> None:
    """Print a styled warning panel."""
    i = icon("warn")
    console.print()
    console.print(Panel(Text(message, style="yellow"), border_style="yellow", expand=False, title=f"{i} WARNING"))

def confirm(prompt_text: str) -> bool:
    """Interactive confirmation prompt."""
    i = icon("warn")
    return typer.confirm(f"{i} {prompt_text}", default=False)

def render_table(title: str, headers: list[str], rows: list[list[str]]) -> None:
    """Render a structured Rich Table with auto-wrap fixes."""
    console.print()
    table = Table(
        title=title,
        border_style="cyan",
        header_style="bold magenta",
        show_lines=True,
        box=box.ROUNDED if HAS_UNICODE else box.ASCII
    )

    if headers:
        table.add_column(headers[0], justify="center", no_wrap=True)
        for h in headers[1:]:
            table.add_column(h, justify="left", overflow="fold")

    for r in rows:
        table.add_row(*r)

    console.print(table)
    console.print()

def render_report(report: BackupReport) -> None:
    """Print the outcome line of a backup run followed by its purge details."""
    if not report.local_success:
        style, action = "red", "error"
    elif report.mirror_attempted and not report.mirror_success:
        style, action = "yellow", "warn"
    else:
        style, action = "green", "backup"
    render_status(action, escape(report.summary()), style)
    for line in report.purge_messages:
        console.print(Text(line, style="dim"))
    console.print(SEPARATOR, style="dim")

def render_archives(title: str, archives: List[ArchiveIdentity]) -> None:
    """Numbered newest-first archive listing."""
    rows = [
        [str(n), escape(a.name), a.archive_class.label, a.created_at.strftime("%Y-%m-%d %H:%M:%S")]
        for n, a in enumerate(archives, start=1)
    ]
    render_table(title, ["#", "Backup", "Type", "Created"], rows)

@contextmanager
def render_progress(title: str = "Operation in progress...") -> Generator[Progress, None, None]:
    """Provide a unified spinner for blocking copies."""
    progress = Progress(
        SpinnerColumn(spinner_name="dots2", style="cyan"),
        TextColumn("[bold blue]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )
    with progress:
        progress.add_task(title, total=None)
        yield progress
