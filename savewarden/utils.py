"""
Core utilities for SaveWarden.
"""
import shutil
import signal
import sys
from pathlib import Path
from typing import Any


def is_windows() -> bool:
    """Return True if running on Windows."""
    return sys.platform == "win32"

def human_size(nbytes: int) -> str:
    """Convert bytes to a human-readable string (e.g. 1.2 MiB)."""
    if nbytes == 0:
        return "0 B"
    suffixes = ["B", "KiB", "MiB", "GiB", "TiB", "PiB"]
    i = 0
    while nbytes >= 1024 and i < len(suffixes) - 1:
        nbytes /= 1024.0  # type: ignore
        i += 1
    if i == 0:
        return f"{int(nbytes)} {suffixes[i]}"
    return f"{nbytes:.1f} {suffixes[i]}"

def free_space(path: Path) -> int:
    """Free bytes on the volume holding path (or its nearest existing parent)."""
    probe = path
    while not probe.exists() and probe.parent != probe:
        probe = probe.parent
    return shutil.disk_usage(probe).free

def setup_signal_handlers() -> None:
    """
    Turn SIGINT/SIGTERM (SIGBREAK on Windows) into KeyboardInterrupt on the main thread.

    The handler never joins the scheduler; callers stop it in a finally block
    once any profile lock held by the main thread is released.
    """
    def handler(signum: Any, frame: Any) -> None:
        raise KeyboardInterrupt

    signal.signal(signal.SIGINT, handler)
    if is_windows():
        signal.signal(signal.SIGBREAK, handler)  # type: ignore[attr-defined]
    else:
        signal.signal(signal.SIGTERM, handler)
