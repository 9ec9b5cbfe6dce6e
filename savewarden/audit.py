"""
Operation logging with structured JSON-Lines.
"""
import json
import sys
import threading
from datetime import datetime, timezone
from typing import Any, Dict

from .config import get_config_dir

AUDIT_FILE = "audit.jsonl"

_write_lock = threading.Lock()


class AuditLogger:
    """Writes structured JSONL events for backups, purges and restores."""
    def __init__(self):
        self.log_file = get_config_dir() / AUDIT_FILE

    def log(self, event_type: str, **kwargs: Any) -> None:
        """Log a structured operation event. Never raises."""
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event_type,
            "details": kwargs
        }
        line = json.dumps(entry, default=str) + "\n"

        # The scheduler thread and the foreground thread share the file.
        with _write_lock:
            try:
                with self.log_file.open("a", encoding="utf-8") as f:
                    f.write(line)
            except Exception as e:
                try:
                    sys.stderr.write(f"[SaveWarden Audit Error] Failed to write log: {e}\n")
                    fallback = get_config_dir() / "audit_fallback.log"
                    with fallback.open("a", encoding="utf-8") as f:
                        f.write(line)
                except Exception:
                    pass

def get_audit_log(last_n: int = 50) -> list[Dict[str, Any]]:
    """Retrieve the last N events from the audit log."""
    log_file = get_config_dir() / AUDIT_FILE
    if not log_file.exists():
        return []

    lines = []
    try:
        with log_file.open("r", encoding="utf-8") as f:
            lines = f.readlines()

        parsed = []
        for line in lines[-last_n:]:
            if line.strip():
                parsed.append(json.loads(line))
        return parsed
    except Exception:
        return []
