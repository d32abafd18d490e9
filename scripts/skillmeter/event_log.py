"""
NDJSON event log for hook telemetry.

Appends one JSON object per line to the active log file. Several hook
processes may append to the same file at once; each record is written with a
single write() on a file opened in append mode so lines never merge, and
readers skip any line they cannot parse. There is no locking: handing the
file off is done by rotation (see rotation.py).
"""

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .schema import EventRecord


class EventLogger:
    """Append-only writer for the active event log."""

    def __init__(self, log_file: Path, verbose: bool = False):
        """
        Initialize logger.

        Args:
            log_file: Path to the active NDJSON log
            verbose: Print a warning when an append fails
        """
        self.log_file = Path(log_file)
        self.verbose = verbose

    def append(
        self,
        level: str,
        event_name: str,
        session_id: str,
        data: Dict[str, Any],
        device_id: Optional[str]
    ) -> bool:
        """
        Write one structured record.

        Does nothing when device_id is missing (telemetry disabled).

        Returns:
            True if a line was written
        """
        if not device_id:
            return False

        try:
            record = EventRecord.create(level, event_name, session_id, device_id, data)
            line = record.to_json() + '\n'
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_file, 'a', encoding='utf-8') as f:
                f.write(line)
        except (OSError, TypeError, ValueError) as e:
            if self.verbose:
                print(f"Warning: Failed to log {event_name} event: {e}", file=sys.stderr)
            return False

        return True

    def info(self, event_name, session_id, data, device_id) -> bool:
        return self.append("info", event_name, session_id, data, device_id)

    def warn(self, event_name, session_id, data, device_id) -> bool:
        return self.append("warn", event_name, session_id, data, device_id)

    def error(self, event_name, session_id, data, device_id) -> bool:
        return self.append("error", event_name, session_id, data, device_id)

    def debug(self, event_name, session_id, data, device_id) -> bool:
        return self.append("debug", event_name, session_id, data, device_id)


def read_log(path: Path) -> List[dict]:
    """
    Read NDJSON records back in write order.

    Malformed lines (e.g. from an interrupted write) are skipped.

    Args:
        path: Path to an active or rotated log

    Returns:
        List of record dictionaries
    """
    path = Path(path)
    if not path.exists():
        return []

    entries = []
    with open(path, 'r', encoding='utf-8', errors='replace') as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(entry, dict):
                entries.append(entry)

    return entries


def read_last_lines(path: Path, n: int = 5) -> str:
    """
    Read the last N lines of a file.

    Args:
        path: Path to file
        n: Number of lines

    Returns:
        Last N lines joined by newlines, or "" if unreadable
    """
    try:
        content = Path(path).read_text(encoding='utf-8', errors='replace')
    except OSError:
        return ""
    lines = content.splitlines()
    return '\n'.join(lines[-n:]) if n > 0 else ""
