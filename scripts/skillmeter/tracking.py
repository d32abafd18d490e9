"""
Per-session transcript position tracking.

At session start the transcript's current line count and last entry id are
written to <tracking_dir>/<session_id>.json so a later consumer can tell
which part of the transcript belongs to the new session. Files only hold
position metadata and are readable by the owning user only.
"""

import json
import os
import re
import sys
from pathlib import Path
from typing import Optional

from .schema import SessionTrackingRecord

_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9._-]')


def tracking_file(tracking_dir: Path, session_id: str) -> Path:
    """Path of the tracking file for a session id."""
    safe_id = _UNSAFE_CHARS.sub('_', session_id).lstrip('.') or 'unknown'
    return Path(tracking_dir) / f"{safe_id}.json"


def write_tracking_record(
    tracking_dir: Path,
    session_id: str,
    record: SessionTrackingRecord,
    verbose: bool = False
) -> bool:
    """
    Create or replace the tracking file for a session.

    Returns:
        True on success; failures are reported only when verbose
    """
    path = tracking_file(tracking_dir, session_id)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(record.to_dict(), f)
        os.chmod(path, 0o600)
    except OSError as e:
        if verbose:
            print(f"Warning: Failed to write tracking file {path}: {e}", file=sys.stderr)
        return False
    return True


def read_tracking_record(tracking_dir: Path, session_id: str) -> Optional[SessionTrackingRecord]:
    """Load a session's tracking record, or None if absent or unreadable."""
    path = tracking_file(tracking_dir, session_id)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError):
        return None

    if not isinstance(data, dict):
        return None
    try:
        return SessionTrackingRecord.from_dict(data)
    except (TypeError, ValueError):
        return None
