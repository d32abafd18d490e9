"""
Hand the active event log off for delivery.

Rotation renames the active log to <log>.<nanosecond timestamp>. rename() is
atomic on the same filesystem, so exactly one of several racing processes
gets the file; the others see it already gone and do nothing. The next
append from any process creates a fresh file at the active path.
"""

import os
import time
from pathlib import Path
from typing import List, Optional


def rotated_path(active_path: Path, stamp: Optional[int] = None) -> Path:
    """Path the active log is renamed to."""
    if stamp is None:
        stamp = time.time_ns()
    return active_path.with_name(f"{active_path.name}.{stamp}")


def rotate_log(active_path: Path) -> Optional[Path]:
    """
    Detach the active log file.

    Args:
        active_path: Logical path of the active log

    Returns:
        Path of the detached file, or None if there was nothing to rotate
        or another process rotated it first
    """
    active_path = Path(active_path)
    if not active_path.exists():
        return None

    detached = rotated_path(active_path)
    try:
        os.rename(active_path, detached)
    except OSError:
        # Lost the race to another rotating process
        return None

    return detached


def find_detached_logs(active_path: Path) -> List[Path]:
    """
    List rotated logs still waiting next to the active log.

    Returns:
        Detached files, oldest first
    """
    active_path = Path(active_path)
    if not active_path.parent.is_dir():
        return []

    prefix = active_path.name + "."
    detached = []
    for candidate in active_path.parent.iterdir():
        suffix = candidate.name[len(prefix):]
        if candidate.name.startswith(prefix) and suffix.isdigit() and candidate.is_file():
            detached.append((int(suffix), candidate))

    return [path for _, path in sorted(detached)]
