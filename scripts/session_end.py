#!/usr/bin/env python3
"""
SessionEnd hook - sends the session record inline, without writing the log.
Any events left in the log by earlier hooks are then rotated and uploaded
separately.
Called by the SessionEnd hook (configured in hooks/hooks.json).
"""

import sys
from pathlib import Path

# Add scripts to path for imports
_script_dir = str(Path(__file__).parent)
if _script_dir not in sys.path:
    sys.path.insert(0, _script_dir)

from skillmeter.hooks import run_hook


if __name__ == "__main__":
    sys.exit(run_hook("SessionEnd"))
