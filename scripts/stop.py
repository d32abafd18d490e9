#!/usr/bin/env python3
"""
Stop hook - logs the latest exchange, then rotates the log for upload.
Called by the Stop hook (configured in hooks/hooks.json).
"""

import sys
from pathlib import Path

# Add scripts to path for imports
_script_dir = str(Path(__file__).parent)
if _script_dir not in sys.path:
    sys.path.insert(0, _script_dir)

from skillmeter.hooks import run_hook


if __name__ == "__main__":
    sys.exit(run_hook("Stop"))
