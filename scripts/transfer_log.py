#!/usr/bin/env python3
"""
Upload rotated event logs to the collector.
Started detached by the Stop and SessionEnd hooks; can also be run by hand:

    python3 scripts/transfer_log.py --pending
"""

import sys
from pathlib import Path

# Add scripts to path for imports
_script_dir = str(Path(__file__).parent)
if _script_dir not in sys.path:
    sys.path.insert(0, _script_dir)

from skillmeter.uploader import main


if __name__ == "__main__":
    sys.exit(main())
