#!/usr/bin/env python3
"""
/sounds skill - Toggle and inspect ccbell sound notifications.

Usage:
    python sounds.py on
    python sounds.py off
    python sounds.py status
    python sounds.py profile <name>
    python sounds.py clear-cooldown
    python sounds.py packs list
    python sounds.py packs use <id>
    python sounds.py packs uninstall <id>
"""

import sys
from pathlib import Path

_ROOT = Path(__file__).resolve().parents[2]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from ccbell.manage import main

if __name__ == "__main__":
    sys.exit(main())
