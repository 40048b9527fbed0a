#!/usr/bin/env python3
"""
Audio notification hook handler for Claude Code events.

Usage:
    python sounds.py stop
    python sounds.py permission_prompt
    python sounds.py idle_prompt
    python sounds.py subagent

Settings live in ~/.claude/ccbell.config.json (created on first run).
Bundled sounds are read from $CLAUDE_PLUGIN_ROOT/sounds.
"""

import sys
from pathlib import Path

_PARENT = Path(__file__).resolve().parent.parent
if str(_PARENT) not in sys.path:
    sys.path.insert(0, str(_PARENT))

from ccbell.cli import main

if __name__ == "__main__":
    sys.exit(main())
