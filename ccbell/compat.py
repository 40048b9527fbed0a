"""
Platform and environment helpers for ccbell.

Public API:
    CcbellPaths - per-user file locations, computed once at startup
    find_plugin_root(home) - locate the installed plugin in the plugins cache
    drain_stdin() - consume hook input on a daemon thread

Usage:
    from ccbell.compat import CcbellPaths, drain_stdin
    paths = CcbellPaths.from_env()
"""

import os
import re
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

PLUGIN_DIR_NAME = "ccbell"
CONFIG_FILE_NAME = "ccbell.config.json"
STATE_FILE_NAME = "ccbell.state"
LOG_FILE_NAME = "ccbell.log"

_VERSION_DIR = re.compile(r"^v?\d")


@dataclass(frozen=True)
class CcbellPaths:
    """File locations derived from HOME and CLAUDE_PLUGIN_ROOT.

    Any field may be None when the environment does not provide enough to
    compute it; each component treats a missing path as "feature off".
    """
    home: Optional[Path]
    plugin_root: Optional[Path]

    @property
    def claude_dir(self) -> Optional[Path]:
        return self.home / ".claude" if self.home else None

    @property
    def config_file(self) -> Optional[Path]:
        return self.claude_dir / CONFIG_FILE_NAME if self.home else None

    @property
    def state_file(self) -> Optional[Path]:
        return self.claude_dir / STATE_FILE_NAME if self.home else None

    @property
    def log_file(self) -> Optional[Path]:
        return self.claude_dir / LOG_FILE_NAME if self.home else None

    @property
    def packs_dir(self) -> Optional[Path]:
        return self.claude_dir / PLUGIN_DIR_NAME / "packs" if self.home else None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CcbellPaths":
        """Build paths from the process environment (or an explicit mapping)."""
        env = os.environ if environ is None else environ
        home_raw = env.get("HOME") or env.get("USERPROFILE") or ""
        home = Path(home_raw) if home_raw else None

        plugin_raw = env.get("CLAUDE_PLUGIN_ROOT", "")
        if plugin_raw:
            plugin_root: Optional[Path] = Path(plugin_raw)
        else:
            plugin_root = find_plugin_root(home) if home else None

        return cls(home=home, plugin_root=plugin_root)


def find_plugin_root(home: Path) -> Optional[Path]:
    """Find the newest installed ccbell plugin under ~/.claude/plugins/cache.

    Any marketplace layout is accepted: the first directory named ``ccbell``
    wins, then its highest version-looking subdirectory (``1.2.0``, ``v1.2.0``).
    Returns the ccbell directory itself if it has no version subdirectories.
    """
    cache_dir = home / ".claude" / "plugins" / "cache"
    if not cache_dir.is_dir():
        return None

    plugin_dir = None
    for dirpath, dirnames, _ in os.walk(cache_dir):
        dirnames.sort()
        if PLUGIN_DIR_NAME in dirnames:
            plugin_dir = Path(dirpath) / PLUGIN_DIR_NAME
            break

    if plugin_dir is None:
        return None

    try:
        versions = [
            entry.name for entry in plugin_dir.iterdir()
            if entry.is_dir() and _VERSION_DIR.match(entry.name)
        ]
    except OSError:
        return plugin_dir

    if not versions:
        return plugin_dir
    # Lexical order, so 1.10.0 sorts below 1.9.0
    return plugin_dir / max(versions)


def drain_stdin(stream=None) -> threading.Thread:
    """Consume and discard hook input without blocking the caller.

    Claude Code pipes event JSON to hooks; leaving it unread can stall the
    writer. The read runs on a daemon thread so a stdin that never closes
    does not keep the process alive.
    """
    source = stream if stream is not None else sys.stdin

    def reader():
        try:
            buffer = getattr(source, "buffer", source)
            while buffer.read(65536):
                pass
        except (OSError, ValueError, AttributeError):
            pass

    t = threading.Thread(target=reader, name="ccbell-stdin-drain", daemon=True)
    t.start()
    return t
