"""Cooldown state: last-fire timestamps per event.

State document (~/.claude/ccbell.state):

    {"lastTrigger": {"stop": 1700000000, "subagent": 1700000123}}

Access within a process is serialized by a lock. Across processes the file
is only ever replaced atomically, so readers never see a partial document;
concurrent writers race benignly (last writer wins).
"""

import logging
import math
import os
import threading
import time
from pathlib import Path
from typing import Optional

from ccbell.errors import StateSaveError
from ccbell.transaction import TransactionError, atomic_write_json, locked_read_json

logger = logging.getLogger(__name__)

STATE_FILE_MODE = 0o600


class CooldownManager:
    """Decides whether an event is throttled and records non-throttled fires."""

    def __init__(self, state_path: Optional[Path]):
        self.state_path = Path(state_path) if state_path else None
        self._lock = threading.Lock()

    def check_cooldown(self, event: str, cooldown_seconds: int, now: Optional[float] = None) -> bool:
        """Return True if *event* fired less than *cooldown_seconds* ago.

        A False result also records *now* as the event's last fire. If that
        record cannot be written, StateSaveError is raised with
        ``in_cooldown=False`` so the caller can still play the sound.
        """
        if self.state_path is None or cooldown_seconds <= 0:
            return False

        with self._lock:
            last_trigger = self._load()

            current = int(now if now is not None else time.time())
            elapsed = current - last_trigger.get(event, 0)

            if elapsed < cooldown_seconds:
                return True

            last_trigger[event] = current
            try:
                atomic_write_json(
                    self.state_path,
                    {"lastTrigger": last_trigger},
                    mode=STATE_FILE_MODE,
                )
            except TransactionError as e:
                raise StateSaveError(f"failed to save state: {e}", in_cooldown=False) from e

            return False

    def last_trigger(self, event: str) -> Optional[int]:
        """Last recorded fire time for *event*, or None if it never fired."""
        if self.state_path is None:
            return None
        with self._lock:
            return self._load().get(event)

    def clear(self) -> None:
        """Delete the state file. A missing file is not an error."""
        if self.state_path is None:
            return
        with self._lock:
            try:
                os.remove(self.state_path)
            except FileNotFoundError:
                pass
            except OSError as e:
                raise StateSaveError(f"failed to clear state: {e}") from e

    def _load(self) -> dict[str, int]:
        """Read lastTrigger; anything unreadable or malformed is empty state."""
        try:
            data = locked_read_json(self.state_path, default={})
        except TransactionError as e:
            logger.debug("Ignoring unreadable cooldown state: %s", e)
            return {}

        if not isinstance(data, dict):
            return {}
        raw = data.get("lastTrigger")
        if not isinstance(raw, dict):
            return {}

        return {
            name: int(ts)
            for name, ts in raw.items()
            if isinstance(ts, (int, float)) and not isinstance(ts, bool) and math.isfinite(ts)
        }
