"""Debug log for ccbell: ~/.claude/ccbell.log, rotated by size.

Lines look like:

    [2026-01-05 14:03:22] [41235] Event config: enabled=True, sound=bundled:stop, ...

Logging is best-effort. A full disk or unwritable home must never turn a
notification into a failure, so handler errors are dropped.
"""

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

MAX_LOG_BYTES = 1024 * 1024
BACKUP_COUNT = 3
LOG_FILE_MODE = 0o600

LOG_FORMAT = "[%(asctime)s] [%(process)d] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ROOT_LOGGER = "ccbell"


class QuietRotatingFileHandler(logging.handlers.RotatingFileHandler):
    """RotatingFileHandler that never reports its own failures."""

    def _open(self):
        stream = super()._open()
        try:
            os.chmod(self.baseFilename, LOG_FILE_MODE)
        except OSError:
            pass
        return stream

    def handleError(self, record):
        pass


def setup_debug_logging(debug: bool, log_path: Optional[Path]) -> logging.Logger:
    """Configure the ``ccbell`` logger for this run and return it.

    With debug off (or no home directory) records go nowhere.
    """
    log = logging.getLogger(ROOT_LOGGER)
    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()
    log.propagate = False

    if not debug or log_path is None:
        log.addHandler(logging.NullHandler())
        log.setLevel(logging.WARNING)
        return log

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = QuietRotatingFileHandler(
            log_path,
            maxBytes=MAX_LOG_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
            delay=True,
        )
    except OSError:
        handler = logging.NullHandler()

    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    log.addHandler(handler)
    log.setLevel(logging.DEBUG)
    return log
