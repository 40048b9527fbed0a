"""Atomic JSON file primitives for ccbell state and config files.

**Core primitives:**
- atomic_write_json: write-or-fail using a temp file in the target directory + rename
- locked_read_json: shared-lock read with timeout

**Guarantees:**
- Atomicity: readers see either the old document or the new one, never a partial write
- Durability: fsync=True flushes the temp file before the rename
- Cleanup: the temp file is removed on every failure path

**Error handling:**
- LockTimeoutError: shared lock not acquired within the timeout
- TransactionError: write, rename or parse failure
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import portalocker

from ccbell.errors import CcbellError

DEFAULT_TIMEOUT = 1.0


class TransactionError(CcbellError):
    """Base exception for atomic file operation failures."""
    pass


class LockTimeoutError(TransactionError):
    """Raised when lock acquisition times out."""
    pass


def atomic_write_json(
    path: Path | str,
    data: Any,
    fsync: bool = True,
    mode: Optional[int] = None,
) -> None:
    """Write JSON data atomically using temp file + rename.

    Either the full write succeeds or the original file remains unchanged.

    Args:
        path: Target file path
        data: Python object to serialize as JSON
        fsync: Force OS flush to disk before the rename
        mode: Permission bits applied to the temp file before any content is written

    Raises:
        TransactionError: On write or rename failure
    """
    path = Path(path)

    tmp_file = None
    tmp_path = None

    try:
        path.parent.mkdir(parents=True, exist_ok=True)

        # Same directory keeps the rename on one filesystem
        tmp_file = tempfile.NamedTemporaryFile(
            mode='w',
            encoding='utf-8',
            dir=path.parent,
            prefix=f"{path.name}.",
            suffix='.tmp',
            delete=False,
        )
        tmp_path = Path(tmp_file.name)

        if mode is not None:
            os.chmod(tmp_path, mode)

        json.dump(data, tmp_file, indent=2)
        tmp_file.write("\n")
        tmp_file.flush()

        if fsync:
            os.fsync(tmp_file.fileno())

        tmp_file.close()

        os.replace(tmp_path, path)
        tmp_path = None

    except Exception as e:
        raise TransactionError(f"Atomic write failed for {path}: {e}") from e

    finally:
        if tmp_file is not None and not tmp_file.closed:
            tmp_file.close()
        if tmp_path is not None and tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError:
                pass


def locked_read_json(
    path: Path | str,
    timeout: float = DEFAULT_TIMEOUT,
    default: Optional[Any] = None,
) -> Any:
    """Read a JSON file under a shared lock (multiple readers allowed).

    Args:
        path: File path to read
        timeout: Lock acquisition timeout in seconds
        default: Value returned when the file is missing or empty

    Returns:
        Parsed JSON data, or default if the file is missing or empty

    Raises:
        LockTimeoutError: If lock acquisition times out
        TransactionError: On unreadable file or JSON parse failure
    """
    path = Path(path)

    if not path.exists():
        return default

    try:
        with portalocker.Lock(
            str(path),
            mode='r',
            flags=portalocker.LOCK_SH | portalocker.LOCK_NB,
            timeout=timeout,
            encoding='utf-8',
        ) as f:
            content = f.read()
            if not content.strip():
                return default
            return json.loads(content)

    except FileNotFoundError:
        # Removed between the exists() check and the open
        return default
    except portalocker.exceptions.LockException as e:
        raise LockTimeoutError(f"Lock timeout reading {path} after {timeout}s") from e
    except json.JSONDecodeError as e:
        raise TransactionError(f"Invalid JSON in {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise TransactionError(f"Invalid UTF-8 in {path}: {e}") from e
    except OSError as e:
        raise TransactionError(f"Cannot read {path}: {e}") from e
