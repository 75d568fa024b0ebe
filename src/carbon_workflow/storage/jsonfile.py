"""Shared plumbing for the JSON state files.

Writers take an exclusive ``flock`` on a sibling ``<name>.lock`` file for the
whole read-modify-write, so store instances in different processes (the CLI
and ``carbon-workflow serve``) never interleave. Data is written to a unique
temp file in the same directory and swapped in with ``os.replace``; readers
therefore never need the lock.
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class StateFileError(RuntimeError):
    """A state file holds entries that cannot be parsed.

    Raised instead of writing, so a save never drops data it failed to read.
    """

    def __init__(self, path: Path, problems: list[str]) -> None:
        self.path = path
        self.problems = list(problems)
        super().__init__(
            f"Refusing to write {path}: {len(self.problems)} invalid entr"
            f"{'y' if len(self.problems) == 1 else 'ies'} ({'; '.join(self.problems)}). "
            "Repair or remove them first."
        )


@contextmanager
def exclusive_lock(path: Path) -> Iterator[None]:
    path.parent.mkdir(parents=True, exist_ok=True)
    lock_path = path.with_name(path.name + ".lock")
    with open(lock_path, "a") as f:
        fcntl.flock(f.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(f.fileno(), fcntl.LOCK_UN)


def read_json(path: Path) -> tuple[Any, list[str]]:
    """Return ``(data, problems)``. ``data`` is ``None`` if the file is absent or unreadable."""

    if not path.exists():
        return None, []
    try:
        return json.loads(path.read_text(encoding="utf-8")), []
    except json.JSONDecodeError as e:
        logger.warning(
            "State file is not valid JSON; treating as empty",
            extra={"path": str(path), "error": str(e)},
        )
        return None, [f"not valid JSON: {e}"]


def write_json_atomic(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
