from __future__ import annotations

import json
import logging
import os
import shutil
import threading
from pathlib import Path

from pydantic import ValidationError

from btuid.core.errors import PersistenceError
from btuid.core.models import PersistedRecord
from btuid.metrics import SNAPSHOTS_TOTAL

logger = logging.getLogger(__name__)

_MAX_BACKUPS = 3


class StateStore:
    """Atomic JSON store for a single allocator's persisted record."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._write_lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    # -- Public API ----------------------------------------------------------

    def restore(self) -> PersistedRecord | None:
        """Load the record, or return None if the file does not exist.

        A file that exists but cannot be read or parsed raises
        :class:`PersistenceError`; backups are never consulted because an
        older record would hand out values again.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise PersistenceError(f"cannot read state file {self._path}: {exc}") from exc

        try:
            data = json.loads(raw)
            return PersistedRecord.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as exc:
            raise PersistenceError(f"malformed state file {self._path}: {exc}") from exc

    def bootstrap(self, record: PersistedRecord) -> None:
        """Create the state file, failing if it already exists."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(str(self._path), os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        except FileExistsError as exc:
            raise PersistenceError(
                f"state file {self._path} was created by another generator"
            ) from exc
        except OSError as exc:
            raise PersistenceError(f"cannot create state file {self._path}: {exc}") from exc
        try:
            try:
                os.write(fd, _encode(record))
                os.fsync(fd)
            finally:
                os.close(fd)
        except OSError as exc:
            # A half-written file would read as malformed on every later start.
            self._path.unlink(missing_ok=True)
            raise PersistenceError(f"cannot write state file {self._path}: {exc}") from exc
        logger.info("Created state file %s", self._path)

    def write(self, record: PersistedRecord) -> None:
        """Replace the state file atomically, rotating backups."""
        with self._write_lock:
            self._write(record)

    def _write(self, record: PersistedRecord) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        # Rotate backups: .bak.3 is dropped, .bak.2 -> .bak.3, .bak.1 -> .bak.2, file -> .bak.1
        for i in range(_MAX_BACKUPS, 1, -1):
            src = self._path.parent / f"{self._path.name}.bak.{i - 1}"
            dst = self._path.parent / f"{self._path.name}.bak.{i}"
            if src.exists():
                os.replace(src, dst)

        # Copied rather than moved: a missing primary would look like a first run.
        if self._path.exists():
            shutil.copyfile(self._path, self._path.parent / f"{self._path.name}.bak.1")

        tmp_path = self._path.parent / f"{self._path.name}.tmp"
        fd = os.open(str(tmp_path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
        try:
            os.write(fd, _encode(record))
            os.fsync(fd)
        finally:
            os.close(fd)

        os.replace(tmp_path, self._path)

    def try_write(self, record: PersistedRecord) -> bool:
        """Best-effort :meth:`write`; failures are logged and reported as False."""
        try:
            self.write(record)
        except OSError:
            SNAPSHOTS_TOTAL.labels(status="failed").inc()
            logger.exception("Failed to write state snapshot to %s", self._path)
            return False
        SNAPSHOTS_TOTAL.labels(status="ok").inc()
        logger.debug("Wrote state snapshot to %s", self._path)
        return True


def _encode(record: PersistedRecord) -> bytes:
    data = record.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(data, indent=2, ensure_ascii=False).encode("utf-8")
