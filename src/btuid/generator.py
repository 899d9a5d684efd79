"""Token-issuing front end of btuid.

A :class:`BtuidGenerator` owns one allocator, its state file and the
substitution table used for display obfuscation.

Tokens look like ``06e77028e74c0082-26c4838e4a1f408b``: the 16-digit hex
identifier, a dash, and 16 random hex digits. The random half only adds
unguessability; the codec passes it through unchanged.
"""

from __future__ import annotations

import logging
import random
import secrets
import threading
from types import TracebackType

import anyio.to_thread

from btuid.codec.keyed import keyed_decode, keyed_encode
from btuid.codec.substitution import build_table
from btuid.core import partition
from btuid.core.autosave import Autosaver
from btuid.core.errors import PersistenceError
from btuid.core.ids import Allocator
from btuid.core.models import (
    AllocatorState,
    GeneratorConfig,
    PersistedRecord,
    SubstitutionTable,
)
from btuid.core.state import StateStore
from btuid.metrics import CODEC_OPERATIONS

logger = logging.getLogger(__name__)

SEPARATOR = "-"
SUFFIX_BYTES = 8


class BtuidGenerator:
    """Issues unique tokens and encodes them for display.

    Parameters
    ----------
    config:
        Generator settings. Without ``config.path`` nothing is persisted.
    explicit_state:
        Start from this state instead of the state file.
    rng:
        Randomness for table construction and glyph choice; defaults to
        :class:`random.SystemRandom`. The token suffix always comes from
        :mod:`secrets`.
    autosave:
        Run the periodic snapshot thread when a path is configured.
    """

    def __init__(
        self,
        config: GeneratorConfig | None = None,
        *,
        explicit_state: PersistedRecord | AllocatorState | None = None,
        rng: random.Random | None = None,
        autosave: bool = True,
    ) -> None:
        self._config = config or GeneratorConfig()
        self._rng = rng or random.SystemRandom()
        self._table_lock = threading.Lock()
        self._persist_lock = threading.Lock()
        self._closed = False

        fresh = partition.initial_state(self._config)
        self._store = StateStore(self._config.path) if self._config.path else None

        record = self._load_record(fresh, explicit_state)
        self._allocator = Allocator(record.state)
        self._table = record.substitution_table

        self._autosaver: Autosaver | None = None
        if self._store is not None and autosave:
            if self._config.snapshot_interval_s > 0:
                self._autosaver = Autosaver(
                    self._save_best_effort,
                    self._config.snapshot_interval_s,
                    name=f"btuid-autosave:{self._store.path.name}",
                )
                self._autosaver.start()
            else:
                logger.info("Periodic snapshots disabled for %s", self._store.path)

    # -- Issuing -------------------------------------------------------------

    def issue_token(self) -> str:
        """Return ``<16 hex id>-<16 hex random>``."""
        return self._allocator.next_hex() + SEPARATOR + secrets.token_hex(SUFFIX_BYTES)

    def issue_id(self) -> str:
        """Return the bare 16-digit hex identifier."""
        return self._allocator.next_hex()

    def issue_raw_id(self) -> int:
        return self._allocator.next()

    # -- Codec ---------------------------------------------------------------

    def encode(self, token: str, key: str | None = None) -> str:
        """Obfuscate the identifier part of *token*; any suffix is kept as is."""
        identifier, sep, suffix = token.partition(SEPARATOR)
        cipher = keyed_encode(self.table, identifier, key, self._rng)
        CODEC_OPERATIONS.labels(operation="encode", keyed=str(bool(key)).lower()).inc()
        return cipher + sep + suffix

    def decode(self, token: str, key: str | None = None) -> str:
        """Invert :meth:`encode` given the same *key*."""
        cipher, sep, suffix = token.partition(SEPARATOR)
        identifier = keyed_decode(self.table, cipher, key)
        CODEC_OPERATIONS.labels(operation="decode", keyed=str(bool(key)).lower()).inc()
        return identifier + sep + suffix

    @property
    def table(self) -> SubstitutionTable:
        """The substitution table, generated and persisted on first use."""
        with self._table_lock:
            if self._table is None:
                self._table = build_table(self._rng)
                logger.info("Generated substitution table")
                if self._store is not None:
                    # Tokens encoded from here on depend on this table.
                    try:
                        self.save()
                    except PersistenceError:
                        self._table = None
                        raise
            return self._table

    # -- State ---------------------------------------------------------------

    @property
    def state(self) -> AllocatorState:
        return self._allocator.snapshot()

    def record(self) -> PersistedRecord:
        """Return the state and table as they would be written to disk."""
        return PersistedRecord.from_parts(self._allocator.snapshot(), self._table)

    def save(self) -> None:
        """Write the current record now, raising on failure."""
        if self._store is None:
            logger.debug("No state path configured; nothing to save")
            return
        try:
            with self._persist_lock:
                self._store.write(self.record())
        except OSError as exc:
            raise PersistenceError(f"cannot write state file {self._store.path}: {exc}") from exc

    async def asave(self) -> bool:
        """Best-effort write on a worker thread; returns False on failure."""
        if self._store is None:
            return False
        return await anyio.to_thread.run_sync(self._save_best_effort)

    def close(self, *, strict: bool = False) -> None:
        """Stop periodic snapshots and write a final one.

        With *strict* a failed final write raises :class:`PersistenceError`
        instead of being logged; use it when this is the only save.
        """
        if self._closed:
            return
        self._closed = True
        if self._autosaver is not None:
            self._autosaver.stop()
        if self._store is None:
            return
        if strict:
            self.save()
        else:
            self._save_best_effort()

    def __enter__(self) -> BtuidGenerator:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # -- Internals -----------------------------------------------------------

    def _save_best_effort(self) -> bool:
        # Snapshot and write under one lock so an older record never lands last.
        with self._persist_lock:
            return self._store.try_write(self.record())

    def _load_record(
        self,
        fresh: AllocatorState,
        explicit_state: PersistedRecord | AllocatorState | None,
    ) -> PersistedRecord:
        if explicit_state is not None:
            if isinstance(explicit_state, PersistedRecord):
                return explicit_state
            return PersistedRecord.from_parts(explicit_state)

        if self._store is None:
            return PersistedRecord.from_parts(fresh)

        record = self._store.restore()
        if record is None:
            record = PersistedRecord.from_parts(fresh)
            self._store.bootstrap(record)
            return record

        if record.fanout != fresh.fanout:
            logger.warning(
                "State file %s uses fanout %d; configured fanout %d is ignored",
                self._store.path,
                record.fanout,
                fresh.fanout,
            )
        logger.info(
            "Restored allocator state from %s (depth=%d, cursor=%d)",
            self._store.path,
            record.depth,
            record.cursor,
        )
        return record
