"""Thread-safe identifier allocator backed by AllocatorState.

Each call to :meth:`Allocator.next` returns the value the state currently
points at and moves the state one position forward. The read-modify-write
is serialized by a lock, so concurrent callers never observe the same
position.
"""

from __future__ import annotations

import logging
import threading

from btuid.core import partition
from btuid.core.errors import AddressSpaceExhausted
from btuid.core.models import HEX_LENGTH, AllocatorState
from btuid.metrics import ALLOCATOR_DEPTH, EXHAUSTED_TOTAL, IDS_ISSUED

logger = logging.getLogger(__name__)


class Allocator:
    """Allocates unique values from a partitioned 64-bit space."""

    def __init__(self, state: AllocatorState) -> None:
        self._state = state
        self._lock = threading.Lock()
        ALLOCATOR_DEPTH.set(state.depth)

    def next(self) -> int:
        """Return the next unused value.

        Raises :class:`AddressSpaceExhausted` without touching the state
        once no value is left.
        """
        with self._lock:
            try:
                value = partition.value_at(self._state)
            except AddressSpaceExhausted:
                EXHAUSTED_TOTAL.inc()
                raise
            previous_depth = self._state.depth
            self._state = current = partition.advance(self._state)

        IDS_ISSUED.inc()
        if current.depth != previous_depth:
            ALLOCATOR_DEPTH.set(current.depth)
            logger.info(
                "Allocator descended to depth %d (chunk length %d)",
                current.depth,
                current.chunk_length,
            )
        return value

    def next_hex(self) -> str:
        """Return the next value as zero-padded lowercase hex."""
        return format(self.next(), f"0{HEX_LENGTH}x")

    def snapshot(self) -> AllocatorState:
        """Return a copy of the current state, consistent with respect to next()."""
        with self._lock:
            return self._state.model_copy()
