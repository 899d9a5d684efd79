"""Address-space partitioning arithmetic.

The 64-bit space above ``start_offset`` is walked level by level. Level
``d`` splits the usable width into ``(2 * fanout) ** d`` chunks and hands
out the right edge of each chunk in turn, shifted up by
``(2 * fanout - 1) * (d - 1)`` so that it never lands on a value handed
out by a shallower level.

Two conditions keep levels apart:

* the chunk length of level ``d + 1`` divides the chunk length of level
  ``d`` exactly, so every earlier level's grid is a subset of the current
  one;
* the shift between the first and the current level is strictly smaller
  than the current chunk length, so a shifted point can never coincide
  with an unshifted grid point.

:func:`initial_chunk_length` picks the depth-1 chunk length so both hold
for as many levels as the space allows; :func:`descend` re-checks them
every time a level is exhausted. The result is slightly smaller than the
plain ``usable_width // (2 * fanout)``.

Everything here is a pure function of :class:`AllocatorState`; locking and
persistence live elsewhere.
"""

from __future__ import annotations

import math

from btuid.core.errors import AddressSpaceExhausted, ConfigurationError
from btuid.core.models import SPACE_WIDTH, AllocatorState, GeneratorConfig, PageLayout

# Full sweeps of a level before descending to the next one.
PASSES_PER_DEPTH = 1


# ---------------------------------------------------------------------------
# Construction-time derivations
# ---------------------------------------------------------------------------


def derive_fanout(layout: PageLayout) -> int:
    """Return how many index entries of *layout* fit on one page."""
    sizes = layout.model_dump()
    if layout.page_size <= 0:
        raise ConfigurationError(f"page_size must be positive, got {layout.page_size}")
    if negative := sorted(name for name, size in sizes.items() if size < 0):
        raise ConfigurationError(f"layout sizes must be non-negative: {negative}")

    overhead = layout.overhead
    if overhead <= 0:
        raise ConfigurationError("layout overhead must be positive")

    per_entry = layout.key_size + layout.id_size + layout.page_size / overhead
    return math.floor((layout.page_size - overhead) / per_entry)


def resolve_fanout(config: GeneratorConfig) -> int:
    """Return the effective fanout for *config*, validating the result."""
    if config.fanout_multiplier < 1:
        raise ConfigurationError(
            f"fanout_multiplier must be >= 1, got {config.fanout_multiplier}"
        )
    base = config.fanout if config.fanout is not None else derive_fanout(config.layout)
    fanout = base * config.fanout_multiplier
    if fanout < 1:
        raise ConfigurationError(f"fanout resolves to {fanout}; must be >= 1")
    return fanout


def compute_start_offset(start_value: int, displacement_rate: int) -> int:
    """Return the lowest value of the usable space."""
    if not 0 <= displacement_rate <= 1000:
        raise ConfigurationError(
            f"displacement_rate must be within 0..1000, got {displacement_rate}"
        )
    if not 0 <= start_value < SPACE_WIDTH:
        raise ConfigurationError(f"start_value must be within [0, 2**64), got {start_value}")
    return start_value + SPACE_WIDTH * displacement_rate // 1000


def initial_chunk_length(fanout: int, start_offset: int) -> int:
    """Return the depth-1 chunk length, or 0 if nothing can be allocated."""
    width = 2 * fanout
    usable = SPACE_WIDTH - start_offset
    best = 0
    depth = 1
    while True:
        shift = level_shift(fanout, depth)
        unit = (usable - 1 - shift) // width**depth
        if unit <= shift:
            break
        best = unit * width ** (depth - 1)
        depth += 1
    return best


def initial_state(config: GeneratorConfig) -> AllocatorState:
    """Build a fresh depth-1 state from *config*."""
    fanout = resolve_fanout(config)
    start_offset = compute_start_offset(config.start_value, config.displacement_rate)
    return AllocatorState(
        depth=1,
        fanout=fanout,
        chunk_length=initial_chunk_length(fanout, start_offset),
        cursor=0,
        pass_count=0,
        start_offset=start_offset,
    )


# ---------------------------------------------------------------------------
# Per-call arithmetic
# ---------------------------------------------------------------------------


def chunk_count(fanout: int, depth: int) -> int:
    return (2 * fanout) ** depth


def level_shift(fanout: int, depth: int) -> int:
    """Offset applied to every value of *depth* (zero at depth 1)."""
    return (2 * fanout - 1) * (depth - 1)


def value_at(state: AllocatorState) -> int:
    """Return the value *state* points at, without advancing it."""
    if state.chunk_length < 1:
        raise AddressSpaceExhausted("address space is empty (chunk length is zero)")
    if state.cursor >= chunk_count(state.fanout, state.depth):
        raise AddressSpaceExhausted(
            f"address space exhausted at depth {state.depth} (fanout {state.fanout})"
        )

    value = (
        state.start_offset
        + level_shift(state.fanout, state.depth)
        + state.chunk_length * (state.cursor + 1)
    )
    if value >= SPACE_WIDTH:
        raise AddressSpaceExhausted(f"value {value:#x} is outside the 64-bit space")
    return value


def descend(state: AllocatorState) -> AllocatorState | None:
    """Return the first position of the next depth, or None if there is none."""
    width = 2 * state.fanout
    deeper = state.depth + 1
    length = state.chunk_length // width

    if length < 1 or length * width != state.chunk_length:
        return None
    if length <= level_shift(state.fanout, deeper):
        return None
    highest = (
        state.start_offset
        + level_shift(state.fanout, deeper)
        + length * chunk_count(state.fanout, deeper)
    )
    if highest >= SPACE_WIDTH:
        return None

    return state.model_copy(
        update={"depth": deeper, "chunk_length": length, "cursor": 0, "pass_count": 0}
    )


def advance(state: AllocatorState) -> AllocatorState:
    """Return the state following *state*.

    When the deepest usable level is spent the cursor is left at the chunk
    count, which makes :func:`value_at` raise from then on.
    """
    cursor = state.cursor + 1
    if cursor < chunk_count(state.fanout, state.depth):
        return state.model_copy(update={"cursor": cursor})

    pass_count = state.pass_count + 1
    if pass_count < PASSES_PER_DEPTH:
        return state.model_copy(update={"cursor": 0, "pass_count": pass_count})

    deeper = descend(state)
    if deeper is None:
        return state.model_copy(update={"cursor": cursor, "pass_count": 0})
    return deeper
