"""Randomized one-to-many substitution over the hex alphabet.

A :class:`SubstitutionTable` gives every hex symbol a list of equivalent
display glyphs. Encoding picks one of them at random, so the same input
renders differently from call to call; decoding maps every glyph back to
its hex symbol and is deterministic.
"""

from __future__ import annotations

import random
from collections.abc import Iterable

from btuid.core.errors import CodecError, ConfigurationError
from btuid.core.models import HEX_ALPHABET, HEX_LENGTH, SubstitutionTable

EXTRA_GLYPHS = (
    "ghijklmnopqrstuvwxyz"
    "GHIJKLMNOPQRSTUVWXYZ"
    "£¥€§¤¢©®µ¶ß¿¡±"
)

_MIN_ALTERNATES = 2
_MAX_ALTERNATES = 3


def build_table(rng: random.Random, glyph_pool: Iterable[str] = EXTRA_GLYPHS) -> SubstitutionTable:
    """Assign 2-3 glyphs from *glyph_pool* to each hex symbol in random order.

    Stops early when the pool runs dry; symbols visited after that keep
    only themselves. The result depends only on the state of *rng*.
    """
    pool = list(glyph_pool)
    if len(set(pool)) != len(pool):
        raise ConfigurationError("glyph pool contains duplicates")
    if clash := sorted(set(pool) & set(HEX_ALPHABET + "-")):
        raise ConfigurationError(f"glyph pool overlaps reserved symbols: {clash}")

    forward: dict[str, list[str]] = {symbol: [symbol] for symbol in HEX_ALPHABET}
    unvisited = list(HEX_ALPHABET)
    while unvisited and pool:
        symbol = unvisited.pop(rng.randrange(len(unvisited)))
        count = min(rng.randint(_MIN_ALTERNATES, _MAX_ALTERNATES), len(pool))
        for _ in range(count):
            forward[symbol].append(pool.pop(rng.randrange(len(pool))))

    return SubstitutionTable(forward=forward)


def require_hex(text: str) -> None:
    """Raise :class:`CodecError` unless *text* is 16 lowercase hex digits."""
    if len(text) != HEX_LENGTH:
        raise CodecError(f"expected {HEX_LENGTH} hex digits, got {len(text)} characters")
    if bad := sorted({ch for ch in text if ch not in HEX_ALPHABET}):
        raise CodecError(f"not a lowercase hex string, offending symbols: {bad}")


def substitute_encode(table: SubstitutionTable, hex16: str, rng: random.Random) -> str:
    require_hex(hex16)
    return "".join(rng.choice(table.forward[ch]) for ch in hex16)


def substitute_decode(table: SubstitutionTable, cipher16: str) -> str:
    if len(cipher16) != HEX_LENGTH:
        raise CodecError(f"expected {HEX_LENGTH} symbols, got {len(cipher16)}")
    inverse = table.inverse
    if unknown := sorted({ch for ch in cipher16 if ch not in inverse}):
        raise CodecError(f"unknown symbols: {unknown}")
    return "".join(inverse[ch] for ch in cipher16)
