"""Core domain models for btuid.

All domain objects are Pydantic BaseModel classes. Persisted integers are
serialized as decimal strings so that values wider than 64 bits survive a
JSON round-trip without passing through a float.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    model_validator,
)

SPACE_WIDTH = 16**16
HEX_LENGTH = 16
HEX_ALPHABET = "0123456789abcdef"

_DECIMAL_RE = re.compile(r"^\d+$")


def _parse_uint(value: Any) -> Any:
    if isinstance(value, str):
        if not _DECIMAL_RE.fullmatch(value):
            raise ValueError(f"expected a decimal integer string, got {value!r}")
        return int(value)
    return value


# Non-negative integer of arbitrary width, written to JSON as a string.
BigUInt = Annotated[
    int,
    BeforeValidator(_parse_uint),
    Field(ge=0),
    PlainSerializer(lambda v: str(v), return_type=str, when_used="json"),
]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class PageLayout(BaseModel):
    """Byte sizes of a notional fixed-size index page.

    The fanout of the allocator is derived from how many entries of this
    shape fit on one page.
    """

    page_size: int = 8192
    key_size: int = 16
    id_size: int = 6
    entry_meta_size: int = 4
    pointer_size: int = 4
    padding_size: int = 2

    @property
    def overhead(self) -> int:
        return (
            self.key_size
            + self.id_size
            + self.entry_meta_size
            + self.pointer_size
            + self.padding_size
        )


class GeneratorConfig(BaseModel):
    """Configuration for a :class:`~btuid.generator.BtuidGenerator`."""

    layout: PageLayout = Field(default_factory=PageLayout)
    fanout: int | None = None  # overrides the layout-derived value
    fanout_multiplier: int = 1
    start_value: int = 0
    displacement_rate: int = 10  # parts per thousand
    path: Path | None = None
    snapshot_interval_s: float = 86400.0


# ---------------------------------------------------------------------------
# Allocator state
# ---------------------------------------------------------------------------


class AllocatorState(BaseModel):
    """Mutable allocator position, persisted between runs."""

    model_config = ConfigDict(populate_by_name=True)

    depth: BigUInt = 1
    fanout: BigUInt
    chunk_length: BigUInt = Field(alias="chunkLength")
    cursor: BigUInt = 0
    pass_count: BigUInt = Field(default=0, alias="passCount")
    start_offset: BigUInt = Field(alias="startOffset")

    @model_validator(mode="after")
    def _check_ranges(self) -> AllocatorState:
        if self.depth < 1:
            raise ValueError("depth must be >= 1")
        if self.fanout < 1:
            raise ValueError("fanout must be >= 1")
        return self


# ---------------------------------------------------------------------------
# Substitution table
# ---------------------------------------------------------------------------


class SubstitutionTable(BaseModel):
    """One-to-many mapping from hex symbols to display glyphs.

    ``forward[s]`` always starts with ``s`` itself, followed by the extra
    glyphs assigned to it. Every glyph appears in exactly one list, so the
    inverse mapping is a total function over all cipher symbols.
    """

    model_config = ConfigDict(frozen=True)

    forward: dict[str, list[str]]

    @model_validator(mode="after")
    def _check_forward(self) -> SubstitutionTable:
        if set(self.forward) != set(HEX_ALPHABET):
            raise ValueError("table must map exactly the 16 hex symbols")
        seen: set[str] = set()
        for symbol, glyphs in self.forward.items():
            if not glyphs or glyphs[0] != symbol:
                raise ValueError(f"glyph list for {symbol!r} must start with itself")
            for glyph in glyphs:
                if len(glyph) != 1:
                    raise ValueError(f"glyph {glyph!r} is not a single character")
                if glyph in seen:
                    raise ValueError(f"glyph {glyph!r} assigned more than once")
                seen.add(glyph)
        return self

    @property
    def inverse(self) -> dict[str, str]:
        return {glyph: symbol for symbol, glyphs in self.forward.items() for glyph in glyphs}

    @classmethod
    def identity(cls) -> SubstitutionTable:
        return cls(forward={s: [s] for s in HEX_ALPHABET})


# ---------------------------------------------------------------------------
# Persisted record
# ---------------------------------------------------------------------------


class PersistedRecord(AllocatorState):
    """Allocator state plus the substitution table, as written to disk."""

    table: dict[str, list[str]] | None = None

    @model_validator(mode="after")
    def _check_table(self) -> PersistedRecord:
        if self.table is not None:
            SubstitutionTable(forward=self.table)
        return self

    @property
    def state(self) -> AllocatorState:
        return AllocatorState.model_validate(self.model_dump(exclude={"table"}))

    @property
    def substitution_table(self) -> SubstitutionTable | None:
        if self.table is None:
            return None
        return SubstitutionTable(forward=self.table)

    @classmethod
    def from_parts(
        cls, state: AllocatorState, table: SubstitutionTable | None = None
    ) -> PersistedRecord:
        return cls(
            **state.model_dump(),
            table=None if table is None else {k: list(v) for k, v in table.forward.items()},
        )
