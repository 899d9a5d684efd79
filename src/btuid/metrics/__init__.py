"""Prometheus metrics for btuid."""

from __future__ import annotations

from prometheus_client import Counter, Gauge

# Allocation
IDS_ISSUED = Counter("btuid_ids_issued_total", "Identifiers handed out")
ALLOCATOR_DEPTH = Gauge("btuid_allocator_depth", "Current allocator depth")
EXHAUSTED_TOTAL = Counter(
    "btuid_exhausted_total", "Allocation attempts refused because the space is spent"
)

# Persistence
SNAPSHOTS_TOTAL = Counter("btuid_snapshots_total", "State snapshots written", ["status"])

# Codec
CODEC_OPERATIONS = Counter(
    "btuid_codec_operations_total", "Obfuscation codec calls", ["operation", "keyed"]
)

__all__ = [
    "IDS_ISSUED",
    "ALLOCATOR_DEPTH",
    "EXHAUSTED_TOTAL",
    "SNAPSHOTS_TOTAL",
    "CODEC_OPERATIONS",
]
