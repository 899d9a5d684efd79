"""Passphrase-keyed transposition layered on top of substitution.

The passphrase is hashed with SHA-256 and the digest drives a
Fisher-Yates shuffle of the 16 character positions. Encoding reorders the
identifier and substitutes each character in the same pass; decoding
re-derives the permutation and undoes both steps.

This is a display transform. A wrong key decodes to some other valid
string rather than failing.
"""

from __future__ import annotations

import hashlib
import random
from functools import lru_cache

from btuid.codec.substitution import require_hex, substitute_decode
from btuid.core.models import HEX_LENGTH, SubstitutionTable


@lru_cache(maxsize=128)
def keyed_permutation(key: str | None) -> tuple[int, ...]:
    """Return the position order derived from *key*.

    An empty or missing key yields the identity order.
    """
    order = list(range(HEX_LENGTH))
    if not key:
        return tuple(order)

    digest = hashlib.sha256(key.encode("utf-8")).digest()
    for i in range(HEX_LENGTH - 1, 0, -1):
        j = digest[i] % (i + 1)
        order[i], order[j] = order[j], order[i]
    return tuple(order)


def keyed_encode(
    table: SubstitutionTable, hex16: str, key: str | None, rng: random.Random
) -> str:
    require_hex(hex16)
    order = keyed_permutation(key)
    return "".join(rng.choice(table.forward[hex16[source]]) for source in order)


def keyed_decode(table: SubstitutionTable, cipher16: str, key: str | None) -> str:
    shuffled = substitute_decode(table, cipher16)
    plain = [""] * HEX_LENGTH
    for position, source in enumerate(keyed_permutation(key)):
        plain[source] = shuffled[position]
    return "".join(plain)
