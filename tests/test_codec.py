"""Tests for the substitution and keyed obfuscation codec."""

import random

import pytest

from btuid.codec.keyed import keyed_decode, keyed_encode, keyed_permutation
from btuid.codec.substitution import (
    EXTRA_GLYPHS,
    build_table,
    substitute_decode,
    substitute_encode,
)
from btuid.core.errors import CodecError, ConfigurationError
from btuid.core.models import HEX_ALPHABET, SubstitutionTable

DISTINCT = "0123456789abcdef"


def _random_hex(rng: random.Random) -> str:
    return "".join(rng.choice(HEX_ALPHABET) for _ in range(16))


@pytest.fixture
def table() -> SubstitutionTable:
    return build_table(random.Random(1234))


class TestBuildTable:
    def test_glyph_pool_size(self):
        assert len(EXTRA_GLYPHS) == 54
        assert len(set(EXTRA_GLYPHS)) == 54

    def test_reproducible_with_seed(self):
        assert build_table(random.Random(7)) == build_table(random.Random(7))

    def test_different_seeds_differ(self):
        assert build_table(random.Random(7)) != build_table(random.Random(8))

    def test_every_symbol_gets_two_or_three_glyphs(self, table):
        for symbol, glyphs in table.forward.items():
            assert glyphs[0] == symbol
            assert 2 <= len(glyphs) - 1 <= 3
            assert all(g in EXTRA_GLYPHS for g in glyphs[1:])

    def test_small_pool_runs_dry(self):
        table = build_table(random.Random(3), "ghij")
        extras = [g for glyphs in table.forward.values() for g in glyphs[1:]]
        assert sorted(extras) == ["g", "h", "i", "j"]
        untouched = [s for s, glyphs in table.forward.items() if glyphs == [s]]
        assert len(untouched) >= 14

    def test_duplicate_pool_rejected(self):
        with pytest.raises(ConfigurationError):
            build_table(random.Random(0), "gg")

    @pytest.mark.parametrize("pool", ["ga", "g-"])
    def test_reserved_symbols_rejected(self, pool):
        with pytest.raises(ConfigurationError):
            build_table(random.Random(0), pool)


class TestSubstitution:
    def test_round_trip(self, table):
        rng = random.Random(99)
        for _ in range(200):
            plain = _random_hex(rng)
            assert substitute_decode(table, substitute_encode(table, plain, rng)) == plain

    def test_encode_is_not_deterministic(self, table):
        rng = random.Random(5)
        outputs = {substitute_encode(table, "0" * 16, rng) for _ in range(50)}
        assert len(outputs) > 1

    def test_encode_uses_only_table_glyphs(self, table):
        cipher = substitute_encode(table, DISTINCT, random.Random(0))
        for plain, glyph in zip(DISTINCT, cipher, strict=True):
            assert glyph in table.forward[plain]

    def test_identity_table_is_passthrough(self):
        identity = SubstitutionTable.identity()
        assert substitute_encode(identity, DISTINCT, random.Random(0)) == DISTINCT

    @pytest.mark.parametrize("bad", ["", "0" * 15, "0" * 17, "ABCDEF0123456789", "000000000000000g"])
    def test_encode_rejects_bad_input(self, table, bad):
        with pytest.raises(CodecError):
            substitute_encode(table, bad, random.Random(0))

    def test_decode_rejects_unknown_symbol(self, table):
        with pytest.raises(CodecError, match="unknown"):
            substitute_decode(table, "000000000000000!")

    def test_decode_rejects_wrong_length(self, table):
        with pytest.raises(CodecError):
            substitute_decode(table, "0000")


class TestKeyedPermutation:
    @pytest.mark.parametrize("key", [None, ""])
    def test_no_key_is_identity(self, key):
        assert keyed_permutation(key) == tuple(range(16))

    def test_is_a_permutation(self):
        assert sorted(keyed_permutation("hello")) == list(range(16))

    def test_deterministic(self):
        assert keyed_permutation("hello") == keyed_permutation("hello")

    def test_keys_differ(self):
        assert keyed_permutation("hello") != keyed_permutation("world")


class TestKeyedCodec:
    @pytest.mark.parametrize("key", [None, "", "hello", "pässwörd", "x" * 1000])
    def test_round_trip(self, table, key):
        rng = random.Random(42)
        for _ in range(50):
            plain = _random_hex(rng)
            assert keyed_decode(table, keyed_encode(table, plain, key, rng), key) == plain

    def test_identity_table_shows_permutation(self):
        identity = SubstitutionTable.identity()
        order = keyed_permutation("hello")
        expected = "".join(DISTINCT[i] for i in order)
        assert keyed_encode(identity, DISTINCT, "hello", random.Random(0)) == expected

    def test_wrong_key_does_not_recover(self, table):
        cipher = keyed_encode(table, DISTINCT, "hello", random.Random(0))
        assert keyed_decode(table, cipher, "world") != DISTINCT
        assert keyed_decode(table, cipher, None) != DISTINCT

    def test_wrong_key_sampled(self, table):
        rng = random.Random(11)
        recovered = 0
        for _ in range(50):
            plain = _random_hex(rng)
            cipher = keyed_encode(table, plain, "alpha", rng)
            if keyed_decode(table, cipher, "beta") == plain:
                recovered += 1
        assert recovered < 5

    def test_rejects_bad_input(self, table):
        with pytest.raises(CodecError):
            keyed_encode(table, "xyz", "k", random.Random(0))
        with pytest.raises(CodecError):
            keyed_decode(table, "xyz", "k")
