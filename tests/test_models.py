"""Tests for core Pydantic models: validation and serialization round-trips."""

import json

import pytest
from pydantic import ValidationError

from btuid.core.models import (
    HEX_ALPHABET,
    AllocatorState,
    GeneratorConfig,
    PersistedRecord,
    SubstitutionTable,
)

BIG = 2**128


def _state(**overrides) -> AllocatorState:
    fields = {"depth": 3, "fanout": 29, "chunk_length": 12345, "cursor": 7, "start_offset": 99}
    fields.update(overrides)
    return AllocatorState(**fields)


class TestAllocatorStateSerialization:
    def test_json_uses_strings_and_camel_case(self):
        data = _state().model_dump(mode="json", by_alias=True)
        assert data == {
            "depth": "3",
            "fanout": "29",
            "chunkLength": "12345",
            "cursor": "7",
            "passCount": "0",
            "startOffset": "99",
        }

    def test_python_dump_keeps_ints(self):
        assert _state().model_dump()["chunk_length"] == 12345

    def test_wide_integers_round_trip(self):
        state = _state(chunk_length=BIG, start_offset=BIG + 1)
        raw = json.dumps(state.model_dump(mode="json", by_alias=True))
        loaded = AllocatorState.model_validate(json.loads(raw))
        assert loaded.chunk_length == BIG
        assert loaded.start_offset == BIG + 1

    def test_accepts_plain_json_integers(self):
        loaded = AllocatorState.model_validate(
            {"depth": 2, "fanout": 4, "chunkLength": 8, "cursor": 1, "startOffset": 0}
        )
        assert (loaded.depth, loaded.chunk_length, loaded.pass_count) == (2, 8, 0)

    @pytest.mark.parametrize("bad", ["12n", "-1", "1.5", "", "0x10"])
    def test_rejects_non_decimal_strings(self, bad):
        with pytest.raises(ValidationError):
            AllocatorState.model_validate(
                {"depth": "1", "fanout": "2", "chunkLength": bad, "startOffset": "0"}
            )

    def test_rejects_zero_depth(self):
        with pytest.raises(ValidationError):
            _state(depth=0)

    def test_rejects_zero_fanout(self):
        with pytest.raises(ValidationError):
            _state(fanout=0)


class TestSubstitutionTable:
    def test_identity(self):
        table = SubstitutionTable.identity()
        assert table.inverse == {s: s for s in HEX_ALPHABET}

    def test_inverse_covers_every_glyph(self):
        forward = {s: [s] for s in HEX_ALPHABET}
        forward["a"] += ["x", "£"]
        table = SubstitutionTable(forward=forward)
        assert table.inverse["x"] == "a"
        assert table.inverse["£"] == "a"
        assert len(table.inverse) == 18

    def test_glyph_used_twice_rejected(self):
        forward = {s: [s] for s in HEX_ALPHABET}
        forward["a"].append("x")
        forward["b"].append("x")
        with pytest.raises(ValidationError, match="more than once"):
            SubstitutionTable(forward=forward)

    def test_list_must_start_with_symbol(self):
        forward = {s: [s] for s in HEX_ALPHABET}
        forward["a"] = ["x", "a"]
        with pytest.raises(ValidationError):
            SubstitutionTable(forward=forward)

    def test_missing_symbol_rejected(self):
        forward = {s: [s] for s in HEX_ALPHABET if s != "f"}
        with pytest.raises(ValidationError):
            SubstitutionTable(forward=forward)


class TestPersistedRecord:
    def test_from_parts_round_trip(self):
        forward = {s: [s] for s in HEX_ALPHABET}
        forward["0"].append("z")
        table = SubstitutionTable(forward=forward)

        record = PersistedRecord.from_parts(_state(), table)
        loaded = PersistedRecord.model_validate_json(
            json.dumps(record.model_dump(mode="json", by_alias=True))
        )

        assert loaded.state == _state()
        assert loaded.substitution_table == table

    def test_table_is_optional(self):
        record = PersistedRecord.from_parts(_state())
        assert record.table is None
        assert record.substitution_table is None

    def test_invalid_table_rejected(self):
        data = _state().model_dump(mode="json", by_alias=True)
        data["table"] = {"0": ["0"]}
        with pytest.raises(ValidationError):
            PersistedRecord.model_validate(data)


class TestGeneratorConfig:
    def test_defaults(self):
        config = GeneratorConfig()
        assert config.displacement_rate == 10
        assert config.snapshot_interval_s == 86400
        assert config.path is None
        assert config.fanout is None
