"""
Tests for the JSON state backend and snapshot schema checks.
"""

import json

import pytest

import revreg
from revreg.persistence import STATE_FORMAT, JsonStateBackend, PersistenceError
from revreg.schema import BATCH_SCHEMA, STATE_SCHEMA, validate_with_schema


def _snapshot(**overrides):
    data = {
        "format": STATE_FORMAT,
        "key_algorithm": "sha256",
        "owner": "0x" + "a1" * 20,
        "publishers": [],
        "sequence": 0,
        "records": {},
    }
    data.update(overrides)
    return data


class TestJsonStateBackend:

    def test_load_missing_returns_none(self, tmp_path):
        backend = JsonStateBackend(tmp_path / "state.json")
        assert backend.exists() is False
        assert backend.load() is None

    def test_save_then_load(self, tmp_path):
        backend = JsonStateBackend(tmp_path / "deep" / "state.json")
        backend.save(_snapshot())

        assert backend.exists()
        assert backend.load() == _snapshot()
        assert not [p for p in backend.path.parent.iterdir() if p.name.startswith(".state.json.")]

    def test_file_is_sorted_json(self, tmp_path):
        backend = JsonStateBackend(tmp_path / "state.json")
        backend.save(_snapshot())

        text = backend.path.read_text(encoding="utf-8")
        assert text.endswith("\n")
        assert list(json.loads(text)) == sorted(_snapshot())

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(PersistenceError):
            JsonStateBackend(path).load()

    def test_wrong_format(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps(_snapshot(format="other")), encoding="utf-8")
        with pytest.raises(PersistenceError):
            JsonStateBackend(path).load()

    def test_save_refuses_invalid_snapshot(self, tmp_path):
        backend = JsonStateBackend(tmp_path / "state.json")
        with pytest.raises(PersistenceError):
            backend.save(_snapshot(owner=""))
        assert not backend.exists()


class TestSchemas:

    def test_state_schema_accepts_records(self):
        record = {"status": "REVOKED", "epoch_days": 20000, "evidence_pointer": "ipfs://p", "version": 1}
        data = _snapshot(records={"0x" + "ab" * 32: record})
        assert validate_with_schema(data, STATE_SCHEMA) == []

    @pytest.mark.parametrize("records", [
        {"0xABC": {"status": "REVOKED", "epoch_days": 1, "evidence_pointer": "", "version": 1}},
        {"0x" + "ab" * 32: {"status": "GONE", "epoch_days": 1, "evidence_pointer": "", "version": 1}},
        {"0x" + "ab" * 32: {"status": "ACTIVE", "epoch_days": -1, "evidence_pointer": "", "version": 1}},
        {"0x" + "ab" * 32: {"status": "ACTIVE", "epoch_days": 1, "evidence_pointer": ""}},
    ])
    def test_state_schema_rejects_bad_records(self, records):
        assert validate_with_schema(_snapshot(records=records), STATE_SCHEMA)

    def test_batch_schema(self):
        ok = [{"holderId": "holder:a", "epoch": 20000, "pointer": "ipfs://a"}]
        assert validate_with_schema(ok, BATCH_SCHEMA) == []
        assert validate_with_schema({"revocations": ok}, BATCH_SCHEMA) == []
        assert validate_with_schema([{"holderId": "holder:a", "epoch": 1}], BATCH_SCHEMA)
        assert validate_with_schema([{"holderId": 7, "epoch": 1, "pointer": "p"}], BATCH_SCHEMA)


class TestPackageExports:

    def test_lazy_exports(self):
        assert revreg.RevocationRegistry.__name__ == "RevocationRegistry"
        assert revreg.RevocationStatus.REVOKED.value == 1
        assert revreg.derive_key("x") == revreg.parse_key_hex(revreg.key_hex(revreg.derive_key("x")))

    def test_unknown_attribute(self):
        with pytest.raises(AttributeError):
            revreg.NoSuchThing
