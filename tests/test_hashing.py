"""Tests for content hashing."""

import logging

import pytest

from txflow.hashing import (
    check_echoed_hashes,
    compute_hash,
    compute_slt_hash,
    compute_task_hash,
    encode_task,
    is_valid_hash,
    normalize_for_hashing,
    verify_evidence,
    verify_hash,
)

TASK_1 = {
    "project_content": "Open Task #1",
    "expiration_time": 1769027280000,
    "lovelace_amount": 15000000,
    "native_assets": [],
}
TASK_2 = {
    "project_content": "Open Task #2",
    "expiration_time": 1769027280000,
    "lovelace_amount": 12500000,
    "native_assets": [],
}
TASK_1_HASH = "c4c6affd3a575d56dc98f0e172928b5c5dd170ce13b1db4a9ae82f2d07223cb2"
TASK_2_HASH = "3cd5550254a8c2c5326c84bc9e1df0b1814d7ef22e3ddb9d58bb51013c8f7686"


class TestComputeHash:
    """Tests for compute_hash."""

    def test_hash_format(self):
        """Test hash is 64 lowercase hex characters."""
        digest = compute_hash({"evidence": "https://example.com/pr/1"})

        assert len(digest) == 64
        assert digest == digest.lower()
        assert is_valid_hash(digest)

    def test_deterministic(self):
        """Test identical payloads produce identical hashes."""
        payload = {"task": "Write docs", "reward": 5, "tags": ["a", "b"]}
        assert compute_hash(payload) == compute_hash(dict(payload))

    def test_key_order_ignored(self):
        """Test nested key order does not change the hash."""
        first = {"a": 1, "b": {"x": [1, 2], "y": "z"}}
        second = {"b": {"y": "z", "x": [1, 2]}, "a": 1}

        assert compute_hash(first) == compute_hash(second)

    def test_one_field_change(self):
        """Test changing a single field changes the hash."""
        base = {"title": "Task", "reward": 10, "done": False}

        assert compute_hash(base) != compute_hash({**base, "reward": 11})
        assert compute_hash(base) != compute_hash({**base, "done": True})
        assert compute_hash(base) != compute_hash({**base, "title": "Task!"})

    def test_list_order_matters(self):
        """Test list order is significant."""
        assert compute_hash({"items": [1, 2]}) != compute_hash({"items": [2, 1]})

    def test_whitespace_normalized(self):
        """Test surrounding whitespace in strings is ignored."""
        assert compute_hash({"text": "  hello "}) == compute_hash({"text": "hello"})

    def test_integral_float_equals_int(self):
        """Test 1.0 and 1 hash the same."""
        assert compute_hash({"n": 1.0}) == compute_hash({"n": 1})
        assert compute_hash({"n": 1.5}) != compute_hash({"n": 1})

    def test_none_kept(self):
        """Test a None value differs from a missing key."""
        assert compute_hash({"a": 1, "b": None}) != compute_hash({"a": 1})

    def test_unsupported_type(self):
        """Test non-JSON values are rejected."""
        with pytest.raises(TypeError):
            normalize_for_hashing({"value": object()})

    def test_non_string_keys_rejected(self):
        """Test integer keys are not coerced into colliding string keys."""
        with pytest.raises(TypeError):
            compute_hash({1: "a"})
        with pytest.raises(TypeError):
            compute_hash({"outer": {2: "b"}})
        assert is_valid_hash(compute_hash({"1": "a"}))

    def test_unicode(self):
        """Test non-ASCII content hashes deterministically."""
        assert compute_hash({"name": "Café ✓"}) == compute_hash({"name": "Café ✓"})


class TestVerification:
    """Tests for hash verification helpers."""

    def test_verify_hash_case_insensitive(self):
        """Test verification accepts upper-case hashes."""
        payload = {"evidence": "done"}
        digest = compute_hash(payload)

        assert verify_hash(payload, digest)
        assert verify_hash(payload, digest.upper())
        assert not verify_hash({"evidence": "changed"}, digest)

    def test_is_valid_hash(self):
        """Test hash format validation."""
        assert is_valid_hash(TASK_1_HASH)
        assert not is_valid_hash(TASK_1_HASH[:32])
        assert not is_valid_hash(TASK_1_HASH + "ff")
        assert not is_valid_hash(TASK_1_HASH[:62] + "XX")
        assert not is_valid_hash("")
        assert not is_valid_hash(None)

    def test_verify_evidence_match(self):
        """Test unchanged content matches its recorded hash."""
        payload = {"url": "https://example.com", "notes": "final"}
        result = verify_evidence(payload, compute_hash(payload))

        assert result.is_valid is True
        assert result.computed_hash == compute_hash(payload)

    def test_verify_evidence_tampered(self):
        """Test modified content is reported without raising."""
        recorded = compute_hash({"url": "https://example.com"})
        result = verify_evidence({"url": "https://evil.example.com"}, recorded)

        assert result.is_valid is False
        assert result.expected_hash == recorded
        assert "modified" in result.message

    def test_verify_evidence_invalid_hash(self):
        """Test a malformed on-chain hash is reported as invalid."""
        result = verify_evidence({"a": 1}, "not-a-hash")

        assert result.is_valid is False
        assert result.computed_hash == ""


class TestEchoedHashes:
    """Tests for comparing client hashes with gateway-echoed values."""

    def test_matching(self):
        """Test matching values report nothing."""
        assert check_echoed_hashes({"task_hash": TASK_1_HASH}, {"task_hash": TASK_1_HASH.upper()}) == []

    def test_mismatch_logs_warning(self, caplog):
        """Test a mismatch is a warning, not an error."""
        with caplog.at_level(logging.WARNING, logger="txflow.hashing"):
            mismatched = check_echoed_hashes(
                {"task_hash": TASK_1_HASH},
                {"task_hash": TASK_2_HASH},
                context="tx1",
            )

        assert mismatched == ["task_hash"]
        assert "Hash mismatch for tx1" in caplog.text

    def test_missing_keys_ignored(self):
        """Test keys the gateway did not echo are skipped."""
        assert check_echoed_hashes({"task_hash": TASK_1_HASH}, {"other": "x"}) == []
        assert check_echoed_hashes({"task_hash": TASK_1_HASH}, None) == []
        assert check_echoed_hashes({}, {"task_hash": TASK_1_HASH}) == []


class TestOnChainIdentifiers:
    """Tests for Plutus-encoded task and module hashes."""

    def test_task_hash_known_values(self):
        """Test task hashes match on-chain values."""
        assert compute_task_hash(TASK_1) == TASK_1_HASH
        assert compute_task_hash(TASK_2) == TASK_2_HASH

    def test_task_hash_differs_by_field(self):
        """Test changing content or reward changes the task id."""
        assert compute_task_hash({**TASK_1, "project_content": "Task A"}) != compute_task_hash(
            {**TASK_1, "project_content": "Task B"}
        )
        assert compute_task_hash({**TASK_1, "lovelace_amount": 10000000}) != compute_task_hash(
            {**TASK_1, "lovelace_amount": 20000000}
        )

    def test_task_with_native_assets(self):
        """Test tasks with native assets and long content hash correctly."""
        task = {
            "project_content": "This are the requirements to achieve the task. " * 2,
            "expiration_time": 1776421758000,
            "lovelace_amount": 2000000,
            "native_assets": [["abc123.token", 5]],
        }
        assert is_valid_hash(compute_task_hash(task))

    def test_task_encoding_shape(self):
        """Test task data is a Plutus Constr 0 indefinite array."""
        encoded = encode_task({
            "project_content": "Test",
            "expiration_time": 1000,
            "lovelace_amount": 100,
            "native_assets": [],
        }).hex()

        assert encoded.startswith("d8799f")
        assert encoded.endswith("80ff")

    def test_slt_hash(self):
        """Test module token names depend on SLT content and order."""
        slts = ["I can write a test.", "I can read a transaction."]
        digest = compute_slt_hash(slts)

        assert is_valid_hash(digest)
        assert digest == compute_slt_hash(list(slts))
        assert digest != compute_slt_hash(list(reversed(slts)))
