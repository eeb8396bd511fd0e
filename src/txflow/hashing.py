"""Deterministic content hashing.

Hashes produced here are used two ways:
- as on-chain identifiers (module token names, task ids, evidence fingerprints)
- as idempotency / consistency keys compared against gateway-echoed values

All digests are Blake2b-256, returned as 64-character lowercase hex.
"""

import hashlib
import json
import logging
import re
import struct
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

DIGEST_SIZE = 32
PLUTUS_CHUNK_SIZE = 64

_HASH_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def blake2b_256(data: bytes) -> str:
    """Blake2b-256 hex digest of raw bytes."""
    return hashlib.blake2b(data, digest_size=DIGEST_SIZE).hexdigest()


def normalize_for_hashing(value: Any) -> Any:
    """Normalize a JSON-like value so equal content serializes identically.

    - mappings: string keys only, sorted; values normalized recursively
    - lists/tuples: order preserved, items normalized
    - strings: surrounding whitespace stripped
    - integral floats collapse to int (1.0 and 1 hash the same)
    """
    if value is None or isinstance(value, bool):
        return value

    if isinstance(value, str):
        return value.strip()

    if isinstance(value, float):
        return int(value) if value.is_integer() else value

    if isinstance(value, int):
        return value

    if isinstance(value, Mapping):
        for key in value:
            if not isinstance(key, str):
                raise TypeError(f"Cannot hash mapping key of type {type(key).__name__}")
        return {key: normalize_for_hashing(value[key]) for key in sorted(value)}

    if isinstance(value, (list, tuple)):
        return [normalize_for_hashing(item) for item in value]

    raise TypeError(f"Cannot hash value of type {type(value).__name__}")


def compute_hash(payload: Any) -> str:
    """Compute the content hash of a JSON-like payload.

    Args:
        payload: Any JSON-serializable structure

    Returns:
        64-character lowercase hex Blake2b-256 digest
    """
    normalized = normalize_for_hashing(payload)
    serialized = json.dumps(
        normalized,
        separators=(",", ":"),
        sort_keys=True,
        ensure_ascii=False,
    )
    return blake2b_256(serialized.encode("utf-8"))


def is_valid_hash(value: Any) -> bool:
    """Check that a value looks like a Blake2b-256 hex digest."""
    return isinstance(value, str) and bool(_HASH_RE.match(value))


def verify_hash(payload: Any, expected_hash: str) -> bool:
    """Check that a payload produces the expected hash (case-insensitive)."""
    return compute_hash(payload) == expected_hash.lower()


@dataclass
class HashVerification:
    """Detailed result of comparing content against a recorded hash."""

    is_valid: bool
    computed_hash: str
    expected_hash: str
    message: str


def verify_evidence(payload: Any, on_chain_hash: str) -> HashVerification:
    """Verify stored content against the hash recorded on-chain."""
    if not is_valid_hash(on_chain_hash):
        return HashVerification(
            is_valid=False,
            computed_hash="",
            expected_hash=on_chain_hash,
            message="Invalid on-chain hash format",
        )

    computed = compute_hash(payload)
    if computed == on_chain_hash.lower():
        return HashVerification(
            is_valid=True,
            computed_hash=computed,
            expected_hash=on_chain_hash,
            message="Content matches on-chain commitment",
        )

    return HashVerification(
        is_valid=False,
        computed_hash=computed,
        expected_hash=on_chain_hash,
        message="Content has been modified since the on-chain commitment",
    )


def check_echoed_hashes(
    expected: Mapping[str, str],
    echoed: Optional[Mapping[str, Any]],
    context: str = "",
) -> list[str]:
    """Compare client-computed hashes with values echoed by the gateway.

    Mismatches are logged as warnings and never raise: the chain is the
    source of truth.

    Returns:
        Keys whose echoed value differs from the expected hash
    """
    if not expected or not echoed:
        return []

    mismatched = []
    for key, computed in expected.items():
        if key not in echoed:
            continue
        echoed_value = echoed[key]
        if not isinstance(echoed_value, str) or echoed_value.lower() != computed.lower():
            mismatched.append(key)
            logger.warning(
                f"Hash mismatch{f' for {context}' if context else ''}: "
                f"{key} computed={computed} gateway={echoed_value}"
            )
    return mismatched


# =============================================================================
# Plutus data encoding (on-chain identifiers)
# =============================================================================


def _cbor_head(major: int, length: int) -> bytes:
    """Encode a CBOR initial byte plus argument."""
    if length <= 23:
        return bytes([(major << 5) | length])
    if length <= 0xFF:
        return bytes([(major << 5) | 24, length])
    if length <= 0xFFFF:
        return bytes([(major << 5) | 25]) + struct.pack(">H", length)
    if length <= 0xFFFFFFFF:
        return bytes([(major << 5) | 26]) + struct.pack(">I", length)
    return bytes([(major << 5) | 27]) + struct.pack(">Q", length)


def _cbor_int(n: int) -> bytes:
    if n >= 0:
        return _cbor_head(0, n)
    return _cbor_head(1, -1 - n)


def _cbor_bytes(data: bytes) -> bytes:
    if len(data) > 0xFFFF:
        raise ValueError("Byte string too long for CBOR encoding")
    return _cbor_head(2, len(data)) + data


def _plutus_bytes(data: bytes) -> bytes:
    """Encode bytes the way Plutus ``stringToBuiltinByteString`` serializes them.

    Up to 64 bytes is a plain byte string; longer values become an
    indefinite-length byte string of 64-byte chunks.
    """
    if len(data) <= PLUTUS_CHUNK_SIZE:
        return _cbor_bytes(data)

    chunks = [b"\x5f"]
    for i in range(0, len(data), PLUTUS_CHUNK_SIZE):
        chunks.append(_cbor_bytes(data[i:i + PLUTUS_CHUNK_SIZE]))
    chunks.append(b"\xff")
    return b"".join(chunks)


def compute_slt_hash(slts: Sequence[str]) -> str:
    """Compute a module token name from its learning target strings.

    Serialization is a CBOR indefinite array of UTF-8 byte strings.
    """
    body = b"".join(_plutus_bytes(slt.encode("utf-8")) for slt in slts)
    return blake2b_256(b"\x9f" + body + b"\xff")


def _encode_native_assets(assets: Sequence[Sequence[Any]]) -> bytes:
    if not assets:
        return b"\x80"

    chunks = [b"\x9f"]
    for asset_class, quantity in assets:
        chunks.append(b"\x82")
        chunks.append(_plutus_bytes(str(asset_class).encode("utf-8")))
        chunks.append(_cbor_int(int(quantity)))
    chunks.append(b"\xff")
    return b"".join(chunks)


def encode_task(task: Mapping[str, Any]) -> bytes:
    """Encode task data as Plutus ``Constr 0`` (tag 121, indefinite array)."""
    return b"".join([
        b"\xd8\x79\x9f",
        _plutus_bytes(str(task["project_content"]).encode("utf-8")),
        _cbor_int(int(task["expiration_time"])),
        _cbor_int(int(task["lovelace_amount"])),
        _encode_native_assets(task.get("native_assets") or []),
        b"\xff",
    ])


def compute_task_hash(task: Mapping[str, Any]) -> str:
    """Compute the on-chain task id for a project task.

    Args:
        task: Mapping with project_content, expiration_time (POSIX ms),
            lovelace_amount and native_assets ([asset_class, quantity] pairs)
    """
    return blake2b_256(encode_task(task))
