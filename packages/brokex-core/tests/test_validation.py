"""Tests for proof validation."""
from __future__ import annotations

import pytest

from brokex_core.exceptions import ProofValidationError
from brokex_core.validation import ProofValidator


@pytest.fixture
def validator():
    return ProofValidator()


def test_valid_hex_proof(validator):
    proof = validator.validate("0xdeadbeef")
    assert proof.data == bytes.fromhex("deadbeef")
    assert proof.encoded == "0xdeadbeef"
    assert len(proof) == 4


def test_bytes_pass_through(validator):
    proof = validator.validate(b"\x01\x02")
    assert proof.data == b"\x01\x02"
    assert proof.hex() == "0x0102"


@pytest.mark.parametrize(
    "raw, reason",
    [
        (None, "empty proof"),
        ("", "empty proof"),
        (b"", "empty proof"),
        ("0x", "empty proof"),
        ("notHex", "proof must start with 0x"),
        ("deadbeef", "proof must start with 0x"),
        ("0xabc", "proof hex has odd length"),
        ("0xzz", "proof is not valid hex"),
    ],
)
def test_rejected_proofs(validator, raw, reason):
    with pytest.raises(ProofValidationError) as exc_info:
        validator.validate(raw)
    assert exc_info.value.message == reason
    assert exc_info.value.http_status == 422


def test_rejects_non_text_types(validator):
    with pytest.raises(ProofValidationError) as exc_info:
        validator.validate(123)  # type: ignore[arg-type]
    assert exc_info.value.details["type"] == "int"
