"""Shape checks for oracle proofs before they reach the ledger."""
from __future__ import annotations

import logging
from typing import Union

from eth_utils import decode_hex, is_hex

from .exceptions import ProofValidationError
from .models import Proof

logger = logging.getLogger(__name__)

HEX_PREFIX = "0x"

RawProof = Union[str, bytes, bytearray, None]


class ProofValidator:
    """
    Turns raw oracle output into a Proof or rejects it.

    Accepted inputs:
    - text: must start with the canonical ``0x`` prefix followed by a
      non-empty, even-length hexadecimal payload
    - bytes: must be non-empty
    """

    def validate(self, raw: RawProof) -> Proof:
        if raw is None:
            raise ProofValidationError("empty proof")

        if isinstance(raw, (bytes, bytearray)):
            if not raw:
                raise ProofValidationError("empty proof")
            return Proof(data=bytes(raw))

        if not isinstance(raw, str):
            raise ProofValidationError(
                f"unexpected proof type: {type(raw).__name__}",
                details={"type": type(raw).__name__},
            )

        text = raw.strip()
        if not text:
            raise ProofValidationError("empty proof")

        if not text.startswith(HEX_PREFIX):
            raise ProofValidationError(
                f"proof must start with {HEX_PREFIX}",
                details={"prefix": text[:2]},
            )

        payload = text[len(HEX_PREFIX):]
        if not payload:
            raise ProofValidationError("empty proof")

        if len(payload) % 2:
            raise ProofValidationError(
                "proof hex has odd length",
                details={"length": len(payload)},
            )

        if not is_hex(text):
            raise ProofValidationError("proof is not valid hex")

        proof = Proof(data=decode_hex(text), encoded=text)
        logger.debug(f"Validated proof of {len(proof)} bytes")
        return proof
