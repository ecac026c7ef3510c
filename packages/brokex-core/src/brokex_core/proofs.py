"""Proof acquisition strategies.

The reconciliation loop is written against one capability, ProofSource,
with two implementations picked by configuration:

- PerItemProofSource fetches and validates a proof for every request.
- BatchProofSource fetches one multiproof when the pass starts and hands
  the same proof to every request.

Sources are built fresh for every pass, so a batch proof never outlives
the pass that fetched it.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

from .exceptions import ProofValidationError
from .models import CloseRequest, Proof, ProofMode
from .validation import ProofValidator

logger = logging.getLogger(__name__)


class ProofOraclePort(Protocol):
    async def fetch_proof_for_index(self, asset_index: int) -> str: ...

    async def fetch_batch_proof(self) -> str: ...


class ProofSource(Protocol):
    mode: ProofMode

    async def prepare(self) -> None: ...

    async def acquire(self, request: CloseRequest) -> Proof: ...


ProofSourceFactory = Callable[[], ProofSource]


class PerItemProofSource:
    """One oracle call per close request."""

    mode = ProofMode.PER_ITEM

    def __init__(self, oracle: ProofOraclePort, validator: ProofValidator) -> None:
        self._oracle = oracle
        self._validator = validator

    async def prepare(self) -> None:
        return None

    async def acquire(self, request: CloseRequest) -> Proof:
        raw = await self._oracle.fetch_proof_for_index(request.asset_index)
        return self._validator.validate(raw)


class BatchProofSource:
    """One shared multiproof for the whole pass."""

    mode = ProofMode.BATCH

    def __init__(self, oracle: ProofOraclePort, validator: ProofValidator) -> None:
        self._oracle = oracle
        self._validator = validator
        self._proof: Optional[Proof] = None

    async def prepare(self) -> None:
        raw = await self._oracle.fetch_batch_proof()
        self._proof = self._validator.validate(raw)
        logger.info(f"Fetched batch proof ({len(self._proof)} bytes)")

    async def acquire(self, request: CloseRequest) -> Proof:
        if self._proof is None:
            raise ProofValidationError("batch proof was not prepared for this pass")
        return self._proof


def build_proof_source_factory(
    mode: ProofMode | str,
    oracle: ProofOraclePort,
    validator: Optional[ProofValidator] = None,
) -> ProofSourceFactory:
    """Return a factory producing a fresh source of the configured kind."""
    mode = ProofMode(mode)
    validator = validator or ProofValidator()

    if mode == ProofMode.BATCH:
        return lambda: BatchProofSource(oracle, validator)
    return lambda: PerItemProofSource(oracle, validator)
