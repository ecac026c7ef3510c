"""
Pytest configuration for brokex-core tests.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple
from unittest.mock import AsyncMock

import pytest

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(package_src))

# Set test environment
os.environ.setdefault("BROKEX_ENVIRONMENT", "dev")
os.environ.setdefault("BROKEX_CHAIN_MODE", "simulated")

from brokex_core.exceptions import OracleError  # noqa: E402
from brokex_core.models import CloseRequest, TransactionReference  # noqa: E402


class FakeOracle:
    """Proof oracle double keyed by asset index."""

    def __init__(
        self,
        proofs: Optional[Dict[int, object]] = None,
        batch: object = "0xbeef",
    ) -> None:
        self.proofs = proofs or {}
        self.batch = batch
        self.index_calls: List[int] = []
        self.batch_calls = 0

    async def fetch_proof_for_index(self, asset_index: int) -> str:
        self.index_calls.append(asset_index)
        value = self.proofs.get(asset_index, OracleError("no proof", asset_index=asset_index))
        if isinstance(value, BaseException):
            raise value
        return value

    async def fetch_batch_proof(self) -> str:
        self.batch_calls += 1
        if isinstance(self.batch, BaseException):
            raise self.batch
        return self.batch


def make_ledger(pending: Iterable[Tuple[int, int]] = (), submit_side_effect=None) -> AsyncMock:
    ledger = AsyncMock()
    ledger.discover_pending_closes.return_value = [
        CloseRequest(position_id=pid, asset_index=idx) for pid, idx in pending
    ]
    if submit_side_effect is None:
        ledger.submit_close_confirmation.side_effect = (
            lambda position_id, proof, gas_limit: TransactionReference(
                tx_hash=f"0x{position_id:064x}"
            )
        )
    else:
        ledger.submit_close_confirmation.side_effect = submit_side_effect
    return ledger


@pytest.fixture
def fake_oracle():
    return FakeOracle


@pytest.fixture
def ledger_factory():
    return make_ledger


@pytest.fixture
def no_sleep():
    """Injected retry sleep that records delays instead of waiting."""
    return AsyncMock()
