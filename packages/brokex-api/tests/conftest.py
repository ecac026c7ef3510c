"""Pytest configuration and fixtures for Brokex API tests."""
from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Dict

import httpx
import pytest

# Ensure local packages are importable when running pytest directly.
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
packages_dir = Path(__file__).parent.parent.parent
for pkg in ["brokex-core", "brokex-chain", "brokex-cli"]:
    pkg_path = packages_dir / pkg / "src"
    if pkg_path.exists():
        sys.path.insert(0, str(pkg_path))

# Set test environment before importing app
os.environ["BROKEX_ENVIRONMENT"] = "dev"
os.environ["BROKEX_CHAIN_MODE"] = "simulated"

from brokex_core.config import KeeperSettings  # noqa: E402
from brokex_core.reconciliation import ReconciliationLoop  # noqa: E402
from brokex_core.retry import RetryPolicy  # noqa: E402
from brokex_chain.proof_oracle import ProofOracleClient  # noqa: E402
from brokex_chain.simulated import SimulatedLedgerGateway  # noqa: E402
from brokex_api.main import KeeperServices, create_app  # noqa: E402


def oracle_transport(proofs: Dict[int, str], batch: str = "0xbeef") -> httpx.MockTransport:
    """Proof service double: per-index proofs, 404 for unknown indexes."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/proof":
            return httpx.Response(200, json={"proof": batch})
        asset_index = json.loads(request.content)["index"]
        if asset_index not in proofs:
            return httpx.Response(404, json={"error": "unknown index"})
        return httpx.Response(200, json={"proof_bytes": proofs[asset_index]})

    return httpx.MockTransport(handler)


async def _no_sleep(delay: float) -> None:
    return None


@pytest.fixture
def settings() -> KeeperSettings:
    return KeeperSettings(_env_file=None, chain_mode="simulated", environment="dev")


@pytest.fixture
def make_services():
    def factory(pending=(), proofs=None, batch="0xbeef", proof_mode="per_item", ledger=None):
        ledger = ledger or SimulatedLedgerGateway(pending)
        oracle = ProofOracleClient(
            base_url="https://proofs.test",
            transport=oracle_transport(proofs or {}, batch),
        )
        keeper = ReconciliationLoop(
            ledger=ledger,
            oracle=oracle,
            proof_mode=proof_mode,
            retry_policy=RetryPolicy(max_attempts=15, base_delay=1.0),
            sleep=_no_sleep,
        )
        return KeeperServices(keeper=keeper, ledger=ledger, oracle=oracle)

    return factory


@pytest.fixture
def make_app(settings):
    def factory(services: KeeperServices):
        return create_app(settings, services=services)

    return factory
