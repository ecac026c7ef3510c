"""Ledger and proof-oracle adapters for the Brokex keeper."""

from .ledger_gateway import (
    CLOSE_REQUESTS_ABI,
    LedgerGateway,
    classify_write_error,
    error_reason,
)
from .simulated import SimulatedLedgerGateway
from .proof_oracle import ProofOracleClient

__all__ = [
    "CLOSE_REQUESTS_ABI",
    "LedgerGateway",
    "classify_write_error",
    "error_reason",
    "SimulatedLedgerGateway",
    "ProofOracleClient",
]
