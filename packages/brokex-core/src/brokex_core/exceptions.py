"""Unified exception hierarchy for the Brokex keeper.

All keeper exceptions inherit from KeeperException, enabling:
- One catch point for pass-level failures in the HTTP layer
- Proper HTTP status code mapping
- Structured error payloads with machine-readable codes

The three external failure domains each get their own type:

    ledger read   -> DiscoveryError     (aborts the pass)
    proof oracle  -> OracleError        (per item, or the pass in batch mode)
    ledger write  -> SubmissionError    (transient ones are retried)

ProofValidationError covers proofs that arrived but are unusable.
"""
from __future__ import annotations

from typing import Any, Optional


class KeeperException(Exception):
    """Base exception for all keeper errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "ORACLE_ERROR")
        details: Optional additional context
    """

    error_code: str = "KEEPER_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response format."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ConfigurationError(KeeperException):
    """Required configuration is missing or malformed."""

    error_code = "CONFIGURATION_ERROR"
    http_status = 500


# =============================================================================
# Ledger
# =============================================================================

class DiscoveryError(KeeperException):
    """Reading pending close requests from the ledger failed."""

    error_code = "LEDGER_READ_ERROR"
    http_status = 502


class SubmissionError(KeeperException):
    """Submitting or confirming a close transaction failed.

    ``transient`` marks failures where retrying the same submission may
    succeed (transport hiccups). Everything else is permanent.
    """

    error_code = "LEDGER_WRITE_ERROR"
    http_status = 502

    def __init__(
        self,
        message: str,
        *,
        transient: bool = False,
        position_id: Optional[int] = None,
        tx_hash: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        details["transient"] = transient
        if position_id is not None:
            details["position_id"] = position_id
        if tx_hash:
            details["tx_hash"] = tx_hash
        super().__init__(message, details=details)
        self.transient = transient
        self.position_id = position_id
        self.tx_hash = tx_hash


# =============================================================================
# Proofs
# =============================================================================

class OracleError(KeeperException):
    """The proof oracle could not be reached or returned an unusable body."""

    error_code = "ORACLE_ERROR"
    http_status = 502

    def __init__(
        self,
        message: str,
        asset_index: Optional[int] = None,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if asset_index is not None:
            details["asset_index"] = asset_index
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details=details)
        self.asset_index = asset_index
        self.status_code = status_code


class ProofValidationError(KeeperException):
    """A fetched proof failed shape checks and must not be submitted."""

    error_code = "PROOF_VALIDATION_ERROR"
    http_status = 422


# =============================================================================
# Pass control
# =============================================================================

class PassInProgressError(KeeperException):
    """Another reconciliation pass is already running in this process."""

    error_code = "PASS_IN_PROGRESS"
    http_status = 409


def is_transient(exc: BaseException) -> bool:
    """Retry predicate: only transient submission failures are retried."""
    return isinstance(exc, SubmissionError) and exc.transient


__all__ = [
    "KeeperException",
    "ConfigurationError",
    "DiscoveryError",
    "SubmissionError",
    "OracleError",
    "ProofValidationError",
    "PassInProgressError",
    "is_transient",
]
