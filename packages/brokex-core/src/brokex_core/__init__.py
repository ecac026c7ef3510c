"""Core domain primitives for the Brokex close-confirmation keeper."""

from .config import KeeperSettings, RetrySettings, load_settings
from .exceptions import (
    KeeperException,
    ConfigurationError,
    DiscoveryError,
    SubmissionError,
    OracleError,
    ProofValidationError,
    PassInProgressError,
    is_transient,
)
from .models import (
    ProofMode,
    OutcomeStatus,
    CloseRequest,
    Proof,
    TransactionReference,
    AttemptOutcome,
    PassResult,
    ProofInspection,
)
from .validation import ProofValidator
from .proofs import (
    ProofOraclePort,
    ProofSource,
    ProofSourceFactory,
    PerItemProofSource,
    BatchProofSource,
    build_proof_source_factory,
)
from .retry import RetryPolicy, RetryStats, RetryExhausted, retry_async
from .reconciliation import LedgerGatewayPort, ReconciliationLoop
from .logging_config import setup_logging, LogContext

__all__ = [
    "KeeperSettings",
    "RetrySettings",
    "load_settings",
    "KeeperException",
    "ConfigurationError",
    "DiscoveryError",
    "SubmissionError",
    "OracleError",
    "ProofValidationError",
    "PassInProgressError",
    "is_transient",
    "ProofMode",
    "OutcomeStatus",
    "CloseRequest",
    "Proof",
    "TransactionReference",
    "AttemptOutcome",
    "PassResult",
    "ProofInspection",
    "ProofValidator",
    "ProofOraclePort",
    "ProofSource",
    "ProofSourceFactory",
    "PerItemProofSource",
    "BatchProofSource",
    "build_proof_source_factory",
    "RetryPolicy",
    "RetryStats",
    "RetryExhausted",
    "retry_async",
    "LedgerGatewayPort",
    "ReconciliationLoop",
    "setup_logging",
    "LogContext",
]
