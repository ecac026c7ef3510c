"""Reconciliation loop: discover pending closes, prove them, confirm them."""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Protocol

from .config import DEFAULT_GAS_LIMIT
from .exceptions import (
    DiscoveryError,
    KeeperException,
    OracleError,
    PassInProgressError,
    ProofValidationError,
    SubmissionError,
)
from .logging_config import LogContext, generate_pass_id
from .models import (
    AttemptOutcome,
    CloseRequest,
    PassResult,
    Proof,
    ProofInspection,
    ProofMode,
    TransactionReference,
)
from .proofs import (
    PerItemProofSource,
    ProofOraclePort,
    ProofSource,
    ProofSourceFactory,
    build_proof_source_factory,
)
from .retry import RetryExhausted, RetryPolicy, RetryStats, SleepFunc, retry_async
from .validation import ProofValidator

logger = logging.getLogger(__name__)

INVALID_ID_REASON = "invalid id"


class LedgerGatewayPort(Protocol):
    async def discover_pending_closes(self) -> List[CloseRequest]: ...

    async def submit_close_confirmation(
        self, position_id: int, proof: Proof, gas_limit: int
    ) -> TransactionReference: ...


def _reason(exc: BaseException) -> str:
    """Short human-readable reason for an outcome."""
    if isinstance(exc, RetryExhausted):
        exc = exc.original_exception
    if isinstance(exc, KeeperException):
        return exc.message
    if isinstance(exc, asyncio.TimeoutError):
        return "timed out"
    return str(exc) or type(exc).__name__


class ReconciliationLoop:
    """Runs reconciliation passes against one ledger and one proof oracle.

    A pass is strictly sequential: submissions share one signing account, so
    each confirmation is awaited before the next request is touched. Only
    one pass runs at a time per loop instance.
    """

    def __init__(
        self,
        *,
        ledger: LedgerGatewayPort,
        oracle: ProofOraclePort,
        proof_mode: ProofMode | str = ProofMode.PER_ITEM,
        validator: Optional[ProofValidator] = None,
        proof_source_factory: Optional[ProofSourceFactory] = None,
        retry_policy: Optional[RetryPolicy] = None,
        gas_limit: int = DEFAULT_GAS_LIMIT,
        call_timeout_seconds: Optional[float] = 60.0,
        submit_timeout_seconds: Optional[float] = None,
        sleep: Optional[SleepFunc] = None,
    ) -> None:
        self._ledger = ledger
        self._oracle = oracle
        self._validator = validator or ProofValidator()
        self.proof_mode = ProofMode(proof_mode)
        self._source_factory = proof_source_factory or build_proof_source_factory(
            self.proof_mode, oracle, self._validator
        )
        self._retry_policy = retry_policy or RetryPolicy()
        self._gas_limit = gas_limit
        self._call_timeout = call_timeout_seconds
        self._submit_timeout = submit_timeout_seconds
        self._sleep = sleep
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def run_pass(self) -> PassResult:
        """Run one full pass.

        Raises DiscoveryError when the ledger cannot be read, OracleError or
        ProofValidationError when the batch proof is unusable, and
        PassInProgressError when another pass holds the loop. Item-level
        failures never raise; they are recorded in the result.
        """
        if self._lock.locked():
            raise PassInProgressError("a reconciliation pass is already running")

        async with self._lock:
            pass_id = generate_pass_id()
            with LogContext(pass_id=pass_id):
                return await self._run_pass(pass_id)

    async def _run_pass(self, pass_id: str) -> PassResult:
        source = self._source_factory()
        result = PassResult(pass_id=pass_id, mode=source.mode)
        try:
            requests = await self._discover()
            logger.info(
                f"Starting pass {pass_id}: {len(requests)} pending close requests "
                f"(proof mode {source.mode.value})"
            )
            await self._bounded(source.prepare())
        except asyncio.TimeoutError as e:
            logger.error(f"Pass {pass_id} aborted: timed out fetching batch proof")
            raise OracleError("timed out fetching batch proof") from e
        except KeeperException as e:
            logger.error(f"Pass {pass_id} aborted: {e.message}")
            raise

        for request in requests:
            with LogContext(position_id=request.position_id):
                outcome = await self._process(source, request)
            result.append(outcome)

        result.finish()
        counts = result.counts()
        logger.info(
            f"Finished pass {pass_id} in {result.duration_seconds:.2f}s: "
            f"{counts['closed']} closed, {counts['failed']} failed, "
            f"{counts['skipped']} skipped"
        )
        return result

    async def inspect_pending(self) -> List[ProofInspection]:
        """Fetch and validate a proof for every pending request without submitting."""
        requests = await self._discover()
        source = PerItemProofSource(self._oracle, self._validator)
        inspections: List[ProofInspection] = []

        for request in requests:
            if not request.is_assigned:
                inspections.append(ProofInspection(
                    position_id=request.position_id,
                    asset_index=request.asset_index,
                    valid=False,
                    reason=INVALID_ID_REASON,
                ))
                continue

            try:
                proof = await self._bounded(source.acquire(request))
            except (OracleError, ProofValidationError, asyncio.TimeoutError) as e:
                inspections.append(ProofInspection(
                    position_id=request.position_id,
                    asset_index=request.asset_index,
                    valid=False,
                    reason=_reason(e),
                ))
            except Exception as e:
                logger.warning(
                    f"Unexpected error inspecting position {request.position_id}: {e}", exc_info=True
                )
                inspections.append(ProofInspection(
                    position_id=request.position_id,
                    asset_index=request.asset_index,
                    valid=False,
                    reason=_reason(e),
                ))
            else:
                inspections.append(ProofInspection(
                    position_id=request.position_id,
                    asset_index=request.asset_index,
                    valid=True,
                    proof_length=len(proof),
                ))

        return inspections

    async def _discover(self) -> List[CloseRequest]:
        try:
            return await self._bounded(self._ledger.discover_pending_closes())
        except asyncio.TimeoutError as e:
            raise DiscoveryError("timed out reading close requests") from e

    async def _bounded(self, awaitable):
        if self._call_timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, self._call_timeout)

    async def _process(self, source: ProofSource, request: CloseRequest) -> AttemptOutcome:
        position_id = request.position_id

        if not request.is_assigned:
            logger.warning(f"Skipping close request with invalid position id {position_id!r}")
            return AttemptOutcome.skipped(position_id, INVALID_ID_REASON)

        try:
            proof = await self._bounded(source.acquire(request))
        except (OracleError, ProofValidationError, asyncio.TimeoutError) as e:
            reason = _reason(e)
            logger.warning(f"No usable proof for position {position_id}: {reason}")
            return AttemptOutcome.failed(position_id, reason)
        except Exception as e:
            logger.warning(f"Unexpected error acquiring proof for position {position_id}: {e}", exc_info=True)
            return AttemptOutcome.failed(position_id, _reason(e))

        stats = RetryStats()
        try:
            tx = await retry_async(
                self._submit,
                position_id,
                proof,
                policy=self._retry_policy,
                stats=stats,
                sleep=self._sleep,
            )
        except (RetryExhausted, SubmissionError) as e:
            reason = _reason(e)
            logger.warning(
                f"Failed to close position {position_id} after {stats.attempts} attempt(s): {reason}"
            )
            return AttemptOutcome.failed(position_id, reason, attempts=stats.attempts)
        except Exception as e:
            logger.warning(f"Unexpected error closing position {position_id}: {e}", exc_info=True)
            return AttemptOutcome.failed(position_id, _reason(e), attempts=stats.attempts)

        logger.info(f"Closed position {position_id} in tx {tx.tx_hash} ({stats.attempts} attempt(s))")
        return AttemptOutcome.closed(position_id, tx.tx_hash, attempts=stats.attempts)

    async def _submit(self, position_id: int, proof: Proof) -> TransactionReference:
        call = self._ledger.submit_close_confirmation(position_id, proof, self._gas_limit)
        if self._submit_timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, self._submit_timeout)
        except asyncio.TimeoutError as e:
            # the transaction may still land, so never resubmit
            raise SubmissionError(
                "submission timed out", transient=False, position_id=position_id
            ) from e


__all__ = [
    "INVALID_ID_REASON",
    "LedgerGatewayPort",
    "ReconciliationLoop",
]
