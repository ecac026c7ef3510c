"""Shapes pass results into the keeper's HTTP response bodies."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List

from brokex_core.models import AttemptOutcome, OutcomeStatus, PassResult, ProofInspection

PASS_FAILED_MESSAGE = "Failed to confirm close requests"
PASS_IN_PROGRESS_MESSAGE = "Pass already running"


def outcome_to_dict(outcome: AttemptOutcome) -> Dict[str, Any]:
    item: Dict[str, Any] = {
        "positionId": outcome.position_id,
        "status": outcome.status.value,
    }
    if outcome.status == OutcomeStatus.CLOSED:
        item["txHash"] = outcome.tx_hash
    elif outcome.status == OutcomeStatus.FAILED:
        item["error"] = outcome.error
    else:
        item["reason"] = outcome.reason
    return item


def build_results_response(result: PassResult) -> Dict[str, List[Dict[str, Any]]]:
    return {"results": [outcome_to_dict(o) for o in result]}


def inspection_to_dict(inspection: ProofInspection) -> Dict[str, Any]:
    item: Dict[str, Any] = {
        "positionId": inspection.position_id,
        "index": inspection.asset_index,
        "status": "valid" if inspection.valid else "invalid",
    }
    if inspection.valid:
        item["proofLength"] = inspection.proof_length
    else:
        item["reason"] = inspection.reason
    return item


def build_debug_response(inspections: Iterable[ProofInspection]) -> Dict[str, List[Dict[str, Any]]]:
    return {"debug": [inspection_to_dict(i) for i in inspections]}


def build_error_response(exc: BaseException, message: str = PASS_FAILED_MESSAGE) -> Dict[str, str]:
    """Body for a pass that could not run to completion."""
    details = getattr(exc, "message", None) or str(exc) or type(exc).__name__
    return {"error": message, "details": details}
