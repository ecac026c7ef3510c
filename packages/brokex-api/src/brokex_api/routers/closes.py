"""Close confirmation endpoints."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from brokex_core.exceptions import PassInProgressError
from brokex_core.reconciliation import ReconciliationLoop

from brokex_api.reporting import (
    PASS_IN_PROGRESS_MESSAGE,
    build_debug_response,
    build_error_response,
    build_results_response,
)
from brokex_api.routers.metrics import record_pass, record_pass_failure

logger = logging.getLogger(__name__)

router = APIRouter(tags=["closes"])


@dataclass
class CloseDependencies:
    keeper: ReconciliationLoop


def get_deps() -> CloseDependencies:
    raise NotImplementedError("must be overridden")


async def _confirm_close_all(deps: CloseDependencies) -> JSONResponse:
    try:
        result = await deps.keeper.run_pass()
    except PassInProgressError as e:
        record_pass_failure("rejected")
        logger.warning(f"Rejected pass trigger: {e.message}")
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=build_error_response(e, PASS_IN_PROGRESS_MESSAGE),
        )
    except Exception as e:
        record_pass_failure("aborted")
        logger.error(f"Failed to confirm close requests: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=build_error_response(e),
        )

    record_pass(result)
    return JSONResponse(content=build_results_response(result))


@router.post("/confirm-close-all")
async def confirm_close_all(deps: CloseDependencies = Depends(get_deps)) -> JSONResponse:
    """Run one reconciliation pass and report every pending request's outcome."""
    return await _confirm_close_all(deps)


@router.get("/confirm-close-all")
async def confirm_close_all_get(deps: CloseDependencies = Depends(get_deps)) -> JSONResponse:
    return await _confirm_close_all(deps)


@router.get("/debug/close-requests")
async def debug_close_requests(deps: CloseDependencies = Depends(get_deps)) -> JSONResponse:
    """Fetch and validate proofs for pending requests without submitting anything."""
    try:
        inspections = await deps.keeper.inspect_pending()
    except Exception as e:
        logger.error(f"Failed to inspect close requests: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=build_error_response(e, "Failed to inspect close requests"),
        )
    return JSONResponse(content=build_debug_response(inspections))
