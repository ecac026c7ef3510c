"""In-memory ledger for simulated chain mode and tests."""
from __future__ import annotations

import asyncio
import logging
import secrets
from typing import Iterable, List, Tuple

from brokex_core.config import DEFAULT_GAS_LIMIT
from brokex_core.exceptions import SubmissionError
from brokex_core.models import CloseRequest, Proof, TransactionReference

logger = logging.getLogger(__name__)


class SimulatedLedgerGateway:
    """Holds pending close requests in memory.

    A successful confirmation removes the position, so the next discovery
    no longer returns it. Confirming a position that is not pending fails
    permanently, the way the contract rejects a second confirmation.
    """

    def __init__(self, pending: Iterable[Tuple[int, int]] = ()) -> None:
        self._pending: List[CloseRequest] = [
            CloseRequest(position_id=pid, asset_index=idx) for pid, idx in pending
        ]
        self._block_number = 0
        self._lock = asyncio.Lock()
        self.submissions: List[Tuple[int, Proof]] = []

    def add_request(self, position_id: int, asset_index: int) -> None:
        self._pending.append(CloseRequest(position_id=position_id, asset_index=asset_index))

    @property
    def pending(self) -> List[CloseRequest]:
        return list(self._pending)

    async def discover_pending_closes(self) -> List[CloseRequest]:
        return list(self._pending)

    async def submit_close_confirmation(
        self,
        position_id: int,
        proof: Proof,
        gas_limit: int = DEFAULT_GAS_LIMIT,
    ) -> TransactionReference:
        async with self._lock:
            self.submissions.append((position_id, proof))
            match = next(
                (r for r in self._pending if r.position_id == position_id and r.is_assigned),
                None,
            )
            if match is None:
                raise SubmissionError(
                    "position not pending",
                    transient=False,
                    position_id=position_id,
                )

            self._pending.remove(match)
            self._block_number += 1
            tx_hash = f"0x{secrets.token_hex(32)}"
            logger.info(f"[SIMULATED] Closed position {position_id} -> {tx_hash}")
            return TransactionReference(
                tx_hash=tx_hash,
                block_number=self._block_number,
                gas_used=min(gas_limit, 21_000 + 16 * len(proof)),
            )

    async def close(self) -> None:
        return None
