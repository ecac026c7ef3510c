"""
Ledger gateway for the Brokex trading contract.

Reads pending close requests and submits proof-backed close confirmations
through web3.py. web3's HTTP provider is blocking, so every call runs in a
worker thread to keep the event loop free for the API.

Failures are mapped onto the keeper's exception hierarchy:
- reads raise DiscoveryError
- writes raise SubmissionError, flagged transient only for transport-level
  failures before the transaction is broadcast; once a hash exists every
  failure is permanent
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, List

import requests
from eth_account import Account
from web3 import Web3
from web3.exceptions import (
    ContractLogicError,
    ProviderConnectionError,
    TimeExhausted,
)

from brokex_core.config import DEFAULT_GAS_LIMIT, KeeperSettings
from brokex_core.exceptions import DiscoveryError, SubmissionError
from brokex_core.models import CloseRequest, Proof, TransactionReference

logger = logging.getLogger(__name__)


CLOSE_REQUESTS_ABI = [
    {
        "inputs": [],
        "name": "getAllCloseRequests",
        "outputs": [
            {"internalType": "uint256[]", "name": "positionIds", "type": "uint256[]"},
            {"internalType": "uint256[]", "name": "assetIndexes", "type": "uint256[]"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "uint256", "name": "positionId", "type": "uint256"},
            {"internalType": "bytes", "name": "proof", "type": "bytes"},
        ],
        "name": "confirmClosePositionWithProof",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

# Textual signal the RPC layer uses for flaky upstream responses
TRANSIENT_MARKERS = ("processing response error",)

_TRANSPORT_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    ProviderConnectionError,
    ConnectionError,
)


def error_reason(exc: BaseException) -> str:
    """Best available reason: a revert reason if there is one, else the message."""
    if isinstance(exc, ContractLogicError) and getattr(exc, "message", None):
        return str(exc.message)
    reason = getattr(exc, "reason", None)
    if isinstance(reason, str) and reason:
        return reason
    return str(exc) or type(exc).__name__


def classify_write_error(exc: BaseException) -> bool:
    """Return True when a failed submission is worth retrying."""
    if isinstance(exc, (ContractLogicError, TimeExhausted)):
        return False
    if isinstance(exc, _TRANSPORT_ERRORS):
        return True
    reason = error_reason(exc).lower()
    return any(marker in reason for marker in TRANSIENT_MARKERS)


class LedgerGateway:
    """web3-backed access to getAllCloseRequests and confirmClosePositionWithProof."""

    def __init__(
        self,
        w3: Web3,
        contract_address: str,
        private_key: str,
        receipt_timeout_seconds: float = 120.0,
    ) -> None:
        self._w3 = w3
        self._contract = w3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=CLOSE_REQUESTS_ABI,
        )
        self._account = Account.from_key(private_key)
        self._receipt_timeout = receipt_timeout_seconds

    @classmethod
    def from_settings(cls, settings: KeeperSettings) -> "LedgerGateway":
        settings.validate_for_live()
        w3 = Web3(Web3.HTTPProvider(
            settings.rpc_url,
            request_kwargs={"timeout": settings.rpc_timeout_seconds},
        ))
        return cls(
            w3,
            settings.contract_address,
            settings.private_key.get_secret_value(),
            receipt_timeout_seconds=settings.receipt_timeout_seconds,
        )

    async def discover_pending_closes(self) -> List[CloseRequest]:
        try:
            position_ids, asset_indexes = await asyncio.to_thread(
                self._contract.functions.getAllCloseRequests().call
            )
        except Exception as e:
            logger.error(f"Failed to read close requests: {error_reason(e)}")
            raise DiscoveryError(
                f"failed to read close requests: {error_reason(e)}",
                details={"exception": type(e).__name__},
            ) from e

        if len(position_ids) != len(asset_indexes):
            raise DiscoveryError(
                "close request arrays have different lengths",
                details={
                    "position_ids": len(position_ids),
                    "asset_indexes": len(asset_indexes),
                },
            )

        requests_ = [
            CloseRequest(position_id=int(pid), asset_index=int(idx))
            for pid, idx in zip(position_ids, asset_indexes)
        ]
        logger.debug(f"Discovered {len(requests_)} close requests")
        return requests_

    async def submit_close_confirmation(
        self,
        position_id: int,
        proof: Proof,
        gas_limit: int = DEFAULT_GAS_LIMIT,
    ) -> TransactionReference:
        return await asyncio.to_thread(self._submit_sync, position_id, proof, gas_limit)

    def _submit_sync(self, position_id: int, proof: Proof, gas_limit: int) -> TransactionReference:
        try:
            tx = self._contract.functions.confirmClosePositionWithProof(
                position_id, proof.data
            ).build_transaction({
                "from": self._account.address,
                "nonce": self._w3.eth.get_transaction_count(self._account.address, "pending"),
                "gas": gas_limit,
            })
            signed = self._account.sign_transaction(tx)
            tx_hash = Web3.to_hex(self._w3.eth.send_raw_transaction(signed.raw_transaction))
        except Exception as e:
            raise SubmissionError(
                error_reason(e),
                transient=classify_write_error(e),
                position_id=position_id,
            ) from e

        logger.info(f"Submitted close confirmation for position {position_id}: {tx_hash}")

        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout
            )
        except Exception as e:
            # already broadcast, never resubmit
            logger.error(f"No receipt for {tx_hash} (position {position_id}): {error_reason(e)}")
            raise SubmissionError(
                f"no receipt for transaction {tx_hash}: {error_reason(e)}",
                transient=False,
                position_id=position_id,
                tx_hash=tx_hash,
            ) from e

        if _receipt_field(receipt, "status") == 0:
            raise SubmissionError(
                f"transaction {tx_hash} reverted",
                transient=False,
                position_id=position_id,
                tx_hash=tx_hash,
            )

        return TransactionReference(
            tx_hash=tx_hash,
            block_number=_receipt_field(receipt, "blockNumber"),
            gas_used=_receipt_field(receipt, "gasUsed"),
        )

    async def close(self) -> None:
        return None


def _receipt_field(receipt: Any, name: str) -> Any:
    try:
        return receipt[name]
    except (KeyError, TypeError):
        return getattr(receipt, name, None)
