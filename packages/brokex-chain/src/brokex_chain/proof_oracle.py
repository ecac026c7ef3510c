"""HTTP client for the proof service."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from brokex_core.config import DEFAULT_PROOF_SERVICE_URL, KeeperSettings
from brokex_core.exceptions import OracleError

logger = logging.getLogger(__name__)


class ProofOracleClient:
    """
    Fetches price proofs from the proof service.

    - POST /get-proof {"index": n} -> {"proof_bytes": "0x..."}
    - GET /proof -> {"proof": "0x..."} (one multiproof for every asset)

    The returned text is not checked here beyond being a string; shape
    validation is the validator's job.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_PROOF_SERVICE_URL,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: KeeperSettings) -> "ProofOracleClient":
        return cls(
            base_url=settings.proof_service_url,
            timeout_seconds=settings.oracle_timeout_seconds,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._http_client

    async def fetch_proof_for_index(self, asset_index: int) -> str:
        body = await self._request("POST", "/get-proof", asset_index, json={"index": asset_index})
        return self._field(body, "proof_bytes", asset_index)

    async def fetch_batch_proof(self) -> str:
        body = await self._request("GET", "/proof", None)
        return self._field(body, "proof", None)

    async def _request(
        self,
        method: str,
        path: str,
        asset_index: Optional[int],
        **kwargs: Any,
    ) -> Dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise OracleError(
                f"proof service unreachable: {e}",
                asset_index=asset_index,
            ) from e

        if response.is_error:
            raise OracleError(
                f"proof service returned HTTP {response.status_code}",
                asset_index=asset_index,
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise OracleError(
                "proof service returned a non-JSON body",
                asset_index=asset_index,
                status_code=response.status_code,
            ) from e

        if not isinstance(body, dict):
            raise OracleError(
                "proof service returned an unexpected body",
                asset_index=asset_index,
                status_code=response.status_code,
            )
        return body

    @staticmethod
    def _field(body: Dict[str, Any], name: str, asset_index: Optional[int]) -> str:
        value = body.get(name)
        if not isinstance(value, str):
            raise OracleError(
                f"proof service response is missing '{name}'",
                asset_index=asset_index,
            )
        logger.debug(f"Received {name} ({len(value)} chars) for index {asset_index}")
        return value

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
