"""API composition root."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional, Union

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from brokex_core import KeeperSettings, load_settings
from brokex_core.reconciliation import ReconciliationLoop
from brokex_core.retry import RetryPolicy
from brokex_chain.ledger_gateway import LedgerGateway
from brokex_chain.proof_oracle import ProofOracleClient
from brokex_chain.simulated import SimulatedLedgerGateway
from .middleware import RequestLoggingMiddleware
from .routers import closes
from .routers import metrics as metrics_router

logger = logging.getLogger("brokex.api")

API_VERSION = "0.1.0"


@dataclass
class KeeperServices:
    """Client handles built once at startup and shared by every pass."""
    keeper: ReconciliationLoop
    ledger: Union[LedgerGateway, SimulatedLedgerGateway]
    oracle: ProofOracleClient

    async def close(self) -> None:
        await self.oracle.close()
        await self.ledger.close()


def build_keeper(settings: KeeperSettings) -> KeeperServices:
    """Wire the ledger gateway, oracle client and reconciliation loop from settings."""
    if settings.chain_mode == "simulated":
        ledger: Union[LedgerGateway, SimulatedLedgerGateway] = SimulatedLedgerGateway()
    else:
        ledger = LedgerGateway.from_settings(settings)

    oracle = ProofOracleClient.from_settings(settings)
    keeper = ReconciliationLoop(
        ledger=ledger,
        oracle=oracle,
        proof_mode=settings.proof_mode,
        retry_policy=RetryPolicy(
            max_attempts=settings.retry.max_attempts,
            base_delay=settings.retry.interval_seconds,
        ),
        gas_limit=settings.gas_limit,
        call_timeout_seconds=settings.call_timeout_seconds,
    )
    logger.info(
        f"Keeper ready: chain_mode={settings.chain_mode} proof_mode={settings.proof_mode} "
        f"oracle={oracle.base_url}"
    )
    return KeeperServices(keeper=keeper, ledger=ledger, oracle=oracle)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting Brokex keeper API...")
    yield
    logger.info("Shutting down Brokex keeper API...")
    services: Optional[KeeperServices] = getattr(app.state, "services", None)
    if services is not None:
        await services.close()


def create_app(
    settings: KeeperSettings | None = None,
    services: KeeperServices | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    services = services or build_keeper(settings)

    app = FastAPI(
        title="Brokex Close Confirmation Keeper",
        version=API_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services

    app.add_middleware(RequestLoggingMiddleware, exclude_paths=["/health", "/metrics"])

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.dependency_overrides[closes.get_deps] = lambda: closes.CloseDependencies(  # type: ignore[arg-type]
        keeper=services.keeper,
    )
    app.include_router(closes.router)
    app.include_router(metrics_router.router)

    @app.get("/health", tags=["health"])
    async def health_check():
        """Health check endpoint with keeper mode."""
        return {
            "status": "healthy",
            "environment": settings.environment,
            "chain_mode": settings.chain_mode,
            "proof_mode": settings.proof_mode,
            "pass_running": services.keeper.is_running,
        }

    return app
