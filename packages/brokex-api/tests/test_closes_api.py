from __future__ import annotations

import logging
from unittest.mock import AsyncMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from brokex_core.exceptions import DiscoveryError, PassInProgressError, SubmissionError
from brokex_core.logging_config import KeeperContextFilter
from brokex_core.models import CloseRequest
from brokex_api.routers.closes import CloseDependencies, get_deps, router


def _build_app(keeper) -> FastAPI:
    app = FastAPI()
    app.dependency_overrides[get_deps] = lambda: CloseDependencies(keeper=keeper)
    app.include_router(router)
    return app


def test_confirm_close_all_mixed_pass(make_services, make_app):
    services = make_services(pending=[(7, 1), (0, 2), (9, 3)], proofs={1: "0xaa", 3: "0xbb"})

    with TestClient(make_app(services)) as client:
        response = client.post("/confirm-close-all")

    assert response.status_code == 200
    results = response.json()["results"]
    assert [r["positionId"] for r in results] == [7, 0, 9]
    assert [r["status"] for r in results] == ["closed", "skipped", "closed"]
    assert results[0]["txHash"].startswith("0x")
    assert results[1] == {"positionId": 0, "status": "skipped", "reason": "invalid id"}
    assert "error" not in results[0]


def test_get_alias_runs_a_pass(make_services, make_app):
    services = make_services(pending=[(5, 1)], proofs={1: "0x01"})

    with TestClient(make_app(services)) as client:
        response = client.get("/confirm-close-all")

    assert response.status_code == 200
    assert response.json()["results"][0]["status"] == "closed"


def test_closed_position_is_not_rediscovered(make_services, make_app):
    services = make_services(pending=[(5, 1)], proofs={1: "0x01"})

    with TestClient(make_app(services)) as client:
        first = client.post("/confirm-close-all").json()["results"]
        second = client.post("/confirm-close-all").json()["results"]

    assert [r["status"] for r in first] == ["closed"]
    assert second == []


def test_item_failures_are_reported(make_services, make_app):
    services = make_services(pending=[(3, 1), (4, 2)], proofs={1: "notHex"})

    with TestClient(make_app(services)) as client:
        results = client.post("/confirm-close-all").json()["results"]

    assert results[0] == {"positionId": 3, "status": "failed", "error": "proof must start with 0x"}
    assert results[1]["status"] == "failed"
    assert "HTTP 404" in results[1]["error"]
    assert services.ledger.submissions == []


def test_batch_abort_returns_500(make_services, make_app):
    services = make_services(pending=[(3, 1)], batch="notHex", proof_mode="batch")

    with TestClient(make_app(services)) as client:
        response = client.post("/confirm-close-all")

    assert response.status_code == 500
    assert response.json() == {
        "error": "Failed to confirm close requests",
        "details": "proof must start with 0x",
    }
    assert services.ledger.submissions == []


def test_discovery_failure_returns_500():
    keeper = AsyncMock()
    keeper.run_pass.side_effect = DiscoveryError("failed to read close requests: rpc down")

    client = TestClient(_build_app(keeper))
    response = client.post("/confirm-close-all")

    assert response.status_code == 500
    assert response.json() == {
        "error": "Failed to confirm close requests",
        "details": "failed to read close requests: rpc down",
    }


def test_unexpected_failure_returns_500():
    keeper = AsyncMock()
    keeper.run_pass.side_effect = RuntimeError("boom")

    response = TestClient(_build_app(keeper)).post("/confirm-close-all")

    assert response.status_code == 500
    assert response.json()["details"] == "boom"


def test_concurrent_pass_returns_409():
    keeper = AsyncMock()
    keeper.run_pass.side_effect = PassInProgressError("a reconciliation pass is already running")

    response = TestClient(_build_app(keeper)).post("/confirm-close-all")

    assert response.status_code == 409
    assert response.json() == {
        "error": "Pass already running",
        "details": "a reconciliation pass is already running",
    }


def test_retry_exhaustion_reports_last_reason(make_services, make_app):
    ledger = AsyncMock()
    ledger.discover_pending_closes.return_value = [CloseRequest(11, 1)]
    ledger.submit_close_confirmation.side_effect = SubmissionError(
        "processing response error", transient=True
    )
    services = make_services(proofs={1: "0x01"}, ledger=ledger)

    with TestClient(make_app(services)) as client:
        results = client.post("/confirm-close-all").json()["results"]

    assert results == [{"positionId": 11, "status": "failed", "error": "processing response error"}]
    assert ledger.submit_close_confirmation.await_count == 15


def test_debug_close_requests(make_services, make_app):
    services = make_services(pending=[(7, 1), (0, 2), (9, 3)], proofs={1: "0xaabb", 3: "0xzz"})

    with TestClient(make_app(services)) as client:
        response = client.get("/debug/close-requests")

    assert response.status_code == 200
    assert response.json() == {
        "debug": [
            {"positionId": 7, "index": 1, "status": "valid", "proofLength": 2},
            {"positionId": 0, "index": 2, "status": "invalid", "reason": "invalid id"},
            {"positionId": 9, "index": 3, "status": "invalid", "reason": "proof is not valid hex"},
        ]
    }
    assert services.ledger.submissions == []


def test_debug_discovery_failure_returns_500():
    keeper = AsyncMock()
    keeper.inspect_pending.side_effect = DiscoveryError("rpc down")

    response = TestClient(_build_app(keeper)).get("/debug/close-requests")

    assert response.status_code == 500
    assert response.json()["details"] == "rpc down"


def test_health_reports_modes(make_services, make_app):
    with TestClient(make_app(make_services())) as client:
        response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["chain_mode"] == "simulated"
    assert body["proof_mode"] == "per_item"


def test_cors_allows_configured_origin(make_services, make_app):
    with TestClient(make_app(make_services())) as client:
        response = client.options(
            "/confirm-close-all",
            headers={
                "Origin": "https://brokex.trade",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "https://brokex.trade"


def test_request_id_is_echoed(make_services, make_app):
    with TestClient(make_app(make_services())) as client:
        response = client.post("/confirm-close-all", headers={"X-Request-ID": "req_test"})

    assert response.headers["X-Request-ID"] == "req_test"


def test_metrics_count_outcomes(make_services, make_app):
    services = make_services(pending=[(7, 1), (0, 2)], proofs={1: "0xaa"})

    with TestClient(make_app(services)) as client:
        client.post("/confirm-close-all")
        response = client.get("/metrics")

    assert response.status_code == 200
    text = response.text
    assert 'brokex_close_outcomes_total{status="closed"}' in text
    assert 'brokex_close_outcomes_total{status="skipped"}' in text
    assert "brokex_pass_duration_seconds_count" in text


def test_completion_log_carries_request_id(make_services, make_app, caplog):
    caplog.handler.addFilter(KeeperContextFilter())
    caplog.set_level(logging.INFO, logger="brokex.api")

    with TestClient(make_app(make_services())) as client:
        client.post("/confirm-close-all", headers={"X-Request-ID": "req_logged"})

    completed = [r for r in caplog.records if getattr(r, "event", None) == "request_complete"]
    assert completed
    assert completed[-1].request_id == "req_logged"
