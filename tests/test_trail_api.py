import asyncio
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from crowdfund.api.deps import get_scheduler, get_trails
from crowdfund.main import app
from crowdfund.providers.trails import TrailsAPIError
from crowdfund.services.crowdfund import StepStat
from crowdfund.services.refresh import RefreshScheduler
from crowdfund.types.trails import EvaluationResponse, ExecutionQueryResponse, ReadNodeResponse

WALLET = "0x1234567890123456789012345678901234567890"
TX_HASH = "0x" + "12" * 32

client = TestClient(app)


def _history(*hashes) -> ExecutionQueryResponse:
    return ExecutionQueryResponse.model_validate(
        {
            "walletExecutions": [
                {
                    "walletAddress": WALLET,
                    "executions": [
                        {
                            "id": "exec-1",
                            "steps": [{"stepNumber": i + 1, "txHash": h} for i, h in enumerate(hashes)],
                        }
                    ],
                }
            ]
        }
    )


@pytest.fixture
def trails():
    mock = AsyncMock()
    app.dependency_overrides[get_trails] = lambda: mock
    yield mock
    app.dependency_overrides.clear()


def test_wallet_step(trails):
    trails.query_executions.return_value = _history(TX_HASH)

    resp = client.get(f"/trail/wallets/{WALLET}/step")

    assert resp.status_code == 200
    body = resp.json()
    assert body["currentStep"] == 2
    assert body["steps"]["1"] == "completed"
    assert body["error"] is None


def test_wallet_step_degrades_on_upstream_error(trails):
    trails.query_executions.side_effect = TrailsAPIError("Execution query API unreachable")

    resp = client.get(f"/trail/wallets/{WALLET}/step")

    assert resp.status_code == 200
    assert resp.json()["currentStep"] == 1
    assert resp.json()["error"] == "Execution query API unreachable"


def test_invalid_wallet_is_422(trails):
    resp = client.get("/trail/wallets/not-an-address/step")
    assert resp.status_code == 422
    trails.query_executions.assert_not_called()


def test_history_maps_upstream_errors(trails):
    trails.query_executions.side_effect = TrailsAPIError("Execution query API failed: 500 - x", status_code=500)
    assert client.get(f"/trail/wallets/{WALLET}/history").status_code == 502

    trails.query_executions.side_effect = TrailsAPIError("Execution query API failed: 404 - x", status_code=404)
    assert client.get(f"/trail/wallets/{WALLET}/history").status_code == 404


def test_balance(trails):
    trails.read_node.return_value = ReadNodeResponse.model_validate({"outputs": {"arg_0": {"value": "2500000"}}})

    resp = client.get(f"/trail/wallets/{WALLET}/balance")

    assert resp.json() == {"walletAddress": WALLET, "balance": "2.50", "symbol": "USDC"}


def test_evaluation_rejects_bad_amount(trails):
    resp = client.post("/trail/steps/2/evaluations", json={"walletAddress": WALLET, "amount": "-3"})

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Please enter a valid donation amount"
    trails.get_evaluation.assert_not_called()


def test_evaluation_returns_calldata(trails):
    trails.get_evaluation.return_value = EvaluationResponse(
        contract_address="0xcontract", call_data="0xdata", payable_amount="0"
    )

    resp = client.post("/trail/steps/2/evaluations", json={"walletAddress": WALLET, "amount": "3"})

    assert resp.status_code == 200
    assert resp.json()["evaluation"]["callData"] == "0xdata"


def test_record_execution_returns_new_step(trails):
    trails.query_executions.return_value = _history(TX_HASH, TX_HASH)

    resp = client.post(
        "/trail/executions",
        json={"stepNumber": 2, "transactionHash": TX_HASH, "walletAddress": WALLET},
    )

    assert resp.status_code == 200
    assert resp.json()["stepState"]["currentStep"] == 3
    trails.save_execution.assert_awaited_once()


def test_record_execution_validates_hash(trails):
    resp = client.post(
        "/trail/executions",
        json={"stepNumber": 1, "transactionHash": "0x1", "walletAddress": WALLET},
    )
    assert resp.status_code == 422
    trails.save_execution.assert_not_called()


def test_stats_fetched_live_without_snapshot(trails):
    trails.query_executions.return_value = ExecutionQueryResponse()
    app.dependency_overrides[get_scheduler] = lambda: None

    resp = client.get("/trail/stats")

    assert resp.status_code == 200
    assert resp.json()["cached"] is False
    assert [s["transactions"] for s in resp.json()["steps"]] == [0, 0, 0]


def test_stats_served_from_scheduler_snapshot(trails):
    scheduler = RefreshScheduler()

    async def stats():
        return [StepStat(step_number=1, name="Approve USDC", wallets=1, transactions=1, percentage=100.0)]

    scheduler.register("step_stats", stats, 60)
    asyncio.run(scheduler.refresh_now("step_stats"))
    app.dependency_overrides[get_scheduler] = lambda: scheduler

    resp = client.get("/trail/stats")

    assert resp.json()["cached"] is True
    assert resp.json()["steps"][0]["name"] == "Approve USDC"
    trails.query_executions.assert_not_called()


def test_progress(trails):
    trails.read_node.side_effect = [
        ReadNodeResponse.model_validate(
            {
                "outputs": {
                    "goal": {"value": "100000000"},
                    "totalRaised": {"value": "50000000"},
                    "endTimestamp": {"value": "1"},
                    "cancelled": {"value": False},
                }
            }
        ),
        ReadNodeResponse.model_validate({"outputs": {"arg_0": {"value": "3"}}}),
    ]

    resp = client.get("/crowdfund/progress")

    body = resp.json()
    assert body["progressPercentage"] == 50.0
    assert body["donorCount"] == 3
    assert body["timeLeft"] == "Ended"


def test_progress_with_malformed_struct_is_502(trails):
    trails.read_node.return_value = ReadNodeResponse.model_validate({"outputs": {"arg_0": {"value": "not-a-tuple"}}})

    resp = client.get("/crowdfund/progress")

    assert resp.status_code == 502
    assert "Unexpected crowdfund payload" in resp.json()["detail"]


def test_refund_eligibility_with_malformed_struct_is_502(trails):
    trails.read_node.side_effect = [
        ReadNodeResponse.model_validate({"outputs": {"arg_0": {"value": "5000000"}}}),
        ReadNodeResponse.model_validate({"outputs": {"arg_0": {"value": [{"value": "1"}]}}}),
    ]

    resp = client.get(f"/trail/wallets/{WALLET}/refund-eligibility")

    assert resp.status_code == 502
    assert "Unexpected crowdfund payload" in resp.json()["detail"]
