import json

import httpx
import pytest

from crowdfund.providers.trails import TrailsAPIError, TrailsProvider
from crowdfund.types.trails import (
    EvaluationRequest,
    ExecutionQueryRequest,
    ExecutionRequest,
    ExecutionSelector,
    ReadRequest,
)

WALLET = "0x1234567890123456789012345678901234567890"
BASE = "https://trails.test/v1"
TRAIL = "/v1/trails/trail-1/versions/version-1"


def _provider(handler) -> TrailsProvider:
    return TrailsProvider(
        base_url=BASE,
        trail_id="trail-1",
        version_id="version-1",
        app_id="app-1",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_evaluation_posts_to_step_path_with_app_header():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["header"] = request.headers.get("Herd-Trail-App-Id")
        captured["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "contractAddress": "0xcontract",
                "callData": "0xdeadbeef",
                "payableAmount": 0,
                "finalInputValues": {"amount": "5"},
            },
        )

    provider = _provider(handler)
    evaluation = await provider.get_evaluation(
        2,
        EvaluationRequest(
            wallet_address=WALLET,
            user_inputs={"node": {"inputs.amount": {"value": "5"}}},
        ),
    )

    assert captured["path"] == f"{TRAIL}/steps/2/evaluations"
    assert captured["header"] == "app-1"
    assert captured["body"] == {
        "walletAddress": WALLET,
        "userInputs": {"node": {"inputs.amount": {"value": "5"}}},
        "execution": {"type": "latest"},
    }
    assert evaluation.call_data == "0xdeadbeef"
    assert evaluation.payable_amount == "0"


@pytest.mark.asyncio
async def test_save_execution_body():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={})

    await _provider(handler).save_execution(
        ExecutionRequest(
            node_id="node-1",
            transaction_hash="0xabc",
            wallet_address=WALLET,
            execution=ExecutionSelector.manual("exec-9"),
        )
    )

    assert captured["path"] == f"{TRAIL}/executions"
    assert captured["body"] == {
        "nodeId": "node-1",
        "transactionHash": "0xabc",
        "walletAddress": WALLET,
        "execution": {"type": "manual", "executionId": "exec-9"},
    }


@pytest.mark.asyncio
async def test_query_executions_parses_history():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == f"{TRAIL}/executions/query"
        assert json.loads(request.content) == {"walletAddresses": [WALLET]}
        return httpx.Response(
            200,
            json={
                "totals": {"transactions": 1, "wallets": 1, "stepStats": {}},
                "walletExecutions": [
                    {
                        "walletAddress": WALLET.upper().replace("0X", "0x"),
                        "executions": [
                            {"id": "exec-1", "steps": [{"stepNumber": 1, "txHash": "0x" + "1" * 64}]}
                        ],
                        "txnsPerStep": {},
                    }
                ],
            },
        )

    history = await _provider(handler).query_executions(ExecutionQueryRequest(wallet_addresses=[WALLET]))
    wallet = history.for_wallet(WALLET)
    assert wallet is not None
    assert wallet.latest_execution.id == "exec-1"


@pytest.mark.asyncio
async def test_read_node_output():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == f"{TRAIL}/nodes/node-7/read"
        return httpx.Response(200, json={"inputs": {}, "outputs": {"arg_0": {"name": "arg_0", "value": "1000000"}}})

    resp = await _provider(handler).read_node(
        "node-7", ReadRequest(wallet_address=WALLET, user_inputs={}, execution=ExecutionSelector.new())
    )
    assert resp.output("arg_0") == "1000000"
    with pytest.raises(ValueError):
        resp.output("missing")


@pytest.mark.asyncio
async def test_http_error_includes_status_and_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, text="bad wallet")

    with pytest.raises(TrailsAPIError) as exc_info:
        await _provider(handler).save_execution(
            ExecutionRequest(node_id="n", transaction_hash="0x1", wallet_address=WALLET)
        )

    assert str(exc_info.value) == "Execution API failed: 400 - bad wallet"
    assert exc_info.value.status_code == 400
    assert exc_info.value.retryable is False


@pytest.mark.asyncio
async def test_transport_error_is_wrapped():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TrailsAPIError, match="Execution query API unreachable") as exc_info:
        await _provider(handler).query_executions(ExecutionQueryRequest())
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_invalid_payload_is_wrapped():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"callData": "0x"})

    with pytest.raises(TrailsAPIError, match="unexpected payload"):
        await _provider(handler).get_evaluation(1, EvaluationRequest(wallet_address=WALLET))


@pytest.mark.asyncio
async def test_health_check_reports_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="maintenance")

    status = await _provider(handler).health_check()
    assert status["status"] == "unavailable"
    assert "503" in status["error"]
