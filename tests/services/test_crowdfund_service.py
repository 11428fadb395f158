from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from crowdfund.core.trail import ReadNode
from crowdfund.providers.trails import TrailsAPIError
from crowdfund.services.crowdfund import (
    CrowdfundProgress,
    CrowdfundService,
    RefundEligibility,
    _format_time_left,
)
from crowdfund.types.trails import NULL_ADDRESS, ZERO_HASH, ExecutionQueryResponse, ReadNodeResponse

WALLET = "0x1234567890123456789012345678901234567890"
NOW = 1_700_000_000


def _read(**outputs) -> ReadNodeResponse:
    return ReadNodeResponse.model_validate(
        {"outputs": {name: {"name": name, "value": value} for name, value in outputs.items()}}
    )


def _crowdfund_read(goal="100000000", raised="25000000", end=NOW + 3600, cancelled=False) -> ReadNodeResponse:
    return _read(
        goal=goal,
        totalRaised=raised,
        endTimestamp=str(end),
        creator="0xcreator",
        fundsClaimed=False,
        cancelled=cancelled,
    )


@pytest.fixture
def trails():
    return AsyncMock()


@pytest.fixture
def service(trails):
    return CrowdfundService(trails)


class TestReads:
    @pytest.mark.asyncio
    async def test_usdc_balance_uses_new_execution(self, service, trails):
        trails.read_node.return_value = _read(arg_0="12345678")

        balance = await service.get_usdc_balance(WALLET)

        assert balance == Decimal("12.34")
        node_id, request = trails.read_node.call_args.args
        assert node_id == ReadNode.USDC_BALANCE
        assert request.to_payload() == {
            "walletAddress": WALLET,
            "userInputs": {},
            "execution": {"type": "new"},
        }

    @pytest.mark.asyncio
    async def test_user_donation_uses_latest_execution(self, service, trails):
        trails.read_node.return_value = _read(arg_0="5000000")

        assert await service.get_user_donation(WALLET) == Decimal("5.00")
        _, request = trails.read_node.call_args.args
        assert request.execution.type == "latest"

    @pytest.mark.asyncio
    async def test_progress_reads_with_null_address(self, service, trails):
        trails.read_node.side_effect = [_crowdfund_read(), _read(arg_0="7")]

        progress = await service.get_progress()

        assert progress.goal == Decimal("100.00")
        assert progress.total_raised == Decimal("25.00")
        assert progress.donor_count == 7
        assert progress.progress_percentage == 25.0
        for call in trails.read_node.call_args_list:
            assert call.args[1].wallet_address == NULL_ADDRESS

    @pytest.mark.asyncio
    async def test_progress_from_tuple_output(self, service, trails):
        fields = [{"value": v} for v in ("2000000", "1000000", str(NOW), "0xc", "false", "0", "true")]
        trails.read_node.return_value = _read(arg_0=fields)

        progress = await service.get_progress(include_donors=False)

        assert progress.goal == Decimal("2.00")
        assert progress.cancelled is True
        assert progress.donor_count is None

    @pytest.mark.asyncio
    async def test_truncated_tuple_output_is_an_upstream_error(self, service, trails):
        trails.read_node.return_value = _read(arg_0=[{"value": "2000000"}])

        with pytest.raises(TrailsAPIError, match="Unexpected crowdfund payload"):
            await service.get_progress(include_donors=False)

    @pytest.mark.asyncio
    async def test_non_numeric_donor_count_is_an_upstream_error(self, service, trails):
        trails.read_node.return_value = _read(arg_0="many")

        with pytest.raises(TrailsAPIError, match="Unexpected donor count payload"):
            await service.get_donor_count()


class TestProgress:
    def test_active_and_time_left(self):
        progress = CrowdfundProgress(goal=Decimal("100"), total_raised=Decimal("10"), end_timestamp=NOW + 90061)
        assert progress.is_active(NOW)
        assert not progress.has_ended(NOW)
        assert progress.time_left(NOW) == "1d 1h"

    def test_cancelled_has_ended(self):
        progress = CrowdfundProgress(goal=Decimal("1"), total_raised=Decimal("0"), end_timestamp=NOW + 60, cancelled=True)
        assert progress.has_ended(NOW)
        assert not progress.is_active(NOW)

    def test_zero_goal_percentage(self):
        assert CrowdfundProgress(goal=Decimal("0"), total_raised=Decimal("5"), end_timestamp=NOW).progress_percentage == 0.0

    @pytest.mark.parametrize(
        "seconds,expected",
        [(0, "Ended"), (-5, "Ended"), (59, "0m"), (3660, "1h 1m"), (2 * 86400 + 7200, "2d 2h")],
    )
    def test_format_time_left(self, seconds, expected):
        assert _format_time_left(seconds) == expected


class TestRefundEligibility:
    def test_reasons(self):
        assert RefundEligibility(Decimal("0"), True, False).reason == "No donations to refund"
        assert RefundEligibility(Decimal("5"), False, False).reason == "Crowdfund is still active"
        assert RefundEligibility(Decimal("5"), True, True).reason == "Crowdfund goal was reached, no refunds available"

    def test_available_when_ended_and_short(self):
        eligibility = RefundEligibility(Decimal("5"), True, False)
        assert eligibility.available
        assert eligibility.reason is None

    @pytest.mark.asyncio
    async def test_service_combines_donation_and_progress(self, service, trails):
        trails.read_node.side_effect = [_read(arg_0="5000000"), _crowdfund_read(end=NOW - 10)]

        eligibility = await service.get_refund_eligibility(WALLET, now=NOW)

        assert eligibility.available
        assert eligibility.donation == Decimal("5.00")


def _stats_history() -> ExecutionQueryResponse:
    def tx(hash_char, ts, amount, username=None):
        return {
            "txHash": "0x" + hash_char * 64,
            "blockTimestamp": ts,
            "blockNumber": 1,
            "walletAddress": WALLET,
            "farcasterData": {"username": username, "fid": 42} if username else None,
            "evaluation": {"finalInputValues": {"amount": amount}},
        }

    return ExecutionQueryResponse.model_validate(
        {
            "totals": {
                "transactions": 6,
                "wallets": 3,
                "stepStats": {
                    "1": {"wallets": 3, "transactions": 4, "transactionHashes": []},
                    "2": {
                        "wallets": 2,
                        "transactions": 2,
                        "transactionHashes": [
                            tx("a", 100, "5", "alice"),
                            tx("b", 300, "10"),
                            tx("c", 200, "0"),
                        ],
                    },
                },
            },
            "walletExecutions": [],
        }
    )


class TestExecutionViews:
    @pytest.mark.asyncio
    async def test_feed_newest_first_without_zero_amounts(self, service, trails):
        trails.query_executions.return_value = _stats_history()

        feed = await service.get_community_feed()

        assert [d.amount for d in feed] == ["10", "5"]
        assert feed[1].username == "alice"
        assert feed[1].profile_url == "https://farcaster.xyz/alice"
        assert feed[0].profile_url is None
        request = trails.query_executions.call_args.args[0]
        assert request.to_payload() == {"walletAddresses": []}

    @pytest.mark.asyncio
    async def test_feed_empty_without_donations(self, service, trails):
        trails.query_executions.return_value = ExecutionQueryResponse()
        assert await service.get_community_feed() == []

    @pytest.mark.asyncio
    async def test_step_stats_relative_to_busiest_step(self, service, trails):
        trails.query_executions.return_value = _stats_history()

        stats = await service.get_step_stats()

        assert [(s.step_number, s.transactions, s.percentage) for s in stats] == [
            (1, 4, 100.0),
            (2, 2, 50.0),
            (3, 0, 0.0),
        ]

    @pytest.mark.asyncio
    async def test_user_history_statuses(self, service, trails):
        trails.query_executions.return_value = ExecutionQueryResponse.model_validate(
            {
                "walletExecutions": [
                    {
                        "walletAddress": WALLET,
                        "executions": [
                            {
                                "id": "exec-1",
                                "createdAt": "2025-08-20T12:00:00Z",
                                "steps": [
                                    {"stepNumber": 0, "txHash": ZERO_HASH},
                                    {"stepNumber": 1, "txHash": ZERO_HASH},
                                    {"stepNumber": 2, "txHash": "0x" + "2" * 64, "txBlockTimestamp": 1},
                                    {"stepNumber": 3, "txHash": "0x" + "3" * 64},
                                ],
                            }
                        ],
                    }
                ]
            }
        )

        history = await service.get_user_history(WALLET)

        steps = history[0].steps
        assert [s.step_number for s in steps] == [1, 2, 3]
        assert [s.status for s in steps] == ["skipped", "completed", "pending"]
        assert steps[0].explorer_url is None
        assert steps[1].explorer_url.endswith("0x" + "2" * 64)

    @pytest.mark.asyncio
    async def test_user_history_empty_for_unknown_wallet(self, service, trails):
        trails.query_executions.return_value = ExecutionQueryResponse()
        assert await service.get_user_history(WALLET) == []
