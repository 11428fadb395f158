"""
Read-only views of the crowdfund: campaign progress, balances, the
community donation feed, per-step statistics and a wallet's history.

All reads go through the Trails read nodes and execution query; nothing is
cached here (the refresh scheduler keeps the shared snapshots warm).
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from ..config import settings
from ..core.trail.steps import (
    FIRST_STEP,
    LAST_STEP,
    ReadNode,
    format_usdc,
    step_name,
)
from ..providers.trails import TrailsAPIError
from ..types.trails import (
    NULL_ADDRESS,
    ZERO_HASH,
    ExecutionQueryRequest,
    ExecutionSelector,
    ReadNodeResponse,
    ReadRequest,
)


logger = logging.getLogger(__name__)

DONATE_STEP = 2


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return bool(value)


def _format_time_left(seconds: int) -> str:
    if seconds <= 0:
        return "Ended"
    days, rem = divmod(seconds, 24 * 60 * 60)
    hours, rem = divmod(rem, 60 * 60)
    minutes = rem // 60
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


@dataclass
class CrowdfundProgress:
    goal: Decimal
    total_raised: Decimal
    end_timestamp: int
    creator: Optional[str] = None
    funds_claimed: bool = False
    cancelled: bool = False
    donor_count: Optional[int] = None

    @property
    def progress_percentage(self) -> float:
        if self.goal <= 0:
            return 0.0
        return round(float(self.total_raised / self.goal * 100), 2)

    @property
    def goal_reached(self) -> bool:
        return self.total_raised >= self.goal

    @property
    def is_successful(self) -> bool:
        return self.goal_reached and not self.cancelled

    def is_active(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return now < self.end_timestamp and not self.cancelled

    def has_ended(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return now > self.end_timestamp or self.cancelled

    def time_left(self, now: Optional[float] = None) -> str:
        now = time.time() if now is None else now
        return _format_time_left(int(self.end_timestamp - now))

    def to_dict(self, now: Optional[float] = None) -> Dict[str, Any]:
        return {
            "goal": str(self.goal),
            "totalRaised": str(self.total_raised),
            "endTimestamp": self.end_timestamp,
            "creator": self.creator,
            "fundsClaimed": self.funds_claimed,
            "cancelled": self.cancelled,
            "donorCount": self.donor_count,
            "progressPercentage": self.progress_percentage,
            "isActive": self.is_active(now),
            "isSuccessful": self.is_successful,
            "timeLeft": self.time_left(now),
        }


@dataclass
class RefundEligibility:
    donation: Decimal
    ended: bool
    goal_reached: bool

    @property
    def available(self) -> bool:
        return self.donation > 0 and self.ended and not self.goal_reached

    @property
    def reason(self) -> Optional[str]:
        if self.donation <= 0:
            return "No donations to refund"
        if not self.ended:
            return "Crowdfund is still active"
        if self.goal_reached:
            return "Crowdfund goal was reached, no refunds available"
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "donation": str(self.donation),
            "ended": self.ended,
            "goalReached": self.goal_reached,
            "available": self.available,
            "reason": self.reason,
        }


@dataclass
class Donation:
    wallet_address: str
    amount: str
    tx_hash: str
    block_timestamp: int
    username: Optional[str] = None
    display_name: Optional[str] = None
    pfp_url: Optional[str] = None

    @property
    def explorer_url(self) -> str:
        return settings.explorer_url(self.tx_hash)

    @property
    def profile_url(self) -> Optional[str]:
        return f"https://farcaster.xyz/{self.username}" if self.username else None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["explorer_url"] = self.explorer_url
        data["profile_url"] = self.profile_url
        return data


@dataclass
class StepStat:
    step_number: int
    name: str
    wallets: int
    transactions: int
    percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class HistoryStep:
    step_number: int
    name: str
    status: str  # completed, skipped, pending
    tx_hash: Optional[str] = None
    explorer_url: Optional[str] = None


@dataclass
class HistoryEntry:
    execution_id: str
    created_at: Optional[str]
    steps: List[HistoryStep] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CrowdfundService:
    """Campaign reads on top of a TrailsProvider."""

    def __init__(self, trails):
        self.trails = trails

    async def _read(
        self,
        node_id: str,
        wallet_address: str,
        execution: Optional[ExecutionSelector] = None,
    ) -> ReadNodeResponse:
        return await self.trails.read_node(
            node_id,
            ReadRequest(
                wallet_address=wallet_address,
                user_inputs={},
                execution=execution or ExecutionSelector.new(),
            ),
        )

    # ------------------------------------------------------------------
    # Wallet reads
    # ------------------------------------------------------------------

    async def get_usdc_balance(self, wallet_address: str) -> Decimal:
        resp = await self._read(ReadNode.USDC_BALANCE, wallet_address)
        return format_usdc(resp.output("arg_0"))

    async def get_user_donation(self, wallet_address: str) -> Decimal:
        resp = await self._read(
            ReadNode.USER_DONATION,
            wallet_address,
            ExecutionSelector.latest(),
        )
        return format_usdc(resp.output("arg_0"))

    # ------------------------------------------------------------------
    # Campaign reads (null address works without a connected wallet)
    # ------------------------------------------------------------------

    async def get_donor_count(self) -> int:
        resp = await self._read(ReadNode.DONOR_COUNT, NULL_ADDRESS)
        try:
            return int(resp.output("arg_0"))
        except (TypeError, ValueError) as exc:
            raise TrailsAPIError(f"Unexpected donor count payload: {exc}") from exc

    async def get_progress(self, include_donors: bool = True) -> CrowdfundProgress:
        resp = await self._read(ReadNode.CROWDFUND, NULL_ADDRESS)
        try:
            progress = self._parse_progress(resp)
        except (LookupError, TypeError, ValueError) as exc:
            raise TrailsAPIError(f"Unexpected crowdfund payload: {exc}") from exc
        if include_donors:
            progress.donor_count = await self.get_donor_count()
        return progress

    @staticmethod
    def _parse_progress(resp: ReadNodeResponse) -> CrowdfundProgress:
        if "goal" in resp.outputs:
            return CrowdfundProgress(
                goal=format_usdc(resp.output("goal")),
                total_raised=format_usdc(resp.output("totalRaised")),
                end_timestamp=int(resp.output("endTimestamp")),
                creator=resp.outputs["creator"].value if "creator" in resp.outputs else None,
                funds_claimed=_as_bool(resp.outputs["fundsClaimed"].value) if "fundsClaimed" in resp.outputs else False,
                cancelled=_as_bool(resp.output("cancelled")),
            )

        # Some versions return the struct as a single tuple output
        fields: Sequence[Dict[str, Any]] = resp.output("arg_0")
        return CrowdfundProgress(
            goal=format_usdc(fields[0]["value"]),
            total_raised=format_usdc(fields[1]["value"]),
            end_timestamp=int(fields[2]["value"]),
            cancelled=_as_bool(fields[6]["value"]),
        )

    async def get_refund_eligibility(
        self,
        wallet_address: str,
        now: Optional[float] = None,
    ) -> RefundEligibility:
        donation = await self.get_user_donation(wallet_address)
        progress = await self.get_progress(include_donors=False)
        return RefundEligibility(
            donation=donation,
            ended=progress.has_ended(now),
            goal_reached=progress.goal_reached,
        )

    # ------------------------------------------------------------------
    # Execution history views
    # ------------------------------------------------------------------

    async def get_community_feed(self) -> List[Donation]:
        history = await self.trails.query_executions(ExecutionQueryRequest(wallet_addresses=[]))
        entry = history.totals.step_stats.get(str(DONATE_STEP))
        if entry is None:
            return []

        donations: List[Donation] = []
        for tx in entry.transaction_hashes:
            amount = str(tx.final_input_values.get("amount") or "0")
            if amount == "0":
                continue
            farcaster = tx.farcaster_data
            donations.append(
                Donation(
                    wallet_address=tx.wallet_address,
                    amount=amount,
                    tx_hash=tx.tx_hash,
                    block_timestamp=tx.block_timestamp or 0,
                    username=farcaster.username if farcaster else None,
                    display_name=farcaster.display_name if farcaster else None,
                    pfp_url=farcaster.pfp_url if farcaster else None,
                )
            )

        donations.sort(key=lambda d: d.block_timestamp, reverse=True)
        logger.debug("Community feed has %d donations", len(donations))
        return donations

    async def get_step_stats(self) -> List[StepStat]:
        history = await self.trails.query_executions(ExecutionQueryRequest(wallet_addresses=[]))
        stats = history.totals.step_stats
        max_transactions = max([s.transactions for s in stats.values()] + [1])

        result = []
        for number in range(FIRST_STEP, LAST_STEP + 1):
            entry = stats.get(str(number))
            transactions = entry.transactions if entry else 0
            result.append(
                StepStat(
                    step_number=number,
                    name=step_name(number),
                    wallets=entry.wallets if entry else 0,
                    transactions=transactions,
                    percentage=round(transactions / max_transactions * 100, 2),
                )
            )
        return result

    async def get_user_history(self, wallet_address: str) -> List[HistoryEntry]:
        address = wallet_address.lower()
        history = await self.trails.query_executions(
            ExecutionQueryRequest(wallet_addresses=[address])
        )
        wallet = history.for_wallet(address)
        if wallet is None:
            return []

        entries = []
        for execution in wallet.executions:
            steps = []
            for record in execution.steps:
                if record.is_sentinel:
                    continue
                if record.tx_hash.lower() == ZERO_HASH:
                    status, tx_hash = "skipped", None
                else:
                    status = "completed" if record.tx_block_timestamp else "pending"
                    tx_hash = record.tx_hash
                steps.append(
                    HistoryStep(
                        step_number=record.step_number,
                        name=step_name(record.step_number),
                        status=status,
                        tx_hash=tx_hash,
                        explorer_url=settings.explorer_url(tx_hash) if tx_hash else None,
                    )
                )
            entries.append(
                HistoryEntry(
                    execution_id=execution.id,
                    created_at=execution.created_at.isoformat() if execution.created_at else None,
                    steps=steps,
                )
            )
        return entries
