"""
Derives which trail step a wallet should attempt next.

The value is a read-only projection of the execution history held by the
Trails API: nothing here is persisted, every refresh recomputes it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ...types.trails import ExecutionQueryRequest, ExecutionQueryResponse
from .steps import FIRST_STEP, LAST_STEP, StepStatus, clamp_step


logger = logging.getLogger(__name__)


@dataclass
class StepState:
    """Result of a refresh.

    ``current_step`` is the raw derived value and reaches 4 once every step
    is done. Anything that renders or branches on it goes through
    ``display_step`` / ``step_status`` so the range check lives here only.
    """

    current_step: int = FIRST_STEP
    latest_execution_id: Optional[str] = None
    wallet_address: Optional[str] = None
    error: Optional[str] = None
    refreshed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def display_step(self) -> int:
        return clamp_step(self.current_step)

    @property
    def all_completed(self) -> bool:
        return self.current_step > LAST_STEP

    def step_status(self, step_number: int) -> StepStatus:
        if not self.wallet_address:
            return StepStatus.DISABLED
        if step_number < self.current_step:
            return StepStatus.COMPLETED
        if step_number == self.current_step:
            return StepStatus.CURRENT
        return StepStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "walletAddress": self.wallet_address,
            "currentStep": self.current_step,
            "displayStep": self.display_step,
            "allCompleted": self.all_completed,
            "latestExecutionId": self.latest_execution_id,
            "steps": {
                str(n): self.step_status(n).value
                for n in range(FIRST_STEP, LAST_STEP + 1)
            },
            "error": self.error,
            "refreshedAt": self.refreshed_at.isoformat(),
        }


def derive_current_step(history: ExecutionQueryResponse, wallet_address: str) -> StepState:
    """Compute the next step from a wallet's latest execution."""
    address = wallet_address.lower()
    wallet = history.for_wallet(address)
    latest = wallet.latest_execution if wallet else None

    if latest is None:
        return StepState(current_step=FIRST_STEP, wallet_address=address)

    completed = {step.step_number for step in latest.steps if step.is_completed}
    max_completed = max(completed, default=0)

    return StepState(
        current_step=max_completed + 1,
        latest_execution_id=latest.id,
        wallet_address=address,
    )


class StepDeriver:
    """Fetches execution history and reports the wallet's current step.

    Never raises: a failed fetch degrades to step 1 with ``error`` set.
    """

    def __init__(self, trails, logger: Optional[logging.Logger] = None):
        self.trails = trails
        self.logger = logger or logging.getLogger(__name__)
        self.state = StepState()

    async def refresh(self, wallet_address: Optional[str]) -> StepState:
        if not wallet_address:
            self.state = StepState()
            return self.state

        address = wallet_address.lower()
        try:
            history = await self.trails.query_executions(
                ExecutionQueryRequest(wallet_addresses=[address])
            )
            state = derive_current_step(history, address)
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("Failed to fetch user step for %s: %s", address, exc)
            state = StepState(
                current_step=FIRST_STEP,
                wallet_address=address,
                error=str(exc) or "Failed to fetch user step",
            )
        else:
            self.logger.debug(
                "Derived step %s for %s (execution %s)",
                state.current_step,
                address,
                state.latest_execution_id,
            )

        self.state = state
        return state
