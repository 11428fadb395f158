"""
Step catalog for the crowdfund trail.

Node ids come from the trail guidebook for the pinned version in settings.
"""

from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from enum import Enum
from typing import Dict, Optional, Tuple, Union

USDC_DECIMALS = 6

FIRST_STEP = 1
LAST_STEP = 3


class StepStatus(str, Enum):
    COMPLETED = "completed"
    CURRENT = "current"
    PENDING = "pending"
    DISABLED = "disabled"


class ReadNode:
    """Read-only nodes used for balances and campaign state."""
    USDC_BALANCE = "0198c2e0-a2e8-7a99-82e7-75138a5f58ad"        # FiatTokenV2_2.balanceOf
    DONATE_OUTPUT = "0198c2e0-a2e7-7c59-a3a2-76c5dfa3cc33"       # FarcasterCrowdfund.donate
    USER_DONATION = "0198c2e0-a2e7-7c59-a3a2-76c43f6028e2"       # FarcasterCrowdfund.donations
    DONOR_COUNT = "0198c2e0-a2e9-7497-8e7e-9e8feb56f554"         # FarcasterCrowdfund.getDonorsCount
    CROWDFUND = "0198c2e0-a2e8-7a99-82e7-7515c48438b0"           # FarcasterCrowdfund.crowdfunds


@dataclass(frozen=True)
class TrailStep:
    step_number: int
    name: str
    description: str
    primary_node_id: str
    input_name: Optional[str] = None
    read_nodes: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def requires_amount(self) -> bool:
        return self.input_name is not None


TRAIL_STEPS: Dict[int, TrailStep] = {
    1: TrailStep(
        step_number=1,
        name="Approve USDC",
        description="Approve USDC spending for donation",
        primary_node_id="0198c2e0-a2e8-7a99-82e7-7514211a187f",
        input_name="inputs.value",
        read_nodes=(ReadNode.USDC_BALANCE,),
    ),
    2: TrailStep(
        step_number=2,
        name="Donate USDC",
        description="Donate USDC to the crowdfund",
        primary_node_id="0198c2e0-a2e7-7c59-a3a2-76c5dfa3cc33",
        input_name="inputs.amount",
        read_nodes=(
            ReadNode.DONATE_OUTPUT,
            ReadNode.USER_DONATION,
            ReadNode.DONOR_COUNT,
            ReadNode.CROWDFUND,
        ),
    ),
    3: TrailStep(
        step_number=3,
        name="Claim Refund",
        description="Claim refund if crowdfund fails",
        primary_node_id="0198c2e0-a2e9-7497-8e7e-9e90535b0ca6",
    ),
}


def get_step(step_number: int) -> TrailStep:
    try:
        return TRAIL_STEPS[step_number]
    except KeyError:
        raise ValueError(f"Unknown step {step_number}; expected {FIRST_STEP}-{LAST_STEP}") from None


def step_name(step_number: int) -> str:
    step = TRAIL_STEPS.get(step_number)
    return step.name if step else f"Step {step_number}"


def clamp_step(step_number: int) -> int:
    return max(FIRST_STEP, min(LAST_STEP, step_number))


def format_usdc(raw: Union[str, int, Decimal], decimals: int = USDC_DECIMALS) -> Decimal:
    """Convert base units to a USDC amount with two decimal places."""
    try:
        value = Decimal(str(raw))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid USDC amount: {raw!r}") from exc
    scaled = value / (Decimal(10) ** decimals)
    return scaled.quantize(Decimal("0.01"), rounding=ROUND_DOWN)
