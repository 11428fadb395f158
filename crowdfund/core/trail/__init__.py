"""
Trail step bookkeeping: the step catalog and the current-step derivation.
"""

from .deriver import StepDeriver, StepState, derive_current_step
from .steps import (
    FIRST_STEP,
    LAST_STEP,
    TRAIL_STEPS,
    USDC_DECIMALS,
    ReadNode,
    StepStatus,
    TrailStep,
    clamp_step,
    format_usdc,
    get_step,
    step_name,
)

__all__ = [
    "StepDeriver",
    "StepState",
    "derive_current_step",
    "FIRST_STEP",
    "LAST_STEP",
    "TRAIL_STEPS",
    "USDC_DECIMALS",
    "ReadNode",
    "StepStatus",
    "TrailStep",
    "clamp_step",
    "format_usdc",
    "get_step",
    "step_name",
]
