"""
Step flow: validate input, fetch the evaluation, submit through the wallet,
record the confirmed hash with Trails and refresh the current step.

This is the boundary where every error becomes a user-facing message.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Union

from ..config import settings
from ..core.execution import SubmissionError, SubmissionPhase, TransactionSubmitter
from ..core.trail import StepDeriver, StepState, TrailStep, get_step
from ..providers.trails import TrailsAPIError
from ..types.trails import (
    EvaluationRequest,
    EvaluationResponse,
    ExecutionRequest,
    ExecutionSelector,
    UserInputs,
)
from .address import InvalidAddressError, normalize_address
from .crowdfund import CrowdfundService


logger = logging.getLogger(__name__)

RECORD_FAILED_MESSAGE = (
    "Transaction confirmed but failed to record. Please refresh your history."
)


class InvalidStepInputError(ValueError):
    """User input rejected before any transaction is prepared."""


@dataclass
class StepOutcome:
    step_number: int
    phase: SubmissionPhase
    tx_hash: Optional[str] = None
    recorded: bool = False
    error: Optional[str] = None
    message: Optional[str] = None
    step_state: Optional[StepState] = None

    @property
    def confirmed(self) -> bool:
        return self.phase is SubmissionPhase.CONFIRMED

    @property
    def explorer_url(self) -> Optional[str]:
        return settings.explorer_url(self.tx_hash) if self.tx_hash else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stepNumber": self.step_number,
            "phase": self.phase.value,
            "txHash": self.tx_hash,
            "confirmed": self.confirmed,
            "recorded": self.recorded,
            "error": self.error,
            "message": self.message,
            "explorerUrl": self.explorer_url,
            "stepState": self.step_state.to_dict() if self.step_state else None,
        }


def parse_amount(amount: Union[str, Decimal, float, int, None]) -> Decimal:
    """Positive USDC amount or InvalidStepInputError."""
    if amount is None or str(amount).strip() == "":
        raise InvalidStepInputError("Please enter a valid donation amount")
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise InvalidStepInputError("Please enter a valid donation amount") from None
    if not value.is_finite() or value <= 0:
        raise InvalidStepInputError("Please enter a valid donation amount")
    return value


def build_user_inputs(step: TrailStep, amount: Optional[Decimal]) -> UserInputs:
    if not step.requires_amount:
        return {}
    # Trails applies the token decimals itself
    return {step.primary_node_id: {step.input_name: {"value": str(amount)}}}


class StepFlow:
    """Runs one trail step end to end for the connected wallet.

    Without a submitter the flow can still validate, prepare evaluations and
    record hashes signed elsewhere (the HTTP API does exactly that).
    """

    def __init__(
        self,
        trails,
        submitter: Optional[TransactionSubmitter] = None,
        deriver: Optional[StepDeriver] = None,
        crowdfund: Optional[CrowdfundService] = None,
    ):
        self.trails = trails
        self.submitter = submitter
        self.deriver = deriver or StepDeriver(trails)
        self.crowdfund = crowdfund or CrowdfundService(trails)

    async def validate_input(
        self,
        step_number: int,
        wallet_address: str,
        amount: Union[str, Decimal, float, int, None] = None,
    ) -> Optional[Decimal]:
        """Local checks for a step; returns the parsed amount when one applies."""
        try:
            step = get_step(step_number)
        except ValueError as exc:
            raise InvalidStepInputError(str(exc)) from None

        if step.step_number == 1:
            value = parse_amount(amount)
            balance = await self.crowdfund.get_usdc_balance(wallet_address)
            if value > balance:
                raise InvalidStepInputError("Insufficient USDC balance")
            return value

        if step.requires_amount:
            return parse_amount(amount)

        eligibility = await self.crowdfund.get_refund_eligibility(wallet_address)
        if not eligibility.available:
            raise InvalidStepInputError(eligibility.reason or "Refund not available")
        return None

    async def prepare_evaluation(
        self,
        step_number: int,
        wallet_address: str,
        amount: Union[str, Decimal, float, int, None] = None,
    ) -> EvaluationResponse:
        try:
            address = normalize_address(wallet_address)
        except InvalidAddressError as exc:
            raise InvalidStepInputError(str(exc)) from None

        value = await self.validate_input(step_number, address, amount)
        step = get_step(step_number)
        return await self.trails.get_evaluation(
            step_number,
            EvaluationRequest(
                wallet_address=address,
                user_inputs=build_user_inputs(step, value),
                execution=ExecutionSelector.latest(),
            ),
        )

    async def record_transaction(
        self,
        step_number: int,
        wallet_address: str,
        tx_hash: str,
    ) -> StepState:
        """Persist a confirmed hash, then re-derive the step from the new history."""
        step = get_step(step_number)
        await self.trails.save_execution(
            ExecutionRequest(
                node_id=step.primary_node_id,
                transaction_hash=tx_hash,
                wallet_address=wallet_address,
                execution=ExecutionSelector.latest(),
            )
        )
        return await self.deriver.refresh(wallet_address)

    async def execute_step(
        self,
        step_number: int,
        amount: Union[str, Decimal, float, int, None] = None,
    ) -> StepOutcome:
        if self.submitter is None:
            return StepOutcome(
                step_number=step_number,
                phase=SubmissionPhase.IDLE,
                error="Wallet not connected",
            )
        if self.submitter.is_busy:
            return StepOutcome(
                step_number=step_number,
                phase=self.submitter.phase,
                tx_hash=self.submitter.state.hash,
                error="A transaction is already in progress",
            )

        try:
            address = await self.submitter.wallet.get_address()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not read wallet account: %s", exc)
            address = None
        if not address:
            return StepOutcome(
                step_number=step_number,
                phase=SubmissionPhase.IDLE,
                error="Wallet not connected",
            )
        address = address.lower()

        try:
            evaluation = await self.prepare_evaluation(step_number, address, amount)
            pending = await self.submitter.submit(evaluation)
        except (InvalidStepInputError, SubmissionError, TrailsAPIError) as exc:
            logger.info("Step %s did not complete: %s", step_number, exc)
            return self._failed(step_number, str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.error("Step %s failed unexpectedly: %s", step_number, exc, exc_info=True)
            return self._failed(step_number, f"Transaction failed: {exc}")

        try:
            state = await self.record_transaction(step_number, address, pending.hash)
        except Exception as exc:  # noqa: BLE001
            # The chain is authoritative; bookkeeping is best-effort.
            logger.warning("Failed to save transaction %s: %s", pending.hash, exc)
            return StepOutcome(
                step_number=step_number,
                phase=pending.phase,
                tx_hash=pending.hash,
                recorded=False,
                message=RECORD_FAILED_MESSAGE,
                step_state=self.deriver.state,
            )

        return StepOutcome(
            step_number=step_number,
            phase=pending.phase,
            tx_hash=pending.hash,
            recorded=True,
            message=f"{get_step(step_number).name} confirmed",
            step_state=state,
        )

    def _failed(self, step_number: int, error: str) -> StepOutcome:
        pending = self.submitter.state
        return StepOutcome(
            step_number=step_number,
            phase=pending.phase,
            tx_hash=pending.hash,
            error=error,
            step_state=self.deriver.state,
        )
