"""
Transaction submitter.

Drives one wallet submission at a time through:

    IDLE -> AWAITING_SIGNATURE -> SUBMITTED -> CONFIRMING -> CONFIRMED
                                                          -> FAILED
                                                          -> TIMED_OUT

Preconditions (connected wallet, correct chain) are checked from IDLE and a
failure there leaves the submitter in IDLE. ``clear()`` returns to IDLE from
anywhere.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Set

from ...config import settings
from ...types.trails import EvaluationResponse
from .models import (
    TERMINAL_PHASES,
    ConfirmationTimeoutError,
    InvalidTransitionError,
    PendingTransaction,
    PhaseTransition,
    SubmissionInProgressError,
    SubmissionPhase,
    TransactionRequest,
    TransactionRevertedError,
    TransactionSubmitError,
    UserRejectedError,
    WalletNotConnectedError,
    WrongNetworkError,
)

if TYPE_CHECKING:
    from ...providers.wallet import WalletProvider


ConfirmedCallback = Callable[[str], Awaitable[None]]
TransitionCallback = Callable[[PhaseTransition], None]

USER_REJECTED_MARKER = "User rejected"
USER_REJECTED_CODE = 4001


def parse_payable_amount(amount: Optional[str]) -> int:
    """Native value in wei; accepts decimal or 0x-prefixed strings."""
    if amount is None or amount == "":
        return 0
    text = str(amount).strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    return int(text)


def is_user_rejection(exc: BaseException) -> bool:
    return (
        getattr(exc, "code", None) == USER_REJECTED_CODE
        or USER_REJECTED_MARKER.lower() in str(exc).lower()
    )


class TransactionSubmitter:
    """
    Owns the PendingTransaction for one UI surface.

    The wallet is injected so tests can drive every branch with a fake.
    """

    TRANSITIONS: Dict[SubmissionPhase, Set[SubmissionPhase]] = {
        SubmissionPhase.IDLE: {
            SubmissionPhase.AWAITING_SIGNATURE,
        },
        SubmissionPhase.AWAITING_SIGNATURE: {
            SubmissionPhase.SUBMITTED,
            SubmissionPhase.FAILED,
        },
        SubmissionPhase.SUBMITTED: {
            SubmissionPhase.CONFIRMING,
            SubmissionPhase.FAILED,
        },
        SubmissionPhase.CONFIRMING: {
            SubmissionPhase.CONFIRMED,
            SubmissionPhase.FAILED,
            SubmissionPhase.TIMED_OUT,
        },
        SubmissionPhase.CONFIRMED: set(),
        SubmissionPhase.FAILED: set(),
        SubmissionPhase.TIMED_OUT: set(),
    }

    def __init__(
        self,
        wallet: "WalletProvider",
        *,
        target_chain_id: Optional[int] = None,
        target_chain_name: Optional[str] = None,
        receipt_timeout_seconds: Optional[float] = None,
        on_transition: Optional[TransitionCallback] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.wallet = wallet
        self.target_chain_id = target_chain_id or settings.target_chain_id
        self.target_chain_name = target_chain_name or settings.target_chain_name
        self.receipt_timeout_seconds = receipt_timeout_seconds or settings.receipt_timeout_seconds
        self._on_transition = on_transition
        self.logger = logger or logging.getLogger(__name__)
        self._pending = PendingTransaction()

    @property
    def state(self) -> PendingTransaction:
        return self._pending

    @property
    def phase(self) -> SubmissionPhase:
        return self._pending.phase

    @property
    def is_busy(self) -> bool:
        """True while a submission is in flight; the trigger should be disabled."""
        return self.phase is not SubmissionPhase.IDLE and self.phase not in TERMINAL_PHASES

    def clear(self) -> None:
        """Forget the tracked hash and error. Always safe."""
        if self.phase is not SubmissionPhase.IDLE:
            self.logger.debug("Clearing submission in phase %s", self.phase.value)
        self._pending = PendingTransaction()

    reset = clear

    def _transition(
        self,
        to_phase: SubmissionPhase,
        *,
        tx_hash: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        from_phase = self.phase
        if to_phase not in self.TRANSITIONS.get(from_phase, set()):
            raise InvalidTransitionError(from_phase, to_phase)

        self._pending = PendingTransaction(
            hash=tx_hash if tx_hash is not None else self._pending.hash,
            phase=to_phase,
            error=error,
        )
        self.logger.info(
            "Submission %s -> %s%s",
            from_phase.value,
            to_phase.value,
            f" ({self._pending.hash})" if self._pending.hash else "",
        )
        if self._on_transition:
            self._on_transition(
                PhaseTransition(
                    from_phase=from_phase,
                    to_phase=to_phase,
                    tx_hash=self._pending.hash,
                    error=error,
                )
            )

    def _fail_precondition(self, exc: Exception) -> None:
        # Preconditions never leave IDLE; keep the message for display.
        self._pending = PendingTransaction(error=str(exc))
        self.logger.warning("Submission blocked: %s", exc)

    async def _ensure_correct_chain(self) -> None:
        try:
            chain_id = await self.wallet.get_chain_id()
        except Exception as exc:
            self.logger.warning("Could not read wallet chain: %s", exc)
            raise WrongNetworkError(
                f"Could not read the wallet network, please switch to {self.target_chain_name} and retry"
            ) from exc
        if chain_id == self.target_chain_id:
            return

        self.logger.info("Wallet on chain %s, requesting switch to %s", chain_id, self.target_chain_id)
        try:
            await self.wallet.switch_chain(self.target_chain_id)
        except Exception as exc:
            self.logger.warning("Failed to switch chain: %s", exc)
            raise WrongNetworkError(
                f"Please switch to {self.target_chain_name} network to continue"
            ) from exc

    async def submit(
        self,
        evaluation: EvaluationResponse,
        on_confirmed: Optional[ConfirmedCallback] = None,
    ) -> PendingTransaction:
        """
        Send the evaluation's call through the wallet and wait for it to mine.

        Returns the final PendingTransaction on confirmation; every other
        outcome raises a :class:`SubmissionError` after recording the phase.
        """
        if self.is_busy:
            raise SubmissionInProgressError()

        self.clear()

        try:
            address = await self.wallet.get_address()
        except Exception as exc:
            self.logger.warning("Could not read wallet account: %s", exc)
            address = None
        if not address:
            not_connected = WalletNotConnectedError()
            self._fail_precondition(not_connected)
            raise not_connected

        try:
            await self._ensure_correct_chain()
        except WrongNetworkError as exc:
            self._fail_precondition(exc)
            raise

        request = TransactionRequest(
            from_address=address,
            to_address=evaluation.contract_address,
            data=evaluation.call_data,
            value=parse_payable_amount(evaluation.payable_amount),
        )

        self._transition(SubmissionPhase.AWAITING_SIGNATURE)
        try:
            tx_hash = await self.wallet.send_transaction(request)
        except Exception as exc:
            if is_user_rejection(exc):
                error: Exception = UserRejectedError()
            else:
                error = TransactionSubmitError(f"Transaction failed: {exc}")
            self._transition(SubmissionPhase.FAILED, error=str(error))
            raise error from exc

        self._transition(SubmissionPhase.SUBMITTED, tx_hash=tx_hash)
        self._transition(SubmissionPhase.CONFIRMING)

        try:
            await asyncio.wait_for(
                self.wallet.wait_for_receipt(tx_hash),
                timeout=self.receipt_timeout_seconds,
            )
        except asyncio.TimeoutError:
            error = ConfirmationTimeoutError(
                f"Transaction not confirmed after {self.receipt_timeout_seconds}s, "
                f"check the explorer: {settings.explorer_url(tx_hash)}",
                tx_hash=tx_hash,
            )
            self._transition(SubmissionPhase.TIMED_OUT, error=str(error))
            raise error
        except TransactionRevertedError as exc:
            self._transition(SubmissionPhase.FAILED, error=str(exc))
            raise
        except Exception as exc:
            error = TransactionSubmitError(f"Transaction failed: {exc}")
            self._transition(SubmissionPhase.FAILED, error=str(error))
            raise error from exc

        self._transition(SubmissionPhase.CONFIRMED)
        if on_confirmed:
            await on_confirmed(tx_hash)
        return self._pending

    def snapshot(self) -> Dict[str, Any]:
        data = self._pending.to_dict()
        data["busy"] = self.is_busy
        return data
