"""
Transaction submission models and errors.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class SubmissionPhase(str, Enum):
    """Lifecycle of a single wallet submission."""
    IDLE = "idle"                              # Nothing in flight
    AWAITING_SIGNATURE = "awaiting_signature"  # Handed to the wallet
    SUBMITTED = "submitted"                    # Hash returned by the wallet
    CONFIRMING = "confirming"                  # Waiting for the receipt
    CONFIRMED = "confirmed"                    # Mined successfully
    FAILED = "failed"                          # Rejected, reverted or errored
    TIMED_OUT = "timed_out"                    # Receipt not seen in time

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_PHASES


TERMINAL_PHASES = frozenset({
    SubmissionPhase.CONFIRMED,
    SubmissionPhase.FAILED,
    SubmissionPhase.TIMED_OUT,
})


@dataclass
class TransactionRequest:
    """What the wallet is asked to sign and broadcast."""
    from_address: str
    to_address: str
    data: str
    value: int = 0
    chain_id: Optional[int] = None

    def to_rpc(self) -> Dict[str, Any]:
        tx = {
            "from": self.from_address,
            "to": self.to_address,
            "data": self.data,
            "value": hex(self.value),
        }
        if self.chain_id is not None:
            tx["chainId"] = hex(self.chain_id)
        return tx


@dataclass
class TransactionReceipt:
    tx_hash: str
    block_number: int
    status: int = 1
    block_hash: Optional[str] = None
    gas_used: Optional[int] = None

    @property
    def is_success(self) -> bool:
        return self.status == 1


@dataclass
class PendingTransaction:
    """Local, ephemeral view of the submission in flight."""
    hash: Optional[str] = None
    phase: SubmissionPhase = SubmissionPhase.IDLE
    error: Optional[str] = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hash": self.hash,
            "phase": self.phase.value,
            "error": self.error,
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass
class PhaseTransition:
    from_phase: SubmissionPhase
    to_phase: SubmissionPhase
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class SubmissionError(Exception):
    """Base for anything that stops a submission. ``str(exc)`` is user-facing."""

    @property
    def user_message(self) -> str:
        return str(self)


class WalletNotConnectedError(SubmissionError):
    def __init__(self, message: str = "Wallet not connected"):
        super().__init__(message)


class WrongNetworkError(SubmissionError):
    """The wallet is on another chain and the switch failed or was refused."""


class UserRejectedError(SubmissionError):
    def __init__(self, message: str = "Transaction was cancelled by user"):
        super().__init__(message)


class TransactionSubmitError(SubmissionError):
    """The wallet failed to broadcast for a reason other than user rejection."""


class TransactionRevertedError(SubmissionError):
    """The transaction was mined but reverted."""

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class ConfirmationTimeoutError(SubmissionError):
    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class SubmissionInProgressError(SubmissionError):
    def __init__(self, message: str = "A transaction is already in progress"):
        super().__init__(message)


class InvalidTransitionError(Exception):
    """Raised when the submitter is asked to make an illegal phase change."""

    def __init__(self, from_phase: SubmissionPhase, to_phase: SubmissionPhase):
        super().__init__(
            f"Invalid transition from {from_phase.value} to {to_phase.value}"
        )
        self.from_phase = from_phase
        self.to_phase = to_phase
