"""
Transaction Execution Layer

- TransactionSubmitter: drives one wallet submission to confirmation
- Models: phases, requests, receipts and the submission error hierarchy

Usage:
    from crowdfund.core.execution import TransactionSubmitter

    submitter = TransactionSubmitter(wallet)
    pending = await submitter.submit(evaluation)
"""

from .models import (
    TERMINAL_PHASES,
    ConfirmationTimeoutError,
    InvalidTransitionError,
    PendingTransaction,
    PhaseTransition,
    SubmissionError,
    SubmissionInProgressError,
    SubmissionPhase,
    TransactionReceipt,
    TransactionRequest,
    TransactionRevertedError,
    TransactionSubmitError,
    UserRejectedError,
    WalletNotConnectedError,
    WrongNetworkError,
)

from .submitter import (
    TransactionSubmitter,
    is_user_rejection,
    parse_payable_amount,
)

__all__ = [
    # Models
    "TERMINAL_PHASES",
    "PendingTransaction",
    "PhaseTransition",
    "SubmissionPhase",
    "TransactionReceipt",
    "TransactionRequest",
    # Errors
    "ConfirmationTimeoutError",
    "InvalidTransitionError",
    "SubmissionError",
    "SubmissionInProgressError",
    "TransactionRevertedError",
    "TransactionSubmitError",
    "UserRejectedError",
    "WalletNotConnectedError",
    "WrongNetworkError",
    # Submitter
    "TransactionSubmitter",
    "is_user_rejection",
    "parse_payable_amount",
]
