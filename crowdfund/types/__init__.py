from .trails import (
    NULL_ADDRESS,
    ZERO_HASH,
    EvaluationRequest,
    EvaluationResponse,
    Execution,
    ExecutionQueryRequest,
    ExecutionQueryResponse,
    ExecutionRequest,
    ExecutionSelector,
    ExecutionTotals,
    FarcasterData,
    NodeOutput,
    ReadNodeResponse,
    ReadRequest,
    StepRecord,
    StepStatsEntry,
    StepTransaction,
    TxnRef,
    UserInputs,
    WalletExecutions,
)

__all__ = [
    "NULL_ADDRESS",
    "ZERO_HASH",
    "EvaluationRequest",
    "EvaluationResponse",
    "Execution",
    "ExecutionQueryRequest",
    "ExecutionQueryResponse",
    "ExecutionRequest",
    "ExecutionSelector",
    "ExecutionTotals",
    "FarcasterData",
    "NodeOutput",
    "ReadNodeResponse",
    "ReadRequest",
    "StepRecord",
    "StepStatsEntry",
    "StepTransaction",
    "TxnRef",
    "UserInputs",
    "WalletExecutions",
]
