"""
Pydantic schemas for the Trails workflow API.

Payloads arrive camelCase; every model accepts both the wire alias and the
python field name so tests and callers can build them either way.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ZERO_HASH = "0x" + "0" * 64
NULL_ADDRESS = "0x" + "0" * 40

# {nodeId: {inputPath: {"value": "..."}}}
UserInputs = Dict[str, Dict[str, Dict[str, str]]]


class _TrailsModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ExecutionSelector(_TrailsModel):
    """Which execution a request applies to."""

    type: Literal["latest", "new", "manual"] = "latest"
    execution_id: Optional[str] = Field(default=None, alias="executionId")

    @classmethod
    def latest(cls) -> "ExecutionSelector":
        return cls(type="latest")

    @classmethod
    def new(cls) -> "ExecutionSelector":
        return cls(type="new")

    @classmethod
    def manual(cls, execution_id: str) -> "ExecutionSelector":
        return cls(type="manual", execution_id=execution_id)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class EvaluationRequest(_TrailsModel):
    wallet_address: str = Field(..., alias="walletAddress")
    user_inputs: UserInputs = Field(default_factory=dict, alias="userInputs")
    execution: ExecutionSelector = Field(default_factory=ExecutionSelector.latest)


class ExecutionRequest(_TrailsModel):
    node_id: str = Field(..., alias="nodeId")
    transaction_hash: str = Field(..., alias="transactionHash")
    wallet_address: str = Field(..., alias="walletAddress")
    execution: ExecutionSelector = Field(default_factory=ExecutionSelector.latest)


class ExecutionQueryRequest(_TrailsModel):
    wallet_addresses: List[str] = Field(default_factory=list, alias="walletAddresses")


class ReadRequest(_TrailsModel):
    wallet_address: str = Field(..., alias="walletAddress")
    user_inputs: Optional[UserInputs] = Field(default=None, alias="userInputs")
    execution: ExecutionSelector = Field(default_factory=ExecutionSelector.latest)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class EvaluationResponse(_TrailsModel):
    """A prepared, not yet submitted call. Consumed once."""

    contract_address: str = Field(..., alias="contractAddress")
    call_data: str = Field(..., alias="callData")
    payable_amount: Optional[str] = Field(default=None, alias="payableAmount")
    final_input_values: Dict[str, Any] = Field(default_factory=dict, alias="finalInputValues")

    @field_validator("payable_amount", mode="before")
    @classmethod
    def _stringify_amount(cls, value: Any) -> Optional[str]:
        if value is None or isinstance(value, str):
            return value
        return str(value)


class FarcasterData(_TrailsModel):
    username: Optional[str] = None
    pfp_url: Optional[str] = None
    display_name: Optional[str] = None
    fid: Optional[str] = None
    bio: Optional[str] = None

    @field_validator("fid", mode="before")
    @classmethod
    def _stringify_fid(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)


class StepRecord(_TrailsModel):
    step_number: int = Field(..., ge=0, alias="stepNumber")
    node_id: Optional[str] = Field(default=None, alias="nodeId")
    tx_hash: str = Field(default=ZERO_HASH, alias="txHash")
    tx_block_timestamp: Optional[int] = Field(default=None, alias="txBlockTimestamp")
    tx_block_number: Optional[int] = Field(default=None, alias="txBlockNumber")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    @property
    def is_sentinel(self) -> bool:
        return self.step_number == 0

    @property
    def is_completed(self) -> bool:
        return self.step_number > 0 and self.tx_hash.lower() != ZERO_HASH


class Execution(_TrailsModel):
    id: str
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    steps: List[StepRecord] = Field(default_factory=list)


class TxnRef(_TrailsModel):
    tx_hash: str = Field(..., alias="txHash")
    block_timestamp: Optional[int] = Field(default=None, alias="blockTimestamp")
    block_number: Optional[int] = Field(default=None, alias="blockNumber")
    latest_execution_id: Optional[str] = Field(default=None, alias="latestExecutionId")


class WalletExecutions(_TrailsModel):
    wallet_address: str = Field(..., alias="walletAddress")
    executions: List[Execution] = Field(default_factory=list)
    farcaster_data: Optional[FarcasterData] = Field(default=None, alias="farcasterData")
    txns_per_step: Dict[str, List[TxnRef]] = Field(default_factory=dict, alias="txnsPerStep")

    @property
    def latest_execution(self) -> Optional[Execution]:
        # The API returns executions oldest first
        return self.executions[-1] if self.executions else None


class StepTransaction(TxnRef):
    wallet_address: str = Field(..., alias="walletAddress")
    farcaster_data: Optional[FarcasterData] = Field(default=None, alias="farcasterData")
    evaluation: Optional[Dict[str, Any]] = None

    @property
    def final_input_values(self) -> Dict[str, Any]:
        return (self.evaluation or {}).get("finalInputValues") or {}


class StepStatsEntry(_TrailsModel):
    wallets: int = 0
    transactions: int = 0
    transaction_hashes: List[StepTransaction] = Field(default_factory=list, alias="transactionHashes")


class ExecutionTotals(_TrailsModel):
    transactions: int = 0
    wallets: int = 0
    step_stats: Dict[str, StepStatsEntry] = Field(default_factory=dict, alias="stepStats")


class ExecutionQueryResponse(_TrailsModel):
    totals: ExecutionTotals = Field(default_factory=ExecutionTotals)
    wallet_executions: List[WalletExecutions] = Field(default_factory=list, alias="walletExecutions")

    def for_wallet(self, address: str) -> Optional[WalletExecutions]:
        """Find a wallet's entry, ignoring address casing."""
        target = address.lower()
        for entry in self.wallet_executions:
            if entry.wallet_address.lower() == target:
                return entry
        return None


class NodeOutput(BaseModel):
    model_config = ConfigDict(extra="allow")

    value: Any = None


class ReadNodeResponse(_TrailsModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    outputs: Dict[str, NodeOutput] = Field(default_factory=dict)

    def output(self, name: str) -> Any:
        """Return ``outputs.<name>.value`` or raise if the node did not produce it."""
        if name not in self.outputs:
            raise ValueError(f"Read response is missing output '{name}'")
        return self.outputs[name].value
