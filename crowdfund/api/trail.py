from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from ..core.trail import StepDeriver
from ..providers.trails import TrailsAPIError
from ..services.address import is_valid_tx_hash
from ..services.crowdfund import CrowdfundService
from ..services.flow import InvalidStepInputError, StepFlow
from ..services.refresh import RefreshScheduler
from .deps import (
    get_crowdfund_service,
    get_scheduler,
    get_step_deriver,
    get_step_flow,
    raise_trails_error,
    wallet_address,
)

router = APIRouter(prefix="/trail")

FEED_JOB = "community_feed"
STATS_JOB = "step_stats"


class EvaluationBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    wallet_address: str = Field(..., alias="walletAddress", description="Wallet that will sign")
    amount: Optional[str] = Field(default=None, description="USDC amount for approve/donate")


class RecordExecutionBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    step_number: int = Field(..., alias="stepNumber", ge=1, le=3)
    transaction_hash: str = Field(..., alias="transactionHash")
    wallet_address: str = Field(..., alias="walletAddress")


@router.get("/wallets/{address}/step")
async def wallet_step(
    address: str = Depends(wallet_address),
    deriver: StepDeriver = Depends(get_step_deriver),
) -> Dict[str, Any]:
    """Current step for a wallet. Degrades to step 1 with an error instead of failing."""
    state = await deriver.refresh(address)
    return state.to_dict()


@router.get("/wallets/{address}/history")
async def wallet_history(
    address: str = Depends(wallet_address),
    crowdfund: CrowdfundService = Depends(get_crowdfund_service),
) -> Dict[str, Any]:
    try:
        entries = await crowdfund.get_user_history(address)
    except TrailsAPIError as exc:
        raise_trails_error(exc)
    return {"walletAddress": address, "executions": [e.to_dict() for e in entries]}


@router.get("/wallets/{address}/balance")
async def wallet_balance(
    address: str = Depends(wallet_address),
    crowdfund: CrowdfundService = Depends(get_crowdfund_service),
) -> Dict[str, Any]:
    try:
        balance = await crowdfund.get_usdc_balance(address)
    except TrailsAPIError as exc:
        raise_trails_error(exc)
    except ValueError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return {"walletAddress": address, "balance": str(balance), "symbol": "USDC"}


@router.get("/wallets/{address}/refund-eligibility")
async def wallet_refund_eligibility(
    address: str = Depends(wallet_address),
    crowdfund: CrowdfundService = Depends(get_crowdfund_service),
) -> Dict[str, Any]:
    try:
        eligibility = await crowdfund.get_refund_eligibility(address)
    except TrailsAPIError as exc:
        raise_trails_error(exc)
    except ValueError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return {"walletAddress": address, **eligibility.to_dict()}


async def _cached_or_fetch(scheduler: Optional[RefreshScheduler], job: str, fetch):
    if scheduler is not None:
        cached = scheduler.snapshot(job)
        if cached is not None:
            return cached, True
    try:
        return await fetch(), False
    except TrailsAPIError as exc:
        raise_trails_error(exc)


@router.get("/feed")
async def community_feed(
    crowdfund: CrowdfundService = Depends(get_crowdfund_service),
    scheduler: Optional[RefreshScheduler] = Depends(get_scheduler),
) -> Dict[str, Any]:
    donations, cached = await _cached_or_fetch(scheduler, FEED_JOB, crowdfund.get_community_feed)
    return {"donations": [d.to_dict() for d in donations], "cached": cached}


@router.get("/stats")
async def step_stats(
    crowdfund: CrowdfundService = Depends(get_crowdfund_service),
    scheduler: Optional[RefreshScheduler] = Depends(get_scheduler),
) -> Dict[str, Any]:
    stats, cached = await _cached_or_fetch(scheduler, STATS_JOB, crowdfund.get_step_stats)
    return {"steps": [s.to_dict() for s in stats], "cached": cached}


@router.post("/steps/{step_number}/evaluations")
async def step_evaluation(
    step_number: int,
    body: EvaluationBody,
    flow: StepFlow = Depends(get_step_flow),
) -> Dict[str, Any]:
    """Validate input locally and return calldata for the wallet to sign."""
    try:
        evaluation = await flow.prepare_evaluation(step_number, body.wallet_address, body.amount)
    except InvalidStepInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except TrailsAPIError as exc:
        raise_trails_error(exc)
    except ValueError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return {"success": True, "evaluation": evaluation.to_payload()}


@router.post("/executions")
async def record_execution(
    body: RecordExecutionBody,
    flow: StepFlow = Depends(get_step_flow),
) -> Dict[str, Any]:
    """Record a confirmed transaction and return the refreshed step."""
    address = wallet_address(body.wallet_address)
    if not is_valid_tx_hash(body.transaction_hash):
        raise HTTPException(status_code=422, detail="Invalid transaction hash")
    try:
        state = await flow.record_transaction(body.step_number, address, body.transaction_hash)
    except TrailsAPIError as exc:
        raise_trails_error(exc)
    return {"success": True, "stepState": state.to_dict()}


crowdfund_router = APIRouter(prefix="/crowdfund")


@crowdfund_router.get("/progress")
async def crowdfund_progress(
    crowdfund: CrowdfundService = Depends(get_crowdfund_service),
) -> Dict[str, Any]:
    try:
        progress = await crowdfund.get_progress()
    except TrailsAPIError as exc:
        raise_trails_error(exc)
    return progress.to_dict()
