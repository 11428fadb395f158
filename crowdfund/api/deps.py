"""Shared FastAPI dependencies and error translation for the routers."""

from typing import NoReturn, Optional

from fastapi import Depends, HTTPException, Request

from ..core.trail import StepDeriver
from ..providers.trails import TrailsAPIError, TrailsProvider, get_trails_provider
from ..services.address import InvalidAddressError, normalize_address
from ..services.crowdfund import CrowdfundService
from ..services.flow import StepFlow
from ..services.refresh import RefreshScheduler


def get_trails() -> TrailsProvider:
    return get_trails_provider()


def get_crowdfund_service(trails: TrailsProvider = Depends(get_trails)) -> CrowdfundService:
    return CrowdfundService(trails)


def get_step_deriver(trails: TrailsProvider = Depends(get_trails)) -> StepDeriver:
    return StepDeriver(trails)


def get_step_flow(
    trails: TrailsProvider = Depends(get_trails),
    crowdfund: CrowdfundService = Depends(get_crowdfund_service),
    deriver: StepDeriver = Depends(get_step_deriver),
) -> StepFlow:
    # Signing happens in the user's wallet, so no submitter here.
    return StepFlow(trails, deriver=deriver, crowdfund=crowdfund)


def get_scheduler(request: Request) -> Optional[RefreshScheduler]:
    return getattr(request.app.state, "refresh_scheduler", None)


def wallet_address(address: str) -> str:
    try:
        return normalize_address(address)
    except InvalidAddressError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


def raise_trails_error(exc: TrailsAPIError) -> NoReturn:
    status = exc.status_code if exc.status_code and 400 <= exc.status_code < 500 else 502
    raise HTTPException(status_code=status, detail=str(exc))
