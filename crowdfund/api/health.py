from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from ..providers.trails import TrailsProvider
from ..services.refresh import RefreshScheduler
from .deps import get_scheduler, get_trails

router = APIRouter()


@router.get("/healthz")
async def health_check(
    trails: TrailsProvider = Depends(get_trails),
    scheduler: Optional[RefreshScheduler] = Depends(get_scheduler),
) -> Dict[str, Any]:
    """Health check endpoint that verifies the Trails API is reachable"""

    provider_status = {"trails": await trails.health_check()}
    healthy = provider_status["trails"]["status"] == "healthy"

    return {
        "status": "healthy" if healthy else "degraded",
        "providers": provider_status,
        "refresh": scheduler.status() if scheduler else {"running": False, "jobs": {}},
    }
