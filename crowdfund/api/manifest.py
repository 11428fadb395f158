"""Farcaster mini-app manifest routes."""

from typing import Any, Dict

from fastapi import APIRouter
from fastapi.responses import JSONResponse, RedirectResponse

from .. import __version__
from ..config import settings

router = APIRouter()

APP_NAME = "Brooklyn ACC Dog Crowdfund"


@router.get("/.well-known/farcaster.json")
async def farcaster_manifest() -> RedirectResponse:
    """Temporary redirect to the Farcaster-hosted manifest."""
    return RedirectResponse(settings.hosted_manifest_url, status_code=307)


def build_manifest(base_url: str) -> Dict[str, Any]:
    icon_url = f"{base_url}/api/og/icon"
    splash_url = f"{base_url}/api/og/splash"
    image_url = f"{base_url}/api/og/image"
    return {
        "name": APP_NAME,
        "short_name": "ACC Dogs",
        "description": "Help save dogs at Brooklyn Animal Care Centers through community-driven crowdfunding",
        "version": __version__,
        "manifest_version": 2,
        "icons": [
            {"src": icon_url, "sizes": "1024x1024", "type": "image/png", "purpose": "any maskable"},
            {"src": splash_url, "sizes": "200x200", "type": "image/png", "purpose": "any"},
        ],
        "start_url": "/",
        "display": "standalone",
        "orientation": "portrait",
        "theme_color": "#3B82F6",
        "background_color": "#F8FAFC",
        "scope": "/",
        "lang": "en",
        "categories": ["social", "finance", "lifestyle"],
        "screenshots": [
            {"src": image_url, "sizes": "1200x800", "type": "image/png", "form_factor": "wide"},
        ],
        "farcaster": {
            "iconUrl": icon_url,
            "splashImageUrl": splash_url,
            "imageUrl": image_url,
        },
    }


@router.get("/api/manifest")
async def web_manifest() -> JSONResponse:
    return JSONResponse(
        build_manifest(settings.public_url),
        headers={"Cache-Control": "public, max-age=3600"},
    )
