"""Public frontend configuration routes."""

from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(prefix="/config", tags=["config"])


@router.get("/publishable-key")
async def publishable_key(request: Request):
    """Stripe publishable key (empty string when unset)."""
    return {"publishableKey": request.app.state.settings.stripe_publishable_key}


@router.get("/site")
async def site_config(request: Request):
    """Support channel and analytics ids."""
    settings = request.app.state.settings
    return {
        "whatsapp": settings.whatsapp_phone,
        "ga4Id": settings.ga4_id,
        "metaPixelId": settings.meta_pixel_id,
    }
