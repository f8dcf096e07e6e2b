"""Portal API routes.

Provides the network list and the connect endpoint the portal UI uses.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..network.portal import Portal
from .schemas import ConnectRequest, NetworkInfo

logger = logging.getLogger(__name__)

router = APIRouter(tags=["portal"])


def get_portal(request: Request) -> Portal:
    """Get the portal from app state."""
    return request.app.state.portal


@router.get("/networks")
async def get_networks(portal: Portal = Depends(get_portal)) -> list[NetworkInfo]:
    """List the networks visible when the portal opened."""
    logger.info("'GetNetworks' called via http request")
    return [NetworkInfo(**ap) for ap in portal.get_access_points()]


@router.post("/connect")
async def connect(request: ConnectRequest, portal: Portal = Depends(get_portal)) -> JSONResponse:
    """Join the requested network."""
    logger.info("'Connect' called via http request for %s", request.ssid)

    joined = await portal.connect(request.ssid, request.passphrase, request.identity)
    if not joined:
        return JSONResponse(status_code=500, content="internal error")

    return JSONResponse(status_code=200, content=None)
