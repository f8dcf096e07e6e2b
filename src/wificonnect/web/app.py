"""FastAPI application for the captive portal.

Serves the portal API and the single page UI. Unknown paths fall back to
the UI's index page so operating-system connectivity checks land on it.
"""

import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from ..network.portal import Portal
from .routes import router
from .schemas import ErrorResponse

logger = logging.getLogger(__name__)

INDEX_FILE = "index.html"


def create_app(portal: Portal, ui_directory: str | Path) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        portal: Portal the API operates on
        ui_directory: Directory holding the UI build

    Returns:
        Configured FastAPI app
    """
    ui_root = Path(ui_directory).resolve()

    app = FastAPI(
        title="WiFi Connect",
        description="Captive portal network provisioning",
        version="1.0.0",
        docs_url=None,
        redoc_url=None,
    )
    app.state.portal = portal

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "Authorization",
            "Content-Length",
            "X-Requested-With",
            "Accept",
            "Origin",
        ],
    )

    @app.middleware("http")
    async def record_activity(request: Request, call_next):
        portal.touch()
        return await call_next(request)

    @app.exception_handler(RequestValidationError)
    async def bad_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.error("Rejected request to %s: %s", request.url.path, exc.errors())
        return JSONResponse(
            status_code=400, content=ErrorResponse(error="Bad Request").model_dump()
        )

    app.include_router(router)

    # Must stay last: catches every path the API does not handle
    @app.get("/{path:path}", include_in_schema=False)
    async def ui(path: str):
        """Serve a UI file, or the index page for anything else."""
        candidate = (ui_root / path).resolve()
        if candidate.is_relative_to(ui_root) and candidate.is_file():
            return FileResponse(candidate)

        index = ui_root / INDEX_FILE
        if index.is_file():
            return FileResponse(index)

        return JSONResponse(status_code=404, content=ErrorResponse(error="Not Found").model_dump())

    return app
