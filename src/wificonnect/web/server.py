"""Portal web server lifecycle.

Runs uvicorn as a task on the running event loop so the portal can start
and stop it together with the hotspot.
"""

import asyncio
import logging

import uvicorn
from fastapi import FastAPI

logger = logging.getLogger(__name__)


class PortalWebServer:
    """Start/stop wrapper around a uvicorn server.

    Both operations are idempotent.
    """

    def __init__(self, app: FastAPI, host: str = "0.0.0.0", port: int = 80) -> None:
        self._app = app
        self._host = host
        self._port = port
        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start serving in the background."""
        if self.is_running:
            return

        server_config = uvicorn.Config(
            self._app,
            host=self._host,
            port=self._port,
            log_level="warning",
            log_config=None,
        )
        self._server = uvicorn.Server(server_config)
        self._task = asyncio.create_task(self._server.serve(), name="PortalWebServer")
        logger.info("HTTP server starting on http://%s:%d", self._host, self._port)

    async def stop(self, timeout: float = 5.0) -> None:
        """Ask uvicorn to finish in-flight requests and exit."""
        if self._server is None or self._task is None:
            return

        self._server.should_exit = True
        try:
            await asyncio.wait_for(self._task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("HTTP server did not stop within %.1fs", timeout)
        finally:
            self._server = None
            self._task = None
        logger.info("HTTP server stopped")
