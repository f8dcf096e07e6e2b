"""Portal web interface module.

Provides:
- FastAPI application with the portal API
- Static single page UI serving
- uvicorn server lifecycle
"""

from .app import create_app
from .server import PortalWebServer

__all__ = [
    "create_app",
    "PortalWebServer",
]
