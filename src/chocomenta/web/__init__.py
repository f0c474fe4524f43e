"""FastAPI web layer: WebSocket gateway and HTTP endpoints."""

from .app import create_app

__all__ = ["create_app"]
