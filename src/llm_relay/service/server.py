"""Service entry re-exports for uvicorn."""

from .api import SERVICE_VERSION, app, create_app, main

__all__ = [
    "SERVICE_VERSION",
    "app",
    "create_app",
    "main",
]
