"""FastAPI web interface for hotspot-gate."""

from .server import WebInterface, create_app

__all__ = ['WebInterface', 'create_app']
