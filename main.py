"""ASGI entry point: ``uvicorn main:app``."""

from brandscout.main import app

__all__ = ["app"]
