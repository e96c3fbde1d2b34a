"""ASGI application for uvicorn (``uvicorn botgate.api.app:app``)."""

from .factory import create_app

app = create_app()
