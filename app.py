"""ASGI entry point: ``uvicorn app:app``."""
from pmcore.api.main import app  # noqa: F401
