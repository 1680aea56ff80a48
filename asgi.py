"""
asgi.py -- ASGI entry point for the Devices API.

main.py serve is the supported way to run the server (TLS plus the stop-file
watcher). This module exists for ASGI servers and process managers that take
an import path instead.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]
