"""
asgi.py -- ASGI entry point for Beresta ID.

The static pages and the login widget are served elsewhere; this process
only serves the JSON API assembled in api/main.py.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]
