"""
asgi.py -- Application assembly for mentorauth.

Run with:  uvicorn asgi:app --reload

The ASGI server imports this module; api/main.py owns the app itself.
"""

from api.main import app

__all__ = ["app"]
