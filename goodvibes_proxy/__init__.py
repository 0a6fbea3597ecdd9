"""
Good Vibes proxy package.

A FastAPI application in front of the Officevibe Good Vibes API that adds
cached user avatars to every record and serves statistics from an
in-memory copy of the full public dataset.
"""
from .main import app, create_app

__version__ = "1.0.0"
__all__ = ["app", "create_app"]
