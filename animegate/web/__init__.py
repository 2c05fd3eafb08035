"""
animegate web surface: FastAPI proxy in front of the anime site.

Usage:
    from animegate.web import create_app

    app = create_app()
    # Run with: python -m animegate.web --port 3000
"""

from .server import create_app

__all__ = ["create_app"]
