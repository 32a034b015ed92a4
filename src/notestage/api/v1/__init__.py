# src/notestage/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import notes_router, posts_router, timeline_router

__all__ = [
    "notes_router",
    "posts_router",
    "timeline_router",
]
