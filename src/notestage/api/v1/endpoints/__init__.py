# src/notestage/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .notes import router as notes_router
from .posts import router as posts_router
from .timeline import router as timeline_router

__all__ = [
    "notes_router",
    "posts_router",
    "timeline_router",
]
