# src/notestage/models/__init__.py
"""SQLAlchemy models for the note stage application."""

from .account import Account
from .actor import Actor, Following, Instance
from .post import Mention, Post, PostMedium, PostType, PostVisibility
from .note import NoteMedium, NoteSource
from .timeline import TimelineItem

__all__ = [
    "Account",
    "Actor", "Following", "Instance",
    "Mention", "Post", "PostMedium", "PostType", "PostVisibility",
    "NoteMedium", "NoteSource",
    "TimelineItem",
]
