# src/notestage/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .note import MediaUploadIn, NoteCreate, NoteMediumOut, NoteSourceOut, NoteUpdate
from .post import ActorOut, PostMediumOut, PostOut, PublishResponse
from .timeline import TimelineEntryOut, TimelinePageOut

__all__ = [
    "ActorOut", "PostMediumOut", "PostOut", "PublishResponse",
    "MediaUploadIn", "NoteCreate", "NoteMediumOut", "NoteSourceOut", "NoteUpdate",
    "TimelineEntryOut", "TimelinePageOut",
]
