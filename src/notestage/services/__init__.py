# src/notestage/services/__init__.py
"""Business logic services for note publishing and timelines."""

from .cache import KeyValueCache
from .events import PostEventBus, PostEventKind, PostPublished
from .feed import FeedAssembler, TimelineFilter, TimelinePage
from .media import MediaPipeline, MediaUpload, UnprocessableMediaError
from .storage import LocalDisk
from .sync import NoteDraft, PublishResult, SyncEngine

__all__ = [
    "FeedAssembler",
    "KeyValueCache",
    "LocalDisk",
    "MediaPipeline",
    "MediaUpload",
    "NoteDraft",
    "PostEventBus",
    "PostEventKind",
    "PostPublished",
    "PublishResult",
    "SyncEngine",
    "TimelineFilter",
    "TimelinePage",
    "UnprocessableMediaError",
]
