"""Timeline Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from notestage.schemas.post import ActorOut, PostOut


class TimelineEntryOut(BaseModel):
    post: PostOut
    added: datetime
    last_sharer: ActorOut | None = None
    sharers_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class TimelinePageOut(BaseModel):
    """One page of a timeline.

    ``next`` is the cursor for the following page, or ``None`` on the last one.
    """

    items: list[TimelineEntryOut]
    next: datetime | None = None
    intro: bool = False
    recommended_actors: list[ActorOut] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)
