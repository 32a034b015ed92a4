"""Post-commit domain events.

The sync engine emits an event only after its transaction has committed;
subscribers (the activity dispatcher) react to it. A failing subscriber never
undoes the committed state: its exception is handed back to the emitter.
"""

from __future__ import annotations

import enum
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

from notestage.federation.objects import NoteObject, ShareObject

logger = logging.getLogger(__name__)


class PostEventKind(str, enum.Enum):
    """What happened to a post."""

    CREATE = "create"
    UPDATE = "update"
    SHARE = "share"


@dataclass(frozen=True)
class PostPublished:
    """A post was created, edited or shared by a local account."""

    kind: PostEventKind
    account_id: uuid.UUID
    post_id: uuid.UUID
    object: NoteObject | ShareObject
    updated: datetime


PostEventHandler = Callable[[PostPublished], Awaitable[None]]


class PostEventBus:
    """In-process publish/subscribe hub for post events."""

    def __init__(self) -> None:
        self._handlers: list[PostEventHandler] = []

    def subscribe(self, handler: PostEventHandler) -> None:
        """Register ``handler`` to be awaited for every emitted event."""
        self._handlers.append(handler)

    async def emit(self, event: PostPublished) -> list[Exception]:
        """Run every handler in registration order.

        Returns:
            The exceptions raised by failing handlers, in order; empty when
            every handler succeeded.
        """
        failures: list[Exception] = []
        for handler in self._handlers:
            try:
                await handler(event)
            except Exception as exc:  # handed back to the emitter
                logger.warning(
                    "Handler %r failed for %s event of post %s: %s",
                    handler,
                    event.kind.value,
                    event.post_id,
                    exc,
                )
                failures.append(exc)
        return failures
