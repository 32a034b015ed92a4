"""Wrap federation objects in activities and hand them to a transport."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

import httpx

from notestage.db.time import isoformat_utc
from notestage.federation.objects import Activity, NoteObject, ShareObject
from notestage.federation.transport import DeliveryOptions, DeliveryTransport, TransportError
from notestage.services.events import PostEventBus, PostEventKind, PostPublished

logger = logging.getLogger(__name__)

# Recipient scope understood by the relay: every follower of the sender.
FOLLOWERS_RECIPIENTS = "followers"


class DispatchError(RuntimeError):
    """Raised when an activity could not be handed over for delivery."""


def _base_uri(origin: str) -> str:
    return origin.rstrip("/") + "/"


class ActivityDispatcher:
    """Send ``Create``, ``Update`` and ``Announce`` activities to followers.

    The local server is always excluded from recipients. Updates also exclude
    the canonical origin, since a local post may be addressed through it.
    """

    def __init__(
        self,
        transport: DeliveryTransport,
        *,
        origin: str,
        canonical_origin: str | None = None,
    ) -> None:
        self.transport = transport
        self.origin = _base_uri(origin)
        self.canonical_origin = _base_uri(canonical_origin or origin)

    def subscribe(self, bus: PostEventBus) -> None:
        """Deliver every post event emitted on ``bus``."""
        bus.subscribe(self.handle_event)

    async def handle_event(self, event: PostPublished) -> None:
        if isinstance(event.object, ShareObject):
            await self.dispatch_announce(event.account_id, event.object)
        elif event.kind == PostEventKind.CREATE:
            await self.dispatch_create(event.account_id, event.object)
        else:
            await self.dispatch_update(event.account_id, event.object, event.updated)

    async def dispatch_create(self, sender_id: uuid.UUID, note: NoteObject) -> Activity:
        activity = Activity(
            id=f"{note.id}#create",
            type="Create",
            actor_id=note.attribution_ids[0],
            object=note,
            to_ids=note.to_ids,
            cc_ids=note.cc_ids,
            published=note.published,
        )
        await self._send(sender_id, activity, exclude=(self.origin,))
        return activity

    async def dispatch_update(
        self,
        sender_id: uuid.UUID,
        note: NoteObject,
        updated: datetime,
    ) -> Activity:
        """Send an ``Update`` whose id is unique per edit timestamp."""
        activity = Activity(
            id=f"{note.id}#update/{isoformat_utc(updated)}",
            type="Update",
            actor_id=note.attribution_ids[0],
            object=note,
            to_ids=note.to_ids,
            cc_ids=note.cc_ids,
            published=isoformat_utc(updated),
        )
        exclude = tuple(dict.fromkeys((self.origin, self.canonical_origin)))
        await self._send(sender_id, activity, exclude=exclude)
        return activity

    async def dispatch_announce(self, sender_id: uuid.UUID, share: ShareObject) -> Activity:
        activity = Activity(
            id=share.id,
            type="Announce",
            actor_id=share.actor_id,
            object=share.object_id,
            to_ids=share.to_ids,
            cc_ids=share.cc_ids,
            published=share.published,
        )
        await self._send(sender_id, activity, exclude=(self.origin,))
        return activity

    async def _send(
        self,
        sender_id: uuid.UUID,
        activity: Activity,
        *,
        exclude: tuple[str, ...],
    ) -> None:
        options = DeliveryOptions(prefer_shared_inbox=True, exclude_base_uris=exclude)
        try:
            await self.transport.send_activity(
                str(sender_id), FOLLOWERS_RECIPIENTS, activity, options
            )
        except (TransportError, httpx.HTTPError) as exc:
            logger.error("Failed to dispatch %s %s: %s", activity.type, activity.id, exc)
            raise DispatchError(f"Could not dispatch {activity.type} {activity.id}") from exc
        logger.debug("Dispatched %s %s", activity.type, activity.id)
