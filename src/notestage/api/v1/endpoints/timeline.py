"""Timeline endpoint."""

from datetime import datetime

from fastapi import APIRouter, Query

from notestage.api.v1.dependencies import FeedAssemblerDep, LocalesDep, OptionalAccountDep
from notestage.core.settings import settings
from notestage.schemas.timeline import TimelinePageOut
from notestage.services.feed import TimelineFilter

router = APIRouter(prefix="/timeline", tags=["timeline"])


def _parse_until(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_window(value: str | None) -> int:
    try:
        window = int(value) if value else settings.timeline_default_window
    except ValueError:
        return settings.timeline_default_window
    if window < 1:
        return settings.timeline_default_window
    return min(window, settings.timeline_max_window)


@router.get("", response_model=TimelinePageOut)
async def get_timeline(
    assembler: FeedAssemblerDep,
    viewer: OptionalAccountDep,
    locales: LocalesDep,
    filter_: str | None = Query(None, alias="filter", description="Timeline mode"),
    until: str | None = Query(None, description="Only entries at or before this instant"),
    window: str | None = Query(None, description="Page size"),
) -> TimelinePageOut:
    """Return a page of the viewer's timeline, or the public one when anonymous."""
    timeline_filter = TimelineFilter.parse(filter_, signed_in=viewer is not None)
    page = assembler.assemble(
        viewer,
        timeline_filter,
        until=_parse_until(until),
        window=_parse_window(window),
        locales=locales,
    )
    return TimelinePageOut.model_validate(page)
