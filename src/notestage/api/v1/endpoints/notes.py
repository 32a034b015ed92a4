"""Note authoring endpoints."""

import uuid

from fastapi import APIRouter, HTTPException, Request, status

from notestage.api.v1.dependencies import (
    CurrentAccountDep,
    OptionalAccountDep,
    SessionDep,
    SyncEngineDep,
)
from notestage.models import Account, NoteSource
from notestage.repositories.note_source_repo import NoteSourceRepository
from notestage.repositories.post_repo import PostRepository
from notestage.schemas.note import (
    MediaUploadIn,
    NoteCreate,
    NoteMediumOut,
    NoteSourceOut,
    NoteUpdate,
)
from notestage.schemas.post import PostOut, PublishResponse
from notestage.services.media import MediaPipeline, MediaUpload, UnprocessableMediaError
from notestage.services.sync import NoteDraft, PublishResult
from notestage.services.visibility import is_post_visible_to

router = APIRouter(prefix="/@{username}/notes", tags=["notes"])


def _require_owner(account: Account, username: str) -> None:
    if account.username != username:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot write notes on behalf of another account",
        )


def _owned_source(db: SessionDep, account: Account, username: str, note_id: uuid.UUID) -> NoteSource:
    _require_owner(account, username)
    source = NoteSourceRepository(db).get(username, note_id, account)
    if source is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    return source


def _publish_response(result: PublishResult) -> PublishResponse:
    return PublishResponse(
        post=PostOut.model_validate(result.post),
        dispatched=result.dispatched,
        skipped_media=list(result.skipped_media),
    )


@router.post("", response_model=PublishResponse, status_code=status.HTTP_201_CREATED)
async def create_note(
    username: str,
    payload: NoteCreate,
    account: CurrentAccountDep,
    db: SessionDep,
    engine: SyncEngineDep,
) -> PublishResponse:
    """Publish a new note, optionally as a reply."""
    _require_owner(account, username)

    reply_target = None
    if payload.reply_target_id is not None:
        viewer_id = account.actor.id if account.actor is not None else None
        reply_target = PostRepository(db).get_by_id(payload.reply_target_id, viewer_id)
        if reply_target is None or not is_post_visible_to(
            reply_target, account.actor, direct_request=True
        ):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Reply target not found",
            )

    result = await engine.publish_new(
        NoteDraft(
            id=payload.id,
            account_id=account.id,
            content=payload.content,
            language=payload.language,
            visibility=payload.visibility,
            tags=tuple(payload.tags),
        ),
        [MediaUpload(blob=medium.decode(), alt=medium.alt) for medium in payload.media],
        reply_target,
        widen_visibility=payload.widen_visibility,
    )
    if result is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Note already exists")
    return _publish_response(result)


@router.get("/{note_id}", response_model=NoteSourceOut)
async def get_note(
    username: str,
    note_id: uuid.UUID,
    db: SessionDep,
    viewer: OptionalAccountDep,
) -> NoteSourceOut:
    """Return a note source and its post; old usernames still resolve."""
    source = NoteSourceRepository(db).get(username, note_id, viewer)
    if source is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    viewer_actor = viewer.actor if viewer is not None else None
    if source.post is not None and not is_post_visible_to(
        source.post, viewer_actor, direct_request=True
    ):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    return NoteSourceOut.model_validate(source)


@router.patch("/{note_id}", response_model=PublishResponse)
async def update_note(
    username: str,
    note_id: uuid.UUID,
    payload: NoteUpdate,
    account: CurrentAccountDep,
    db: SessionDep,
    engine: SyncEngineDep,
) -> PublishResponse:
    """Edit a note and announce the change."""
    source = _owned_source(db, account, username, note_id)
    result = await engine.publish_update(
        source.id,
        widen_visibility=payload.widen_visibility,
        **payload.changed_fields(),
    )
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    return _publish_response(result)


@router.post(
    "/{note_id}/media",
    response_model=NoteMediumOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_note_medium(
    username: str,
    note_id: uuid.UUID,
    payload: MediaUploadIn,
    request: Request,
    account: CurrentAccountDep,
    db: SessionDep,
    engine: SyncEngineDep,
) -> NoteMediumOut:
    """Append one attachment to a note and re-publish it."""
    source = _owned_source(db, account, username, note_id)
    next_index = max((medium.index for medium in source.media), default=-1) + 1
    pipeline = MediaPipeline(db, request.app.state.disk)
    try:
        medium = await pipeline.ingest(source.id, next_index, payload.decode(), payload.alt)
    except UnprocessableMediaError as err:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(err),
        ) from err
    response = NoteMediumOut.model_validate(medium)
    await engine.publish_update(source.id)
    return response
