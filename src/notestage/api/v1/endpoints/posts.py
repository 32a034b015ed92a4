"""Post endpoints."""

import uuid

from fastapi import APIRouter, HTTPException, status

from notestage.api.v1.dependencies import CurrentAccountDep, SessionDep, SyncEngineDep
from notestage.repositories.post_repo import PostRepository
from notestage.schemas.post import PostOut, PublishResponse
from notestage.services.visibility import is_post_visible_to

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("/{post_id}", response_model=PostOut)
async def get_post(post_id: uuid.UUID, account: CurrentAccountDep, db: SessionDep) -> PostOut:
    actor = account.actor
    post = PostRepository(db).get_by_id(post_id, actor.id if actor is not None else None)
    if post is None or not is_post_visible_to(post, actor, direct_request=True):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return PostOut.model_validate(post)


@router.post(
    "/{post_id}/shares",
    response_model=PublishResponse,
    status_code=status.HTTP_201_CREATED,
)
async def share_post(
    post_id: uuid.UUID,
    account: CurrentAccountDep,
    db: SessionDep,
    engine: SyncEngineDep,
) -> PublishResponse:
    """Reshare a post to the caller's followers."""
    actor = account.actor
    post = PostRepository(db).get_by_id(post_id, actor.id if actor is not None else None)
    if post is None or not is_post_visible_to(post, actor, direct_request=True):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")

    result = await engine.share_post(account, post)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Post already shared or not shareable",
        )
    return PublishResponse(post=PostOut.model_validate(result.post), dispatched=result.dispatched)
