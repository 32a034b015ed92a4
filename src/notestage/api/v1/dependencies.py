"""Shared API dependencies for authentication and service wiring."""

import uuid
from datetime import timedelta
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from notestage.core.settings import settings
from notestage.db.session import get_db
from notestage.db.time import utcnow
from notestage.models import Account
from notestage.services.feed import FeedAssembler
from notestage.services.markup import HtmlMentionExtractor
from notestage.services.recommendations import ActorRecommender
from notestage.services.sync import SyncEngine
from notestage.utils.uuid import validate_uuid

# HTTP Bearer schemes; the optional one lets anonymous requests through
bearer_scheme = HTTPBearer()
optional_bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]

MAX_LOCALES = 10


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(account_id: uuid.UUID, *, expires_in: int = 3600) -> str:
    """Issue a bearer token whose subject is ``account_id``."""
    payload = {"sub": str(account_id), "exp": utcnow() + timedelta(seconds=expires_in)}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def _account_from_token(token: str, db: Session) -> Account:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as err:
        raise _credentials_error() from err

    subject = payload.get("sub")
    if not isinstance(subject, str) or not validate_uuid(subject):
        raise _credentials_error()
    account_id = uuid.UUID(subject)

    account = db.get(Account, account_id)
    if account is None:
        raise _credentials_error("Account not found")
    return account


def get_current_account(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> Account:
    """Get the authenticated account from the bearer token.

    Raises:
        HTTPException: If the token is invalid or the account does not exist
    """
    return _account_from_token(credentials.credentials, db)


def get_optional_account(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(optional_bearer_scheme)
    ],
    db: SessionDep,
) -> Account | None:
    """Like :func:`get_current_account`, but ``None`` for anonymous requests."""
    if credentials is None:
        return None
    return _account_from_token(credentials.credentials, db)


def get_locales(
    accept_language: Annotated[str | None, Header()] = None,
) -> list[str]:
    """Parse ``Accept-Language`` into a locale chain ordered by preference."""
    if not accept_language:
        return []
    weighted: list[tuple[float, int, str]] = []
    for position, part in enumerate(accept_language.split(",")):
        tag, _, params = part.strip().partition(";")
        tag = tag.strip()
        if not tag or tag == "*":
            continue
        quality = 1.0
        params = params.strip()
        if params.startswith("q="):
            try:
                quality = float(params[2:])
            except ValueError:
                continue
        if quality > 0:
            weighted.append((-quality, position, tag))
    weighted.sort()
    return [tag for _, _, tag in weighted][:MAX_LOCALES]


def get_sync_engine(request: Request, db: SessionDep) -> SyncEngine:
    """Build a sync engine for this request from the app-wide collaborators."""
    state = request.app.state
    return SyncEngine(
        db,
        disk=state.disk,
        renderer=state.renderer,
        mentions=HtmlMentionExtractor(state.cache, settings.mention_cache_ttl_seconds),
        events=state.events,
        origin=settings.federation_origin,
    )


def get_feed_assembler(db: SessionDep) -> FeedAssembler:
    return FeedAssembler(
        db,
        ActorRecommender(db),
        recommendation_limit=settings.recommendation_limit,
    )


# Type aliases for dependencies
CurrentAccountDep = Annotated[Account, Depends(get_current_account)]
OptionalAccountDep = Annotated[Account | None, Depends(get_optional_account)]
LocalesDep = Annotated[list[str], Depends(get_locales)]
SyncEngineDep = Annotated[SyncEngine, Depends(get_sync_engine)]
FeedAssemblerDep = Annotated[FeedAssembler, Depends(get_feed_assembler)]
