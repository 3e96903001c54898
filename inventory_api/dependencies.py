"""Request-scoped dependencies: database session, settings and the authenticated user."""
import logging
from typing import Iterator, NamedTuple, Optional

from fastapi import Depends, Header, Query, Request
from sqlalchemy.orm import Session

from . import crud, models
from .auth import decode_access_token, token_matches_user
from .config import Settings
from .errors import forbidden, unauthorized

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


# Dependency to get DB session per request
def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise unauthorized()
    parts = authorization.split(None, 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise unauthorized()
    token = parts[1].strip()
    if not token or token == "null":
        raise unauthorized()
    return token


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> models.User:
    token = _bearer_token(authorization)
    # signature and expiry failures propagate to the global handler as token errors
    payload = decode_access_token(token, settings.jwt_secret)
    user_id = payload.get("id")
    if not isinstance(user_id, int):
        raise unauthorized()
    user = crud.get_user(db, user_id)
    if user is None or not token_matches_user(payload, user):
        logger.warning("Rejected token for user id %s: identity no longer matches", user_id)
        raise unauthorized()
    return user


def get_optional_user(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Optional[models.User]:
    """The caller when a token is sent, None for anonymous requests. A bad token is still rejected."""
    if not authorization:
        return None
    return get_current_user(authorization, db, settings)


def require_admin(user: models.User = Depends(get_current_user)) -> models.User:
    if user.role != "admin":
        raise forbidden("Admin resource. Access denied.")
    return user


class Pagination(NamedTuple):
    page: int
    limit: int
    search_term: str


def pagination_params(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=MAX_PAGE_SIZE),
    page_size: Optional[int] = Query(None, alias="pageSize", ge=1, le=MAX_PAGE_SIZE),
    search_term: str = Query("", alias="searchTerm", max_length=100),
) -> Pagination:
    """``page``/``limit``/``searchTerm`` query parameters; ``pageSize`` is accepted for ``limit``."""
    return Pagination(page, limit or page_size or DEFAULT_PAGE_SIZE, search_term)
