"""Session endpoints: login-or-create, token refresh and logout."""
from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import create_access_token
from ..config import Settings
from ..dependencies import get_current_user, get_db, get_settings
from ..handlers import async_handler
from ..responses import success_response
from .users import login_or_create_response, user_data

# mounted under /api/generic by build_router
router = APIRouter()


@router.post("/login-create-user")
@async_handler
async def login_create_user(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return login_or_create_response(payload, db, settings)


@router.get("/refresh")
@async_handler
async def refresh(user: models.User = Depends(get_current_user), settings: Settings = Depends(get_settings)):
    token = create_access_token(user, settings.jwt_secret, settings.jwt_expiry_seconds)
    return success_response(200, "Token refreshed", {"token": token, "user": user_data(user)})


@router.post("/logout")
@async_handler
async def logout():
    # tokens are stateless; the client discards its copy
    return success_response(200, "Logged out")


def build_router(limiter: Limiter, login_rate_limit: str) -> APIRouter:
    """Session routes, with ``POST /api/generic`` limited to ``login_rate_limit`` per client.

    The limited route is decorated here because slowapi keeps its limits on
    the ``Limiter`` instance, and each app owns one.
    """
    session = APIRouter(prefix="/api/generic", tags=["session"])

    @session.post("")
    @limiter.limit(login_rate_limit)
    @async_handler
    async def login(
        request: Request,
        payload: schemas.LoginRequest,
        db: Session = Depends(get_db),
        settings: Settings = Depends(get_settings),
    ):
        return login_or_create_response(payload, db, settings)

    session.include_router(router)
    return session
