import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..auth import create_access_token, verify_password
from ..config import Settings
from ..dependencies import Pagination, get_db, get_optional_user, get_settings, pagination_params, require_admin
from ..errors import forbidden, missing_field, not_found, unauthorized
from ..handlers import async_handler
from ..responses import created_response, deleted_response, paginated_response, success_response, updated_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


def user_data(user: models.User) -> dict:
    return schemas.UserRead.model_validate(user).model_dump(by_alias=True)


def login_or_create_response(payload: schemas.LoginRequest, db: Session, settings: Settings):
    """Log in with phone (or email) and password, registering the user on first contact."""
    for field in ("user_phone", "user_password"):
        if not getattr(payload, field):
            raise missing_field(field)

    user, created = crud.login_or_create_user(
        db, payload.user_phone, payload.user_password, email=payload.user_email, name=payload.user_name
    )
    if created:
        logger.info("Registered user %s on first login", user.id)
        return success_response(200, "User created", {"created": True, "user": user_data(user)})

    if not verify_password(payload.user_password, user.password):
        raise unauthorized("Wrong Credentials!")
    token = create_access_token(user, settings.jwt_secret, settings.jwt_expiry_seconds)
    return success_response(200, "Login successful", {"token": token, "user": user_data(user)})


@router.post("/login-or-create")
@async_handler
async def login_or_create(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return login_or_create_response(payload, db, settings)


@router.get("")
@async_handler
async def list_users(pagination: Pagination = Depends(pagination_params), db: Session = Depends(get_db)):
    users, total = crud.list_users(db, pagination.page, pagination.limit, pagination.search_term)
    return paginated_response(
        [user_data(u) for u in users], pagination.page, pagination.limit, total, "Users fetched successfully"
    )


@router.post("/create", status_code=201)
@async_handler
async def create_user(
    user: schemas.UserCreate, db: Session = Depends(get_db), admin: models.User = Depends(require_admin)
):
    created = crud.create_user(db, user)
    logger.info("User %s created by admin %s", created.id, admin.id)
    return created_response("User created successfully", user_data(created))


@router.get("/{user_id}")
@async_handler
async def get_user(user_id: int, db: Session = Depends(get_db)):
    user = crud.get_user(db, user_id)
    if not user:
        raise not_found("User")
    return success_response(200, "User fetched successfully", user_data(user))


@router.put("/{user_id}")
@async_handler
async def update_user(
    user_id: int,
    changes: schemas.UserUpdate,
    db: Session = Depends(get_db),
    caller: Optional[models.User] = Depends(get_optional_user),
):
    if changes.role is not None and (caller is None or caller.role != "admin"):
        raise forbidden("Only an admin can change a user's role")
    updated = crud.update_user(db, user_id, changes)
    if not updated:
        raise not_found("User")
    return updated_response("User updated", user_data(updated))


@router.delete("/{user_id}")
@async_handler
async def delete_user(user_id: int, db: Session = Depends(get_db)):
    if not crud.delete_user(db, user_id):
        raise not_found("User")
    return deleted_response("User deleted")
