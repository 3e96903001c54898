from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..dependencies import Pagination, get_db, pagination_params
from ..errors import not_found
from ..handlers import async_handler
from ..responses import created_response, deleted_response, paginated_response, success_response, updated_response

router = APIRouter(prefix="/api/roles", tags=["roles"])


def role_data(role: models.Role) -> dict:
    return schemas.RoleRead.model_validate(role).model_dump(by_alias=True)


@router.post("", status_code=201)
@async_handler
async def create_role(role: schemas.RoleCreate, db: Session = Depends(get_db)):
    created = crud.create_role(db, role)
    return created_response("Role created successfully", role_data(created))


@router.get("")
@async_handler
async def list_roles(pagination: Pagination = Depends(pagination_params), db: Session = Depends(get_db)):
    roles, total = crud.list_roles(db, pagination.page, pagination.limit, pagination.search_term)
    return paginated_response([role_data(r) for r in roles], pagination.page, pagination.limit, total)


@router.get("/{role_id}")
@async_handler
async def get_role(role_id: int, db: Session = Depends(get_db)):
    role = crud.get_role(db, role_id)
    if not role:
        raise not_found("Role")
    return success_response(200, "Success", role_data(role))


@router.put("/{role_id}")
@async_handler
async def update_role(role_id: int, changes: schemas.RoleUpdate, db: Session = Depends(get_db)):
    role = crud.update_role(db, role_id, changes)
    if not role:
        raise not_found("Role")
    return updated_response("Role updated successfully", role_data(role))


@router.delete("/{role_id}")
@async_handler
async def delete_role(role_id: int, db: Session = Depends(get_db)):
    if not crud.delete_role(db, role_id):
        raise not_found("Role")
    return deleted_response("Role deleted successfully")
