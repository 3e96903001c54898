from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..dependencies import get_current_user, get_db
from ..errors import not_found
from ..handlers import async_handler
from ..responses import created_response, success_response, updated_response
from .products import product_data

router = APIRouter(prefix="/api/category", tags=["categories"])


def category_data(category: models.Category) -> dict:
    return schemas.CategoryRead.model_validate(category).model_dump(by_alias=True)


@router.post("/add", status_code=201)
@async_handler
async def create_category(
    category: schemas.CategoryWrite,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    created = crud.create_category(db, category.name)
    return created_response("Category created successfully", category_data(created))


@router.get("/get-all")
@async_handler
async def list_categories(db: Session = Depends(get_db)):
    categories = crud.list_categories(db)
    return success_response(200, "Success", [category_data(c) for c in categories])


@router.get("/subs/{parent_id}")
@async_handler
async def list_subs(parent_id: int, db: Session = Depends(get_db)):
    subs = crud.list_subs(db, parent_id)
    return success_response(200, "Success", [schemas.SubRead.model_validate(s).model_dump(by_alias=True) for s in subs])


@router.post("/subs/{parent_id}", status_code=201)
@async_handler
async def create_sub(
    parent_id: int,
    sub: schemas.CategoryWrite,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    created = crud.create_sub(db, sub.name, parent_id)
    return created_response("Sub-category created successfully", schemas.SubRead.model_validate(created).model_dump(by_alias=True))


@router.get("/{slug}")
@async_handler
async def read_category(slug: str, db: Session = Depends(get_db)):
    # an unknown slug is not a 404 here: the body carries category null and no products
    category = crud.get_category_by_slug(db, slug)
    products = crud.list_category_products(db, category)
    return success_response(
        200,
        "Success",
        {
            "category": category_data(category) if category else None,
            "products": [product_data(p) for p in products],
        },
    )


@router.put("/{slug}")
@async_handler
async def update_category(
    slug: str,
    category: schemas.CategoryWrite,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    updated = crud.update_category(db, slug, category.name)
    if not updated:
        raise not_found("Category")
    return updated_response("Category updated successfully", category_data(updated))


@router.delete("/{slug}")
@async_handler
async def delete_category(slug: str, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    deleted = crud.delete_category(db, slug)
    if not deleted:
        raise not_found("Category")
    return success_response(200, "Category deleted successfully", category_data(deleted))
