import logging
import os
import uuid

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..config import Settings
from ..dependencies import get_current_user, get_db, get_settings, require_admin
from ..errors import not_found, payload_too_large
from ..handlers import async_handler
from ..responses import created_response, deleted_response, paginated_response, success_response, updated_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/product", tags=["products"])

UPLOAD_CHUNK_BYTES = 64 * 1024


def product_data(product: models.Product) -> dict:
    return schemas.ProductRead.model_validate(product).model_dump(by_alias=True)


def _product_or_404(db: Session, product_id: int) -> models.Product:
    product = crud.get_product(db, product_id)
    if not product:
        raise not_found("Product")
    return product


@router.post("/product", status_code=201)
@async_handler
async def create_product(
    product: schemas.ProductCreate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    created = crud.create_product(db, product)
    return created_response("Product created successfully", product_data(created))


@router.get("/products/total")
@async_handler
async def products_count(db: Session = Depends(get_db)):
    return success_response(200, "Success", {"total": crud.count_products(db)})


@router.get("/products/{count}")
@async_handler
async def list_recent(count: int, db: Session = Depends(get_db)):
    products = crud.list_recent_products(db, max(count, 0))
    return success_response(200, "Success", [product_data(p) for p in products])


@router.post("/products")
@async_handler
async def list_products(listing: schemas.ProductListRequest, db: Session = Depends(get_db)):
    products, total = crud.list_products(db, listing.sort, listing.order, listing.page, listing.limit)
    return paginated_response([product_data(p) for p in products], listing.page, listing.limit, total)


@router.get("/product/related/{product_id}")
@async_handler
async def list_related(product_id: int, db: Session = Depends(get_db)):
    product = _product_or_404(db, product_id)
    related = crud.related_products(db, product)
    return success_response(200, "Success", [product_data(p) for p in related])


@router.put("/product/star/{product_id}")
@async_handler
async def product_star(
    product_id: int,
    rating: schemas.StarRequest,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    product = _product_or_404(db, product_id)
    rated = crud.rate_product(db, product, user.id, rating.star)
    return updated_response("Rating saved", product_data(rated))


@router.get("/product/{slug}")
@async_handler
async def read_product(slug: str, db: Session = Depends(get_db)):
    product = crud.get_product_by_slug(db, slug)
    if not product:
        raise not_found("Product")
    return success_response(200, "Success", product_data(product))


@router.put("/product/{slug}")
@async_handler
async def update_product(
    slug: str,
    changes: schemas.ProductUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    updated = crud.update_product(db, slug, changes)
    if not updated:
        raise not_found("Product")
    return updated_response("Product updated successfully", product_data(updated))


@router.delete("/product/{slug}")
@async_handler
async def delete_product(slug: str, db: Session = Depends(get_db), admin: models.User = Depends(require_admin)):
    if not crud.delete_product(db, slug):
        raise not_found("Product")
    return deleted_response("Product deleted successfully")


@router.post("/search/filters")
@async_handler
async def search_filters(filters: schemas.SearchFilters, db: Session = Depends(get_db)):
    products = crud.search_products(db, filters)
    return success_response(200, "Success", [product_data(p) for p in products])


@router.post("/upload", status_code=201)
@async_handler
async def upload_image(
    image: UploadFile = File(...),
    settings: Settings = Depends(get_settings),
    admin: models.User = Depends(require_admin),
):
    """Store one product image under the upload directory and return where it is served from."""
    content = bytearray()
    while True:
        chunk = await image.read(UPLOAD_CHUNK_BYTES)
        if not chunk:
            break
        content.extend(chunk)
        if len(content) > settings.max_upload_bytes:
            raise payload_too_large(
                f"File {image.filename} exceeds the {settings.max_upload_bytes} byte upload limit"
            )

    _, ext = os.path.splitext(image.filename or "")
    public_id = f"{uuid.uuid4().hex}{ext.lower()}"
    os.makedirs(settings.upload_dir, exist_ok=True)
    with open(os.path.join(settings.upload_dir, public_id), "wb") as fh:
        fh.write(content)
    logger.info("Stored upload %s (%d bytes)", public_id, len(content))
    return created_response("Image uploaded", {"url": f"/uploads/{public_id}", "public_id": public_id})
