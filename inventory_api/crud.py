from typing import Iterable, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from . import models, schemas
from .auth import MIN_PASSWORD_LENGTH, hash_password
from .db_errors import storage_operation, transaction
from .errors import bad_request
from .utils import make_slug, search_pattern

PRODUCT_SORT_FIELDS = {
    "createdAt": models.Product.created_at,
    "updatedAt": models.Product.updated_at,
    "price": models.Product.price,
    "sold": models.Product.sold,
    "title": models.Product.title,
}
RELATED_PRODUCTS_LIMIT = 3


def _paginate(query: Query, page: int, limit: int, *order_by) -> Tuple[list, int]:
    total = query.order_by(None).count()
    items = query.order_by(*order_by).offset((page - 1) * limit).limit(limit).all()
    return items, total


def _ilike(column, pattern: str):
    return column.ilike(pattern, escape="\\")


def _save(db: Session, obj):
    with transaction(db):
        db.add(obj)
    db.refresh(obj)
    return obj


def _apply(obj, values: dict):
    for key, value in values.items():
        setattr(obj, key, value)


# ---- users ----

@storage_operation
def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return db.get(models.User, user_id)


@storage_operation
def find_user_for_login(db: Session, phone: Optional[str], email: Optional[str] = None) -> Optional[models.User]:
    query = db.query(models.User)
    if email:
        query = query.filter(models.User.email == email)
    else:
        query = query.filter(models.User.phone == phone)
    return query.order_by(models.User.id).first()


@storage_operation
def login_or_create_user(
    db: Session, phone: str, password: str, email: Optional[str] = None, name: Optional[str] = None
) -> Tuple[models.User, bool]:
    """Return the user matching email (or phone when no email is given), creating it if absent."""
    user = find_user_for_login(db, phone, email)
    if user is not None:
        return user, False
    user = models.User(
        name=name or "Test",
        email=email,
        phone=phone,
        password=hash_password(password),
        role="subscriber",
    )
    return _save(db, user), True


@storage_operation
def create_user(db: Session, user: schemas.UserCreate) -> models.User:
    values = user.model_dump()
    values["password"] = hash_password(values["password"])
    return _save(db, models.User(**values))


@storage_operation
def list_users(db: Session, page: int, limit: int, search_term: Optional[str] = None) -> Tuple[List[models.User], int]:
    query = db.query(models.User)
    pattern = search_pattern(search_term)
    if pattern:
        conditions = [_ilike(models.User.name, pattern), _ilike(models.User.email, pattern)]
        term = search_term.strip()
        if term.isdigit():
            conditions.append(models.User.phone == term)
        query = query.filter(or_(*conditions))
    return _paginate(query, page, limit, models.User.created_at.desc(), models.User.id.desc())


@storage_operation
def update_user(db: Session, user_id: int, changes: schemas.UserUpdate) -> Optional[models.User]:
    values = changes.model_dump(exclude_unset=True)
    password = values.pop("password", None)
    if password is not None:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise bad_request(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        values["password"] = hash_password(password)
    user = db.get(models.User, user_id)
    if not user:
        return None
    _apply(user, values)
    return _save(db, user)


@storage_operation
def delete_user(db: Session, user_id: int) -> bool:
    user = db.get(models.User, user_id)
    if not user:
        return False
    with transaction(db):
        db.delete(user)
    return True


# ---- roles ----

@storage_operation
def create_role(db: Session, role: schemas.RoleCreate) -> models.Role:
    existing = db.query(models.Role).filter(models.Role.name == role.name).first()
    if existing:
        raise bad_request("Role already exists")
    return _save(db, models.Role(**role.model_dump()))


@storage_operation
def list_roles(db: Session, page: int, limit: int, search_term: Optional[str] = None) -> Tuple[List[models.Role], int]:
    query = db.query(models.Role)
    pattern = search_pattern(search_term)
    if pattern:
        query = query.filter(_ilike(models.Role.name, pattern))
    return _paginate(query, page, limit, models.Role.id)


@storage_operation
def get_role(db: Session, role_id: int) -> Optional[models.Role]:
    return db.get(models.Role, role_id)


@storage_operation
def update_role(db: Session, role_id: int, changes: schemas.RoleUpdate) -> Optional[models.Role]:
    role = db.get(models.Role, role_id)
    if not role:
        return None
    _apply(role, changes.model_dump(exclude_unset=True))
    return _save(db, role)


@storage_operation
def delete_role(db: Session, role_id: int) -> bool:
    role = db.get(models.Role, role_id)
    if not role:
        return False
    with transaction(db):
        db.delete(role)
    return True


# ---- categories ----

@storage_operation
def create_category(db: Session, name: str) -> models.Category:
    # uniqueness of the slug is left to the database constraint
    return _save(db, models.Category(name=name, slug=make_slug(name)))


@storage_operation
def list_categories(db: Session) -> List[models.Category]:
    return db.query(models.Category).order_by(models.Category.created_at.desc(), models.Category.id.desc()).all()


@storage_operation
def get_category_by_slug(db: Session, slug: str) -> Optional[models.Category]:
    return db.query(models.Category).filter(models.Category.slug == slug).first()


@storage_operation
def list_category_products(db: Session, category: Optional[models.Category]) -> List[models.Product]:
    if category is None:
        return []
    return (
        db.query(models.Product)
        .filter(models.Product.category_id == category.id)
        .order_by(models.Product.id)
        .all()
    )


@storage_operation
def update_category(db: Session, slug: str, name: str) -> Optional[models.Category]:
    category = get_category_by_slug(db, slug)
    if not category:
        return None
    category.name = name
    category.slug = make_slug(name)
    return _save(db, category)


@storage_operation
def delete_category(db: Session, slug: str) -> Optional[models.Category]:
    category = get_category_by_slug(db, slug)
    if not category:
        return None
    with transaction(db):
        db.delete(category)
    return category


@storage_operation
def list_subs(db: Session, parent_id: int) -> List[models.Sub]:
    return db.query(models.Sub).filter(models.Sub.parent_id == parent_id).order_by(models.Sub.id).all()


@storage_operation
def create_sub(db: Session, name: str, parent_id: int) -> models.Sub:
    return _save(db, models.Sub(name=name, slug=make_slug(name), parent_id=parent_id))


# ---- products ----

@storage_operation
def create_product(db: Session, product: schemas.ProductCreate) -> models.Product:
    values = product.model_dump()
    values["slug"] = make_slug(values["title"], "title")
    return _save(db, models.Product(**values))


@storage_operation
def count_products(db: Session) -> int:
    return db.query(models.Product).count()


@storage_operation
def list_recent_products(db: Session, count: int) -> List[models.Product]:
    return (
        db.query(models.Product)
        .order_by(models.Product.created_at.desc(), models.Product.id.desc())
        .limit(count)
        .all()
    )


@storage_operation
def get_product(db: Session, product_id: int) -> Optional[models.Product]:
    return db.get(models.Product, product_id)


@storage_operation
def get_product_by_slug(db: Session, slug: str) -> Optional[models.Product]:
    return db.query(models.Product).filter(models.Product.slug == slug).first()


@storage_operation
def update_product(db: Session, slug: str, changes: schemas.ProductUpdate) -> Optional[models.Product]:
    product = get_product_by_slug(db, slug)
    if not product:
        return None
    values = changes.model_dump(exclude_unset=True)
    if values.get("title"):
        values["slug"] = make_slug(values["title"], "title")
    _apply(product, values)
    return _save(db, product)


@storage_operation
def delete_product(db: Session, slug: str) -> bool:
    product = get_product_by_slug(db, slug)
    if not product:
        return False
    with transaction(db):
        db.delete(product)
    return True


@storage_operation
def list_products(db: Session, sort: str, order: str, page: int, limit: int) -> Tuple[List[models.Product], int]:
    column = PRODUCT_SORT_FIELDS.get(sort)
    if column is None:
        raise bad_request(f"Cannot sort by {sort}; use one of {', '.join(PRODUCT_SORT_FIELDS)}")
    direction = column.asc() if order == "asc" else column.desc()
    return _paginate(db.query(models.Product), page, limit, direction, models.Product.id)


@storage_operation
def rate_product(db: Session, product: models.Product, user_id: int, star: int) -> models.Product:
    """Record the user's star rating, replacing any earlier one."""
    rating = next((r for r in product.ratings if r.posted_by == user_id), None)
    if rating is None:
        product.ratings.append(models.ProductRating(posted_by=user_id, star=star))
    else:
        rating.star = star
    return _save(db, product)


@storage_operation
def related_products(db: Session, product: models.Product, limit: int = RELATED_PRODUCTS_LIMIT) -> List[models.Product]:
    if product.category_id is None:
        return []
    return (
        db.query(models.Product)
        .filter(models.Product.category_id == product.category_id, models.Product.id != product.id)
        .order_by(models.Product.id)
        .limit(limit)
        .all()
    )


def _as_list(value) -> Iterable[int]:
    return value if isinstance(value, list) else [value]


@storage_operation
def search_products(db: Session, filters: schemas.SearchFilters) -> List[models.Product]:
    query = db.query(models.Product)
    pattern = search_pattern(filters.query)
    if pattern:
        query = query.filter(or_(_ilike(models.Product.title, pattern), _ilike(models.Product.description, pattern)))
    if filters.price:
        low, high = sorted(filters.price)
        query = query.filter(models.Product.price >= low, models.Product.price <= high)
    if filters.category is not None:
        query = query.filter(models.Product.category_id.in_(list(_as_list(filters.category))))
    for field in ("brand", "color", "shipping"):
        value = getattr(filters, field)
        if value:
            query = query.filter(getattr(models.Product, field) == value)
    products = query.order_by(models.Product.id).all()
    if filters.stars is not None:
        products = [p for p in products if p.ratings and int(p.average_rating) == filters.stars]
    return products


# ---- expenses ----

@storage_operation
def create_expense(db: Session, expense: schemas.ExpenseCreate) -> models.Expense:
    values = expense.model_dump(exclude_none=True)
    db_expense = models.Expense(**values)
    db_expense.apply_costs()
    return _save(db, db_expense)


@storage_operation
def list_expenses(db: Session, page: int, limit: int, search_term: Optional[str] = None) -> Tuple[List[models.Expense], int]:
    query = db.query(models.Expense)
    pattern = search_pattern(search_term)
    if pattern:
        query = query.filter(_ilike(models.Expense.customer, pattern))
    return _paginate(query, page, limit, models.Expense.created_at.desc(), models.Expense.id.desc())


@storage_operation
def get_expense(db: Session, expense_id: int) -> Optional[models.Expense]:
    return db.get(models.Expense, expense_id)


@storage_operation
def update_expense(db: Session, expense_id: int, changes: schemas.ExpenseUpdate) -> Optional[models.Expense]:
    expense = db.get(models.Expense, expense_id)
    if not expense:
        return None
    values = changes.model_dump(exclude_unset=True, exclude_none=True)
    _apply(expense, values)
    if values.keys() & {"packaging_qty", "items_per_pack", "fare"}:
        expense.apply_costs()
    return _save(db, expense)


@storage_operation
def delete_expense(db: Session, expense_id: int) -> bool:
    expense = db.get(models.Expense, expense_id)
    if not expense:
        return False
    with transaction(db):
        db.delete(expense)
    return True
