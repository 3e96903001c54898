from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship, validates

from .db import Base
from .db_errors import StorageValidationError

ROLE_NAMES = ("Admin", "Member", "Viewer")
DELIVERY_TYPES = ("Single", "Multi-Stop")
EXPENSE_STATUSES = ("Pending", "Approved", "Disputed")
SHIPPING_OPTIONS = ("Yes", "No")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_choice(field: str, value, choices):
    if value is not None and value not in choices:
        raise StorageValidationError(
            {field: f"`{value}` is not a valid value for {field}; expected one of {', '.join(choices)}"}
        )
    return value


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    phone = Column(String, nullable=True, index=True)
    email = Column(String, nullable=True, index=True)
    # salted hash, never the plain text
    password = Column(String, nullable=True)
    role = Column(String, nullable=False, default="subscriber", index=True)
    address = Column(String, nullable=True)


class Role(TimestampMixin, Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(String, nullable=False, default="")
    permissions = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)

    @validates("name")
    def validate_name(self, key, value):
        return _check_choice(key, value, ROLE_NAMES)


class Category(TimestampMixin, Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)

    subs = relationship("Sub", back_populates="parent", cascade="all, delete-orphan", passive_deletes=True)
    products = relationship("Product", back_populates="category", passive_deletes=True)


class Sub(TimestampMixin, Base):
    __tablename__ = "subs"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    parent_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True)

    parent = relationship("Category", back_populates="subs")


class Product(TimestampMixin, Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False, index=True)
    slug = Column(String, nullable=False, unique=True, index=True)
    description = Column(Text, nullable=False, default="")
    price = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)
    quantity = Column(Integer, nullable=False, default=0)
    sold = Column(Integer, nullable=False, default=0)
    images = Column(JSON, nullable=False, default=list)
    shipping = Column(String, nullable=True)
    color = Column(String, nullable=True)
    brand = Column(String, nullable=True)

    category = relationship("Category", back_populates="products", lazy="joined")
    ratings = relationship(
        "ProductRating", back_populates="product", cascade="all, delete-orphan", lazy="selectin"
    )

    @validates("shipping")
    def validate_shipping(self, key, value):
        return _check_choice(key, value, SHIPPING_OPTIONS)

    @validates("price")
    def validate_price(self, key, value):
        if value is not None and value < 0:
            raise StorageValidationError({key: "price must be non-negative"})
        return value

    @property
    def average_rating(self) -> float:
        if not self.ratings:
            return 0.0
        return sum(r.star for r in self.ratings) / len(self.ratings)


class ProductRating(Base):
    __tablename__ = "product_ratings"
    __table_args__ = (UniqueConstraint("product_id", "posted_by", name="uq_rating_product_user"),)

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    posted_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    star = Column(Integer, nullable=False)

    product = relationship("Product", back_populates="ratings")

    @validates("star")
    def validate_star(self, key, value):
        if not 1 <= value <= 5:
            raise StorageValidationError({key: "star must be between 1 and 5"})
        return value


class Expense(TimestampMixin, Base):
    """A delivery cost record. ``total_units`` and the two cost fields are derived at write time."""

    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    customer = Column(String, nullable=False, index=True)
    product = Column(String, nullable=False)
    packaging_type = Column(String, nullable=False)  # e.g. 10 KG Bag
    packaging_qty = Column(Float, nullable=False)
    items_per_pack = Column(Float, nullable=False)
    total_units = Column(Float, nullable=False)
    fare = Column(Float, nullable=False)
    cost_per_pack = Column(Float, nullable=True)
    cost_per_unit = Column(Float, nullable=True)
    driver = Column(String, nullable=True)
    vehicle = Column(String, nullable=True)
    from_location = Column(String, nullable=True)
    to_location = Column(String, nullable=True)
    delivery_type = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="Pending")

    @validates("delivery_type")
    def validate_delivery_type(self, key, value):
        return _check_choice(key, value, DELIVERY_TYPES)

    @validates("status")
    def validate_status(self, key, value):
        return _check_choice(key, value, EXPENSE_STATUSES)

    def apply_costs(self) -> None:
        # inputs are validated positive before they get here
        self.total_units = self.packaging_qty * self.items_per_pack
        self.cost_per_pack = self.fare / self.packaging_qty
        self.cost_per_unit = self.fare / self.total_units
