from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python; accepts either on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Timestamps(ApiModel):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def _phone_to_str(v):
    # phones arrive as JSON numbers from older clients
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(int(v))
    return v


# ---- users ----

class LoginRequest(BaseModel):
    user_phone: Optional[str] = None
    user_password: Optional[str] = None
    user_otp: Optional[str] = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None

    @field_validator("user_phone", "user_otp", mode="before")
    @classmethod
    def numbers_as_text(cls, v):
        return _phone_to_str(v)


class UserCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = None
    phone: Optional[str] = None
    password: str = Field(..., min_length=6)
    role: str = "subscriber"
    address: Optional[str] = None

    @field_validator("phone", mode="before")
    @classmethod
    def phone_as_text(cls, v):
        return _phone_to_str(v)


class UserUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    address: Optional[str] = None

    @field_validator("phone", mode="before")
    @classmethod
    def phone_as_text(cls, v):
        return _phone_to_str(v)


class UserRead(Timestamps):
    id: int
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    role: str = "subscriber"
    address: Optional[str] = None


# ---- roles ----

class RoleCreate(ApiModel):
    name: str
    description: str = ""
    permissions: List[str] = Field(default_factory=list)
    is_active: bool = True


class RoleUpdate(ApiModel):
    name: Optional[str] = None
    description: Optional[str] = None
    permissions: Optional[List[str]] = None
    is_active: Optional[bool] = None


class RoleRead(Timestamps):
    id: int
    name: str
    description: str = ""
    permissions: List[str] = []
    is_active: bool = True


# ---- categories ----

class CategoryWrite(ApiModel):
    name: str = Field(..., min_length=1, max_length=64)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class CategoryRead(Timestamps):
    id: int
    name: str
    slug: str


class SubRead(Timestamps):
    id: int
    name: str
    slug: str
    parent_id: int = Field(serialization_alias="parent")


# ---- products ----

class ProductImage(ApiModel):
    url: str
    public_id: Optional[str] = None


class ProductCreate(ApiModel):
    title: str = Field(..., min_length=1, max_length=120)
    description: str = ""
    price: float = Field(..., ge=0)
    category_id: Optional[int] = Field(default=None, alias="category")
    quantity: int = Field(default=0, ge=0)
    images: List[ProductImage] = Field(default_factory=list)
    shipping: Optional[str] = None
    color: Optional[str] = None
    brand: Optional[str] = None


class ProductUpdate(ApiModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    category_id: Optional[int] = Field(default=None, alias="category")
    quantity: Optional[int] = Field(default=None, ge=0)
    sold: Optional[int] = Field(default=None, ge=0)
    images: Optional[List[ProductImage]] = None
    shipping: Optional[str] = None
    color: Optional[str] = None
    brand: Optional[str] = None


class RatingRead(ApiModel):
    star: int
    posted_by: int


class ProductRead(Timestamps):
    id: int
    title: str
    slug: str
    description: str = ""
    price: float
    category: Optional[CategoryRead] = None
    quantity: int = 0
    sold: int = 0
    images: List[ProductImage] = []
    shipping: Optional[str] = None
    color: Optional[str] = None
    brand: Optional[str] = None
    ratings: List[RatingRead] = []
    average_rating: float = 0.0


class StarRequest(ApiModel):
    star: int = Field(..., ge=1, le=5)


class ProductListRequest(ApiModel):
    sort: str = "createdAt"
    order: str = Field(default="desc", pattern="^(asc|desc)$")
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)


class SearchFilters(ApiModel):
    query: Optional[str] = None
    price: Optional[List[float]] = Field(default=None, min_length=2, max_length=2)
    category: Optional[Union[List[int], int]] = None
    stars: Optional[int] = Field(default=None, ge=1, le=5)
    brand: Optional[str] = None
    color: Optional[str] = None
    shipping: Optional[str] = None


# ---- expenses ----

class ExpenseCreate(ApiModel):
    date: Optional[datetime] = None
    customer: str = Field(..., min_length=1)
    product: str = Field(..., min_length=1)
    packaging_type: str = Field(..., min_length=1)
    packaging_qty: float = Field(..., gt=0)
    items_per_pack: float = Field(..., gt=0)
    fare: float = Field(..., ge=0)
    driver: Optional[str] = None
    vehicle: Optional[str] = None
    from_location: Optional[str] = Field(default=None, alias="from")
    to_location: Optional[str] = Field(default=None, alias="to")
    delivery_type: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[str] = None


class ExpenseUpdate(ApiModel):
    date: Optional[datetime] = None
    customer: Optional[str] = Field(default=None, min_length=1)
    product: Optional[str] = Field(default=None, min_length=1)
    packaging_type: Optional[str] = Field(default=None, min_length=1)
    packaging_qty: Optional[float] = Field(default=None, gt=0)
    items_per_pack: Optional[float] = Field(default=None, gt=0)
    fare: Optional[float] = Field(default=None, ge=0)
    driver: Optional[str] = None
    vehicle: Optional[str] = None
    from_location: Optional[str] = Field(default=None, alias="from")
    to_location: Optional[str] = Field(default=None, alias="to")
    delivery_type: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[str] = None


class ExpenseRead(Timestamps):
    id: int
    date: datetime
    customer: str
    product: str
    packaging_type: str
    packaging_qty: float
    items_per_pack: float
    total_units: float
    fare: float
    cost_per_pack: Optional[float] = None
    cost_per_unit: Optional[float] = None
    driver: Optional[str] = None
    vehicle: Optional[str] = None
    from_location: Optional[str] = Field(default=None, serialization_alias="from")
    to_location: Optional[str] = Field(default=None, serialization_alias="to")
    delivery_type: Optional[str] = None
    notes: Optional[str] = None
    status: str = "Pending"
