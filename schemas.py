"""
Database Schemas

Each Pydantic model describes a MongoDB collection of the boutique store.
Model name is converted to lowercase for the collection name:
- AdminUser -> "adminuser" collection
- Category -> "category" collection
- Product -> "product" collection
- Offer -> "offer" collection
- Review -> "review" collection
- ContactMessage -> "contactmessage" collection

Attributes are snake_case in Python and camelCase on the wire and in the
stored documents (isActive, discountedPrice, ...). The *Update models are the
partial-update payloads: every field optional, same constraints.
"""

import re
from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional

from bson import ObjectId
from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, HttpUrl, field_validator, model_validator
from pydantic.alias_generators import to_camel

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def check_object_id(value: str) -> str:
    if not ObjectId.is_valid(value):
        raise ValueError("Invalid ObjectId")
    return value


def as_utc(value: datetime) -> datetime:
    # Mongo hands back naive UTC datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def check_discount(price: Optional[float], discounted_price: Optional[float]) -> None:
    if price is not None and discounted_price is not None and discounted_price >= price:
        raise ValueError("discountedPrice must be lower than price")


def check_offer_window(start_date: Optional[datetime], end_date: Optional[datetime]) -> None:
    if start_date is not None and end_date is not None and as_utc(start_date) >= as_utc(end_date):
        raise ValueError("startDate must be before endDate")


ObjectIdStr = Annotated[str, AfterValidator(check_object_id)]
# stored as a plain string
ImageUrl = Annotated[HttpUrl, AfterValidator(str)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


# ----------------------------- Admin -----------------------------

class AdminUser(CamelModel):
    """
    Admin accounts allowed to manage the store
    Collection name: "adminuser"
    """
    email: EmailStr = Field(..., description="Login email, stored lowercase")
    password_hash: str = Field(..., description="bcrypt hash of the password")
    name: str = Field(..., min_length=1, description="Display name")

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class AdminLogin(BaseModel):
    """Credentials payload for admin login"""
    email: EmailStr
    password: str = Field(..., min_length=8)


# ----------------------------- Catalog -----------------------------

class Category(CamelModel):
    """
    Product categories
    Collection name: "category"
    """
    name: str = Field(..., min_length=3, description="Category name (unique)")
    slug: Optional[str] = Field(None, description="URL-friendly identifier, derived from name when absent")
    description: str = Field(..., min_length=10, description="Short description")
    image: Optional[ImageUrl] = Field(None, description="Cover image URL")

    @field_validator("slug")
    @classmethod
    def slug_is_url_safe(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.lower()
        if not SLUG_PATTERN.match(v):
            raise ValueError("Slug may only contain lowercase letters, digits and single hyphens")
        return v


class CategoryUpdate(Category):
    name: Optional[str] = Field(None, min_length=3)
    description: Optional[str] = Field(None, min_length=10)


class Product(CamelModel):
    """
    Products collection schema
    Collection name: "product"
    """
    name: str = Field(..., min_length=3, description="Product name")
    description: str = Field(..., min_length=10, description="Detailed product description")
    price: float = Field(..., gt=0, description="Regular price")
    discounted_price: Optional[float] = Field(None, gt=0, description="Sale price, lower than price")
    category: ObjectIdStr = Field(..., description="Owning category id")
    images: List[Annotated[str, Field(min_length=1)]] = Field(..., min_length=1, description="Image URLs")
    sizes: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    is_featured: bool = Field(False, description="Show on the homepage")
    is_new_arrival: bool = Field(False, description="Show under new arrivals")
    is_active: bool = Field(True, description="Visible in the public catalog")
    stock: int = Field(..., ge=0, description="Units in stock")

    @model_validator(mode="after")
    def discount_below_price(self):
        check_discount(self.price, self.discounted_price)
        return self


class ProductUpdate(Product):
    name: Optional[str] = Field(None, min_length=3)
    description: Optional[str] = Field(None, min_length=10)
    price: Optional[float] = Field(None, gt=0)
    category: Optional[ObjectIdStr] = None
    images: Optional[List[Annotated[str, Field(min_length=1)]]] = Field(None, min_length=1)
    sizes: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    is_featured: Optional[bool] = None
    is_new_arrival: Optional[bool] = None
    is_active: Optional[bool] = None
    stock: Optional[int] = Field(None, ge=0)


class Offer(CamelModel):
    """
    Promotional offers
    Collection name: "offer"
    """
    title: str = Field(..., min_length=3)
    description: str = Field(..., min_length=10)
    discount_type: Literal["percentage", "flat"]
    discount_value: float = Field(..., gt=0)
    applicable_products: List[ObjectIdStr] = Field(default_factory=list)
    applicable_categories: List[ObjectIdStr] = Field(default_factory=list)
    start_date: datetime
    end_date: datetime
    is_active: bool = True

    @field_validator("start_date", "end_date")
    @classmethod
    def normalise_to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else v

    @model_validator(mode="after")
    def window_is_ordered(self):
        check_offer_window(self.start_date, self.end_date)
        return self


class OfferUpdate(Offer):
    title: Optional[str] = Field(None, min_length=3)
    description: Optional[str] = Field(None, min_length=10)
    discount_type: Optional[Literal["percentage", "flat"]] = None
    discount_value: Optional[float] = Field(None, gt=0)
    applicable_products: Optional[List[ObjectIdStr]] = None
    applicable_categories: Optional[List[ObjectIdStr]] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None


class Review(CamelModel):
    """
    Customer testimonials
    Collection name: "review"
    """
    customer_name: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5)
    review_text: str = Field(..., min_length=10)
    is_active: bool = True


class ReviewUpdate(Review):
    customer_name: Optional[str] = Field(None, min_length=1)
    rating: Optional[int] = Field(None, ge=1, le=5)
    review_text: Optional[str] = Field(None, min_length=10)
    is_active: Optional[bool] = None


class ContactMessage(CamelModel):
    """
    Contact form submissions (write-only)
    Collection name: "contactmessage"
    """
    name: str = Field(..., min_length=2)
    email: EmailStr
    phone: Optional[str] = None
    message: str = Field(..., min_length=10)
