"""
Data Schemas

Pydantic models for the records kept in the store and for request/response
bodies. Attributes are snake_case in Python and camelCase on the wire
(imageUrl, sweetId, createdAt ...); inputs are accepted under either name.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

CENTS = Decimal("0.01")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


class Category(str, Enum):
    MITHAI = "mithai"
    LADDU = "laddu"
    HALWA = "halwa"
    BARFI = "barfi"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Users

class User(CamelModel):
    id: str
    username: str
    email: EmailStr
    password: str = Field(..., description="BCrypt hashed password", exclude=True)
    role: Role = Role.CUSTOMER
    created_at: datetime = Field(default_factory=utcnow)


class PublicUser(CamelModel):
    id: str
    username: str
    email: EmailStr
    role: Role


class Identity(CamelModel):
    """Caller identity as carried by an access token."""

    id: str
    email: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class RegisterInput(CamelModel):
    username: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Role = Role.CUSTOMER


class LoginInput(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6)


class AuthResponse(CamelModel):
    user: PublicUser
    token: str


# Sweets

class SweetCreate(CamelModel):
    name: str = Field(..., min_length=1)
    category: Category
    description: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    quantity: int = Field(0, ge=0, strict=True)
    image_url: Optional[str] = None

    @field_validator("price")
    @classmethod
    def round_to_cents(cls, value: Decimal) -> Decimal:
        return value.quantize(CENTS)


class SweetUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    category: Optional[Category] = None
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    quantity: Optional[int] = Field(None, ge=0, strict=True)
    image_url: Optional[str] = None

    @field_validator("name", "category", "description", "price", "quantity", mode="before")
    @classmethod
    def not_null(cls, value):
        # only imageUrl may be cleared
        if value is None:
            raise ValueError("field may not be null")
        return value

    @field_validator("price")
    @classmethod
    def round_to_cents(cls, value: Decimal) -> Decimal:
        return value.quantize(CENTS)


class Sweet(CamelModel):
    id: str
    name: str
    category: Category
    description: str
    price: Decimal
    quantity: int = Field(0, ge=0)
    image_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class QuantityInput(CamelModel):
    """Body of purchase, restock and cart quantity updates."""

    quantity: int = Field(..., ge=1, strict=True)


# Cart

class CartItemCreate(CamelModel):
    sweet_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1, strict=True)


class CartItem(CamelModel):
    id: str
    user_id: str
    sweet_id: str
    quantity: int = Field(..., ge=1)
    created_at: datetime = Field(default_factory=utcnow)


class CartLine(CartItem):
    sweet: Sweet


# Responses

class MessageResponse(BaseModel):
    message: str


class InventoryResponse(BaseModel):
    message: str
    sweet: Sweet


class ApiInfo(BaseModel):
    name: str
    status: str


__all__ = [
    "ApiInfo",
    "AuthResponse",
    "CartItem",
    "CartItemCreate",
    "CartLine",
    "Category",
    "Identity",
    "InventoryResponse",
    "LoginInput",
    "MessageResponse",
    "PublicUser",
    "QuantityInput",
    "RegisterInput",
    "Role",
    "Sweet",
    "SweetCreate",
    "SweetUpdate",
    "User",
    "utcnow",
]
