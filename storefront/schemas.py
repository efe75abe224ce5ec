"""
Storefront models.

Wire and document field names are camelCase (`productId`, `createdAt`, ...);
Python attributes are snake_case. The store's record identity (`_id`) is
exposed as the 24-hex `id`.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator


class OrderStatus(str, Enum):
    PENDING = "pending"
    DELIVERED = "delivered"


class StoredModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    id: str = Field(default_factory=lambda: str(ObjectId()))

    @classmethod
    def from_document(cls, doc: Dict[str, Any]):
        return cls.model_validate({**doc, "id": str(doc["_id"])})

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump(by_alias=True, exclude={"id"}, exclude_none=True)
        doc["_id"] = ObjectId(self.id)
        return doc


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # the store hands back naive datetimes unless the client is tz-aware
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------- catalog ----------
class Product(StoredModel):
    product_id: int = Field(alias="productId")
    name: str
    description: str = ""
    price: float = Field(ge=0)
    image: str = ""
    category: str = ""
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, value):
        return _as_utc(value)


class ProductCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1)
    description: str = ""
    price: float = Field(gt=0)
    image: Optional[str] = None
    category: str = Field(min_length=1)


class ProductUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, gt=0)
    image: Optional[str] = None
    category: Optional[str] = Field(default=None, min_length=1)


# ---------- orders ----------
class Customer(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""


class OrderItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(alias="productId")
    quantity: int = Field(gt=0)


class OrderCreate(BaseModel):
    customer: Customer = Field(default_factory=Customer)
    items: List[OrderItem] = Field(default_factory=list)


class Order(StoredModel):
    order_id: int = Field(alias="orderId")
    customer: Customer
    items: List[OrderItem]
    total: float
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = Field(alias="createdAt")
    delivered_at: Optional[datetime] = Field(default=None, alias="deliveredAt")

    @field_validator("created_at", "delivered_at")
    @classmethod
    def ensure_utc(cls, value):
        return _as_utc(value)


class DeliveryReceipt(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = "Order marked as delivered"
    order_id: int = Field(alias="orderId")
    delivered_at: datetime = Field(alias="deliveredAt")


# ---------- auth ----------
class LoginPayload(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str
    message: str = "Login successful"
    expires_in: int = Field(alias="expiresIn")


class AuthStatus(BaseModel):
    authenticated: bool


class Message(BaseModel):
    message: str
