from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """camelCase on the wire and on disk, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    CANCELLED = "cancelled"


# Catalog
class Item(CamelModel):
    id: str = Field(..., min_length=1)
    name: str = ""
    description: str = ""
    price: Decimal = Field(..., ge=0)
    stock: int = Field(..., ge=0)
    image_url: str = ""
    datasheet: str = ""
    manufacturer: str = ""
    supplier: str = ""
    category: str = ""
    tags: List[str] = []


# Orders
class OrderLine(CamelModel):
    """Snapshot of a catalog item at placement time."""

    id: str
    name: str
    price: Decimal
    quantity: int = Field(..., gt=0)


class StatusEvent(CamelModel):
    status: OrderStatus
    timestamp: datetime
    note: Optional[str] = None


class Order(CamelModel):
    id: str
    username: str
    items: List[OrderLine]
    status: OrderStatus = OrderStatus.PENDING
    total_price: Decimal
    timestamp: datetime
    status_history: List[StatusEvent] = []


class CartLine(CamelModel):
    id: str
    quantity: int


class OrderCreate(CamelModel):
    # Left optional so missing fields surface as our own 400, not a schema error
    username: Optional[str] = None
    cart: Optional[List[CartLine]] = None


class OrderPlaced(CamelModel):
    order_id: str
    order: Order


class OrderStatusUpdate(CamelModel):
    # Untyped so a malformed body still reaches the admin check first
    admin_code: Any = None
    status: Any = None
    note: Any = None


# Notifications
class Subscription(CamelModel):
    order_id: str
    username: str = "Anonymous"
    subscription: Dict[str, Any]
    timestamp: datetime


class SubscriptionRegister(CamelModel):
    order_id: Optional[str] = None
    username: Optional[str] = None
    subscription: Optional[Dict[str, Any]] = None


class RegisterResult(BaseModel):
    success: bool


class VapidPublicKey(CamelModel):
    public_key: str
