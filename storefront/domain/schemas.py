# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict, EmailStr
from typing import Any, Dict, List
from decimal import Decimal
from datetime import datetime


class UserCreate(BaseModel):
    """Schema dla tworzenia uzytkownika."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str | None = Field(None, max_length=32)


class UserRead(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone: str | None = None

    model_config = ConfigDict(from_attributes=True)


class CartItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: int = Field(..., gt=0, description="ID produktu (musi byc > 0)")
    quantity: int = Field(..., gt=0, description="Ilosc produktu (musi byc > 0)")
    size: str | None = Field(None, max_length=20)


class CartItemUpdate(BaseModel):
    # 0 usuwa pozycje
    quantity: int = Field(..., ge=0)


class CartItemOut(BaseModel):
    id: int
    product_id: int
    product_name: str
    size: str | None = None
    quantity: int
    price: Decimal
    line_total: Decimal


class CartOut(BaseModel):
    cart_id: int
    user_id: int
    version: int
    items: List[CartItemOut]
    total: Decimal


class OrderCreate(BaseModel):
    """Schema dla tworzenia zamowienia z koszyka."""

    user_id: int = Field(..., gt=0)
    shipping_address: str = Field(..., min_length=1)
    shipping_method: str = Field(..., min_length=1, max_length=100)
    payment_method: str = Field(..., min_length=1, max_length=100)
    currency_code: str | None = Field(None, min_length=3, max_length=10)
    currency_rate: Decimal | None = Field(None, gt=0)


class OrderItemOut(BaseModel):
    id: int
    product_id: int
    product_name: str
    price: Decimal
    quantity: int
    size: str | None = None


class OrderOut(BaseModel):
    id: int
    order_number: str
    user_id: int | None
    status: str
    payment_status: str
    payment_method: str
    payment_reference: str | None = None
    payment_date: datetime | None = None
    total_amount: Decimal
    currency_code: str
    currency_rate: Decimal | None = None
    shipping_address: str
    shipping_method: str
    created_at: datetime
    items: List[OrderItemOut]


class OrderStatusUpdate(BaseModel):
    status: str


class PaymentStatusUpdate(BaseModel):
    payment_status: str
    reference: str | None = Field(None, max_length=255)


class PaymentInitIn(BaseModel):
    order_id: int = Field(..., gt=0)
    user_id: int = Field(..., gt=0)
    currency_code: str | None = Field(None, min_length=3, max_length=10)
    currency_rate: Decimal | None = Field(None, gt=0)
    callback_url: str | None = None


class PaymentInitOut(BaseModel):
    order_id: int
    order_number: str
    reference: str
    authorization_url: str
    currency: str
    amount: Decimal
    exchange_rate: Decimal
    original_amount: Decimal
    fell_back: bool


class VerifyPaymentOut(BaseModel):
    verified: bool
    matched: bool
    reference: str
    order_number: str | None = None
    token: str | None = None
    already_completed: bool = False
    message: str


class WebhookAck(BaseModel):
    received: bool
    handled: bool
    verified: bool | None = None
    matched: bool | None = None
    order_number: str | None = None
    already_completed: bool | None = None


class VerifyTokenIn(BaseModel):
    order_number: str = Field(..., min_length=1)
    token: str = Field(..., min_length=1)


class TokenUsage(BaseModel):
    usage_count: int
    max_uses: int
    remaining: int


class VerifyTokenOut(BaseModel):
    valid: bool
    message: str
    order: Dict[str, Any] | None = None
    usage: TokenUsage | None = None


class TokenOut(BaseModel):
    order_number: str
    token: str
