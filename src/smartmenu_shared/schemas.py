"""
Pydantic schemas for request validation.

Public (customer-facing) bodies use camelCase keys on the wire; staff API
bodies use snake_case. Unknown keys are rejected.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from smartmenu_shared.constants import (
    CUSTOMER_EVENT_TYPES,
    MAX_CART_ITEM_QUANTITY,
    OrderType,
    PaymentMethod,
    QRCodeType,
    TableStatus,
)


class ClientRequest(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        str_strip_whitespace=True,
    )


class StaffRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class TrackVisitRequest(ClientRequest):
    restaurant_id: str = Field(..., min_length=1)
    client_token: str = Field(..., min_length=1, max_length=128)
    client_fingerprint: str | None = Field(None, max_length=256)
    table_id: str | None = None
    area_id: str | None = None
    campaign: str | None = Field(None, max_length=120)
    qr_code_type: QRCodeType = QRCodeType.GENERAL
    device_info: dict[str, Any] | None = None
    referrer: str | None = None


class TrackEventRequest(ClientRequest):
    restaurant_id: str = Field(..., min_length=1)
    client_token: str = Field(..., min_length=1, max_length=128)
    event_type: str
    event_data: dict[str, Any] | None = None
    table_id: str | None = None
    area_id: str | None = None

    @field_validator("event_type")
    @classmethod
    def validate_event_type(cls, v):
        if v not in CUSTOMER_EVENT_TYPES:
            allowed = ", ".join(sorted(CUSTOMER_EVENT_TYPES))
            raise ValueError(f"Unknown event type. Allowed values: {allowed}")
        return v


class CartScope(ClientRequest):
    """Fields every cart call carries: tenant, seating and caller."""

    restaurant_id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    customer_token: str = Field(..., min_length=1, max_length=128)


class AddCartItemRequest(CartScope):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(default=1, ge=1, le=MAX_CART_ITEM_QUANTITY)


class UpdateCartItemRequest(CartScope):
    quantity: int = Field(..., le=MAX_CART_ITEM_QUANTITY)
    expected_version: int | None = Field(None, ge=1)


class RemoveCartItemRequest(CartScope):
    pass


class PlaceOrderRequest(ClientRequest):
    restaurant_id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    customer_token: str | None = Field(None, max_length=128)
    order_type: OrderType = OrderType.DINE_IN
    payment_method: PaymentMethod | None = None


class CreateWhatsAppTokenRequest(ClientRequest):
    restaurant_id: str = Field(..., min_length=1)
    client_token: str = Field(..., min_length=1, max_length=128)
    order_data: dict[str, Any]
    table_id: str | None = None
    area_id: str | None = None
    order_type: OrderType = OrderType.DINE_IN
    campaign: str | None = Field(None, max_length=120)


class CreateAreaRequest(StaffRequest):
    name: str = Field(..., min_length=1, max_length=120)
    description: str | None = None
    capacity: int | None = Field(None, ge=0)
    service_type: Literal["full_service", "bar_service", "counter"] = "full_service"


class CreateTableRequest(StaffRequest):
    area_id: str = Field(..., min_length=1)
    table_number: str = Field(..., min_length=1, max_length=50)
    table_name: str | None = Field(None, max_length=120)
    capacity: int = Field(default=4, ge=1, le=50)
    notes: str | None = None


class UpdateTableStatusRequest(StaffRequest):
    status: TableStatus


class TableOrderActionRequest(StaffRequest):
    action: Literal["process", "remove_item", "close"]
    item_id: str | None = None

    @model_validator(mode="after")
    def validate_item_for_removal(self):
        if self.action == "remove_item" and not self.item_id:
            raise ValueError("item_id is required for remove_item")
        return self


class UpdateRestaurantRequest(StaffRequest):
    name: str | None = Field(None, min_length=1, max_length=200)
    currency: str | None = Field(None, min_length=3, max_length=10)
    whatsapp_number: str | None = Field(None, max_length=32)

    @field_validator("name", "currency")
    @classmethod
    def validate_not_null(cls, v):
        # Only runs for keys the caller sent; whatsapp_number may be cleared.
        if v is None:
            raise ValueError("Field cannot be null")
        return v


class CartViewQuery(ClientRequest):
    restaurant_id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    customer_token: str | None = Field(None, max_length=128)
