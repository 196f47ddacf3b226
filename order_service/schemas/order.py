"""
Pydantic schemas for order documents and request/response validation

Field names are snake_case in Python and camelCase on the wire and in
the stored documents.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from pydantic.alias_generators import to_camel


class OrderStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PROCESSING = "processing"
    READY = "ready"
    DELIVERED = "delivered"
    PICKED_UP = "picked-up"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    CREDIT_CARD = "credit-card"
    CASH = "cash"
    CASH_APP = "cash-app"


class DeliveryMethod(str, Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class CamelModel(BaseModel):
    """Base schema: camelCase aliases, snake_case attributes"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StrictCamelModel(CamelModel):
    """Request schema that rejects unknown fields and non-finite numbers"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid", allow_inf_nan=False)


# ---------------------------------------------------------------------------
# Order contents
# ---------------------------------------------------------------------------
class Customizations(StrictCamelModel):
    size: Optional[str] = None
    flavors: Optional[List[str]] = None
    fillings: Optional[List[str]] = None
    frostings: Optional[List[str]] = None
    shape: Optional[str] = None
    addons: Optional[List[str]] = None
    special_instructions: Optional[str] = None


class OrderItem(StrictCamelModel):
    """Line item; fixed once the order exists"""
    cake_id: str = Field(..., min_length=1, description="Product ID")
    name: str = Field(..., min_length=1)
    image_url: Optional[str] = None
    price: float = Field(..., description="Unit price")
    quantity: int = Field(..., gt=0)
    customizations: Optional[Customizations] = None


class CustomerInfo(StrictCamelModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=1)


class DeliveryInfo(StrictCamelModel):
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    delivery_date: Optional[datetime] = None
    delivery_time: str = Field(..., min_length=1)
    delivery_fee: float


class PickupInfo(StrictCamelModel):
    pickup_date: datetime
    pickup_time: str = Field(..., min_length=1)
    store_location: Optional[str] = None


class CustomOrderDetails(StrictCamelModel):
    consultation_date: Optional[datetime] = None
    consultation_time: Optional[str] = None
    design_notes: Optional[str] = None
    reference_images: Optional[List[str]] = None
    deposit_amount: Optional[float] = None


class StatusHistoryEntry(CamelModel):
    status: OrderStatus
    timestamp: datetime
    note: Optional[str] = None
    updated_by: Optional[str] = None


class PaymentStatusHistoryEntry(CamelModel):
    status: PaymentStatus
    timestamp: datetime
    note: Optional[str] = None
    updated_by: Optional[str] = None


class CashAppDetails(StrictCamelModel):
    confirmation_id: Optional[str] = None
    last_updated: Optional[datetime] = None


class CardDetails(StrictCamelModel):
    """Masked card metadata; nothing else about the card is accepted"""
    last4: Optional[str] = Field(None, pattern=r"^\d{4}$")
    brand: Optional[str] = Field(None, max_length=50)


class PaymentTransaction(CamelModel):
    """Ledger entry"""
    id: str
    amount: float
    method: PaymentMethod
    date: datetime
    confirmation_id: Optional[str] = None
    cash_app_details: Optional[CashAppDetails] = None
    card_details: Optional[CardDetails] = None
    notes: Optional[str] = None

    @property
    def cash_app_confirmation_id(self) -> Optional[str]:
        """Confirmation id used for cash-app deduplication"""
        if self.cash_app_details and self.cash_app_details.confirmation_id:
            return self.cash_app_details.confirmation_id
        return self.confirmation_id


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------
class OrderCreate(StrictCamelModel):
    """Schema for creating a new order"""
    items: List[OrderItem] = Field(..., min_length=1)
    subtotal: float
    tax: float
    total: float
    payment_method: Optional[str] = None
    delivery_method: DeliveryMethod
    customer_info: CustomerInfo
    delivery_info: Optional[DeliveryInfo] = None
    pickup_info: Optional[PickupInfo] = None
    special_instructions: Optional[str] = None
    is_custom_order: bool
    custom_order_details: Optional[CustomOrderDetails] = None
    idempotency_key: Optional[str] = Field(None, min_length=1, max_length=255)

    @model_validator(mode="after")
    def check_fulfillment_details(self):
        if self.delivery_method == DeliveryMethod.DELIVERY and self.delivery_info is None:
            raise ValueError("deliveryInfo is required for delivery orders")
        if self.delivery_method == DeliveryMethod.PICKUP and self.pickup_info is None:
            raise ValueError("pickupInfo is required for pickup orders")
        return self


class OrderStatusUpdate(StrictCamelModel):
    """Schema for updating order status"""
    status: OrderStatus
    note: Optional[str] = None


class OrderCancel(StrictCamelModel):
    reason: str = Field(..., min_length=1)


class PaymentCreate(StrictCamelModel):
    """Schema for recording a payment (a ledger entry minus its id)"""
    amount: float
    method: PaymentMethod
    date: Optional[datetime] = None
    confirmation_id: Optional[str] = None
    cash_app_details: Optional[CashAppDetails] = None
    card_details: Optional[CardDetails] = None
    notes: Optional[str] = None

    @property
    def cash_app_confirmation_id(self) -> Optional[str]:
        if self.cash_app_details and self.cash_app_details.confirmation_id:
            return self.cash_app_details.confirmation_id
        return self.confirmation_id


class CashAppPaymentCreate(StrictCamelModel):
    """Cash-app submission; an amount of 0 pays the outstanding balance"""
    amount: float = Field(0, ge=0)
    confirmation_id: str = Field(..., min_length=1)
    notes: Optional[str] = None


class PaymentStatusUpdate(StrictCamelModel):
    payment_status: PaymentStatus
    note: Optional[str] = None


# ---------------------------------------------------------------------------
# Stored document / responses
# ---------------------------------------------------------------------------
class Order(CamelModel):
    """Order aggregate as stored and returned"""
    id: str
    user_id: Optional[str] = None
    items: List[OrderItem]
    subtotal: float
    tax: float
    total: float
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: Optional[str] = None
    delivery_method: DeliveryMethod
    customer_info: CustomerInfo
    delivery_info: Optional[DeliveryInfo] = None
    pickup_info: Optional[PickupInfo] = None
    special_instructions: Optional[str] = None
    is_custom_order: bool = False
    custom_order_details: Optional[CustomOrderDetails] = None
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)
    payment_status_history: List[PaymentStatusHistoryEntry] = Field(default_factory=list)
    payments: List[PaymentTransaction] = Field(default_factory=list)
    amount_paid: float = 0.0
    balance_due: Optional[float] = None
    profile_updated: Optional[bool] = None
    idempotency_key: Optional[str] = None
    created_at: datetime
    # Store write version, never serialized
    version: int = Field(default=0, exclude=True)


class OrderCreatedResponse(BaseModel):
    id: str


class PaymentRecordedResponse(CamelModel):
    payment_id: str


class OrderListResponse(BaseModel):
    """Schema for list of orders response"""
    orders: list[Order]
    total: int
