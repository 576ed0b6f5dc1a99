# checkout/domain/schemas.py
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class PriceBreakdown(BaseModel):
    """Subtotal split into government tax, platform fee and total (all in cents precision)."""

    subtotal: Decimal
    government_tax: Decimal
    platform_fee: Decimal
    total: Decimal
    government_tax_rate: Decimal | None = None
    platform_fee_rate: Decimal | None = None

    model_config = ConfigDict(frozen=True)

    @computed_field
    @property
    def total_in_cents(self) -> int:
        return int(self.total * 100)


class CartTotals(BaseModel):
    total_items: int
    total_price: Decimal

    model_config = ConfigDict(frozen=True)


# =====================================================
# API IN
# =====================================================
class CreateCartIn(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=64, description="Client session id")
    currency: str | None = Field(None, min_length=3, max_length=3)


class ItemIn(BaseModel):
    product_id: int = Field(..., gt=0, description="Catalog product id")
    quantity: int = Field(1, description="Quantity to add (must be >= 1)")
    currency: str | None = Field(None, min_length=3, max_length=3)


class QuantityIn(BaseModel):
    #0 or less removes the line
    quantity: int


class ProviderOutcomeKind(str, Enum):
    SUCCESS = "success"
    CANCELED = "canceled"
    FAILED = "failed"


class ProviderOutcome(BaseModel):
    """What the payment-provider SDK reports back after presenting its UI."""

    outcome: ProviderOutcomeKind
    provider_ref: str | None = None
    intent_id: str | None = None
    message: str | None = None


# =====================================================
# API OUT
# =====================================================
class LineItemOut(BaseModel):
    line_id: int
    product_id: int
    unit_price: Decimal
    quantity: int
    currency: str

    model_config = ConfigDict(from_attributes=True)


class CartOut(BaseModel):
    session_id: str
    currency: str
    items: List[LineItemOut]
    total_items: int
    total_price: Decimal


class OrderItemOut(BaseModel):
    product_id: int
    name: str | None = None
    price: Decimal
    quantity: int


class OrderProjection(BaseModel):
    """Read-only client view of an order owned by the payment authority."""

    id: int
    order_number: str | None = None
    intent_id: str | None = None
    status: str
    payment_status: str
    breakdown: PriceBreakdown
    currency: str = "USD"
    items: List[OrderItemOut] = []
    paid_at: datetime | None = None

    model_config = ConfigDict(frozen=True)


class SettlementIntent(BaseModel):
    client_secret: str
    intent_id: str
    idempotency_token: str
    breakdown: PriceBreakdown
    cart_fingerprint: str
    #lines the intent charges for, as sent to the payment authority
    items: List[Dict[str, int]] = []
    created_at: datetime

    model_config = ConfigDict(frozen=True)


class CheckoutStatus(BaseModel):
    session_id: str | None = None
    state: str
    intent_id: str | None = None
    client_secret: str | None = None
    breakdown: PriceBreakdown | None = None
    order: OrderProjection | None = None
    error_code: str | None = None
    error_message: str | None = None


class OrdersPage(BaseModel):
    orders: List[OrderProjection]
    page: int
    limit: int
    total_pages: int | None = None
    total_orders: int | None = None


# =====================================================
# PAYMENT AUTHORITY WIRE SHAPES (camelCase JSON)
# =====================================================
class _Wire(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WireBreakdown(_Wire):
    subtotal: Decimal
    government_tax: Decimal
    platform_fee: Decimal
    total: Decimal
    government_tax_rate: Decimal | None = None
    platform_fee_rate: Decimal | None = None

    def to_breakdown(self) -> PriceBreakdown:
        return PriceBreakdown(**self.model_dump())


class WireOrderItem(_Wire):
    product_id: int
    name: str | None = None
    price: Decimal
    quantity: int


class WireOrder(_Wire):
    id: int
    order_number: str | None = None
    subtotal: Decimal
    government_tax: Decimal
    platform_fee: Decimal
    total: Decimal
    government_tax_rate: Decimal | None = None
    platform_fee_rate: Decimal | None = None
    stripe_payment_intent_id: str | None = None
    payment_status: str = "pending"
    status: str = "pending"
    currency: str = "USD"
    paid_at: datetime | None = None
    order_items: List[WireOrderItem] = []

    def to_projection(self) -> OrderProjection:
        return OrderProjection(
            id=self.id,
            order_number=self.order_number,
            intent_id=self.stripe_payment_intent_id,
            status=self.status,
            payment_status=self.payment_status,
            breakdown=PriceBreakdown(
                subtotal=self.subtotal,
                government_tax=self.government_tax,
                platform_fee=self.platform_fee,
                total=self.total,
                government_tax_rate=self.government_tax_rate,
                platform_fee_rate=self.platform_fee_rate,
            ),
            currency=self.currency,
            items=[
                OrderItemOut(
                    product_id=i.product_id,
                    name=i.name,
                    price=i.price,
                    quantity=i.quantity,
                )
                for i in self.order_items
            ],
            paid_at=self.paid_at,
        )


class IntentResponse(_Wire):
    client_secret: str
    payment_intent_id: str
    amount: int | None = None
    order: WireOrder | None = None
    breakdown: WireBreakdown | None = None


class ConfirmResponse(_Wire):
    order: WireOrder
    payment_status: str


class OrdersResponse(_Wire):
    orders: List[WireOrder] = []
