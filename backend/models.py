from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Marker attached to every draft order this app creates; the dashboard
# counts orders by searching for it.
PROVENANCE_NOTE = "Created via Draft Order App"

STAGE_FULL = "full"
STAGE_DEPOSIT = "deposit"
STAGE_BALANCE = "balance"


# ── inbound storefront payload ──────────────────────────────────────
# Field names follow the storefront cart JSON (snake_case from Shopify's
# /cart.js, camelCase for the few keys the button script adds itself).

class _Inbound(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Customer(_Inbound):
    id: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v):
        if v is None or v == "":
            return None
        return str(v)


class Address(_Inbound):
    address1: Optional[str] = None
    apartment: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    pin: Optional[str] = None
    company: Optional[str] = None

    @field_validator("address1", "apartment", "city", "state", "country", "pin", "company", mode="before")
    @classmethod
    def _as_str(cls, v):
        return str(v) if isinstance(v, (int, float)) and not isinstance(v, bool) else v


class ItemDiscount(_Inbound):
    title: Optional[str] = None
    amount: Optional[float] = None


class CartItem(_Inbound):
    variant_id: str
    quantity: int = 1
    title: Optional[str] = None
    original_price: float = 0  # minor units (cents)
    final_price: float = 0
    total_discount: float = 0
    discounts: List[ItemDiscount] = Field(default_factory=list)

    @field_validator("variant_id", mode="before")
    @classmethod
    def _variant_as_str(cls, v):
        return str(v) if v is not None else v


class Cart(_Inbound):
    items: List[CartItem] = Field(default_factory=list)
    currency: Optional[str] = None


class CreateDraftOrderRequest(_Inbound):
    customer: Optional[Customer] = None
    cart: Optional[Cart] = None
    address: Optional[Address] = None
    billing_address: Optional[Address] = Field(default=None, alias="billingAddress")
    use_shipping: bool = Field(default=False, alias="useShipping")


# ── persisted settings ──────────────────────────────────────────────

class StoreSettings(BaseModel):
    shop: str
    double_orders_enabled: bool = False
    discount_a: float = 0
    discount_b: float = 0
    tag_a: str = ""
    tag_b: str = ""
    single_discount: float = 0
    single_tag: str = ""
    updated_at: Optional[str] = None

    @property
    def double_mode_active(self) -> bool:
        """Two orders are only created when the flag is on AND both halves carry a discount."""
        return self.double_orders_enabled and self.discount_a > 0 and self.discount_b > 0


class StoreSettingsUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    double_orders_enabled: Optional[bool] = None
    discount_a: Optional[float] = Field(default=None, ge=0, le=100)
    discount_b: Optional[float] = Field(default=None, ge=0, le=100)
    tag_a: Optional[str] = None
    tag_b: Optional[str] = None
    single_discount: Optional[float] = Field(default=None, ge=0, le=100)
    single_tag: Optional[str] = None


# ── draft order plans (outbound) ────────────────────────────────────

class PlannedDraftOrder(BaseModel):
    """One GraphQL ``DraftOrderInput`` together with the plan stage it represents."""

    stage: str
    discount_percent: float = 0
    tag: str = ""
    input: Dict[str, Any]


# ── created draft orders (API projection) ───────────────────────────

class _Outbound(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DraftLineItem(_Outbound):
    title: str = ""
    variant_title: Optional[str] = None
    quantity: int = 0
    unit_price: float = 0
    currency_code: str = ""
    image_url: Optional[str] = None

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


class CreatedDraftOrder(_Outbound):
    id: str
    name: str = ""
    invoice_url: Optional[str] = None
    total_amount: float = 0
    currency_code: str = ""
    line_items: List[DraftLineItem] = Field(default_factory=list)
    stage: str = STAGE_FULL
    tag: str = ""
    discount_percent: float = 0


class NotificationOutcome(BaseModel):
    sent: bool = False
    error: Optional[str] = None
