"""Turn a storefront cart into Admin API ``DraftOrderInput`` payloads.

Pure functions only: no I/O, no settings lookups. The caller passes the
already-resolved :class:`StoreSettings`.
"""
from typing import Any, Dict, List, Optional

from .models import (
    PROVENANCE_NOTE,
    STAGE_BALANCE,
    STAGE_DEPOSIT,
    STAGE_FULL,
    Address,
    Cart,
    CartItem,
    Customer,
    PlannedDraftOrder,
    StoreSettings,
)

# Titles shown on the order-level discount in the Shopify admin
DEPOSIT_DISCOUNT_TITLE = "PAYNOW40"
BALANCE_DISCOUNT_TITLE = "FINAL60"
SINGLE_DISCOUNT_TITLE = "Your Discount"


def percent_off(original_price: float, final_price: float) -> float:
    if original_price > 0:
        return round((original_price - final_price) / original_price * 100, 2)
    return 0.0


def _line_item(item: CartItem, currency: str) -> Dict[str, Any]:
    line: Dict[str, Any] = {
        "quantity": int(item.quantity),
        "variantId": f"gid://shopify/ProductVariant/{item.variant_id}",
        # Cart prices arrive in cents
        "priceOverride": {
            "amount": item.original_price / 100,
            "currencyCode": currency,
        },
    }
    # No key at all means "no line discount" to the API; a zero value would not.
    if item.total_discount > 0:
        title = next((d.title for d in item.discounts if d.title), None) or "Discount"
        line["appliedDiscount"] = {
            "title": title,
            "description": "",
            "value": percent_off(item.original_price, item.final_price),
            "valueType": "PERCENTAGE",
        }
    return line


def build_line_items(cart: Cart) -> List[Dict[str, Any]]:
    return [_line_item(item, cart.currency) for item in cart.items]


def build_address(customer: Optional[Customer], address: Optional[Address]) -> Dict[str, str]:
    customer = customer or Customer()
    address = address or Address()
    return {
        "firstName": customer.first_name or "",
        "lastName": customer.last_name or "",
        "address1": address.address1 or "",
        "address2": address.apartment or "",
        "city": address.city or "",
        "province": address.state or "",
        "country": address.country or "",
        "zip": address.pin or "",
        "company": address.company or "",
    }


def customer_reference(customer: Optional[Customer]) -> Dict[str, str]:
    """``customerId`` if known, else a bare ``email``, else nothing (guest order)."""
    if customer and customer.id:
        return {"customerId": f"gid://shopify/Customer/{customer.id}"}
    if customer and customer.email:
        return {"email": customer.email}
    return {}


def _draft_input(
    line_items: List[Dict[str, Any]],
    shipping: Dict[str, str],
    billing: Dict[str, str],
    customer_ref: Dict[str, str],
    discount: float,
    discount_title: str,
    tag: str,
) -> Dict[str, Any]:
    draft: Dict[str, Any] = {
        "visibleToCustomer": False,
        "lineItems": line_items,
        "note": PROVENANCE_NOTE,
        "tags": [tag] if tag else [],
        "shippingAddress": shipping,
        "billingAddress": billing,
        **customer_ref,
    }
    if discount > 0:
        draft["appliedDiscount"] = {
            "title": discount_title,
            "description": discount_title,
            "value": float(discount),
            "valueType": "PERCENTAGE",
        }
    return draft


def compose(
    cart: Cart,
    customer: Optional[Customer],
    address: Optional[Address],
    billing_address: Optional[Address],
    use_shipping: bool,
    settings: StoreSettings,
) -> List[PlannedDraftOrder]:
    """Return one ``full`` plan, or ``deposit`` + ``balance`` plans in that order.

    Double mode requires the flag AND two positive discounts; otherwise the
    store silently gets a single order with the single-mode discount and tag.
    """
    line_items = build_line_items(cart)
    shipping = build_address(customer, address)
    billing = shipping if use_shipping else build_address(customer, billing_address)
    customer_ref = customer_reference(customer)

    if settings.double_mode_active:
        stages = [
            (STAGE_DEPOSIT, settings.discount_a, DEPOSIT_DISCOUNT_TITLE, settings.tag_a or ""),
            (STAGE_BALANCE, settings.discount_b, BALANCE_DISCOUNT_TITLE, settings.tag_b or ""),
        ]
    else:
        stages = [
            (STAGE_FULL, settings.single_discount or 0, SINGLE_DISCOUNT_TITLE, settings.single_tag or ""),
        ]

    return [
        PlannedDraftOrder(
            stage=stage,
            discount_percent=discount,
            tag=tag,
            input=_draft_input(line_items, shipping, billing, customer_ref, discount, title, tag),
        )
        for stage, discount, title, tag in stages
    ]
