import httpx
import pytest
from fastapi.testclient import TestClient

from backend.main import create_app
from backend.notifications import EmailNotifier
from backend.shopify_admin import ShopifyAdminClient
from .utils import ADMIN_AUTH, ADMIN_TOKEN, SHOP, TOKEN, ShopifyRecorder, draft_create_response

ORIGIN = "https://acme-store.myshopify.com"
ROUTE = "/api/create-draft-order"


def _app(settings_store, shopify, notifier=None, store_domain=SHOP, access_token=TOKEN):
    client = ShopifyAdminClient(store_domain, access_token, transport=httpx.MockTransport(shopify))
    return create_app(
        store_domain=store_domain,
        access_token=access_token,
        settings_store=settings_store,
        client=client,
        notifier=notifier or EmailNotifier(username="", password=""),
        admin_token=ADMIN_TOKEN,
    )


@pytest.fixture
def api(settings_store, shopify):
    with TestClient(_app(settings_store, shopify)) as c:
        yield c


def test_options_preflight_echoes_origin(api):
    resp = api.options(ROUTE, headers={"Origin": ORIGIN, "Access-Control-Request-Method": "POST"})
    assert resp.status_code == 204
    assert resp.headers["access-control-allow-origin"] == ORIGIN
    assert "POST" in resp.headers["access-control-allow-methods"]
    assert "Content-Type" in resp.headers["access-control-allow-headers"]


def test_other_methods_not_allowed(api):
    assert api.get(ROUTE).status_code == 405
    assert api.put(ROUTE, json={}).status_code == 405


def test_empty_cart_is_rejected(api, shopify):
    resp = api.post(ROUTE, json={"cart": {"items": []}}, headers={"Origin": ORIGIN})
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Cart is empty"}
    assert resp.headers["access-control-allow-origin"] == ORIGIN
    assert shopify.requests == []


def test_missing_cart_is_rejected(api):
    resp = api.post(ROUTE, json={"customer": {"email": "a@b.c"}})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Cart is empty"


def test_malformed_json_is_rejected(api):
    resp = api.post(ROUTE, content=b"{not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Invalid JSON in request body"}


def test_missing_store_credentials(settings_store, shopify, cart_payload):
    app = _app(settings_store, shopify, access_token="")
    with TestClient(app) as c:
        resp = c.post(ROUTE, json=cart_payload, headers={"Origin": ORIGIN})
    assert resp.status_code == 500
    assert "SHOPIFY_ADMIN_TOKEN" in resp.json()["error"]
    assert resp.headers["access-control-allow-origin"] == ORIGIN


def test_single_mode_creates_one_draft(api, shopify, cart_payload):
    resp = api.post(ROUTE, json=cart_payload, headers={"Origin": ORIGIN})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert len(body["drafts"]) == 1
    draft = body["drafts"][0]
    assert draft["stage"] == "full"
    assert draft["invoiceUrl"]
    assert body["emailSent"] is False
    assert "emailError" not in body
    assert resp.headers["access-control-allow-origin"] == ORIGIN

    sent = shopify.draft_inputs[0]
    assert sent["customerId"] == "gid://shopify/Customer/42"
    assert sent["lineItems"][0]["appliedDiscount"]["value"] == 20.0
    assert sent["billingAddress"] == sent["shippingAddress"]


def test_double_mode_email_failure_is_soft(settings_store, shopify, cart_payload, monkeypatch):
    notifier = EmailNotifier(host="smtp.test", port=465, username="shop@test", password="pw")

    async def broken_send(msg):
        raise ConnectionRefusedError("smtp down")

    monkeypatch.setattr(notifier, "send", broken_send)

    with TestClient(_app(settings_store, shopify, notifier=notifier)) as c:
        saved = c.post("/app/settings", json={
            "double_orders_enabled": True, "discount_a": 40, "discount_b": 60,
            "tag_a": "pay-now", "tag_b": "pay-later",
        }, headers=ADMIN_AUTH)
        assert saved.status_code == 200
        resp = c.post(ROUTE, json=cart_payload)

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert [d["stage"] for d in body["drafts"]] == ["deposit", "balance"]
    assert [d["tag"] for d in body["drafts"]] == ["pay-now", "pay-later"]
    assert body["emailSent"] is False
    assert "smtp down" in body["emailError"]
    assert sorted(i["tags"][0] for i in shopify.draft_inputs) == ["pay-later", "pay-now"]


def test_double_mode_with_zero_discount_creates_single(settings_store, shopify, cart_payload):
    with TestClient(_app(settings_store, shopify)) as c:
        c.post("/app/settings", json={"double_orders_enabled": True, "discount_a": 40, "discount_b": 0}, headers=ADMIN_AUTH)
        resp = c.post(ROUTE, json=cart_payload)

    assert resp.status_code == 200
    assert len(resp.json()["drafts"]) == 1
    assert len(shopify.draft_inputs) == 1


def test_upstream_failure_returns_500_with_detail(settings_store, cart_payload):
    shopify = ShopifyRecorder(responses=[
        draft_create_response(user_errors=[{"field": ["lineItems"], "message": "Variant not found"}]),
    ])
    with TestClient(_app(settings_store, shopify)) as c:
        resp = c.post(ROUTE, json=cart_payload, headers={"Origin": ORIGIN})

    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert "Variant not found" in body["error"]
    assert resp.headers["access-control-allow-origin"] == ORIGIN


def test_settings_update_validates_percentages(api):
    resp = api.post("/app/settings", json={"discount_a": 150}, headers=ADMIN_AUTH)
    assert resp.status_code == 422


def test_settings_roundtrip(api):
    assert api.get("/app/settings", headers=ADMIN_AUTH).json()["double_mode_active"] is False
    api.post("/app/settings", json={"single_discount": 15, "single_tag": "draft"}, headers=ADMIN_AUTH)
    data = api.get("/app/settings", headers=ADMIN_AUTH).json()
    assert data["single_discount"] == 15
    assert data["single_tag"] == "draft"


def test_settings_require_admin_token(api):
    anonymous = api.post("/app/settings", json={"single_discount": 100}, headers={"Origin": "https://evil.example"})
    assert anonymous.status_code == 401
    assert api.get("/app/settings").status_code == 401

    wrong = api.post("/app/settings", json={"single_discount": 100}, headers={"Authorization": "Bearer nope"})
    assert wrong.status_code == 401

    assert api.get("/app/settings", headers=ADMIN_AUTH).json()["single_discount"] == 0


def test_admin_routes_refused_without_configured_token(settings_store, shopify):
    client = ShopifyAdminClient(SHOP, TOKEN, transport=httpx.MockTransport(shopify))
    app = create_app(store_domain=SHOP, access_token=TOKEN, settings_store=settings_store,
                     client=client, admin_token="")
    with TestClient(app) as c:
        assert c.get("/app/settings", headers={"Authorization": "Bearer "}).status_code == 401
        assert c.get("/app/settings", headers=ADMIN_AUTH).status_code == 401
        assert c.get("/health").status_code == 200


def test_missing_currency_is_rejected(api, shopify, cart_payload):
    del cart_payload["cart"]["currency"]

    resp = api.post(ROUTE, json=cart_payload, headers={"Origin": ORIGIN})

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Cart currency is missing"}
    assert shopify.requests == []


def test_blank_currency_is_rejected(api, shopify, cart_payload):
    cart_payload["cart"]["currency"] = "  "
    assert api.post(ROUTE, json=cart_payload).status_code == 400
    assert shopify.requests == []


def test_cart_currency_is_forwarded(api, shopify, cart_payload):
    cart_payload["cart"]["currency"] = "EUR"
    assert api.post(ROUTE, json=cart_payload).status_code == 200
    assert shopify.draft_inputs[0]["lineItems"][0]["priceOverride"]["currencyCode"] == "EUR"


def test_numeric_address_fields_are_accepted(api, shopify, cart_payload):
    cart_payload["address"]["pin"] = 12345

    resp = api.post(ROUTE, json=cart_payload)

    assert resp.status_code == 200
    assert shopify.draft_inputs[0]["shippingAddress"]["zip"] == "12345"
