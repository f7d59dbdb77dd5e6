import json

import httpx

SHOP = "acme-store.myshopify.com"
TOKEN = "shpat_test"
ADMIN_TOKEN = "admin-secret"
ADMIN_AUTH = {"Authorization": f"Bearer {ADMIN_TOKEN}"}


def draft_order_node(name="#D1", total="80.00", currency="USD", invoice="https://acme/invoices/1"):
    """A ``draftOrder`` object shaped like the draftOrderCreate mutation selection."""
    return {
        "id": f"gid://shopify/DraftOrder/{name.lstrip('#D') or '1'}",
        "name": name,
        "invoiceUrl": invoice,
        "createdAt": "2024-10-01T00:00:00Z",
        "totalPriceSet": {"shopMoney": {"amount": total, "currencyCode": currency}},
        "customer": None,
        "lineItems": {
            "edges": [
                {
                    "node": {
                        "title": "Linen Shirt",
                        "quantity": 2,
                        "variant": {
                            "id": "gid://shopify/ProductVariant/111",
                            "title": "M / Blue",
                            "image": None,
                            "product": {"featuredImage": {"url": "https://cdn.test/shirt.jpg"}},
                        },
                        "originalUnitPriceSet": {"shopMoney": {"amount": "10.00", "currencyCode": currency}},
                    }
                }
            ]
        },
    }


def draft_create_response(node=None, user_errors=None):
    return {
        "data": {
            "draftOrderCreate": {
                "draftOrder": None if user_errors else node,
                "userErrors": user_errors or [],
            }
        }
    }


class ShopifyRecorder:
    """``httpx.MockTransport`` handler recording requests.

    Queued ``responses`` are returned first (dicts become 200 JSON bodies);
    after that every call gets a fresh successful draft order.
    """

    def __init__(self, responses=None):
        self.requests = []
        self.responses = list(responses or [])

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content or b"{}") if request.method == "POST" else {}
        self.requests.append({"method": request.method, "url": str(request.url), "headers": request.headers, "body": body})
        if self.responses:
            resp = self.responses.pop(0)
            if isinstance(resp, httpx.Response):
                return resp
            return httpx.Response(200, json=resp)
        return httpx.Response(200, json=draft_create_response(draft_order_node(name=f"#D{len(self.requests)}")))

    @property
    def draft_inputs(self):
        return [r["body"]["variables"]["input"] for r in self.requests if "variables" in r["body"]]
