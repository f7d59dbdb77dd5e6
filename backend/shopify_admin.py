import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from . import config
from .models import CreatedDraftOrder, DraftLineItem, PlannedDraftOrder

logger = logging.getLogger(__name__)

DRAFT_ORDER_CREATE = """
mutation draftOrderCreate($input: DraftOrderInput!) {
  draftOrderCreate(input: $input) {
    draftOrder {
      id name invoiceUrl createdAt
      totalPriceSet { shopMoney { amount currencyCode } }
      customer { id email firstName lastName }
      lineItems(first: 250) {
        edges {
          node {
            title quantity
            variant {
              id title
              image { url }
              product { featuredImage { url } }
            }
            originalUnitPriceSet { shopMoney { amount currencyCode } }
          }
        }
      }
    }
    userErrors { field message }
  }
}
"""

DRAFT_ORDERS_BY_QUERY = """
query draftOrdersByNote($query: String!, $after: String) {
  draftOrders(first: 250, after: $after, query: $query) {
    edges { node { id } }
    pageInfo { hasNextPage endCursor }
  }
}
"""

# Upper bound on pages walked when counting (250 per page)
MAX_COUNT_PAGES = 20


class ShopifyAPIError(Exception):
    """Any failed Admin API call: transport, HTTP status, GraphQL or user errors."""

    def __init__(self, detail: Any, status_code: Optional[int] = None):
        self.detail = detail
        self.status_code = status_code
        message = detail if isinstance(detail, str) else json.dumps(detail, ensure_ascii=False)
        super().__init__(message)


def _money(node: Optional[dict]) -> tuple[float, str]:
    shop_money = ((node or {}).get("shopMoney")) or {}
    try:
        amount = float(shop_money.get("amount") or 0)
    except (TypeError, ValueError):
        amount = 0.0
    return amount, shop_money.get("currencyCode") or ""


def parse_draft_order(draft: dict, plan: PlannedDraftOrder) -> CreatedDraftOrder:
    total, currency = _money(draft.get("totalPriceSet"))
    line_items = []
    for edge in ((draft.get("lineItems") or {}).get("edges") or []):
        node = edge.get("node") or {}
        variant = node.get("variant") or {}
        unit_price, line_currency = _money(node.get("originalUnitPriceSet"))
        image_url = (variant.get("image") or {}).get("url") or (
            ((variant.get("product") or {}).get("featuredImage")) or {}
        ).get("url")
        line_items.append(
            DraftLineItem(
                title=node.get("title") or "",
                variant_title=variant.get("title"),
                quantity=int(node.get("quantity") or 0),
                unit_price=unit_price,
                currency_code=line_currency or currency,
                image_url=image_url,
            )
        )
    return CreatedDraftOrder(
        id=str(draft.get("id") or ""),
        name=draft.get("name") or "",
        invoice_url=draft.get("invoiceUrl"),
        total_amount=total,
        currency_code=currency,
        line_items=line_items,
        stage=plan.stage,
        tag=plan.tag,
        discount_percent=plan.discount_percent,
    )


class ShopifyAdminClient:
    """Thin async wrapper over the Admin API of the one configured store."""

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.shop_domain = shop_domain
        self.access_token = access_token
        self.api_version = api_version or config.SHOPIFY_API_VERSION
        self.timeout = timeout if timeout is not None else config.SHOPIFY_HTTP_TIMEOUT
        self._transport = transport

    @property
    def admin_api_base(self) -> str:
        return f"https://{self.shop_domain}/admin/api/{self.api_version}"

    @property
    def graphql_endpoint(self) -> str:
        return f"{self.admin_api_base}/graphql.json"

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self.access_token,
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def graphql(self, query: str, variables: Optional[dict] = None) -> dict:
        payload: Dict[str, Any] = {"query": query}
        if variables is not None:
            payload["variables"] = variables
        async with self._client() as client:
            try:
                resp = await client.post(self.graphql_endpoint, json=payload, headers=self._headers())
            except httpx.RequestError as e:
                logger.warning("Shopify GraphQL request failed: %s", e)
                raise ShopifyAPIError(f"Shopify unreachable: {e}") from e

        if not resp.is_success:
            detail = (resp.text or "").strip()[:500] or f"HTTP {resp.status_code}"
            raise ShopifyAPIError(detail, status_code=resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise ShopifyAPIError("Malformed JSON from Shopify", status_code=resp.status_code) from e
        if not isinstance(data, dict):
            raise ShopifyAPIError("Unexpected response from Shopify", status_code=resp.status_code)
        if data.get("errors"):
            raise ShopifyAPIError(data["errors"], status_code=resp.status_code)
        return data.get("data") or {}

    # ── draft orders ──
    async def create_draft_order(self, plan: PlannedDraftOrder) -> CreatedDraftOrder:
        data = await self.graphql(DRAFT_ORDER_CREATE, {"input": plan.input})
        result = data.get("draftOrderCreate") or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            raise ShopifyAPIError(user_errors)
        draft = result.get("draftOrder")
        if not draft:
            raise ShopifyAPIError("draftOrderCreate returned no draft order")
        return parse_draft_order(draft, plan)

    async def create_draft_orders(self, plans: List[PlannedDraftOrder]) -> List[CreatedDraftOrder]:
        """Create all plans concurrently; results keep the submission order.

        If any creation fails the whole call fails. Siblings that did succeed
        are not cancelled and remain in the admin as orphan drafts.
        """
        if len(plans) == 1:
            return [await self.create_draft_order(plans[0])]

        results = await asyncio.gather(
            *(self.create_draft_order(plan) for plan in plans),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            orphans = [r.name or r.id for r in results if isinstance(r, CreatedDraftOrder)]
            if orphans:
                logger.warning("Draft order split failed; left behind: %s", ", ".join(orphans))
            raise failures[0]
        return list(results)

    async def count_draft_orders(self, note: str) -> int:
        search = f"note:'{note}'"
        total = 0
        after = None
        for _ in range(MAX_COUNT_PAGES):
            data = await self.graphql(DRAFT_ORDERS_BY_QUERY, {"query": search, "after": after})
            conn = data.get("draftOrders") or {}
            total += len(conn.get("edges") or [])
            page = conn.get("pageInfo") or {}
            if not page.get("hasNextPage"):
                break
            after = page.get("endCursor")
        return total

    # ── themes (REST) ──
    async def fetch_themes(self) -> List[dict]:
        async with self._client() as client:
            try:
                resp = await client.get(f"{self.admin_api_base}/themes.json", headers=self._headers())
            except httpx.RequestError as e:
                raise ShopifyAPIError(f"Shopify unreachable: {e}") from e
        if not resp.is_success:
            raise ShopifyAPIError((resp.text or "").strip()[:300] or "Shopify error", status_code=resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise ShopifyAPIError("Malformed JSON from Shopify", status_code=resp.status_code) from e
        return (data.get("themes") if isinstance(data, dict) else None) or []

    async def published_theme_id(self) -> Optional[str]:
        themes = await self.fetch_themes()
        main_theme = next((t for t in themes if t.get("role") == "main"), None)
        if main_theme and main_theme.get("id") is not None:
            return str(main_theme["id"])
        return None
