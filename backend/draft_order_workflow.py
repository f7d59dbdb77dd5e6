import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict

from pydantic import ValidationError

from .models import CreateDraftOrderRequest, NotificationOutcome
from .notifications import EmailNotifier
from .order_composer import compose
from .settings_cache import SettingsCache
from .shopify_admin import ShopifyAdminClient

logger = logging.getLogger(__name__)

MISSING_CONFIG_ERROR = "Server configuration error: Missing SHOPIFY_STORE_DOMAIN or SHOPIFY_ADMIN_TOKEN"


@dataclass
class WorkflowResult:
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)


def _error(message: str, status_code: int) -> WorkflowResult:
    return WorkflowResult(status_code, {"success": False, "error": message})


class DraftOrderWorkflow:
    """Storefront "create draft order" request, end to end.

    Owns the settings cache for the lifetime of the app. The order email is
    awaited and its outcome reported as ``emailSent``/``emailError`` next to
    the created drafts; email trouble never turns a success into an error.

    Duplicate submissions are not deduplicated: two posts of the same cart
    create two independent sets of drafts.
    """

    def __init__(
        self,
        store_domain: str,
        access_token: str,
        settings_cache: SettingsCache,
        client: ShopifyAdminClient,
        notifier: EmailNotifier,
    ):
        self.store_domain = store_domain
        self.access_token = access_token
        self.settings_cache = settings_cache
        self.client = client
        self.notifier = notifier

    async def create_from_payload(self, raw_body: bytes) -> WorkflowResult:
        started = time.perf_counter()

        if not self.store_domain or not self.access_token:
            return _error(MISSING_CONFIG_ERROR, 500)

        try:
            payload = json.loads(raw_body or b"")
        except ValueError:
            return _error("Invalid JSON in request body", 400)
        if not isinstance(payload, dict):
            return _error("Invalid JSON in request body", 400)

        try:
            req = CreateDraftOrderRequest.model_validate(payload)
        except ValidationError as e:
            logger.info("Rejected draft order payload: %s", e.errors(include_url=False))
            return _error("Invalid request body", 400)

        if not req.cart or not req.cart.items:
            return _error("Cart is empty", 400)
        if not (req.cart.currency or "").strip():
            return _error("Cart currency is missing", 400)

        try:
            settings = await self.settings_cache.get(self.store_domain)
            plans = compose(
                req.cart,
                req.customer,
                req.address,
                req.billing_address,
                req.use_shipping,
                settings,
            )
            logger.info(
                "Creating %s draft order(s) for %s: %s",
                len(plans),
                self.store_domain,
                ", ".join(f"{p.stage}={p.discount_percent:g}%" for p in plans),
            )
            created = await self.client.create_draft_orders(plans)
        except Exception as e:
            logger.error("Draft creation failed: %s", e)
            return _error(str(e) or e.__class__.__name__, 500)

        logger.info("Draft orders created in %.0fms", (time.perf_counter() - started) * 1000)

        # Post-commit: the drafts exist whatever happens to the email.
        try:
            outcome = await self.notifier.notify(req.customer, created, self.store_domain)
        except Exception as e:
            logger.warning("Order email hook raised: %s", e)
            outcome = NotificationOutcome(sent=False, error=str(e) or e.__class__.__name__)
        body: Dict[str, Any] = {
            "success": True,
            "drafts": [o.model_dump(by_alias=True) for o in created],
            "emailSent": outcome.sent,
        }
        if outcome.error:
            body["emailError"] = outcome.error
        return WorkflowResult(200, body)
