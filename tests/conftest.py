import asyncio

import httpx
import pytest

from backend.settings_store import SettingsStore
from backend.shopify_admin import ShopifyAdminClient
from .utils import SHOP, TOKEN, ShopifyRecorder


@pytest.fixture
def shopify():
    return ShopifyRecorder()


@pytest.fixture
def admin_client(shopify):
    return ShopifyAdminClient(SHOP, TOKEN, transport=httpx.MockTransport(shopify))


@pytest.fixture
def settings_store(tmp_path):
    store = SettingsStore(db_path=str(tmp_path / "settings.sqlite"), db_url="")
    asyncio.run(store.init_db())
    return store


@pytest.fixture
def cart_payload():
    return {
        "customer": {"id": 42, "email": "jane@example.com", "first_name": "Jane", "last_name": "Doe"},
        "cart": {
            "currency": "USD",
            "items": [
                {
                    "variant_id": 111,
                    "quantity": 2,
                    "original_price": 1000,
                    "final_price": 800,
                    "total_discount": 400,
                    "discounts": [{"title": "SUMMER20"}],
                }
            ],
        },
        "address": {"address1": "1 Main St", "city": "Springfield", "country": "US", "pin": "12345"},
        "useShipping": True,
    }
