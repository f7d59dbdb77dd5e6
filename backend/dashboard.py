import asyncio
import logging
from html import escape
from typing import Optional
from urllib.parse import quote

from pydantic import BaseModel

from . import config
from .models import PROVENANCE_NOTE, StoreSettings
from .settings_cache import SettingsCache
from .shopify_admin import ShopifyAdminClient

logger = logging.getLogger(__name__)


class DashboardData(BaseModel):
    shop: str
    configured: bool
    published_theme_id: Optional[str] = None
    draft_order_count: int = 0
    settings: StoreSettings
    theme_editor_url: str = ""


def theme_editor_url(shop: str, theme_id: Optional[str], embed_uuid: str | None = None) -> str:
    """Deep link into the theme editor with the app embed block preselected."""
    if not shop or not theme_id:
        return ""
    embed = quote(f"{embed_uuid or config.APP_EMBED_UUID}/draft_button", safe="")
    return (
        f"https://{shop}/admin/themes/{theme_id}/editor"
        f"?context=apps&appEmbed={embed}&previewPath=/cart"
    )


class DashboardReader:
    """Read-only view for the admin page. Upstream failures degrade to empty/zero."""

    def __init__(self, shop: str, client: ShopifyAdminClient, settings_cache: SettingsCache):
        self.shop = shop
        self.client = client
        self.settings_cache = settings_cache

    async def _theme_id(self) -> Optional[str]:
        try:
            return await self.client.published_theme_id()
        except Exception as e:
            logger.error("Error fetching themes: %s", e)
            return None

    async def _draft_count(self) -> int:
        try:
            return await self.client.count_draft_orders(PROVENANCE_NOTE)
        except Exception as e:
            logger.error("Error fetching draft orders: %s", e)
            return 0

    async def _settings(self) -> StoreSettings:
        try:
            return await self.settings_cache.get(self.shop)
        except Exception as e:
            logger.error("Error loading settings: %s", e)
            return StoreSettings(shop=self.shop)

    async def read(self) -> DashboardData:
        configured = bool(self.shop and self.client.access_token)
        if not configured:
            return DashboardData(shop=self.shop or "", configured=False, settings=StoreSettings(shop=self.shop or ""))

        theme_id, count, settings = await asyncio.gather(
            self._theme_id(), self._draft_count(), self._settings()
        )
        return DashboardData(
            shop=self.shop,
            configured=True,
            published_theme_id=theme_id,
            draft_order_count=count,
            settings=settings,
            theme_editor_url=theme_editor_url(self.shop, theme_id),
        )


def render_dashboard(data: DashboardData) -> str:
    editor_url = escape(data.theme_editor_url, quote=True)
    if data.settings.double_mode_active:
        mode_label, mode_color = "Dual Order Mode Active", "#27AE60"
    else:
        mode_label, mode_color = "Single Order Mode Active", "#E74C3C"

    if data.theme_editor_url:
        open_editor = f'<a class="btn" href="{editor_url}" target="_blank" rel="noopener">Enable Draft Order Button</a>'
    else:
        open_editor = (
            '<span class="muted">Unable to open Theme Customizer. Please ensure the theme is '
            "published and try again.</span>"
        )

    config_banner = ""
    if not data.configured:
        config_banner = (
            '<div class="banner error">Missing SHOPIFY_STORE_DOMAIN or SHOPIFY_ADMIN_TOKEN in '
            "environment variables.</div>"
        )

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Draft Order App Dashboard</title>
  <style>
    body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background:#f1f2f4; margin:0; }}
    .page {{ max-width:1200px; margin:0 auto; padding:24px; }}
    .banner {{ background:#fff4e4; border-radius:12px; padding:16px; margin-bottom:16px; }}
    .banner.error {{ background:#fee9e8; }}
    .card {{ background:#fff; border-radius:16px; padding:24px; box-shadow:0 2px 6px rgba(0,0,0,0.08); }}
    .cards {{ display:flex; gap:15px; flex-wrap:wrap; margin-top:16px; }}
    .cards .card {{ flex:1; min-width:300px; text-align:center; }}
    .btn {{ display:inline-block; background:#303030; color:#fff; padding:8px 16px; border-radius:8px; text-decoration:none; border:0; cursor:pointer; }}
    .muted {{ color:#5c5f62; }}
    .count {{ font-size:48px; font-weight:700; }}
    .badge {{ display:inline-block; color:#fff; font-weight:600; padding:6px 16px; border-radius:20px; margin-top:12px; }}
  </style>
</head>
<body>
  <div class="page">
    <h1>Hi, Welcome to Draft Order App</h1>
    {config_banner}
    <div class="banner">
      <strong>Draft Order Button isn't showing up on your store yet</strong>
      <p>You activated Draft Order App but still need to enable the Draft Order button in the Shopify Theme Editor.</p>
      {open_editor}
      <button class="btn" onclick="document.getElementById('instructions').showModal()">Check Instructions</button>
    </div>

    <dialog id="instructions">
      <h2>Action required: Enable Draft Order Button</h2>
      <p>Complete the installation by enabling the Draft Order Button in your Shopify Theme Editor.</p>
      <ol>
        <li>Search <b>Draft Order Button</b> in App embeds</li>
        <li>Click the <b>Enable</b> toggle</li>
        <li>Click the <b>Save</b> button</li>
      </ol>
      <button class="btn" onclick="this.closest('dialog').close()">Enable later</button>
    </dialog>

    <div class="card">
      <h2>App Setup Steps</h2>
      <h3>1. Enable the app</h3>
      <p class="muted">Go to Theme Customizer, App Embeds, and enable Draft Order Button App.</p>
      <h3>2. Configure settings</h3>
      <p class="muted">Set up your draft order preferences including payment modes and discounts.</p>
      <a class="btn" href="/app/settings">Configure Settings</a>
      <h3>3. Set Up Discounts &amp; Tags</h3>
      <p class="muted">Create custom discounts and automatic tagging rules for different order types.</p>
    </div>

    <div class="cards">
      <div class="card">
        <h3>Draft Orders</h3>
        <p class="muted">Customers can easily create draft orders that are automatically saved to your Shopify admin with all details.</p>
      </div>
      <div class="card">
        <div class="count">{data.draft_order_count}</div>
        <div>CUSTOMER DRAFT ORDERS</div>
        <div class="badge" style="background:{mode_color};">{mode_label}</div>
      </div>
      <div class="card">
        <h3>Advanced Order Rules</h3>
        <p class="muted">Configure different payment rules, discounts, and tags for single or double draft orders.</p>
      </div>
    </div>
  </div>
</body>
</html>
"""
