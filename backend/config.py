import os

from dotenv import load_dotenv

load_dotenv()


def _normalize_shop_domain(val: str | None) -> str:
    v = (val or "").strip()
    if v.lower().startswith("https://"):
        v = v[8:]
    elif v.lower().startswith("http://"):
        v = v[7:]
    return v.strip().strip("/")


# ── Shopify ───────────────────────────────────────────────────────
# One store per deployment: the storefront button and the admin page both
# talk to the shop configured here.
SHOPIFY_STORE_DOMAIN = _normalize_shop_domain(os.getenv("SHOPIFY_STORE_DOMAIN"))
SHOPIFY_ADMIN_TOKEN = os.getenv("SHOPIFY_ADMIN_TOKEN") or ""
SHOPIFY_API_VERSION = os.getenv("SHOPIFY_API_VERSION", "2024-10")
SHOPIFY_HTTP_TIMEOUT = float(os.getenv("SHOPIFY_HTTP_TIMEOUT", "15"))

# Theme app extension block enabled from the theme editor
APP_EMBED_UUID = os.getenv("APP_EMBED_UUID", "5bd368d8-c46d-43e5-9bae-352b44a42a35")

# ── Settings ──────────────────────────────────────────────────────
SETTINGS_CACHE_TTL_SEC = int(os.getenv("SETTINGS_CACHE_TTL_SEC", str(5 * 60)))
DB_PATH = os.getenv("DB_PATH") or "/tmp/draft_order_app.db"
DATABASE_URL = os.getenv("DATABASE_URL")  # optional PostgreSQL URL
PG_POOL_MIN = int(os.getenv("PG_POOL_MIN", "1"))
PG_POOL_MAX = int(os.getenv("PG_POOL_MAX", "4"))

# ── Email ─────────────────────────────────────────────────────────
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.netgains.org")
SMTP_PORT = int(os.getenv("SMTP_PORT", "465"))
SMTP_USER = os.getenv("SMTP_USER") or ""
SMTP_PASS = os.getenv("SMTP_PASS") or ""
SMTP_TIMEOUT = float(os.getenv("SMTP_TIMEOUT", "10"))

# ── HTTP ──────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "*").split(",") if h.strip()]

# ── Admin ─────────────────────────────────────────────────────────
# Bearer token for /app routes. Empty means the admin routes refuse everyone.
ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN") or ""
