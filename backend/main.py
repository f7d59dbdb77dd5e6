import hmac
import logging

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.middleware.gzip import GZipMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from . import config
from .dashboard import DashboardReader, render_dashboard
from .draft_order_workflow import MISSING_CONFIG_ERROR, DraftOrderWorkflow
from .models import StoreSettingsUpdate
from .notifications import EmailNotifier
from .settings_cache import SettingsCache
from .settings_store import SettingsStore
from .shopify_admin import ShopifyAdminClient

# Configure logging early
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

DRAFT_ORDER_ROUTE = "/api/create-draft-order"


def cors_headers(request: Request) -> dict:
    """Echo the storefront origin; the button runs on the shop's own domain."""
    return {
        "Access-Control-Allow-Origin": request.headers.get("origin") or "*",
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
        "Vary": "Origin",
    }


def bearer_token(request: Request) -> str:
    auth_header = request.headers.get("authorization") or ""
    parts = auth_header.split()
    return parts[-1] if parts else ""


async def require_admin(request: Request) -> None:
    expected = request.app.state.admin_token
    presented = bearer_token(request)
    if not expected or not presented or not hmac.compare_digest(presented.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized", headers={"WWW-Authenticate": "Bearer"})


def create_app(
    store_domain: str | None = None,
    access_token: str | None = None,
    settings_store: SettingsStore | None = None,
    client: ShopifyAdminClient | None = None,
    notifier: EmailNotifier | None = None,
    admin_token: str | None = None,
    expose_metrics: bool = False,
) -> FastAPI:
    shop = config.SHOPIFY_STORE_DOMAIN if store_domain is None else store_domain
    token = config.SHOPIFY_ADMIN_TOKEN if access_token is None else access_token
    admin_token = config.ADMIN_API_TOKEN if admin_token is None else admin_token

    settings_store = settings_store or SettingsStore()
    settings_cache = SettingsCache(settings_store, ttl_sec=config.SETTINGS_CACHE_TTL_SEC)
    client = client or ShopifyAdminClient(shop, token)
    workflow = DraftOrderWorkflow(shop, token, settings_cache, client, notifier or EmailNotifier())
    dashboard = DashboardReader(shop, client, settings_cache)

    app = FastAPI(title="Draft Order App")
    app.state.workflow = workflow
    app.state.dashboard = dashboard
    app.state.settings_store = settings_store
    app.state.settings_cache = settings_cache
    app.state.admin_token = admin_token

    if expose_metrics:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics")

    app.add_middleware(GZipMiddleware, minimum_size=500)
    if config.ALLOWED_HOSTS and config.ALLOWED_HOSTS != ["*"]:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=config.ALLOWED_HOSTS)

    @app.on_event("startup")
    async def startup():
        logging.getLogger("httpx").setLevel(logging.WARNING)
        await settings_store.init_db()
        backend = "postgres" if settings_store.use_postgres else "sqlite"
        logger.info("Settings DB ready: backend=%s", backend)
        if not (shop and token):
            logger.warning("SHOPIFY_STORE_DOMAIN or SHOPIFY_ADMIN_TOKEN not set; draft orders will fail")
        if not workflow.notifier.enabled:
            logger.warning("SMTP_USER/SMTP_PASS not set; order emails are disabled")
        if not admin_token:
            logger.warning("ADMIN_API_TOKEN not set; admin routes will refuse all requests")

    @app.on_event("shutdown")
    async def shutdown():
        await settings_store.close()

    # ── storefront endpoint ──
    @app.api_route(DRAFT_ORDER_ROUTE, methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"])
    async def create_draft_order(request: Request):
        headers = cors_headers(request)
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=headers)
        if request.method != "POST":
            return PlainTextResponse(
                "Method Not Allowed", status_code=405, headers={**headers, "Allow": "POST, OPTIONS"}
            )
        result = await request.app.state.workflow.create_from_payload(await request.body())
        return JSONResponse(result.body, status_code=result.status_code, headers=headers)

    # ── admin ──
    admin_only = [Depends(require_admin)]

    @app.get("/app", response_class=HTMLResponse, dependencies=admin_only)
    async def admin_dashboard(request: Request):
        data = await request.app.state.dashboard.read()
        return HTMLResponse(render_dashboard(data))

    @app.get("/app/dashboard", dependencies=admin_only)
    async def admin_dashboard_data(request: Request):
        data = await request.app.state.dashboard.read()
        return data.model_dump()

    def _require_shop():
        if not shop:
            raise HTTPException(status_code=500, detail=MISSING_CONFIG_ERROR)

    @app.get("/app/settings", dependencies=admin_only)
    async def get_settings(request: Request):
        _require_shop()
        store: SettingsStore = request.app.state.settings_store
        settings = await store.get_or_create(shop)
        return {**settings.model_dump(), "double_mode_active": settings.double_mode_active}

    @app.post("/app/settings", dependencies=admin_only)
    async def update_settings(request: Request, changes: StoreSettingsUpdate = Body(...)):
        """Partial update of the store settings. Percentages must be within 0-100."""
        _require_shop()
        store: SettingsStore = request.app.state.settings_store
        settings = await store.update(shop, changes)
        request.app.state.settings_cache.invalidate()
        return {**settings.model_dump(), "double_mode_active": settings.double_mode_active}

    @app.get("/health")
    async def health():
        return {"ok": True}

    return app


app = create_app(expose_metrics=True)
