"""
Dayspring Marketplace - Backend API
Catalog, cart pricing, checkout, Paystack payments and supplier fulfillment
"""
import logging
import time
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables before settings are read
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace.api import (
    admin_products,
    auth,
    availability,
    banks,
    cart,
    catalog,
    categories,
    checkout,
    notifications,
    orders,
    payments,
    products,
    purchase_orders,
    refunds,
    supplier_offers,
)
from marketplace.api import settings as settings_api
from marketplace.core.config import settings
from marketplace.core.database import CONNECTION_TIMEOUT, get_db_connection_with_retry
from marketplace.core.exceptions import MarketplaceError
from marketplace.core.rate_limit import RateLimitMiddleware

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION,
)

# Rate limiting is added first so CORS (added last, outermost) also wraps 429 responses
app.add_middleware(RateLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["*"],
)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    """Domain errors become {"detail": message} with their status code"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Availability is mounted under three prefixes and must come before /api/products/{id}
for prefix in ("/api/catalog", "/api/products", "/api/supplier-offers"):
    app.include_router(availability.router, prefix=prefix, tags=["Availability"])

app.include_router(catalog.router, prefix="/api/catalog", tags=["Catalog"])
app.include_router(products.router, prefix="/api/products", tags=["Products"])
app.include_router(categories.router, prefix="/api/categories", tags=["Categories"])
app.include_router(admin_products.router, prefix="/api/admin/products", tags=["Admin Products"])
app.include_router(supplier_offers.router, prefix="/api/supplier/offers", tags=["Supplier Offers"])
app.include_router(cart.router, prefix="/api/cart", tags=["Cart"])
app.include_router(checkout.router, prefix="/api/checkout", tags=["Checkout"])
app.include_router(settings_api.router, prefix="/api/settings", tags=["Settings"])
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(payments.router, prefix="/api/payments", tags=["Payments"])
app.include_router(purchase_orders.supplier_router, prefix="/api/supplier/orders", tags=["Supplier Orders"])
app.include_router(purchase_orders.admin_router, prefix="/api/purchase-orders", tags=["Purchase Orders"])
app.include_router(refunds.router, prefix="/api/refunds", tags=["Refunds"])
app.include_router(refunds.supplier_router, prefix="/api/supplier/refunds", tags=["Refunds"])
app.include_router(refunds.admin_router, prefix="/api/admin/refunds", tags=["Refunds"])
app.include_router(banks.router, prefix="/api/banks", tags=["Banks"])
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])


@app.get("/")
async def root():
    """API status"""
    return {
        "message": "Dayspring Marketplace API",
        "status": "online",
        "version": settings.API_VERSION,
    }


@app.get("/health")
async def health():
    """Health check endpoint for monitoring - tests database connectivity"""
    start_time = time.time()

    db_status = "unknown"
    db_latency_ms = None
    db_error = None

    try:
        conn = get_db_connection_with_retry(max_retries=1, retry_delay=0.5)
        cursor = conn.cursor()

        db_start = time.time()
        cursor.execute("SELECT 1")
        cursor.fetchone()
        db_latency_ms = round((time.time() - db_start) * 1000, 2)

        cursor.close()
        conn.close()
        db_status = "connected"
    except Exception as e:
        db_status = "disconnected"
        db_error = str(e)

    total_latency_ms = round((time.time() - start_time) * 1000, 2)

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "service": "marketplace-api",
        "version": settings.API_VERSION,
        "database": {
            "status": db_status,
            "latency_ms": db_latency_ms,
            "error": db_error,
            "connection_timeout_s": CONNECTION_TIMEOUT
        },
        "total_latency_ms": total_latency_ms
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("marketplace.main:app", host=settings.API_HOST, port=settings.API_PORT, reload=settings.API_DEBUG)
