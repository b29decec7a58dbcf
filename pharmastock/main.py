# Main application file

import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from pharmastock.core.config import settings
from pharmastock.core.exceptions import register_exception_handlers
from pharmastock.core.rate_limiter import limiter
from pharmastock.routers import (
    alerts,
    inventory,
    purchase_orders,
    sales,
)


# LOGGING CONFIGURATION

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)s | %(message)s",
)

logger = logging.getLogger("pharmastock")


# APP INIT

app = FastAPI(
    title="Pharmacy Inventory API",
    description="Batch-level stock, purchase orders and point-of-sale for a retail pharmacy",
    version="1.0.0",
)


# CORS (Token-based auth)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)


# RATE LIMITING

app.state.limiter = limiter
app.add_exception_handler(
    RateLimitExceeded,
    _rate_limit_exceeded_handler
)


# DOMAIN ERRORS

register_exception_handlers(app)


# REQUEST LOGGING MIDDLEWARE

@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    response = await call_next(request)

    duration = round((time.time() - start_time) * 1000, 2)

    logger.info(
        f"{request.method} {request.url.path} "
        f"Status: {response.status_code} "
        f"Time: {duration}ms"
    )

    return response


# ROUTERS

app.include_router(inventory.router)
app.include_router(purchase_orders.router)
app.include_router(sales.router)
app.include_router(alerts.router)


# ROOT

@app.get("/")
def root():
    logger.info("Health check endpoint called")
    return {"message": "Pharmacy Inventory API is running", "env": settings.ENV}
