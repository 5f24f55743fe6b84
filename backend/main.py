"""
Business Directory: Payments API

Entry point for the FastAPI backend: subscription checkout and payment
settlement for business listings.

URL scheme:
  /api/plans                                    Plan catalogue
  /api/payments/create-order                    Start checkout
  /api/payments/verify                          Client-side settlement
  /api/payments/webhook                         Razorpay webhook
  /api/businesses/{business_id}/subscription    Current subscription

Run with:
    uvicorn main:app --app-dir backend
"""
import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from core.payments.errors import PaymentError

# --- Logging ---
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger("bizdir.api")


def _register_core_routes(app: FastAPI):
    """Register platform-level routes (billing, payments)."""
    from core.hub.billing import router as billing_router
    from core.hub.payments import router as payments_router

    app.include_router(billing_router, prefix="/api", tags=["Billing"])
    app.include_router(payments_router, prefix="/api", tags=["Payments"])
    logger.info("[Router] Billing and payments: /api/*")


def _register_error_handlers(app: FastAPI):
    """All API errors render as {"error": message}."""

    @app.exception_handler(PaymentError)
    async def payment_error_handler(request: Request, exc: PaymentError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})


# Create app
app = FastAPI(
    title="Business Directory Payments API",
    description="Subscription checkout and payment settlement for business listings",
    version="1.0.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.app_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─────────────────────────────────────────────────────────────────────────────
# ROUTE REGISTRATION
# ─────────────────────────────────────────────────────────────────────────────

_register_error_handlers(app)
_register_core_routes(app)


# ─────────────────────────────────────────────────────────────────────────────
# HEALTH CHECK & ROOT
# ─────────────────────────────────────────────────────────────────────────────

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "debug": settings.debug}


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "Business Directory Payments API",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "plans": "/api/plans",
            "create_order": "/api/payments/create-order",
            "verify": "/api/payments/verify",
            "webhook": "/api/payments/webhook",
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
