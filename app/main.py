import logging
from contextlib import asynccontextmanager
from functools import lru_cache

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, StrictInt, StrictStr
from redis.asyncio import Redis

from config import CheckoutConfig, get_settings
from adapters import CheckoutGateway
from adapters.custom import CustomAdapter
from adapters.stripe import StripeAdapter
from checkout_handler import CheckoutSessionHandler
from deposit_store import DepositStore
from models import Base
from results import ErrorKind
from webhook_handler import WebhookReconciler

settings = get_settings()

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger("checkout-service")

class EndpointFilter(logging.Filter):
    """Filter out noisy health check access logs."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - logging filter
        return "GET /health" not in record.getMessage()


logging.getLogger("uvicorn.access").addFilter(EndpointFilter())


@lru_cache(maxsize=1)
def get_provider() -> CheckoutGateway:
    current = get_settings()
    if current.STRIPE_SECRET_KEY and current.STRIPE_WEBHOOK_SECRET:
        return StripeAdapter(
            current.STRIPE_SECRET_KEY,
            current.STRIPE_WEBHOOK_SECRET,
            timeout=current.GATEWAY_TIMEOUT_SECONDS,
        )
    logger.warning("Stripe keys not configured; using sandbox gateway")
    return CustomAdapter(current.STRIPE_WEBHOOK_SECRET or "sandbox_secret")


class CheckoutRequest(BaseModel):
    product_name: StrictStr
    amount: StrictInt  # minor currency units


def get_checkout_handler(request: Request) -> CheckoutSessionHandler:
    return request.app.state.checkout_handler


def get_webhook_reconciler(request: Request) -> WebhookReconciler:
    return request.app.state.webhook_reconciler


def get_deposit_store(request: Request) -> DepositStore:
    return request.app.state.deposit_store


# FastAPI App
@asynccontextmanager
async def lifespan(app: FastAPI):
    engine: AsyncEngine = create_async_engine(settings.database_url)
    sessionmaker = async_sessionmaker(engine, expire_on_commit=False)

    # Ensure database is reachable before starting services
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
        if settings.CREATE_TABLES:
            await conn.run_sync(Base.metadata.create_all)

    redis: Redis | None = None
    try:
        redis = Redis.from_url(
            settings.redis_url, encoding="utf-8", decode_responses=True
        )
        await redis.ping()
    except Exception as exc:  # pragma: no cover - startup warning
        logger.warning("Redis unavailable: %s", exc)
        redis = None

    gateway = get_provider()
    store = DepositStore(sessionmaker, redis)
    app.state.deposit_store = store
    app.state.checkout_handler = CheckoutSessionHandler(
        gateway, store, CheckoutConfig.from_settings(settings)
    )
    app.state.webhook_reconciler = WebhookReconciler(gateway, store)
    try:
        yield
    finally:
        await engine.dispose()
        if redis is not None:
            await redis.close()

app = FastAPI(
    title="Checkout Service",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'][1:]) or 'body'}: {err['msg']}"
        for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": details})


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "checkout-service"}


@app.post("/api/create-checkout-session")
async def create_checkout_session(
    body: CheckoutRequest,
    handler: CheckoutSessionHandler = Depends(get_checkout_handler),
):
    """Create a hosted checkout session and return its redirect URL."""
    result = await handler.create_session(body.product_name, body.amount)
    if not result.ok:
        status_code = 400 if result.error is ErrorKind.VALIDATION else 500
        return JSONResponse(status_code=status_code, content={"error": result.message})
    return {"url": result.redirect_url, "session_id": result.session_id}


@app.post("/stripe/webhook")
@app.post("/payments/webhook")
async def payment_webhook(
    request: Request,
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
):
    """Handle gateway webhooks and update deposit status."""
    payload = await request.body()
    sig = request.headers.get("Stripe-Signature", "")
    result = await reconciler.handle_event(payload, sig)
    if not result.ok:
        return JSONResponse(status_code=400, content={"error": "Invalid Signature"})
    return {"status": "success"}


@app.get("/api/deposits/{session_id}")
async def get_deposit(
    session_id: str,
    store: DepositStore = Depends(get_deposit_store),
):
    deposit = await store.get_status(session_id)
    if deposit is None:
        return JSONResponse(
            status_code=404, content={"error": f"Deposit not found: {session_id}"}
        )
    return deposit


@app.get("/")
async def root():
    return {"message": "Checkout Service API"}

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.HTTP_PORT,
        reload=True,
        log_level="info"
    )
