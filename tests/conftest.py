"""
Pytest configuration and fixtures for checkout service tests.
"""

import hashlib
import hmac
import os
import sys
import time

import pytest
from unittest.mock import AsyncMock
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Add app directory to Python path for imports
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.append(ROOT_DIR)
sys.path.append(os.path.join(ROOT_DIR, "app"))

from config import CheckoutConfig  # noqa: E402
from deposit_store import DepositStore  # noqa: E402
from models import Base  # noqa: E402


@pytest.fixture
def mock_redis():
    """Mock Redis client for testing."""
    redis_mock = AsyncMock()
    redis_mock.ping.return_value = True
    redis_mock.get.return_value = None
    redis_mock.setex.return_value = True
    redis_mock.close.return_value = None
    return redis_mock


@pytest.fixture
async def sessionmaker():
    """In-memory SQLite database with the deposits table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", poolclass=StaticPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(sessionmaker):
    return DepositStore(sessionmaker)


@pytest.fixture
def checkout_config():
    return CheckoutConfig(
        currency="gbp",
        success_url="https://shop.example.com/payment/success",
        cancel_url="https://shop.example.com/payment/cancel",
    )


@pytest.fixture
def stripe_test_keys():
    """Provide test Stripe keys if available."""
    return {
        'secret_key': os.getenv('STRIPE_SECRET_KEY', 'sk_test_fake'),
        'publishable_key': os.getenv('STRIPE_PUBLISHABLE_KEY', 'pk_test_fake'),
        'webhook_secret': os.getenv('STRIPE_WEBHOOK_SECRET', 'whsec_fake')
    }


def stripe_signature(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header the way Stripe signs webhook deliveries."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload.decode()}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.fixture
def sign_stripe():
    return stripe_signature
