"""
Pytest fixtures: environment for the gateway sandbox, ASGI test client, settings.
Gateway and API HTTP calls are mocked with respx in the tests themselves.
"""
import os

os.environ.update(
    {
        "PHONEPE_CLIENT_ID": "TEST_CLIENT",
        "PHONEPE_CLIENT_SECRET": "test-secret",
        "PHONEPE_CLIENT_VERSION": "1",
        "PHONEPE_MERCHANT_ID": "TESTMERCHANT",
        "PHONEPE_BASE_URL": "https://api-preprod.phonepe.com/apis/pg-sandbox",
        "FRONTEND_URL": "http://localhost:3000",
        "BACKEND_URL": "http://localhost:5000",
        "API_PREFIX": "/api",
    }
)
for _name in ("PHONEPE_CALLBACK_USERNAME", "PHONEPE_CALLBACK_PASSWORD", "PHONEPE_SALT_KEY"):
    os.environ.pop(_name, None)

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.config import Settings, get_settings
from app.main import app


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest_asyncio.fixture
async def client():
    # Creates a fake client
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
