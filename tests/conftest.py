"""
Global test configuration and fixtures for the site deployment driver

Provides settings, an in-memory fake of the remote management API, and
application/client fixtures wired to it.
"""

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from site_driver.core.config import Settings
from site_driver.main import create_app
from site_driver.providers.pulumi.client import PulumiClient, build_http_client
from site_driver.services.site_service import SiteService
from tests.utils.fake_api import API_TOKEN, FakePulumiAPI

API_URL = "https://api.example.test/api"


# ============================================================================
# Settings Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def settings_kwargs():
    """Keyword arguments for a complete, valid configuration"""
    return {
        "repository": "acme/site-programs",
        "branch": "main",
        "directory": "static-site",
        "role_arn": "arn:aws:iam::123456789012:role/site-deploy",
        "session_name": "site-deploy",
        "api_token": API_TOKEN,
        "organization": "acme",
        "project": "sites",
        "api_url": API_URL,
        "json_logs": False,
    }


@pytest.fixture(scope="function")
def settings(settings_kwargs):
    """Immutable test settings, ignoring any local .env file"""
    return Settings(_env_file=None, **settings_kwargs)


# ============================================================================
# Remote API Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def fake_api():
    """Fresh in-memory remote API for each test"""
    return FakePulumiAPI(org="acme", project="sites")


@pytest_asyncio.fixture(scope="function")
async def pulumi_client(settings, fake_api):
    """Remote API client backed by the fake API"""
    async with build_http_client(settings, fake_api.transport()) as http:
        yield PulumiClient(http, settings.api_token)


@pytest_asyncio.fixture(scope="function")
async def site_service(settings, pulumi_client):
    """Site service backed by the fake API"""
    return SiteService(settings, pulumi_client)


# ============================================================================
# Application Client Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def app(settings, fake_api):
    return create_app(settings, transport=fake_api.transport())


@pytest.fixture(scope="function")
def client(app):
    """Create FastAPI test client (runs the application lifespan)"""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(scope="function")
def failing_transport():
    """Transport whose every request fails to connect"""
    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)
    return httpx.MockTransport(_handler)


# ============================================================================
# Test Markers and Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "api: mark test as exercising the HTTP API")
