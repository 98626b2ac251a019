import pytest
from fastapi.testclient import TestClient

from captcha_service.config import settings
from captcha_service.main import app
from tests.test_utils import TEST_HMAC_KEY


@pytest.fixture
def hmac_key(monkeypatch):
    """Install a known HMAC key in the application settings."""
    monkeypatch.setattr(settings, "altcha_hmac_key", TEST_HMAC_KEY)
    return TEST_HMAC_KEY


@pytest.fixture
def client(hmac_key):
    """Create a test client running the full application lifespan."""
    with TestClient(app) as test_client:
        yield test_client
