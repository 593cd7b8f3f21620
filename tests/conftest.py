"""Root pytest configuration for s3-remote-cache tests."""
from datetime import timedelta

import pytest

from s3_remote_cache.settings import Settings
from .storage.fakes.fake_object_store import FakeObjectStore
from .storage.fakes.fake_provider import FakeProvider


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow (may take significant time)"
    )


# Keep the host's AWS configuration out of the tests
@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Automatically clear AWS environment variables."""
    for var in ("AWS_BUCKET", "AWS_REGION", "AWS_PROFILE", "AWS_ACCESS_KEY_ID",
                "AWS_SECRET_ACCESS_KEY", "AWS_SESSION_TOKEN"):
        monkeypatch.delenv(var, raising=False)


# Standardized test fixtures
@pytest.fixture
def settings():
    """Standard test settings."""
    return Settings(
        bucket="test-bucket",
        region="us-east-1",
        prefix="cache/",
        touch_refresh=timedelta(hours=24),
        upload_parallelism=4,
    )


@pytest.fixture
def store(settings):
    """In-memory object store using the standard key layout."""
    return FakeObjectStore(
        prefix=settings.prefix,
        blobs_prefix=settings.blobs_prefix,
        manifests_prefix=settings.manifests_prefix,
    )


@pytest.fixture
def provider():
    """In-memory content provider."""
    return FakeProvider()
