"""Test configuration and fixtures."""

import os

import pytest

from tests.helpers import FakeRuntime, make_image


@pytest.fixture
def app_image():
    """Four-layer tagged image."""
    return make_image("myapp:v2", "base", "deps", "src", "config")


@pytest.fixture
def base_image():
    """Three-layer tagged image sharing its layers with ``app_image``."""
    return make_image("myapp:v1", "base", "deps", "src")


@pytest.fixture
def fake_runtime(app_image, base_image):
    """Runtime that knows ``app_image`` and ``base_image``."""
    return FakeRuntime([base_image, app_image])


# Pytest configuration
def pytest_configure(config):
    """Configure pytest markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test requiring a docker daemon"
    )
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")


def pytest_collection_modifyitems(config, items):
    """Modify test collection."""
    # Skip integration tests if no docker daemon
    skip_integration = pytest.mark.skip(reason="Docker daemon not available")

    for item in items:
        if (
            "integration" in item.keywords
            and os.getenv("DOCKER_AVAILABLE", "false").lower() != "true"
        ):
            item.add_marker(skip_integration)
