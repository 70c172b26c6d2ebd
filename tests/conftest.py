"""
Pytest configuration and fixtures for casserve tests.
"""

import os
import sys
import tempfile
import shutil
import pytest

# Add python directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'python'))


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    tmp = tempfile.mkdtemp(prefix="casserve-test-")
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def layout(temp_dir):
    """StorageLayout shared by both stores."""
    from casserve.objects import StorageLayout
    return StorageLayout(temp_dir)


@pytest.fixture
def content_store(layout):
    """Create a ContentStore over the temp directory."""
    from casserve.objects import ContentStore
    return ContentStore(layout)


@pytest.fixture
def ref_store(layout):
    """Create a RefStore over the temp directory."""
    from casserve.objects import RefStore
    return RefStore(layout)


@pytest.fixture
def store_config(temp_dir):
    """StoreConfig pointing at the temp directory."""
    from casserve.config import StoreConfig
    return StoreConfig(root=temp_dir)


@pytest.fixture
def client(store_config):
    """FastAPI TestClient for a fresh server."""
    from fastapi.testclient import TestClient
    from casserve.api_server import create_app
    with TestClient(create_app(store_config)) as test_client:
        yield test_client


@pytest.fixture
def sample_blob():
    """Sample content and its key."""
    from casserve.keys import content_key_for
    data = b"hello, content-addressed world\n"
    return content_key_for(data), data


# Pytest markers
def pytest_configure(config):
    config.addinivalue_line("markers", "p0: Priority 0 (critical) tests")
    config.addinivalue_line("markers", "p1: Priority 1 (high) tests")
    config.addinivalue_line("markers", "p2: Priority 2 (medium) tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
    config.addinivalue_line("markers", "integration: Integration tests")
