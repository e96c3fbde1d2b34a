"""Shared pytest fixtures for botgate tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402

from botgate.config import Settings  # noqa: E402

from helpers import DOWNSTREAM_BASE, FakeHttp  # noqa: E402


@pytest.fixture
def settings() -> Settings:
    """Fully configured settings with the request deadline disabled."""
    return Settings(
        verify_token="verify-secret",
        downstream_base_url=DOWNSTREAM_BASE,
        downstream_token="bolt-token",
        meta_access_token="meta-token",
        request_deadline=0,
    )


@pytest.fixture
def http() -> FakeHttp:
    """Outbound HTTP recorder answering 200 {"success": true}."""
    return FakeHttp()
