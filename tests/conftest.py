"""Shared pytest configuration for resolver tests."""

import pytest

from fake_upstream import FakeWikiClient


def pytest_addoption(parser):
    parser.addoption(
        "--live-api",
        action="store_true",
        default=False,
        help="Run live tests against the public Wikipedia APIs",
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "live: talks to the real Wikipedia APIs (--live-api)")


@pytest.fixture
def live_api(request):
    if not request.config.getoption("--live-api"):
        pytest.skip("--live-api not provided")
    return True


@pytest.fixture
def fake_client() -> FakeWikiClient:
    return FakeWikiClient()
