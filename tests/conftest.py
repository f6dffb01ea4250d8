"""Shared fixtures for navigation menu auditor tests."""

import os

import pytest


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "smoke: mark test as smoke test (fast, critical path - included in CI)"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test requiring a real browser"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep NAVAUDIT_* variables from the host out of the settings under test."""
    for key in list(os.environ):
        if key.startswith("NAVAUDIT_"):
            monkeypatch.delenv(key, raising=False)

    from navaudit.config import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def isolated_site_configs():
    """Undo site configurations registered by a test."""
    from navaudit import config

    saved = dict(config._SITE_CONFIGS)
    yield
    config._SITE_CONFIGS.clear()
    config._SITE_CONFIGS.update(saved)


@pytest.fixture
def settings():
    """Settings with every settle wait disabled."""
    from navaudit.config import Settings

    return Settings(
        _env_file=None,
        viewport_settle_ms=0,
        interaction_settle_ms=0,
        traversal_time_budget_s=10.0,
    )


@pytest.fixture
def site_config():
    from navaudit.config import SiteConfig

    return SiteConfig()
