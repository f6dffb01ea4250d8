"""Tests for configuration module."""

import json

import pytest


class TestSettings:
    """Tests for Settings class."""

    def test_settings_default_values(self):
        """Test default values are set correctly."""
        from navaudit.browser.driver import Viewport
        from navaudit.config import Settings

        settings = Settings(_env_file=None)
        assert settings.desktop_viewport == Viewport(1280, 720)
        assert settings.mobile_viewport == Viewport(375, 667)
        assert settings.traversal_max_steps == 200
        assert settings.step_timeout_ms == 1000
        assert settings.headless is True
        assert settings.output_dir == "./navaudit-results"

    def test_settings_loads_from_env(self, monkeypatch):
        """Test that settings loads from environment variables."""
        from navaudit.config import Settings

        monkeypatch.setenv("NAVAUDIT_MOBILE_VIEWPORT_WIDTH", "390")
        monkeypatch.setenv("NAVAUDIT_HEADLESS", "false")

        settings = Settings(_env_file=None)
        assert settings.mobile_viewport.width == 390
        assert settings.headless is False

    def test_get_settings_is_cached(self):
        """get_settings returns the same instance on every call."""
        from navaudit.config import get_settings

        assert get_settings() is get_settings()


class TestSiteConfig:
    """Tests for SiteConfig and the registry."""

    def test_default_selectors(self):
        """The default bundle carries the generic selectors."""
        from navaudit.config import SiteConfig

        config = SiteConfig()
        assert config.dropdown_container_selector == "ul ul, .dropdown, .sub-menu, .dropdown-menu"
        assert config.menu_item_selector == "a, button"
        assert config.dropdown_item_selector.startswith(".menu-item > a")
        assert config.hostname is None
        assert config.settings.use_aria_controls is True

    @pytest.mark.parametrize("selector", [".elementor-nav-menu", "#WordPress-menu", ".wix-dropdown"])
    def test_platform_selectors_rejected(self, selector):
        """Selectors naming a site-builder platform fail validation."""
        from pydantic import ValidationError

        from navaudit.config import SiteSelectors

        with pytest.raises(ValidationError):
            SiteSelectors(extra_menu_candidates=[selector])

    def test_registry_lookup(self):
        """Registered configurations are found by site id."""
        from navaudit.config import DEFAULT_SITE_CONFIG, SiteConfig, get_site_config, register_site_config

        config = register_site_config(SiteConfig(site_id="shop", url="https://shop.example.com/"))

        assert get_site_config("shop") is config
        assert get_site_config("unknown") is DEFAULT_SITE_CONFIG
        assert get_site_config() is DEFAULT_SITE_CONFIG

    def test_lookup_by_url(self):
        """Configurations are found by the hostname of a URL."""
        from navaudit.config import DEFAULT_SITE_CONFIG, SiteConfig, get_site_config_by_url, register_site_config

        config = register_site_config(SiteConfig(site_id="shop", url="https://shop.example.com/"))

        assert get_site_config_by_url("https://shop.example.com/cart?x=1") is config
        assert get_site_config_by_url("https://example.com/") is DEFAULT_SITE_CONFIG
        assert get_site_config_by_url("not a url") is DEFAULT_SITE_CONFIG


class TestLoadSiteConfig:
    """Tests for load_site_config."""

    def test_valid_file(self, tmp_path):
        """A valid file is parsed and registered."""
        from navaudit.config import get_site_config, load_site_config

        path = tmp_path / "site.json"
        path.write_text(json.dumps({
            "site_id": "blog",
            "url": "https://blog.example.com",
            "selectors": {"extra_toggle_candidates": [".drawer-button"]},
            "settings": {"check_footer_visibility": False},
        }))

        config = load_site_config(path)

        assert config.site_id == "blog"
        assert config.selectors.extra_toggle_candidates == [".drawer-button"]
        assert config.settings.check_footer_visibility is False
        assert get_site_config("blog") is config

    def test_unknown_keys_are_ignored(self, tmp_path):
        """Files carrying keys the auditor does not read still load."""
        from navaudit.config import SiteConfig, load_site_config

        path = tmp_path / "site.json"
        path.write_text(json.dumps({"site_id": "legacy", "use_dynamic_counting": False}))

        config = load_site_config(path)

        assert config.site_id == "legacy"
        assert "use_dynamic_counting" not in SiteConfig.model_fields
        assert "use_dynamic_counting" not in config.model_dump()

    def test_invalid_json(self, tmp_path):
        """Malformed JSON is reported as ConfigError."""
        from navaudit.config import ConfigError, load_site_config

        path = tmp_path / "site.json"
        path.write_text("{not json")

        with pytest.raises(ConfigError):
            load_site_config(path)

    def test_forbidden_term(self, tmp_path):
        """A forbidden selector term in a file is reported as ConfigError."""
        from navaudit.config import ConfigError, load_site_config

        path = tmp_path / "site.json"
        path.write_text(json.dumps({"selectors": {"menu_items": [".divi-menu a"]}}))

        with pytest.raises(ConfigError, match="divi"):
            load_site_config(path)

    def test_missing_file(self, tmp_path):
        """A missing file is reported as ConfigError."""
        from navaudit.config import ConfigError, load_site_config

        with pytest.raises(ConfigError):
            load_site_config(tmp_path / "missing.json")
