"""Configuration management for the navigation menu auditor."""

import json
from functools import lru_cache
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from navaudit.browser.driver import NavAuditError, Viewport


class ConfigError(NavAuditError):
    """Invalid site configuration."""


# Site-builder names never belong in a selector: configurations must describe
# markup patterns, not the platform a site happens to be built with.
FORBIDDEN_SELECTOR_TERMS = (
    "elementor",
    "webflow",
    "wordpress",
    "wix",
    "divi",
    "shopify",
    "squarespace",
)


class Settings(BaseSettings):
    """Audit settings loaded from environment variables (``NAVAUDIT_*``)."""

    model_config = SettingsConfigDict(
        env_prefix="NAVAUDIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Viewports
    desktop_viewport_width: int = Field(1280, description="Viewport width assumed for the desktop pass")
    desktop_viewport_height: int = Field(720, description="Viewport height assumed for the desktop pass")
    mobile_viewport_width: int = Field(375, description="Viewport width of the mobile pass")
    mobile_viewport_height: int = Field(667, description="Viewport height of the mobile pass")
    viewport_settle_ms: int = Field(500, description="Wait after a viewport switch before measuring")

    # Probe timing
    step_timeout_ms: int = Field(1000, description="Timeout for a single evaluation or interaction step")
    pointer_timeout_ms: int = Field(2000, description="Timeout for hover and click steps")
    interaction_settle_ms: int = Field(300, description="Wait after a key press, hover or click")
    traversal_max_steps: int = Field(200, description="Hard cap on Tab presses per traversal")
    traversal_time_budget_s: float = Field(30.0, description="Wall-clock budget per traversal")

    # Navigation
    navigation_timeout_ms: int = Field(120000, description="Page load timeout")
    block_resources: bool = Field(True, description="Block image and font requests")
    headless: bool = Field(True, description="Run the browser headless")

    # Output
    output_dir: str = Field("./navaudit-results", description="Directory for JSON results")
    capture_screenshots: bool = Field(False, description="Save element screenshots of each menu")

    # Logging
    log_level: str = Field("INFO", description="Log level")
    json_logs: bool = Field(False, description="Render logs as JSON")

    @property
    def desktop_viewport(self) -> Viewport:
        return Viewport(self.desktop_viewport_width, self.desktop_viewport_height)

    @property
    def mobile_viewport(self) -> Viewport:
        return Viewport(self.mobile_viewport_width, self.mobile_viewport_height)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# =============================================================================
# Site configuration
# =============================================================================

class SiteSelectors(BaseModel):
    """Selector overrides that widen or narrow the generic selector sets."""
    dropdown_items: list[str] = Field(
        default_factory=lambda: [".menu-item > a", ".sub-item", "li > a", "a[href]"]
    )
    dropdown_containers: list[str] = Field(
        default_factory=lambda: [".dropdown", ".sub-menu", ".dropdown-menu"]
    )
    menu_items: list[str] = Field(default_factory=lambda: ["a", "button"])
    extra_menu_candidates: list[str] = Field(default_factory=list)
    extra_toggle_candidates: list[str] = Field(default_factory=list)

    @field_validator("*")
    @classmethod
    def validate_selectors(cls, value: list[str]) -> list[str]:
        for selector in value:
            lowered = selector.lower()
            for term in FORBIDDEN_SELECTOR_TERMS:
                if term in lowered:
                    raise ValueError(
                        f"selector {selector!r} contains platform-specific term {term!r}"
                    )
        return value


class SiteFlags(BaseModel):
    """Feature flags for a site."""
    check_footer_visibility: bool = True
    check_mobile_visibility: bool = True
    use_aria_controls: bool = True


class SiteConfig(BaseModel):
    """Per-site selector bundle and flags."""
    site_id: str = "default"
    url: Optional[str] = None
    selectors: SiteSelectors = Field(default_factory=SiteSelectors)
    settings: SiteFlags = Field(default_factory=SiteFlags)

    @property
    def hostname(self) -> Optional[str]:
        if not self.url:
            return None
        return urlparse(self.url).hostname

    @property
    def dropdown_container_selector(self) -> str:
        return ", ".join(["ul ul", *self.selectors.dropdown_containers])

    @property
    def dropdown_item_selector(self) -> str:
        return ", ".join(self.selectors.dropdown_items)

    @property
    def menu_item_selector(self) -> str:
        return ", ".join(self.selectors.menu_items)


DEFAULT_SITE_CONFIG = SiteConfig()

_SITE_CONFIGS: dict[str, SiteConfig] = {"default": DEFAULT_SITE_CONFIG}


def register_site_config(config: SiteConfig) -> SiteConfig:
    """Add or replace a site configuration."""
    _SITE_CONFIGS[config.site_id] = config
    return config


def get_site_config(site_id: Optional[str] = None) -> SiteConfig:
    """Look up a site configuration, falling back to the default bundle."""
    if site_id and site_id in _SITE_CONFIGS:
        return _SITE_CONFIGS[site_id]
    return DEFAULT_SITE_CONFIG


def get_site_config_by_url(url: str) -> SiteConfig:
    """Find the configuration whose URL shares the hostname of ``url``."""
    hostname = urlparse(url).hostname
    if hostname:
        for config in _SITE_CONFIGS.values():
            if config.hostname and config.hostname == hostname:
                return config
    return DEFAULT_SITE_CONFIG


def load_site_config(path: str | Path) -> SiteConfig:
    """Load and register a site configuration from a JSON file.

    Raises:
        ConfigError: When the file is unreadable or fails validation
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        config = SiteConfig.model_validate(data)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Invalid site config {path}: {e}") from e
    return register_site_config(config)
