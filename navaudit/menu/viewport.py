"""Viewport profiler: measure every menu at desktop and mobile sizes.

Viewport size is page-global state. Whoever changes it restores it before
returning, including on the error path; ``viewport_scope`` is the only place
in the engine that resizes the page.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog

from navaudit.browser.driver import ElementRef, PageClosedError, PageDriver, Viewport, bounded
from navaudit.config import DEFAULT_SITE_CONFIG, Settings, SiteConfig, get_settings
from navaudit.menu.discovery import classify_menu_type
from navaudit.menu.models import MenuFingerprint, MenuView, NavInfo, ViewportProfile
from navaudit.menu.visibility import VisibilityOracle

logger = structlog.get_logger()


@asynccontextmanager
async def viewport_scope(
    driver: PageDriver,
    viewport: Optional[Viewport] = None,
    settle_ms: int = 0,
    fallback: Optional[Viewport] = None,
):
    """Switch to ``viewport`` for the block and always restore the original size.

    With ``viewport=None`` the size is left alone but still restored on exit, so
    nothing done inside the block can leak a resize. When the backend cannot
    report its size, ``fallback`` is restored instead.

    Yields:
        The viewport size recorded on entry
    """
    original = await driver.viewport_size() or fallback
    try:
        if viewport is not None and viewport != original:
            await driver.set_viewport_size(viewport)
            if settle_ms:
                await driver.wait(settle_ms)
        yield original
    finally:
        if original is not None:
            current = await driver.viewport_size()
            if current != original:
                await driver.set_viewport_size(original)
                logger.debug("Viewport restored", width=original.width, height=original.height)


class ViewportProfiler:
    """
    Populates ``MenuFingerprint.views`` for both viewport profiles.

    Sole writer of ``MenuView.menu_type`` (heuristic or declared), ``visibility``
    and the item counts. Types are never upgraded to toggle-based here.
    """

    def __init__(
        self,
        driver: PageDriver,
        oracle: VisibilityOracle,
        settings: Optional[Settings] = None,
        site_config: Optional[SiteConfig] = None,
    ):
        self.driver = driver
        self.oracle = oracle
        self.settings = settings or get_settings()
        self.site_config = site_config or DEFAULT_SITE_CONFIG
        self.viewports: dict[ViewportProfile, Viewport] = {}
        self.log = logger.bind(component="viewport_profiler")

    def viewport_for(self, profile: ViewportProfile) -> Optional[Viewport]:
        """Target size for a profile; desktop means "leave the current size"."""
        if profile == ViewportProfile.MOBILE:
            return self.settings.mobile_viewport
        return None

    @asynccontextmanager
    async def at(self, profile: ViewportProfile):
        """Scope in which the page is at ``profile``'s viewport."""
        async with viewport_scope(
            self.driver,
            self.viewport_for(profile),
            settle_ms=self.settings.viewport_settle_ms,
            fallback=self.settings.desktop_viewport,
        ) as original:
            self.viewports[profile] = self.viewport_for(profile) or original or self.settings.desktop_viewport
            yield original

    @property
    def profiles(self) -> list[ViewportProfile]:
        if self.site_config.settings.check_mobile_visibility:
            return [ViewportProfile.DESKTOP, ViewportProfile.MOBILE]
        return [ViewportProfile.DESKTOP]

    async def profile(self, nav_info: NavInfo) -> NavInfo:
        """Measure all menus in the desktop pass, then in the mobile pass."""
        for profile in self.profiles:
            async with self.at(profile):
                await self.measure_pass(nav_info, profile)
            self.log.info(
                "Viewport pass complete",
                viewport=profile.value,
                hidden=len(nav_info.hidden_menus(profile)),
                menus=nav_info.total,
            )
        return nav_info

    async def measure_pass(self, nav_info: NavInfo, profile: ViewportProfile) -> None:
        for fingerprint in nav_info.fingerprints:
            await self.measure(fingerprint, profile)

    async def measure(self, fingerprint: MenuFingerprint, profile: ViewportProfile) -> MenuView:
        """Measure one menu at the current viewport. Failures leave visibility unknown."""
        view = fingerprint.view(profile)
        ref = ElementRef(fingerprint.selector)

        try:
            snapshot = await bounded(
                self.driver.snapshot_menu(ref, self.site_config.dropdown_container_selector),
                self.settings.step_timeout_ms,
                step="snapshot_menu",
            )
        except PageClosedError:
            raise
        except Exception as e:
            view.visibility = None
            fingerprint.notes.append(f"{profile.value}: measurement failed ({e})")
            self.log.warning("Menu measurement failed", menu_id=fingerprint.menu_id, viewport=profile.value, error=str(e))
            return view

        if not snapshot:
            view.visibility = False
            view.total_items = 0
            view.visible_items = 0
            fingerprint.notes.append(f"{profile.value}: menu element absent")
            return view

        view.menu_type, view.declared_type = classify_menu_type(
            snapshot, fingerprint.declared_types.get(profile)
        )
        view.display = snapshot.get("display")
        view.position = snapshot.get("position")
        view.total_items = int(snapshot.get("link_count") or 0)
        view.visibility = await self.oracle.is_truly_visible(ref, consider_keyboard_focus=True)
        if view.visibility:
            view.visible_items = await self.oracle.count_visible(ref.within("a"), consider_keyboard_focus=True)
        else:
            view.visible_items = 0

        self.log.debug(
            "Menu measured",
            menu_id=fingerprint.menu_id,
            viewport=profile.value,
            menu_type=view.menu_type.value,
            visible=view.visibility,
            items=view.total_items,
            visible_items=view.visible_items,
        )
        return view
