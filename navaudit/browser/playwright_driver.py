"""Playwright implementation of the page driver.

Provides:
- BrowserConfig / BrowserManager: Chromium lifecycle
- PlaywrightPageDriver: PageDriver over a single Playwright page
- open_audit_page(): context manager yielding a ready driver
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Optional

import structlog

from navaudit.browser import scripts
from navaudit.browser.driver import ElementRef, PageClosedError, PageDriver, Viewport
from navaudit.config import Settings, get_settings

logger = structlog.get_logger()

BLOCKED_RESOURCE_TYPES = frozenset({"image", "font", "media"})

_CLOSED_MARKERS = (
    "target closed",
    "target page, context or browser has been closed",
    "has been closed",
    "browser has been closed",
    "page closed",
)


def is_closed_error(error: BaseException) -> bool:
    """True when a Playwright error means the page or browser is gone."""
    message = str(error).lower()
    return any(marker in message for marker in _CLOSED_MARKERS)


@dataclass
class BrowserConfig:
    """Configuration for browser instances."""
    headless: bool = True
    slow_mo: int = 0  # Milliseconds between actions
    viewport_width: int = 1280
    viewport_height: int = 720
    device_scale_factor: float = 1.0
    timeout_ms: int = 30000
    ignore_https_errors: bool = True
    locale: str = "en-US"
    user_agent: Optional[str] = None
    extra_http_headers: dict = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> "BrowserConfig":
        return cls(
            headless=settings.headless,
            viewport_width=settings.desktop_viewport_width,
            viewport_height=settings.desktop_viewport_height,
            timeout_ms=settings.pointer_timeout_ms,
        )


class BrowserManager:
    """
    Manages the Playwright browser instance.

    Handles browser lifecycle, context creation, and page management.
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        self.config = config or BrowserConfig()
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None
        self.log = logger.bind(component="browser")

    async def start(self) -> None:
        """Start the browser."""
        from playwright.async_api import async_playwright

        self.log.info("Starting browser", headless=self.config.headless)

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.config.headless,
            slow_mo=self.config.slow_mo,
        )

        await self._create_context()
        self.log.info("Browser started")

    async def _create_context(self) -> None:
        """Create a new browser context."""
        self._context = await self._browser.new_context(
            viewport={
                "width": self.config.viewport_width,
                "height": self.config.viewport_height,
            },
            device_scale_factor=self.config.device_scale_factor,
            ignore_https_errors=self.config.ignore_https_errors,
            locale=self.config.locale,
            user_agent=self.config.user_agent,
            extra_http_headers=self.config.extra_http_headers or {},
        )

        self._context.set_default_timeout(self.config.timeout_ms)
        self._page = await self._context.new_page()

    @property
    def page(self):
        """Get the current page."""
        return self._page

    async def stop(self) -> None:
        """Stop the browser."""
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        self.log.info("Browser stopped")

    async def __aenter__(self) -> "BrowserManager":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()


class PlaywrightPageDriver(PageDriver):
    """
    PageDriver over a Playwright page.

    All element lookups go through ``document.querySelectorAll`` in the page,
    so selectors behave exactly as in the in-page scripts. Closed-page errors
    surface as ``PageClosedError``; everything else propagates unchanged.
    """

    def __init__(
        self,
        page,
        block_resources: bool = True,
        navigation_timeout_ms: int = 120000,
        action_timeout_ms: int = 2000,
    ):
        self.page = page
        self.block_resources = block_resources
        self.navigation_timeout_ms = navigation_timeout_ms
        self.action_timeout_ms = action_timeout_ms
        self._routed = False
        self.log = logger.bind(component="playwright_driver")

    @classmethod
    def from_settings(cls, page, settings: Optional[Settings] = None) -> "PlaywrightPageDriver":
        settings = settings or get_settings()
        return cls(
            page,
            block_resources=settings.block_resources,
            navigation_timeout_ms=settings.navigation_timeout_ms,
            action_timeout_ms=settings.pointer_timeout_ms,
        )

    # ==========================================================================
    # Internals
    # ==========================================================================

    def _check_open(self) -> None:
        if self.page.is_closed():
            raise PageClosedError("page is closed")

    async def _call(self, coro):
        """Await a Playwright call, translating closed-page failures."""
        self._check_open()
        try:
            return await coro
        except PageClosedError:
            raise
        except Exception as e:
            if self.page.is_closed() or is_closed_error(e):
                raise PageClosedError(str(e)) from e
            raise

    async def _evaluate(self, script: str, arg: Any = None) -> Any:
        return await self._call(self.page.evaluate(script, arg))

    @staticmethod
    def _ref_arg(ref: ElementRef, **extra) -> dict:
        return {"selector": ref.selector, "index": ref.index, **extra}

    @asynccontextmanager
    async def _element(self, ref: ElementRef):
        """Resolve a ref to an element handle, disposed when the block exits."""
        handle = await self._call(self.page.evaluate_handle(scripts.ELEMENT_HANDLE_JS, self._ref_arg(ref)))
        try:
            element = handle.as_element()
            if element is None:
                raise LookupError(f"element not found: {ref.describe()}")
            yield element
        finally:
            if not self.page.is_closed():
                await handle.dispose()

    async def _route(self, route) -> None:
        if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    # ==========================================================================
    # Navigation and pages
    # ==========================================================================

    async def goto(self, url: str) -> str:
        if self.block_resources and not self._routed:
            await self._call(self.page.route("**/*", self._route))
            self._routed = True
        self.log.info("Navigating", url=url)
        await self._call(self.page.goto(url, wait_until="load", timeout=self.navigation_timeout_ms))
        return self.page.url

    async def current_url(self) -> str:
        self._check_open()
        return self.page.url

    async def page_count(self) -> int:
        self._check_open()
        return len(self.page.context.pages)

    async def close_extra_pages(self) -> int:
        self._check_open()
        closed = 0
        for other in list(self.page.context.pages):
            if other is not self.page and not other.is_closed():
                await other.close()
                closed += 1
        if closed:
            self.log.debug("Closed extra pages", count=closed)
        return closed

    # ==========================================================================
    # Viewport and timing
    # ==========================================================================

    async def viewport_size(self) -> Optional[Viewport]:
        self._check_open()
        size = self.page.viewport_size
        if not size:
            return None
        return Viewport(width=size["width"], height=size["height"])

    async def set_viewport_size(self, viewport: Viewport) -> None:
        await self._call(self.page.set_viewport_size(viewport.to_dict()))

    async def wait(self, ms: int) -> None:
        await self._call(self.page.wait_for_timeout(ms))

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def count(self, selector: str) -> int:
        return int(await self._evaluate(scripts.COUNT_JS, selector) or 0)

    async def get_attribute(self, ref: ElementRef, name: str) -> Optional[str]:
        return await self._evaluate(scripts.GET_ATTRIBUTE_JS, self._ref_arg(ref, name=name))

    async def collect_candidates(
        self,
        selector: str,
        attribute: str,
        container_attribute: Optional[str] = None,
    ) -> list[dict]:
        return await self._evaluate(
            scripts.COLLECT_CANDIDATES_JS,
            {"selector": selector, "attribute": attribute, "container": container_attribute},
        ) or []

    async def assign_attribute(
        self,
        selector: str,
        assignments: list[tuple[int, str]],
        attribute: str,
    ) -> int:
        return int(await self._evaluate(
            scripts.ASSIGN_ATTRIBUTE_JS,
            {
                "selector": selector,
                "assignments": [[index, value] for index, value in assignments],
                "attribute": attribute,
            },
        ) or 0)

    async def clear_attribute(self, attribute: str) -> int:
        return int(await self._evaluate(scripts.CLEAR_ATTRIBUTE_JS, attribute) or 0)

    async def snapshot_menu(self, ref: ElementRef, dropdown_selector: str) -> Optional[dict]:
        return await self._evaluate(
            scripts.SNAPSHOT_MENU_JS, self._ref_arg(ref, dropdownSelector=dropdown_selector)
        )

    async def snapshot_toggle(self, ref: ElementRef, menu_attribute: str) -> Optional[dict]:
        return await self._evaluate(
            scripts.SNAPSHOT_TOGGLE_JS, self._ref_arg(ref, menuAttribute=menu_attribute)
        )

    async def visibility_probe(self, ref: ElementRef, item_selector: str) -> dict:
        return await self._evaluate(
            scripts.VISIBILITY_PROBE_JS, self._ref_arg(ref, itemSelector=item_selector)
        ) or {"exists": False}

    async def active_element(
        self,
        scope: Optional[ElementRef],
        marker: str,
        value: str,
    ) -> Optional[dict]:
        return await self._evaluate(
            scripts.ACTIVE_ELEMENT_JS,
            {
                "scopeSelector": scope.selector if scope else None,
                "scopeIndex": scope.index if scope else 0,
                "marker": marker,
                "value": value,
            },
        )

    async def tag_related_dropdown(
        self,
        ref: ElementRef,
        attribute: str,
        value: str,
        container_selector: str,
        use_aria_controls: bool = True,
    ) -> Optional[str]:
        return await self._evaluate(
            scripts.TAG_RELATED_DROPDOWN_JS,
            self._ref_arg(
                ref,
                attribute=attribute,
                value=value,
                containerSelector=container_selector,
                useAriaControls=use_aria_controls,
            ),
        )

    # ==========================================================================
    # Input
    # ==========================================================================

    async def focus(self, ref: ElementRef) -> None:
        async with self._element(ref) as element:
            await self._call(element.focus())

    async def blur(self) -> None:
        await self._evaluate(scripts.BLUR_JS)

    async def press(self, key: str) -> None:
        await self._call(self.page.keyboard.press(key))

    async def hover(self, ref: ElementRef) -> None:
        async with self._element(ref) as element:
            await self._call(element.hover(timeout=self.action_timeout_ms))

    async def move_mouse_away(self) -> None:
        await self._call(self.page.mouse.move(0, 0))

    async def click(self, ref: ElementRef, prevent_navigation: bool = True) -> None:
        if prevent_navigation:
            await self.guard_navigation(ref)
        async with self._element(ref) as element:
            await self._call(element.click(timeout=self.action_timeout_ms))

    async def guard_navigation(self, ref: ElementRef) -> None:
        await self._evaluate(scripts.GUARD_NAVIGATION_JS, self._ref_arg(ref))

    async def click_outside(self) -> None:
        await self._evaluate(scripts.CLICK_OUTSIDE_JS)

    async def screenshot_element(self, ref: ElementRef) -> bytes:
        async with self._element(ref) as element:
            return await self._call(element.screenshot(type="png", timeout=self.action_timeout_ms))


@asynccontextmanager
async def open_audit_page(settings: Optional[Settings] = None):
    """
    Context manager for an audit session.

    Usage:
        async with open_audit_page() as driver:
            result = await MenuAuditor(driver).audit("https://example.com")
    """
    settings = settings or get_settings()
    manager = BrowserManager(BrowserConfig.from_settings(settings))
    try:
        await manager.start()
        yield PlaywrightPageDriver.from_settings(manager.page, settings)
    finally:
        await manager.stop()
