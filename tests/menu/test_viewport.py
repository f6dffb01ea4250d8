"""Tests for viewport profiling and viewport restoration."""

import pytest

from tests.menu.fake_dom import FakePage

RESPONSIVE_PAGE = """
<nav class="desktop-nav" aria-label="Main" data-style-mobile="display: none">
  <ul><li><a href="/">Home</a></li><li><a href="/shop">Shop</a></li><li><a href="/blog">Blog</a></li></ul>
</nav>
<nav class="mobile-nav" style="transform: translateX(-100%)" data-mobile-menu-type="ToggleBasedSimpleMenu">
  <ul><li><a href="/">Home</a></li><li><a href="/shop">Shop</a></li></ul>
</nav>
"""


async def discover(page):
    from navaudit.menu.discovery import MenuDiscoverer

    return await MenuDiscoverer(page).discover()


def make_profiler(page, settings, site_config=None):
    from navaudit.menu.viewport import ViewportProfiler
    from navaudit.menu.visibility import VisibilityOracle

    return ViewportProfiler(page, VisibilityOracle(page), settings, site_config)


class TestViewportScope:
    """Tests for viewport_scope."""

    @pytest.mark.asyncio
    async def test_restores_after_block(self):
        """The original viewport is restored after the block."""
        from navaudit.browser.driver import Viewport
        from navaudit.menu.viewport import viewport_scope

        page = FakePage("<nav></nav>")
        async with viewport_scope(page, Viewport(375, 667)) as original:
            assert original == Viewport(1280, 720)
            assert page.viewport == Viewport(375, 667)

        assert page.viewport == Viewport(1280, 720)

    @pytest.mark.asyncio
    async def test_restores_on_error(self):
        """The original viewport is restored when the block raises."""
        from navaudit.browser.driver import Viewport
        from navaudit.menu.viewport import viewport_scope

        page = FakePage("<nav></nav>")
        with pytest.raises(RuntimeError):
            async with viewport_scope(page, Viewport(375, 667)):
                raise RuntimeError("probe crashed")

        assert page.viewport == Viewport(1280, 720)

    @pytest.mark.asyncio
    async def test_undoes_resize_made_inside_block(self):
        """Resizes made inside the block are undone."""
        from navaudit.browser.driver import Viewport
        from navaudit.menu.viewport import viewport_scope

        page = FakePage("<nav></nav>")
        async with viewport_scope(page):
            await page.set_viewport_size(Viewport(800, 600))

        assert page.viewport == Viewport(1280, 720)

    @pytest.mark.asyncio
    async def test_fallback_when_size_unknown(self):
        """The fallback viewport is restored when the size is unknown."""
        from navaudit.browser.driver import Viewport
        from navaudit.menu.viewport import viewport_scope

        page = FakePage("<nav></nav>", viewport=Viewport(1024, 768))
        page.report_viewport = False
        async with viewport_scope(page, Viewport(375, 667), fallback=Viewport(1280, 720)) as original:
            assert original == Viewport(1280, 720)

        assert page.viewport == Viewport(1280, 720)

    @pytest.mark.asyncio
    async def test_no_resize_when_already_there(self):
        """No resize happens when the page is already at the target size."""
        from navaudit.browser.driver import Viewport
        from navaudit.menu.viewport import viewport_scope

        page = FakePage("<nav></nav>")
        async with viewport_scope(page, Viewport(1280, 720)):
            pass

        assert page.viewport_history == []


class TestViewportProfiler:
    """Tests for ViewportProfiler."""

    @pytest.mark.asyncio
    async def test_measures_both_viewports(self, settings):
        """Both viewports are measured."""
        from navaudit.browser.driver import Viewport
        from navaudit.menu.models import MenuType, ViewportProfile

        page = FakePage(RESPONSIVE_PAGE)
        nav_info = await discover(page)
        profiler = make_profiler(page, settings)
        await profiler.profile(nav_info)

        desktop_nav, mobile_nav = nav_info.fingerprints
        desktop = ViewportProfile.DESKTOP
        mobile = ViewportProfile.MOBILE

        assert desktop_nav.views[desktop].visibility is True
        assert desktop_nav.views[desktop].visible_items == 3
        assert desktop_nav.views[mobile].visibility is False
        assert desktop_nav.views[mobile].visible_items == 0
        assert desktop_nav.views[mobile].total_items == 3

        assert mobile_nav.hidden_in_all_viewports
        assert mobile_nav.views[mobile].menu_type == MenuType.TOGGLE_SIMPLE
        assert mobile_nav.views[mobile].declared_type
        assert mobile_nav.views[desktop].menu_type == MenuType.SIMPLE

        assert nav_info.hidden_menus(mobile) == ["menu-1", "menu-2"]
        assert profiler.viewports == {desktop: Viewport(1280, 720), mobile: Viewport(375, 667)}
        assert page.viewport == Viewport(1280, 720)

    @pytest.mark.asyncio
    async def test_heuristics_never_produce_toggle_types(self, settings):
        """Heuristics never assign toggle-based types."""
        from navaudit.menu.models import ViewportProfile

        page = FakePage(
            '<nav style="display: none"><ul><li><a href="/">A</a><ul><li><a href="/b">B</a></li></ul></li></ul></nav>'
        )
        nav_info = await discover(page)
        await make_profiler(page, settings).profile(nav_info)

        for view in nav_info.fingerprints[0].views.values():
            assert not view.menu_type.is_toggle_based
        assert nav_info.fingerprints[0].views[ViewportProfile.DESKTOP].menu_type.value == "DropdownMenu"

    @pytest.mark.asyncio
    async def test_desktop_only_when_mobile_disabled(self, settings):
        """Only desktop is measured when the mobile pass is disabled."""
        from navaudit.config import SiteConfig, SiteFlags
        from navaudit.menu.models import ViewportProfile

        page = FakePage(RESPONSIVE_PAGE)
        nav_info = await discover(page)
        config = SiteConfig(settings=SiteFlags(check_mobile_visibility=False))
        await make_profiler(page, settings, config).profile(nav_info)

        assert list(nav_info.fingerprints[0].views) == [ViewportProfile.DESKTOP]
        assert page.viewport_history == []

    @pytest.mark.asyncio
    async def test_measurement_failure_leaves_visibility_unknown(self, settings):
        """A failed measurement leaves visibility unknown."""
        from navaudit.menu.models import ViewportProfile

        page = FakePage(RESPONSIVE_PAGE)
        nav_info = await discover(page)
        page.fail_next("snapshot_menu", RuntimeError("evaluation failed"))
        await make_profiler(page, settings).profile(nav_info)

        first = nav_info.fingerprints[0]
        assert first.views[ViewportProfile.DESKTOP].visibility is None
        assert first.views[ViewportProfile.MOBILE].visibility is False
        assert any("measurement failed" in note for note in first.notes)
        # Unknown never counts as hidden
        assert "menu-1" not in nav_info.hidden_menus(ViewportProfile.DESKTOP)

    @pytest.mark.asyncio
    async def test_missing_element_is_hidden(self, settings):
        """An element that is gone is hidden."""
        from navaudit.menu.models import ViewportProfile

        page = FakePage(RESPONSIVE_PAGE)
        nav_info = await discover(page)
        page.find(".mobile-nav").decompose()
        await make_profiler(page, settings).profile(nav_info)

        view = nav_info.get("menu-2").views[ViewportProfile.DESKTOP]
        assert view.visibility is False
        assert view.total_items == 0

    @pytest.mark.asyncio
    async def test_restores_viewport_when_page_closes_mid_pass(self, settings):
        """The viewport is restored when the page closes mid-pass."""
        from navaudit.browser.driver import PageClosedError, Viewport

        page = FakePage(RESPONSIVE_PAGE)
        nav_info = await discover(page)
        profiler = make_profiler(page, settings)
        await profiler.profile(nav_info)
        page.viewport_history.clear()
        page.fail_next("visibility_probe", PageClosedError("target closed"))

        with pytest.raises(PageClosedError):
            async with profiler.at(profiler.profiles[1]):
                await profiler.measure_pass(nav_info, profiler.profiles[1])

        assert page.viewport == Viewport(1280, 720)
        assert page.viewport_history == [Viewport(375, 667), Viewport(1280, 720)]
