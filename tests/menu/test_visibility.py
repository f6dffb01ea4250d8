"""Tests for the visibility oracle."""

import pytest

from tests.menu.fake_dom import FakePage


def node(tag="div", **overrides):
    data = {
        "tag": tag,
        "display": "block",
        "visibility": "visible",
        "opacity": 1,
        "transform": "none",
        "clip": "auto",
        "clip_path": "none",
        "overflow": "visible visible",
        "max_height": None,
        "height": 20,
        "focused": False,
        "aria_hidden": None,
        "rect": {"x": 0, "y": 0, "width": 100, "height": 20},
    }
    data.update(overrides)
    return data


def probe(chain=None, **overrides):
    data = {
        "exists": True,
        "check_visibility": True,
        "rect": {"x": 0, "y": 0, "width": 100, "height": 20},
        "viewport": {"width": 1280, "height": 720},
        "chain": chain if chain is not None else [node("a"), node("nav")],
        "aria_expanded": None,
        "aria_controls": None,
        "controller_active": False,
        "is_main_navigation": False,
        "rendered_items": 0,
    }
    data.update(overrides)
    return data


def decide(raw, consider_keyboard_focus=False):
    from navaudit.menu.visibility import VISIBILITY_RULES, VisibilitySignals

    return VISIBILITY_RULES.evaluate(VisibilitySignals.from_probe(raw, consider_keyboard_focus))


class TestVisibilityRules:
    """Tests for the ordered visibility rules."""

    def test_plain_element_is_visible(self):
        """A plain element is visible."""
        verdict = decide(probe())
        assert verdict.result is True
        assert verdict.rule == "default"

    def test_absent(self):
        """A missing element is not visible."""
        assert decide({"exists": False}).rule == "absent"
        assert decide(None).result is False

    def test_native_check_hides(self):
        """The native visibility check can hide an element."""
        verdict = decide(probe(check_visibility=False))
        assert verdict.result is False
        assert verdict.rule == "native_hidden"

    def test_native_check_unknown_falls_through(self):
        """An unknown native check falls through to the rules."""
        assert decide(probe(check_visibility=None)).result is True

    @pytest.mark.parametrize(
        "override",
        [
            {"display": "none"},
            {"visibility": "hidden"},
            {"transform": "matrix(0, 0, 0, 0, 0, 0)"},
            {"transform": "matrix(1, 0, 0, 0, 0, 0)"},
        ],
    )
    def test_hard_signals_on_ancestor(self, override):
        """Hard hidden signals on an ancestor hide the element."""
        verdict = decide(probe(chain=[node("a"), node("ul", **override), node("nav")]))
        assert verdict.result is False
        assert verdict.rule == "hard_css_hidden"

    def test_hard_signal_beats_main_navigation(self):
        """Hard hidden signals beat the main navigation leniency."""
        raw = probe(
            chain=[node("nav", display="none")],
            is_main_navigation=True,
            rendered_items=3,
        )
        assert decide(raw).rule == "hard_css_hidden"

    @pytest.mark.parametrize(
        "override",
        [
            {"opacity": 0},
            {"clip": "rect(0px, 0px, 0px, 0px)"},
            {"clip_path": "inset(50%)"},
            {"overflow": "hidden hidden", "max_height": 0},
            {"aria_hidden": "true"},
            {
                "transform": "matrix(1, 0, 0, 1, -10000, 0)",
                "rect": {"x": -400, "y": 0, "width": 300, "height": 500},
            },
        ],
    )
    def test_soft_signals(self, override):
        """Soft hidden signals hide the element."""
        verdict = decide(probe(chain=[node("a"), node("div", **override)]))
        assert verdict.result is False
        assert verdict.rule == "soft_css_hidden"

    def test_transform_inside_viewport_is_not_soft_hidden(self):
        """A transform that stays inside the viewport is not hidden."""
        raw = probe(chain=[node("nav", transform="matrix(1, 0, 0, 1, 0, 0)")])
        assert decide(raw).result is True

    def test_collapsed_submenu_controller_stays_visible(self):
        """A collapsed submenu controller stays visible."""
        raw = probe(
            chain=[node("button", opacity=0)],
            aria_expanded="false",
            aria_controls="submenu-1",
        )
        verdict = decide(raw)
        assert verdict.result is True
        assert verdict.rule == "collapsed_submenu_controller"

    def test_submenu_of_active_controller(self):
        """A submenu of an active controller is visible."""
        raw = probe(chain=[node("ul", overflow="hidden hidden", height=0)], controller_active=True)
        assert decide(raw).rule == "submenu_of_active_controller"

    def test_active_controller_needs_a_box(self):
        """An active controller without a box does not reveal its submenu."""
        raw = probe(
            chain=[node("ul", opacity=0)],
            rect={"x": 0, "y": 0, "width": 0, "height": 0},
            controller_active=True,
        )
        assert decide(raw).result is False

    def test_main_navigation_with_rendered_items(self):
        """A main navigation with rendered items overrides soft signals."""
        raw = probe(
            chain=[node("nav", overflow="hidden hidden", height=0)],
            rect={"x": 0, "y": 0, "width": 1280, "height": 0},
            is_main_navigation=True,
            rendered_items=4,
        )
        verdict = decide(raw)
        assert verdict.result is True
        assert verdict.rule == "main_navigation_with_rendered_items"

    def test_main_navigation_without_rendered_items(self):
        """A main navigation without rendered items gets no leniency."""
        raw = probe(
            chain=[node("nav", opacity=0)],
            is_main_navigation=True,
            rendered_items=0,
        )
        assert decide(raw).rule == "soft_css_hidden"

    def test_zero_size(self):
        """Zero-size elements are not visible."""
        raw = probe(rect={"x": 0, "y": 0, "width": 0, "height": 20})
        assert decide(raw).rule == "zero_size"

    def test_off_screen_respects_focus_flag(self):
        """Off-screen elements are hidden unless focus is considered."""
        raw = probe(rect={"x": 2000, "y": 0, "width": 100, "height": 20})

        assert decide(raw).rule == "off_screen"
        assert decide(raw, consider_keyboard_focus=True).result is True

    def test_focused_node_exempt_only_when_considering_focus(self):
        """The focused node is exempt only when focus is considered."""
        raw = probe(chain=[node("a", opacity=0, focused=True), node("nav")])

        assert decide(raw, consider_keyboard_focus=True).result is True
        assert decide(raw, consider_keyboard_focus=False).result is False

    def test_focus_exemption_does_not_cover_ancestors(self):
        """The focus exemption does not extend to ancestors."""
        raw = probe(chain=[node("a", focused=True), node("ul", display="none")])
        assert decide(raw, consider_keyboard_focus=True).result is False


class TestTransformScale:
    """Tests for transform matrix parsing."""

    def test_parse(self):
        """Scale factors are read from 2D and 3D transform matrices."""
        from navaudit.menu.visibility import transform_scale

        assert transform_scale("none") is None
        assert transform_scale("matrix(2, 0, 0, 3, 10, 10)") == (2.0, 3.0)
        assert transform_scale("matrix3d(0, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1)") == (0.0, 1.0)
        assert transform_scale("matrix(garbage)") is None


class TestVisibilityOracle:
    """Tests for the oracle against a page."""

    @pytest.mark.asyncio
    async def test_rule_error_means_not_visible(self):
        """A failing rule means not visible."""
        from navaudit.menu.rules import Rule, RuleList
        from navaudit.menu.visibility import VisibilityOracle

        def explode(signals):
            raise RuntimeError("boom")

        page = FakePage("<nav><a href='/'>Home</a></nav>")
        oracle = VisibilityOracle(page, rules=RuleList("broken", [Rule("explode", explode, True)], default=True))
        verdict = await oracle.explain(page_ref("nav"))

        assert verdict.result is False
        assert verdict.rule == "evaluation_error"

    @pytest.mark.asyncio
    async def test_probe_failure_reads_as_absent(self):
        """A failed probe reads as absent."""
        from navaudit.menu.visibility import VisibilityOracle

        page = FakePage("<nav><a href='/'>Home</a></nav>")
        page.fail_next("visibility_probe", RuntimeError("evaluation failed"))
        oracle = VisibilityOracle(page)

        assert await oracle.is_truly_visible(page_ref("nav")) is False
        assert await oracle.is_truly_visible(page_ref("nav")) is True

    @pytest.mark.asyncio
    async def test_closed_page_propagates(self):
        """A closed page propagates from the oracle."""
        from navaudit.browser.driver import PageClosedError
        from navaudit.menu.visibility import VisibilityOracle

        page = FakePage("<nav></nav>")
        page.close()

        with pytest.raises(PageClosedError):
            await VisibilityOracle(page).is_truly_visible(page_ref("nav"))

    @pytest.mark.asyncio
    async def test_display_contents_main_navigation(self):
        """A display:contents nav has no box of its own but its links render."""
        from navaudit.menu.visibility import VisibilityOracle

        page = FakePage(
            '<nav aria-label="Main navigation" style="display: contents">'
            '<ul><li><a href="/a">A</a></li><li><a href="/b">B</a></li></ul></nav>'
        )
        verdict = await VisibilityOracle(page).explain(page_ref("nav"))

        assert verdict.result is True
        assert verdict.rule == "main_navigation_with_rendered_items"

    @pytest.mark.asyncio
    async def test_off_screen_main_navigation_is_hidden(self):
        """An off-screen main navigation is hidden."""
        from navaudit.menu.visibility import VisibilityOracle

        page = FakePage(
            '<nav aria-label="Main" style="transform: translateX(-100%)">'
            '<ul><li><a href="/a">A</a></li></ul></nav>'
        )

        assert await VisibilityOracle(page).is_truly_visible(page_ref("nav")) is False

    @pytest.mark.asyncio
    async def test_responsive_styles(self):
        """Styles scoped to a viewport change the verdict after a resize."""
        from navaudit.browser.driver import Viewport
        from navaudit.menu.visibility import VisibilityOracle

        page = FakePage('<nav data-style-mobile="display: none"><a href="/">Home</a></nav>')
        oracle = VisibilityOracle(page)

        assert await oracle.is_truly_visible(page_ref("nav")) is True
        await page.set_viewport_size(Viewport(375, 667))
        assert await oracle.is_truly_visible(page_ref("nav")) is False

    @pytest.mark.asyncio
    async def test_count_visible(self):
        """count_visible counts visible matches up to the limit."""
        from navaudit.menu.visibility import VisibilityOracle

        page = FakePage(
            '<nav><a href="/a">A</a><a href="/b" style="visibility: hidden">B</a>'
            '<a href="/c" data-rect="0,0,0,0">C</a><a href="/d">D</a></nav>'
        )
        oracle = VisibilityOracle(page)

        assert await oracle.count_visible("nav a") == 2
        assert await oracle.count_visible("nav a", limit=1) == 1
        assert await oracle.count_visible("nav >>> a") == 0


def page_ref(selector):
    from navaudit.browser.driver import ElementRef

    return ElementRef(selector)
