"""Tests for synthetic element ids."""

import pytest

from tests.menu.fake_dom import FakePage

PAGE = """
<header><nav id="top"><a href="/">Home</a></nav></header>
<div class="menu">
  <nav class="inner"><a href="/x">X</a></nav>
</div>
<nav id="bottom"><a href="/y">Y</a></nav>
"""


class TestElementTagger:
    """Tests for ElementTagger."""

    @pytest.mark.asyncio
    async def test_tags_in_document_order(self):
        """Ids are assigned in document order."""
        from navaudit.menu.tagger import ElementTagger

        page = FakePage(PAGE)
        tagged = await ElementTagger.for_menus(page).tag("nav, .menu")

        assert [t.element_id for t in tagged] == ["menu-1", "menu-2", "menu-3"]
        assert page.find("#top")["data-menu-id"] == "menu-1"
        assert page.find("div.menu")["data-menu-id"] == "menu-2"
        assert page.find("#bottom")["data-menu-id"] == "menu-3"
        # Nested candidate skipped
        assert not page.find("nav.inner").has_attr("data-menu-id")

    @pytest.mark.asyncio
    async def test_tagging_is_idempotent(self):
        """Tagging twice keeps the same ids."""
        from navaudit.menu.tagger import ElementTagger

        page = FakePage(PAGE)
        tagger = ElementTagger.for_menus(page)
        first = await tagger.tag("nav, .menu")
        second = await tagger.tag("nav, .menu")

        assert [t.element_id for t in second] == [t.element_id for t in first]
        assert not any(t.newly_tagged for t in second)
        assert page.calls.count("assign_attribute") == 1

    @pytest.mark.asyncio
    async def test_fresh_tagger_respects_existing_ids(self):
        """A new tagger keeps ids already present in the page."""
        from navaudit.menu.tagger import ElementTagger

        page = FakePage(PAGE)
        await ElementTagger.for_menus(page).tag("nav, .menu")
        again = await ElementTagger.for_menus(page).tag("nav, .menu")

        assert [t.element_id for t in again] == ["menu-1", "menu-2", "menu-3"]

    @pytest.mark.asyncio
    async def test_numbering_continues_after_existing(self):
        """Numbering continues after the highest existing id."""
        from navaudit.menu.tagger import ElementTagger

        page = FakePage('<nav data-menu-id="menu-4"></nav><nav></nav>')
        tagged = await ElementTagger.for_menus(page).tag("nav")

        assert [(t.element_id, t.newly_tagged) for t in tagged] == [("menu-4", False), ("menu-5", True)]

    @pytest.mark.asyncio
    async def test_exclude_within_other_attribute(self):
        """Candidates inside another tagged family are skipped."""
        from navaudit.menu.tagger import ElementTagger

        page = FakePage(
            '<nav data-menu-id="menu-1"><button aria-expanded="false">Sub</button></nav>'
            '<button class="hamburger">Menu</button>'
        )
        tagged = await ElementTagger.for_toggles(page).tag(
            "button", exclude_within="data-menu-id", exclude_nested=False
        )

        assert [t.element_id for t in tagged] == ["toggle-1"]
        assert tagged[0].selector == '[data-toggle-id="toggle-1"]'
        assert page.find(".hamburger")["data-toggle-id"] == "toggle-1"

    @pytest.mark.asyncio
    async def test_ids_are_gone_after_navigation(self):
        """Ids vanish after navigation and are reassigned after forget."""
        from navaudit.menu.tagger import ElementTagger

        page = FakePage("<nav><a href='/about'>About</a></nav>")
        tagger = ElementTagger.for_menus(page)
        await tagger.tag("nav")
        await page.goto("https://example.com/")

        assert await page.count('[data-menu-id="menu-1"]') == 0

        tagger.forget()
        retagged = await tagger.tag("nav")
        assert [t.element_id for t in retagged] == ["menu-1"]
        assert retagged[0].newly_tagged
