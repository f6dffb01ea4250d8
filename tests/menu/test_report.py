"""Tests for aggregation and the advisory criteria."""

import pytest


def fingerprint(menu_id, label=None, **views):
    """Build a fingerprint with one MenuView per viewport keyword (desktop=..., mobile=...)."""
    from navaudit.menu.models import AriaSnapshot, MenuFingerprint, MenuView, StructuralSignature, ViewportProfile

    fp = MenuFingerprint(
        menu_id=menu_id,
        index=int(menu_id.split("-")[1]) - 1,
        name=label or menu_id,
        selector=f'[data-menu-id="{menu_id}"]',
        signature=StructuralSignature("nav", None, frozenset(), ("ul",), ("A",)),
        aria=AriaSnapshot(label=label),
    )
    for profile, view in views.items():
        fp.views[ViewportProfile(profile)] = view if isinstance(view, MenuView) else MenuView(**view)
    return fp


def nav_info(*groups):
    from navaudit.menu.models import MenuGroup, NavInfo

    info = NavInfo()
    for members in groups:
        info.groups.append(MenuGroup(members[0].menu_id, members[0], list(members)))
        info.fingerprints.extend(members)
    info.total = len(info.fingerprints)
    return info


class TestMemberFor:
    """Tests for choosing the group member that stands for a viewport."""

    def test_first_visible_member_wins(self):
        """The first member visible in a viewport stands for the group."""
        from navaudit.menu.models import MenuGroup, ViewportProfile
        from navaudit.menu.report import member_for

        desktop_only = fingerprint("menu-1", desktop={"visibility": True}, mobile={"visibility": False})
        mobile_only = fingerprint("menu-2", desktop={"visibility": False}, mobile={"visibility": True})
        group = MenuGroup("menu-1", desktop_only, [desktop_only, mobile_only])

        assert member_for(group, ViewportProfile.DESKTOP) is desktop_only
        assert member_for(group, ViewportProfile.MOBILE) is mobile_only

    def test_falls_back_to_representative(self):
        """Without a visible member the representative stands for the group."""
        from navaudit.menu.models import MenuGroup, ViewportProfile
        from navaudit.menu.report import member_for

        first = fingerprint("menu-1", desktop={"visibility": False})
        second = fingerprint("menu-2", desktop={"visibility": None})
        group = MenuGroup("menu-1", first, [first, second])

        assert member_for(group, ViewportProfile.DESKTOP) is first


class TestMenuVerdict:
    """Tests for per-menu keyboard operability."""

    def test_not_probed(self):
        """A menu without a focusable count is not probed."""
        from navaudit.menu.models import ViewportProfile
        from navaudit.menu.report import menu_verdict

        verdict = menu_verdict(fingerprint("menu-1", desktop={"visibility": True}), ViewportProfile.DESKTOP)

        assert verdict.keyboard_operable is None
        assert verdict.reason == "not probed"

    def test_all_items_focusable(self):
        """A menu whose visible items are all focusable is operable."""
        from navaudit.menu.models import ViewportProfile
        from navaudit.menu.report import menu_verdict

        fp = fingerprint("menu-1", desktop={"visibility": True, "visible_items": 3, "focusable_items": 3})
        verdict = menu_verdict(fp, ViewportProfile.DESKTOP)

        assert verdict.keyboard_operable is True
        assert verdict.to_dict()["viewport"] == "desktop"

    def test_mismatch(self):
        """Fewer focusable than visible items is reported with both counts."""
        from navaudit.menu.models import ViewportProfile
        from navaudit.menu.report import menu_verdict

        fp = fingerprint("menu-1", desktop={"visibility": True, "visible_items": 4, "focusable_items": 2})
        verdict = menu_verdict(fp, ViewportProfile.DESKTOP)

        assert verdict.keyboard_operable is False
        assert verdict.reason == "2 of 4 visible items focusable"

    def test_mouse_only_dropdown_fails(self):
        """A mouse-only dropdown makes the menu inoperable."""
        from navaudit.menu.models import ViewportProfile
        from navaudit.menu.report import menu_verdict

        fp = fingerprint(
            "menu-1",
            desktop={"visibility": True, "visible_items": 2, "focusable_items": 2, "has_mouse_only_dropdowns": True},
        )
        verdict = menu_verdict(fp, ViewportProfile.DESKTOP)

        assert verdict.keyboard_operable is False
        assert "mouse" in verdict.reason

    def test_hidden_menu_compared_against_revealed_items(self):
        """Hidden menus are compared against their revealed items."""
        from navaudit.menu.models import ViewportProfile
        from navaudit.menu.report import menu_verdict

        fp = fingerprint(
            "menu-1",
            mobile={"visibility": False, "visible_items": 0, "revealed_items": 5, "focusable_items": 5},
        )

        assert menu_verdict(fp, ViewportProfile.MOBILE).keyboard_operable is True


class TestDropdownCounts:
    """Tests for DropdownCounts."""

    def test_add(self):
        """Outcomes are counted in their own buckets."""
        from navaudit.menu.models import DropdownAccessibility
        from navaudit.menu.report import DropdownCounts

        counts = DropdownCounts()
        counts.add(DropdownAccessibility.KEYBOARD_ARIA)
        counts.add(DropdownAccessibility.KEYBOARD_FUNCTIONAL)
        counts.add(DropdownAccessibility.MOUSE_ONLY)
        counts.add(DropdownAccessibility.SKIPPED)

        assert counts.keyboard_accessible == 2
        assert counts.mouse_only == 1
        assert counts.to_dict()["skipped"] == 1


class TestMenuReporter:
    """Tests for MenuReporter.summarize."""

    def test_counts_unique_menus_once(self):
        """Responsive duplicates are counted once."""
        from navaudit.menu.models import ViewportProfile
        from navaudit.menu.report import MenuReporter

        desktop = fingerprint(
            "menu-1",
            label="Main",
            desktop={"visibility": True, "total_items": 3, "visible_items": 3, "focusable_items": 3},
            mobile={"visibility": False, "total_items": 3},
        )
        mobile = fingerprint(
            "menu-2",
            mobile={"visibility": True, "total_items": 3, "visible_items": 3, "focusable_items": 3},
            desktop={"visibility": False, "total_items": 3},
        )
        summary = MenuReporter().summarize(nav_info([desktop, mobile]))

        assert summary.total_menus == 1
        assert summary.total_candidates == 2
        assert summary.menus_with_accessible_name == 1
        assert summary.hidden_menus == 0
        for profile in ViewportProfile:
            totals = summary.totals(profile)
            assert totals.menus_visible == 1
            assert totals.visible_items == 3
            assert totals.focusable_items == 3
        assert [v.menu_id for v in summary.menu_verdicts] == ["menu-1", "menu-2"]
        assert summary.passed

    def test_unknown_visibility_counted_separately(self):
        """Menus of unknown visibility are neither visible nor hidden."""
        from navaudit.menu.models import ViewportProfile
        from navaudit.menu.report import MenuReporter

        fp = fingerprint("menu-1", label="Main", desktop={"visibility": None})
        summary = MenuReporter([ViewportProfile.DESKTOP]).summarize(nav_info([fp]))

        totals = summary.totals(ViewportProfile.DESKTOP)
        assert totals.menus_unknown == 1
        assert totals.menus_hidden == 0
        assert list(summary.viewports) == [ViewportProfile.DESKTOP]

    def test_toggle_based_and_hidden_menus(self):
        """Toggle-based and hidden menus are counted."""
        from navaudit.menu.models import MenuType, MenuView
        from navaudit.menu.report import MenuReporter

        fp = fingerprint(
            "menu-1",
            desktop=MenuView(menu_type=MenuType.TOGGLE_SIMPLE, visibility=False),
            mobile=MenuView(menu_type=MenuType.TOGGLE_SIMPLE, visibility=False),
        )
        summary = MenuReporter().summarize(nav_info([fp]))

        assert summary.toggle_based_menus == 1
        assert summary.hidden_menus == 1

    def test_revealed_menu_totals_use_revealed_items(self):
        """Totals for a toggle-revealed menu count items in the state they were probed."""
        from navaudit.menu.models import ViewportProfile
        from navaudit.menu.report import MenuReporter

        fp = fingerprint(
            "menu-1",
            label="Site",
            desktop={"visibility": False, "total_items": 5, "visible_items": 0, "revealed_items": 5, "focusable_items": 5},
            mobile={"visibility": False, "total_items": 5},
        )
        summary = MenuReporter().summarize(nav_info([fp]))

        desktop = summary.totals(ViewportProfile.DESKTOP)
        assert desktop.menus_hidden == 1
        assert desktop.menus_revealed == 1
        assert desktop.visible_items == 5
        assert desktop.focusable_items == 5
        mobile = summary.totals(ViewportProfile.MOBILE)
        assert mobile.menus_revealed == 0
        assert mobile.visible_items == 0
        assert summary.criterion("2.1.1").passed

    def test_dropdowns_counted_from_probes(self):
        """Dropdown outcomes are counted from probe results."""
        from navaudit.menu.models import DropdownAccessibility, DropdownProbe, ProbeResult, ViewportProfile
        from navaudit.menu.report import MenuReporter

        fp = fingerprint("menu-1", label="Main", desktop={"visibility": True})
        probe = ProbeResult(
            "menu-1",
            ViewportProfile.DESKTOP,
            dropdowns=[
                DropdownProbe("control-1", "a", DropdownAccessibility.KEYBOARD_ARIA),
                DropdownProbe("control-2", "b", DropdownAccessibility.MOUSE_ONLY),
            ],
        )
        summary = MenuReporter().summarize(nav_info([fp]), [probe])

        assert summary.keyboard_accessible_dropdowns == 1
        assert summary.mouse_only_dropdowns == 1
        assert summary.to_dict()["viewports"]["desktop"]["dropdowns"]["mouseOnly"] == 1


class TestCriteria:
    """Tests for the advisory criteria."""

    def test_keyboard_fails_with_mouse_only_dropdowns(self):
        """Mouse-only dropdowns fail the keyboard criterion."""
        from navaudit.menu.models import DropdownAccessibility, DropdownProbe, ProbeResult, ViewportProfile
        from navaudit.menu.report import MenuReporter

        fp = fingerprint("menu-1", label="Main", desktop={"visibility": True})
        probe = ProbeResult(
            "menu-1",
            ViewportProfile.DESKTOP,
            dropdowns=[DropdownProbe("control-1", "a", DropdownAccessibility.MOUSE_ONLY)],
        )
        summary = MenuReporter().summarize(nav_info([fp]), [probe])

        keyboard = summary.criterion("2.1.1")
        assert keyboard.passed is False
        assert keyboard.details == "Mouse-only dropdowns present"
        assert not summary.passed

    def test_keyboard_failure_lists_menus(self):
        """Keyboard failures list the failing menus."""
        from navaudit.menu.report import MenuReporter

        fp = fingerprint("menu-1", label="Main", desktop={"visibility": True, "visible_items": 3, "focusable_items": 1})
        summary = MenuReporter().summarize(nav_info([fp]))

        assert summary.criterion("2.1.1").details == "menu-1 (desktop): 1 of 3 visible items focusable"

    @pytest.mark.parametrize("label, passed", [("Main", True), (None, False)])
    def test_name_and_consistency_need_a_named_menu(self, label, passed):
        """Name and consistency need at least one named menu."""
        from navaudit.menu.report import MenuReporter

        fp = fingerprint("menu-1", label=label, desktop={"visibility": True})
        summary = MenuReporter().summarize(nav_info([fp]))

        assert summary.criterion("4.1.2").passed is passed
        assert summary.criterion("3.2.3").passed is passed
        assert summary.criterion("1.1.1") is None

    def test_criteria_are_advisory(self):
        """Criteria are advisory and carry their WCAG levels."""
        from navaudit.menu.report import MenuReporter

        summary = MenuReporter().summarize(nav_info([fingerprint("menu-1", label="Main")]))
        data = summary.to_dict()

        assert [c["criterion"] for c in data["criteria"]] == ["2.1.1", "4.1.2", "3.2.3"]
        assert all(c["advisory"] for c in data["criteria"])
        assert data["criteria"][0]["level"] == "A"
        assert data["criteria"][2]["level"] == "AA"
