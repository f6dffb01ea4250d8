"""Aggregation of menu audit results into counts and WCAG-style criteria.

The criteria are advisory heuristics. They approximate WCAG 2.1.1 Keyboard,
4.1.2 Name, Role, Value and 3.2.3 Consistent Navigation for navigation
menus only; they do not certify conformance.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import structlog

from navaudit.menu.models import (
    DropdownAccessibility,
    MenuFingerprint,
    MenuGroup,
    NavInfo,
    ProbeResult,
    ViewportProfile,
)

logger = structlog.get_logger()


class WCAGLevel(str, Enum):
    """WCAG conformance levels."""
    A = "A"
    AA = "AA"
    AAA = "AAA"


class WCAGPrinciple(str, Enum):
    """WCAG principles (POUR)."""
    PERCEIVABLE = "perceivable"
    OPERABLE = "operable"
    UNDERSTANDABLE = "understandable"
    ROBUST = "robust"


@dataclass
class CriterionResult:
    """Verdict for one criterion."""
    criterion: str  # e.g., "2.1.1"
    name: str
    level: WCAGLevel
    principle: WCAGPrinciple
    passed: bool
    details: str
    advisory: bool = True

    def to_dict(self) -> dict:
        return {
            "criterion": self.criterion,
            "name": self.name,
            "level": self.level.value,
            "principle": self.principle.value,
            "passed": self.passed,
            "details": self.details,
            "advisory": self.advisory,
        }


@dataclass
class DropdownCounts:
    """Dropdown controls by outcome."""
    keyboard_aria: int = 0
    keyboard_functional: int = 0
    mouse_only: int = 0
    inaccessible: int = 0
    skipped: int = 0

    @property
    def keyboard_accessible(self) -> int:
        return self.keyboard_aria + self.keyboard_functional

    def add(self, accessibility: DropdownAccessibility) -> None:
        name = accessibility.value
        setattr(self, name, getattr(self, name) + 1)

    def to_dict(self) -> dict:
        return {
            "keyboardAccessible": self.keyboard_accessible,
            "keyboardAria": self.keyboard_aria,
            "keyboardFunctional": self.keyboard_functional,
            "mouseOnly": self.mouse_only,
            "inaccessible": self.inaccessible,
            "skipped": self.skipped,
        }


@dataclass
class ViewportTotals:
    """Item and dropdown counts for one viewport, over unique menus."""
    menus_visible: int = 0
    menus_hidden: int = 0
    menus_unknown: int = 0
    menus_revealed: int = 0  # hidden menus counted while a toggle held them open
    total_items: int = 0
    visible_items: int = 0
    focusable_items: int = 0
    menus_with_keyboard_dropdowns: int = 0
    menus_with_mouse_only_dropdowns: int = 0
    dropdowns: DropdownCounts = field(default_factory=DropdownCounts)

    def to_dict(self) -> dict:
        return {
            "menusVisible": self.menus_visible,
            "menusHidden": self.menus_hidden,
            "menusUnknown": self.menus_unknown,
            "menusRevealed": self.menus_revealed,
            "totalItems": self.total_items,
            "visibleItems": self.visible_items,
            "focusableItems": self.focusable_items,
            "menusWithKeyboardDropdowns": self.menus_with_keyboard_dropdowns,
            "menusWithMouseOnlyDropdowns": self.menus_with_mouse_only_dropdowns,
            "dropdowns": self.dropdowns.to_dict(),
        }


@dataclass
class MenuVerdict:
    """Keyboard operability of one menu in one viewport."""
    menu_id: str
    name: str
    profile: ViewportProfile
    keyboard_operable: Optional[bool]
    reason: str

    def to_dict(self) -> dict:
        return {
            "menuId": self.menu_id,
            "name": self.name,
            "viewport": self.profile.value,
            "keyboardOperable": self.keyboard_operable,
            "reason": self.reason,
        }


@dataclass
class AuditSummary:
    """Aggregated counts for one page."""
    total_menus: int = 0
    total_candidates: int = 0
    menus_with_accessible_name: int = 0
    toggle_based_menus: int = 0
    hidden_menus: int = 0
    viewports: dict[ViewportProfile, ViewportTotals] = field(default_factory=dict)
    menu_verdicts: list[MenuVerdict] = field(default_factory=list)
    criteria: list[CriterionResult] = field(default_factory=list)

    def totals(self, profile: ViewportProfile) -> ViewportTotals:
        if profile not in self.viewports:
            self.viewports[profile] = ViewportTotals()
        return self.viewports[profile]

    @property
    def keyboard_accessible_dropdowns(self) -> int:
        return sum(t.dropdowns.keyboard_accessible for t in self.viewports.values())

    @property
    def mouse_only_dropdowns(self) -> int:
        return sum(t.dropdowns.mouse_only for t in self.viewports.values())

    @property
    def passed(self) -> bool:
        return all(c.passed for c in self.criteria)

    def criterion(self, criterion_id: str) -> Optional[CriterionResult]:
        for result in self.criteria:
            if result.criterion == criterion_id:
                return result
        return None

    def to_dict(self) -> dict:
        return {
            "totalMenus": self.total_menus,
            "totalCandidates": self.total_candidates,
            "menusWithAccessibleName": self.menus_with_accessible_name,
            "toggleBasedMenus": self.toggle_based_menus,
            "hiddenMenus": self.hidden_menus,
            "keyboardAccessibleDropdowns": self.keyboard_accessible_dropdowns,
            "mouseOnlyDropdowns": self.mouse_only_dropdowns,
            "viewports": {p.value: t.to_dict() for p, t in self.viewports.items()},
            "menuVerdicts": [v.to_dict() for v in self.menu_verdicts],
            "criteria": [c.to_dict() for c in self.criteria],
            "passed": self.passed,
        }


def member_for(group: MenuGroup, profile: ViewportProfile) -> MenuFingerprint:
    """The member that stands for the group in a viewport: first visible one, else the representative."""
    for member in group.members:
        view = member.views.get(profile)
        if view is not None and view.visibility:
            return member
    return group.representative


def menu_verdict(fingerprint: MenuFingerprint, profile: ViewportProfile) -> MenuVerdict:
    """Keyboard operability of a menu: every visible item focusable and no mouse-only dropdown."""
    view = fingerprint.views.get(profile)

    def verdict(operable: Optional[bool], reason: str) -> MenuVerdict:
        return MenuVerdict(fingerprint.menu_id, fingerprint.name, profile, operable, reason)

    if view is None or view.focusable_items is None:
        return verdict(None, "not probed")
    if view.has_mouse_only_dropdowns:
        return verdict(False, "dropdown opens with mouse only")
    expected = view.measured_items
    if view.focusable_items != expected:
        return verdict(False, f"{view.focusable_items} of {expected} visible items focusable")
    return verdict(True, "all visible items focusable")


class MenuReporter:
    """Folds per-menu, per-viewport results into an ``AuditSummary``."""

    def __init__(self, profiles: Optional[list[ViewportProfile]] = None):
        self.profiles = profiles or list(ViewportProfile)
        self.log = logger.bind(component="menu_reporter")

    def summarize(self, nav_info: NavInfo, probes: Optional[list[ProbeResult]] = None) -> AuditSummary:
        summary = AuditSummary(
            total_menus=len(nav_info.groups),
            total_candidates=nav_info.total,
        )

        for group in nav_info.groups:
            if any(m.aria.has_accessible_name for m in group.members):
                summary.menus_with_accessible_name += 1
            if any(v.menu_type.is_toggle_based for m in group.members for v in m.views.values()):
                summary.toggle_based_menus += 1
            if all(m.hidden_in_all_viewports for m in group.members):
                summary.hidden_menus += 1

            for profile in self.profiles:
                totals = summary.totals(profile)
                member = member_for(group, profile)
                view = member.views.get(profile)
                if view is None or view.visibility is None:
                    totals.menus_unknown += 1
                    continue
                if view.visibility:
                    totals.menus_visible += 1
                else:
                    totals.menus_hidden += 1
                    if view.revealed_items is not None:
                        totals.menus_revealed += 1
                totals.total_items += view.total_items
                totals.visible_items += view.measured_items
                totals.focusable_items += view.focusable_items or 0
                totals.menus_with_keyboard_dropdowns += int(view.has_keyboard_dropdowns)
                totals.menus_with_mouse_only_dropdowns += int(view.has_mouse_only_dropdowns)
                if view.focusable_items is not None:
                    summary.menu_verdicts.append(menu_verdict(member, profile))

        for probe in probes or []:
            totals = summary.totals(probe.profile)
            for dropdown in probe.dropdowns:
                totals.dropdowns.add(dropdown.accessibility)

        summary.criteria = self.evaluate_criteria(summary)
        self.log.info(
            "Audit summary",
            menus=summary.total_menus,
            named=summary.menus_with_accessible_name,
            keyboard_dropdowns=summary.keyboard_accessible_dropdowns,
            mouse_only_dropdowns=summary.mouse_only_dropdowns,
            passed=summary.passed,
        )
        return summary

    def evaluate_criteria(self, summary: AuditSummary) -> list[CriterionResult]:
        return [
            self._keyboard(summary),
            self._name_role(summary),
            self._consistent_navigation(summary),
        ]

    def _keyboard(self, summary: AuditSummary) -> CriterionResult:
        failing = [v for v in summary.menu_verdicts if v.keyboard_operable is False]
        passed = not failing and summary.mouse_only_dropdowns == 0
        if passed:
            details = "All visible menu items are keyboard focusable"
        else:
            problems = [f"{v.menu_id} ({v.profile.value}): {v.reason}" for v in failing]
            details = "; ".join(problems) or "Mouse-only dropdowns present"
        return CriterionResult(
            criterion="2.1.1",
            name="Keyboard",
            level=WCAGLevel.A,
            principle=WCAGPrinciple.OPERABLE,
            passed=passed,
            details=details,
        )

    def _name_role(self, summary: AuditSummary) -> CriterionResult:
        named = summary.menus_with_accessible_name
        return CriterionResult(
            criterion="4.1.2",
            name="Name, Role, Value",
            level=WCAGLevel.A,
            principle=WCAGPrinciple.ROBUST,
            passed=named > 0,
            details=f"{named} of {summary.total_menus} menus expose an accessible name or navigation role",
        )

    def _consistent_navigation(self, summary: AuditSummary) -> CriterionResult:
        named = summary.menus_with_accessible_name
        return CriterionResult(
            criterion="3.2.3",
            name="Consistent Navigation",
            level=WCAGLevel.AA,
            principle=WCAGPrinciple.UNDERSTANDABLE,
            passed=named > 0,
            details=(
                "Identifiable navigation landmark present"
                if named
                else "No navigation menu exposes a name or navigation role"
            ),
        )
