"""Menu discoverer: find navigation containers, fingerprint and group them."""

from dataclasses import dataclass
from typing import Any, Optional

import structlog

from navaudit.browser.driver import PageClosedError, PageDriver, bounded
from navaudit.config import DEFAULT_SITE_CONFIG, SiteConfig
from navaudit.menu.models import (
    AriaSnapshot,
    MenuFingerprint,
    MenuGroup,
    MenuType,
    NavInfo,
    StructuralSignature,
    ViewportProfile,
)
from navaudit.menu.rules import Rule, RuleList
from navaudit.menu.tagger import MENU_ID_ATTRIBUTE, ElementTagger, TaggedElement

logger = structlog.get_logger()

MENU_CANDIDATE_SELECTORS = (
    "nav",
    '[role="navigation"]',
    '[aria-label*="menu" i]',
    ".menu",
    ".nav",
    ".navigation",
)

DECLARED_TYPE_ATTRIBUTES = {
    ViewportProfile.DESKTOP: "data-desktop-menu-type",
    ViewportProfile.MOBILE: "data-mobile-menu-type",
}


class DiscoveryError(Exception):
    """A candidate could not be fingerprinted."""


@dataclass
class MenuTypeContext:
    """Signals the heuristic menu-type rules look at."""
    has_dropdowns: bool = False
    has_popup_controls: bool = False


MENU_TYPE_RULES: RuleList[MenuTypeContext, MenuType] = RuleList(
    "menu_type",
    [
        Rule("dropdown_containers", lambda c: c.has_dropdowns, MenuType.DROPDOWN),
        Rule("popup_controls", lambda c: c.has_popup_controls, MenuType.DROPDOWN),
    ],
    default=MenuType.SIMPLE,
)


def classify_menu_type(
    snapshot: dict[str, Any],
    declared: Optional[MenuType] = None,
) -> tuple[MenuType, bool]:
    """Menu type for one viewport, and whether it came from a declarative hint.

    Heuristics never produce a toggle-based type: that needs activation evidence.
    """
    if declared is not None:
        return declared, True
    context = MenuTypeContext(
        has_dropdowns=bool(snapshot.get("has_dropdowns")),
        has_popup_controls=bool(snapshot.get("has_popup_controls")),
    )
    return MENU_TYPE_RULES.decide(context), False


def menu_name(snapshot: dict[str, Any], ordinal: int) -> str:
    attributes = snapshot.get("attributes") or {}
    for candidate in (
        attributes.get("aria-label"),
        snapshot.get("labelledby_text"),
        snapshot.get("id"),
    ):
        if candidate and str(candidate).strip():
            return str(candidate).strip()
    return f"Menu {ordinal}"


def build_signature(snapshot: dict[str, Any]) -> StructuralSignature:
    return StructuralSignature(
        tag=str(snapshot.get("tag") or "").lower(),
        element_id=snapshot.get("id") or None,
        classes=frozenset(c for c in snapshot.get("classes") or [] if c),
        child_tags=tuple(str(t).lower() for t in snapshot.get("child_tags") or []),
        link_texts=tuple(" ".join(str(t).split()) for t in snapshot.get("link_texts") or []),
    )


def build_fingerprint(tagged: TaggedElement, snapshot: dict[str, Any], ordinal: int) -> MenuFingerprint:
    """Turn a raw menu snapshot into a fingerprint.

    Raises:
        DiscoveryError: When the snapshot is missing (element detached)
    """
    if not snapshot:
        raise DiscoveryError(f"{tagged.element_id} disappeared before it could be read")

    attributes = snapshot.get("attributes") or {}
    declared = {
        profile: MenuType.parse(attributes.get(attribute))
        for profile, attribute in DECLARED_TYPE_ATTRIBUTES.items()
    }
    fingerprint = MenuFingerprint(
        menu_id=tagged.element_id,
        index=tagged.index,
        name=menu_name(snapshot, ordinal),
        selector=tagged.selector,
        signature=build_signature(snapshot),
        link_count=int(snapshot.get("link_count") or 0),
        children_count=int(snapshot.get("children_count") or 0),
        parent_id=snapshot.get("parent_id") or None,
        parent_class=snapshot.get("parent_class") or None,
        has_dropdowns=bool(snapshot.get("has_dropdowns")),
        in_footer=bool(snapshot.get("in_footer")),
        aria=AriaSnapshot.from_attributes(attributes),
        declared_types=declared,
    )
    for profile, attribute in DECLARED_TYPE_ATTRIBUTES.items():
        raw = attributes.get(attribute)
        if raw and declared[profile] is None:
            fingerprint.notes.append(f"Ignored unknown {attribute}={raw!r}")
    return fingerprint


def group_fingerprints(fingerprints: list[MenuFingerprint]) -> list[MenuGroup]:
    """Partition fingerprints by structural signature.

    Every fingerprint lands in exactly one group; the first one seen represents
    the group and lends it its menu id.
    """
    groups: dict[tuple, MenuGroup] = {}
    for fingerprint in fingerprints:
        key = fingerprint.signature.key
        group = groups.get(key)
        if group is None:
            groups[key] = MenuGroup(
                menu_id=fingerprint.menu_id,
                representative=fingerprint,
                members=[fingerprint],
            )
        else:
            group.members.append(fingerprint)
    return list(groups.values())


class MenuDiscoverer:
    """
    Finds candidate navigation elements on an unknown page.

    Candidates nested inside another candidate (or inside an already tagged
    menu) are skipped so a submenu is never counted as a top-level menu.
    """

    def __init__(
        self,
        driver: PageDriver,
        site_config: Optional[SiteConfig] = None,
        tagger: Optional[ElementTagger] = None,
        timeout_ms: int = 1000,
    ):
        self.driver = driver
        self.site_config = site_config or DEFAULT_SITE_CONFIG
        self.tagger = tagger or ElementTagger.for_menus(driver)
        self.timeout_ms = timeout_ms
        self.log = logger.bind(component="menu_discoverer")

    @property
    def candidate_selector(self) -> str:
        selectors = list(MENU_CANDIDATE_SELECTORS) + list(self.site_config.selectors.extra_menu_candidates)
        return ", ".join(selectors)

    @property
    def dropdown_selector(self) -> str:
        return self.site_config.dropdown_container_selector

    async def discover(self) -> NavInfo:
        """Tag, fingerprint and group every navigation candidate on the page."""
        tagged = await self.tagger.tag(self.candidate_selector)
        nav_info = NavInfo()

        for ordinal, element in enumerate(tagged, start=1):
            try:
                snapshot = await bounded(
                    self.driver.snapshot_menu(element.ref, self.dropdown_selector),
                    self.timeout_ms,
                    step="snapshot_menu",
                )
                fingerprint = build_fingerprint(element, snapshot, ordinal)
            except PageClosedError:
                raise
            except Exception as e:
                note = f"Dropped {element.element_id}: {e}"
                nav_info.dropped.append(note)
                self.log.warning("Menu candidate dropped", menu_id=element.element_id, error=str(e))
                continue

            if fingerprint.in_footer and not self.site_config.settings.check_footer_visibility:
                nav_info.dropped.append(f"Skipped footer menu {fingerprint.menu_id}")
                continue

            nav_info.fingerprints.append(fingerprint)
            self.log.debug(
                "Menu candidate",
                menu_id=fingerprint.menu_id,
                name=fingerprint.name,
                links=fingerprint.link_count,
            )

        nav_info.total = len(nav_info.fingerprints)
        nav_info.groups = group_fingerprints(nav_info.fingerprints)
        self.log.info(
            "Menu discovery complete",
            candidates=len(tagged),
            menus=nav_info.total,
            unique=len(nav_info.groups),
            dropped=len(nav_info.dropped),
        )
        return nav_info

    async def retag(self, nav_info: NavInfo) -> bool:
        """Re-apply menu ids after the page was reloaded.

        Ids follow document order, so an unchanged page gets the same ids back.
        Returns False when the ids no longer line up with ``nav_info``.
        """
        self.tagger.forget()
        tagged = await self.tagger.tag(self.candidate_selector)
        ids = {element.element_id for element in tagged}
        consistent = nav_info.menu_ids <= ids
        if not consistent:
            self.log.warning("Menu ids changed after reload", missing=sorted(nav_info.menu_ids - ids))
        return consistent
