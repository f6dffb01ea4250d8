"""Toggle discoverer: controls outside menus that may reveal hidden menus."""

from dataclasses import dataclass
from typing import Any, Optional

import structlog

from navaudit.browser.driver import ElementRef, PageClosedError, PageDriver, bounded
from navaudit.config import DEFAULT_SITE_CONFIG, SiteConfig
from navaudit.menu.models import (
    AriaSnapshot,
    ControlledMenu,
    ExcludedToggle,
    IconType,
    NavInfo,
    ToggleFingerprint,
    ToggleInfo,
    ToggleVisibility,
    ViewportProfile,
)
from navaudit.menu.rules import Rule, RuleList, Verdict, has_token
from navaudit.menu.tagger import MENU_ID_ATTRIBUTE, ElementTagger, TaggedElement
from navaudit.menu.viewport import ViewportProfiler
from navaudit.menu.visibility import VisibilityOracle

logger = structlog.get_logger()

ARIA_TOGGLE_SELECTORS = (
    "button[aria-expanded]",
    "button[aria-controls]",
    '[role="button"][aria-expanded]',
    '[role="button"][aria-controls]',
    "a[aria-expanded]",
    "a[aria-controls]",
)

HAMBURGER_SELECTORS = (
    ".hamburger",
    ".menu-toggle",
    ".navbar-toggle",
    ".menu-button",
    ".mobile-menu-toggle",
    'button[aria-label="Menu"]',
    '[aria-label="Toggle menu"]',
    ".menu-icon",
    ".nav-toggle",
    ".toggle-menu",
)

# Toggles carrying these classes are expected to be hidden on desktop
MOBILE_ONLY_TOKENS = ("mobile", "menu-toggle", "hamburger", "menu--tablet")


# =============================================================================
# Classification rules
# =============================================================================

@dataclass
class IconContext:
    classes: list[str]
    icon_classes: list[str]


ICON_RULES: RuleList[IconContext, IconType] = RuleList(
    "icon_type",
    [
        Rule("own_hamburger_class", lambda c: has_token(c.classes, "hamburger", "burger"), IconType.HAMBURGER),
        Rule("own_arrow_class", lambda c: has_token(c.classes, "arrow", "caret", "chevron"), IconType.ARROW),
        Rule("own_plus_minus_class", lambda c: has_token(c.classes, "plus", "minus"), IconType.PLUS_MINUS),
        Rule("icon_bars_class", lambda c: has_token(c.icon_classes, "bars", "hamburger", "burger"), IconType.HAMBURGER),
        Rule("icon_arrow_class", lambda c: has_token(c.icon_classes, "arrow", "caret", "chevron"), IconType.ARROW),
        Rule("icon_plus_minus_class", lambda c: has_token(c.icon_classes, "plus", "minus"), IconType.PLUS_MINUS),
    ],
    default=IconType.UNKNOWN,
)


@dataclass
class ToggleVisibilityContext:
    profile: ViewportProfile
    exists: bool
    verdict: Verdict[bool]
    mobile_only: bool


TOGGLE_VISIBILITY_RULES: RuleList[ToggleVisibilityContext, ToggleVisibility] = RuleList(
    "toggle_visibility",
    [
        Rule("absent", lambda c: not c.exists, ToggleVisibility.ABSENT),
        Rule("visible", lambda c: c.verdict.result, ToggleVisibility.VISIBLE),
        Rule(
            "mobile_only_on_desktop",
            lambda c: c.mobile_only and c.profile == ViewportProfile.DESKTOP,
            ToggleVisibility.RESPONSIVE_HIDDEN,
        ),
        Rule("zero_size", lambda c: c.verdict.rule == "zero_size", ToggleVisibility.ZERO_SIZE),
    ],
    default=ToggleVisibility.HIDDEN,
)


def classify_icon(snapshot: dict[str, Any]) -> IconType:
    return ICON_RULES.decide(
        IconContext(
            classes=list(snapshot.get("classes") or []),
            icon_classes=list(snapshot.get("icon_classes") or []),
        )
    )


def toggle_name(snapshot: dict[str, Any], ordinal: int) -> str:
    attributes = snapshot.get("attributes") or {}
    for candidate in (attributes.get("aria-label"), snapshot.get("text"), snapshot.get("id")):
        if candidate and str(candidate).strip():
            return " ".join(str(candidate).split())[:80]
    return f"Toggle {ordinal}"


def build_toggle(tagged: TaggedElement, snapshot: dict[str, Any], ordinal: int) -> ToggleFingerprint:
    classes = [c for c in snapshot.get("classes") or [] if c]
    return ToggleFingerprint(
        toggle_id=tagged.element_id,
        name=toggle_name(snapshot, ordinal),
        selector=tagged.selector,
        tag=str(snapshot.get("tag") or "").lower(),
        element_id=snapshot.get("id") or None,
        classes=classes,
        text=" ".join(str(snapshot.get("text") or "").split()),
        icon_type=classify_icon(snapshot),
        parent_id=snapshot.get("parent_id") or None,
        parent_class=snapshot.get("parent_class") or None,
        mobile_only=has_token(classes, *MOBILE_ONLY_TOKENS),
        aria=AriaSnapshot.from_attributes(snapshot.get("attributes") or {}),
    )


class ToggleDiscoverer:
    """
    Finds toggle candidates that lie outside every tagged menu.

    A candidate survives when its aria-controls (if any) resolves to a known
    menu and it is visible in at least one viewport pass. Survivors are
    deduplicated by composite signature.
    """

    def __init__(
        self,
        driver: PageDriver,
        oracle: VisibilityOracle,
        profiler: ViewportProfiler,
        site_config: Optional[SiteConfig] = None,
        tagger: Optional[ElementTagger] = None,
        timeout_ms: int = 1000,
    ):
        self.driver = driver
        self.oracle = oracle
        self.profiler = profiler
        self.site_config = site_config or DEFAULT_SITE_CONFIG
        self.tagger = tagger or ElementTagger.for_toggles(driver)
        self.timeout_ms = timeout_ms
        self.log = logger.bind(component="toggle_discoverer")

    @property
    def candidate_selector(self) -> str:
        selectors = (
            list(ARIA_TOGGLE_SELECTORS)
            + list(HAMBURGER_SELECTORS)
            + list(self.site_config.selectors.extra_toggle_candidates)
        )
        return ", ".join(selectors)

    async def discover_toggles(
        self,
        known_menu_ids: set[str],
        nav_info: Optional[NavInfo] = None,
    ) -> ToggleInfo:
        """Find, filter, measure and deduplicate toggles."""
        tagged = await self.tagger.tag(
            self.candidate_selector,
            exclude_within=MENU_ID_ATTRIBUTE,
            exclude_nested=False,
        )
        info = ToggleInfo(total=len(tagged))
        candidates: list[ToggleFingerprint] = []

        for ordinal, element in enumerate(tagged, start=1):
            try:
                snapshot = await bounded(
                    self.driver.snapshot_toggle(element.ref, MENU_ID_ATTRIBUTE),
                    self.timeout_ms,
                    step="snapshot_toggle",
                )
            except PageClosedError:
                raise
            except Exception as e:
                self.log.warning("Toggle snapshot failed", toggle_id=element.element_id, error=str(e))
                info.excluded.append(ExcludedToggle(element.element_id, f"snapshot failed: {e}"))
                continue
            if not snapshot:
                info.excluded.append(ExcludedToggle(element.element_id, "structurally absent"))
                continue

            toggle = build_toggle(element, snapshot, ordinal)
            reason = self._binding_rejection(toggle, snapshot, known_menu_ids)
            if reason:
                info.excluded.append(ExcludedToggle(toggle.toggle_id, reason))
                self.log.debug("Toggle rejected", toggle_id=toggle.toggle_id, reason=reason)
                continue

            declared_menu = snapshot.get("controls_menu_id")
            if declared_menu:
                toggle.controlled_menu = ControlledMenu(menu_id=declared_menu, resolved_by="aria-controls")
            candidates.append(toggle)

        for profile in self.profiler.profiles:
            async with self.profiler.at(profile):
                for toggle in candidates:
                    await self.measure(toggle, profile)

        seen: dict[tuple, str] = {}
        for toggle in candidates:
            if not toggle.visible_profiles:
                states = ", ".join(f"{p.value}={v.value}" for p, v in toggle.visibility.items())
                info.excluded.append(ExcludedToggle(toggle.toggle_id, f"never visible ({states})"))
                continue
            signature = toggle.signature
            if signature in seen:
                info.duplicates += 1
                info.excluded.append(ExcludedToggle(toggle.toggle_id, f"duplicate of {seen[signature]}"))
                continue
            seen[signature] = toggle.toggle_id
            if nav_info is not None and toggle.controlled_menu:
                self.resolve_controlled_menu(toggle, nav_info)
            info.toggle_details.append(toggle)

        self.log.info(
            "Toggle discovery complete",
            candidates=info.total,
            retained=len(info.toggle_details),
            duplicates=info.duplicates,
        )
        return info

    def _binding_rejection(
        self,
        toggle: ToggleFingerprint,
        snapshot: dict[str, Any],
        known_menu_ids: set[str],
    ) -> Optional[str]:
        """Reason to reject a declared aria-controls binding, or None."""
        controls = (toggle.aria.controls or "").strip()
        if not controls:
            return None
        if not snapshot.get("controls_exists"):
            return f"aria-controls={controls!r} points to a missing element"
        menu_id = snapshot.get("controls_menu_id")
        if menu_id not in known_menu_ids:
            return f"aria-controls={controls!r} does not resolve to a known menu"
        return None

    async def measure(self, toggle: ToggleFingerprint, profile: ViewportProfile) -> ToggleVisibility:
        ref = ElementRef(toggle.selector)
        exists = await self._exists(ref)
        verdict = await self.oracle.explain(ref) if exists else Verdict(False, "absent")
        state = TOGGLE_VISIBILITY_RULES.decide(
            ToggleVisibilityContext(profile, exists, verdict, toggle.mobile_only)
        )
        toggle.visibility[profile] = state
        if exists:
            try:
                snapshot = await bounded(
                    self.driver.snapshot_toggle(ref, MENU_ID_ATTRIBUTE), self.timeout_ms, step="snapshot_toggle"
                )
            except PageClosedError:
                raise
            except Exception:
                snapshot = None
            toggle.display[profile] = (snapshot or {}).get("display")
        if state == ToggleVisibility.RESPONSIVE_HIDDEN:
            toggle.notes.append(f"{profile.value}: hidden by responsive styles (mobile-only toggle)")
        return state

    async def _exists(self, ref: ElementRef) -> bool:
        try:
            return await bounded(self.driver.element_exists(ref), self.timeout_ms, step="exists")
        except PageClosedError:
            raise
        except Exception:
            return False

    def resolve_controlled_menu(self, toggle: ToggleFingerprint, nav_info: NavInfo) -> None:
        """Fill in type and visibility of the declared controlled menu."""
        controlled = toggle.controlled_menu
        fingerprint = nav_info.get(controlled.menu_id) if controlled else None
        if not controlled or fingerprint is None:
            return
        for profile, view in fingerprint.views.items():
            controlled.menu_types[profile] = view.menu_type
            controlled.visibility[profile] = view.visibility
