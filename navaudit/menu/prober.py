"""Interaction prober: keyboard and pointer probing of menus, dropdowns and toggles.

Every probe step is one driver call wrapped in a timeout. A step that fails
counts as "this modality did not work" for the item at hand and probing moves
on; only a closed page aborts the run.
"""

import asyncio
import secrets
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional
from urllib.parse import urldefrag

import structlog

from navaudit.browser.driver import (
    ElementRef,
    NavigationInterruptedError,
    PageClosedError,
    PageDriver,
    bounded,
)
from navaudit.config import DEFAULT_SITE_CONFIG, Settings, SiteConfig, get_settings
from navaudit.menu.models import (
    ControlledMenu,
    DropdownAccessibility,
    DropdownProbe,
    InteractionBehavior,
    MenuFingerprint,
    Modality,
    ProbeResult,
    ToggleActivation,
    ToggleBinding,
    ToggleFingerprint,
    TraversalResult,
    ViewportProfile,
)
from navaudit.menu.tagger import (
    DROPDOWN_ID_ATTRIBUTE,
    VISIT_MARKER_ATTRIBUTE,
    ElementTagger,
    TaggedElement,
)
from navaudit.menu.visibility import VisibilityOracle
from navaudit.utils.logging import AuditLogger

logger = structlog.get_logger()

EXPANDABLE_ROLES = ':is(button, a, [role="button"], [role="menuitem"])'

# Direct children of a list item that make it a dropdown parent
CHILD_DROPDOWN_CONTAINERS = ("ul", "ol", '[role="menu"]')

MAX_ITEMS_PER_COUNT = 50


# =============================================================================
# Navigation guard
# =============================================================================

class NavigationGuard:
    """
    Detects probes that navigate away or open new pages, and restores the page.

    After a restore the page is freshly loaded: every synthetic attribute is
    gone, so ``on_restore`` must re-tag whatever later probes rely on.
    """

    def __init__(
        self,
        driver: PageDriver,
        on_restore: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self.driver = driver
        self.on_restore = on_restore
        self.expected_url: Optional[str] = None
        self.expected_pages = 1
        self.restorations = 0
        self.log = logger.bind(component="navigation_guard")

    async def arm(self) -> None:
        """Record the page state a probe must leave untouched."""
        self.expected_url = await self.driver.current_url()
        self.expected_pages = await self.driver.page_count()

    async def check(self) -> None:
        """
        Raises:
            NavigationInterruptedError: When the URL changed or a page was opened
        """
        if self.expected_url is None:
            return
        url = await self.driver.current_url()
        pages = await self.driver.page_count()
        if urldefrag(url).url != urldefrag(self.expected_url).url or pages > self.expected_pages:
            raise NavigationInterruptedError(self.expected_url, url, max(0, pages - self.expected_pages))

    async def restore(self, error: NavigationInterruptedError) -> None:
        """Close stray pages and navigate back when the URL changed."""
        closed = await self.driver.close_extra_pages()
        navigated = urldefrag(error.actual_url).url != urldefrag(error.expected_url).url
        if navigated:
            await self.driver.goto(error.expected_url)
            if self.on_restore is not None:
                await self.on_restore()
        self.restorations += 1
        self.log.warning(
            "Probe interrupted by navigation",
            expected=error.expected_url,
            actual=error.actual_url,
            closed_pages=closed,
            renavigated=navigated,
        )


@dataclass
class FocusState:
    """What the focused element looked like after one traversal step."""
    tag: str
    is_link: bool
    inside_scope: bool
    path: str
    previous_mark: Optional[str]
    mark: str

    @property
    def ref(self) -> ElementRef:
        return ElementRef.by_attribute(VISIT_MARKER_ATTRIBUTE, self.mark)


@dataclass
class DropdownState:
    aria_expanded: Optional[str]
    visible_items: int


# =============================================================================
# Prober
# =============================================================================

class InteractionProber:
    """
    Drives keyboard and pointer input against menus.

    Writes ``MenuView.focusable_items`` and the dropdown flags, the menu's
    interaction records, dropdown probes and toggle bindings, and upgrades a
    menu to a toggle-based type once activation has been observed.
    """

    def __init__(
        self,
        driver: PageDriver,
        oracle: VisibilityOracle,
        settings: Optional[Settings] = None,
        site_config: Optional[SiteConfig] = None,
        audit_log: Optional[AuditLogger] = None,
        guard: Optional[NavigationGuard] = None,
    ):
        self.driver = driver
        self.oracle = oracle
        self.settings = settings or get_settings()
        self.site_config = site_config or DEFAULT_SITE_CONFIG
        self.audit = audit_log or AuditLogger(url="")
        self.guard = guard or NavigationGuard(driver)
        self.control_tagger = ElementTagger.for_controls(driver)
        self._dropdown_counter = 0
        self.log = logger.bind(component="interaction_prober")

    # ==========================================================================
    # Step helpers
    # ==========================================================================

    async def _step(self, action: str, target: Optional[ElementRef], awaitable, timeout_ms: Optional[int] = None) -> bool:
        """Run one bounded driver call. Transient failures return False."""
        timeout = timeout_ms or self.settings.step_timeout_ms
        where = target.describe() if target else None
        try:
            await bounded(awaitable, timeout, step=action)
        except PageClosedError:
            raise
        except Exception as e:
            self.audit.step_failed(action, where, e)
            return False
        self.audit.step(action, where)
        return True

    async def _read(self, action: str, awaitable, default=None):
        """Bounded read; transient failures yield ``default``."""
        try:
            return await bounded(awaitable, self.settings.step_timeout_ms, step=action)
        except PageClosedError:
            raise
        except Exception as e:
            self.audit.step_failed(action, None, e)
            return default

    async def _settle(self) -> None:
        if self.settings.interaction_settle_ms:
            await self.driver.wait(self.settings.interaction_settle_ms)

    async def _activate_with_key(self, ref: ElementRef, key: str) -> bool:
        if not await self._step("focus", ref, self.driver.focus(ref)):
            return False
        await self._step("guard_navigation", ref, self.driver.guard_navigation(ref))
        pressed = await self._step(f"press {key}", ref, self.driver.press(key))
        await self._settle()
        return pressed

    async def _activate(self, ref: ElementRef, modality: Modality) -> bool:
        if modality == Modality.KEYBOARD:
            return await self._activate_with_key(ref, "Enter")
        if modality == Modality.HOVER:
            hovered = await self._step("hover", ref, self.driver.hover(ref), self.settings.pointer_timeout_ms)
            await self._settle()
            return hovered
        clicked = await self._step(
            "click", ref, self.driver.click(ref, prevent_navigation=True), self.settings.pointer_timeout_ms
        )
        await self._settle()
        return clicked

    # ==========================================================================
    # Menu probing
    # ==========================================================================

    async def probe(self, fingerprint: MenuFingerprint, profile: ViewportProfile) -> ProbeResult:
        """Traverse a visible menu with Tab and test each of its dropdown controls.

        The page must already be at ``profile``'s viewport.
        """
        result = ProbeResult(menu_id=fingerprint.menu_id, profile=profile)
        menu_ref = ElementRef(fingerprint.selector)

        view = fingerprint.view(profile)
        if view.visibility is False:
            # Hidden by default and currently revealed by its toggle
            view.revealed_items = await self.oracle.count_visible(
                menu_ref.within("a"), consider_keyboard_focus=True, limit=MAX_ITEMS_PER_COUNT
            )

        await self.guard.arm()
        try:
            result.traversal = await self.count_focusable_items(menu_ref)
            await self.guard.check()
        except NavigationInterruptedError as e:
            result.interrupted = True
            await self.guard.restore(e)
        if result.traversal is not None:
            result.focusable_count = result.traversal.focusable_count

        result.dropdowns = await self.test_dropdowns(fingerprint, profile)
        self.apply(fingerprint, result)
        self.audit.outcome(
            fingerprint.menu_id,
            "probed",
            viewport=profile.value,
            focusable=result.focusable_count,
            keyboard_dropdowns=result.keyboard_dropdowns,
            mouse_only_dropdowns=result.mouse_only_dropdowns,
        )
        return result

    def apply(self, fingerprint: MenuFingerprint, result: ProbeResult) -> None:
        """Fold a probe result into the menu's view and interaction record."""
        view = fingerprint.view(result.profile)
        if result.focusable_count is not None:
            view.focusable_items = result.focusable_count
        view.has_keyboard_dropdowns = view.has_keyboard_dropdowns or result.keyboard_dropdowns > 0
        view.has_mouse_only_dropdowns = view.has_mouse_only_dropdowns or result.mouse_only_dropdowns > 0
        if result.dropdowns:
            fingerprint.dropdowns[result.profile] = list(result.dropdowns)
        behavior = fingerprint.interaction(result.profile)
        for dropdown in result.dropdowns:
            if dropdown.accessibility != DropdownAccessibility.SKIPPED:
                behavior.merge(dropdown.behavior)
        if result.interrupted:
            fingerprint.notes.append(f"{result.profile.value}: traversal interrupted by navigation")

    # ==========================================================================
    # Keyboard traversal
    # ==========================================================================

    async def first_visible_item(self, menu_ref: ElementRef) -> Optional[ElementRef]:
        selector = menu_ref.within(self.site_config.menu_item_selector)
        total = await self._read("count_items", self.driver.count(selector), 0)
        for index in range(min(total, MAX_ITEMS_PER_COUNT)):
            ref = ElementRef(selector, index)
            if await self.oracle.is_truly_visible(ref, consider_keyboard_focus=False):
                return ref
        return None

    async def _inspect_focus(self, menu_ref: ElementRef, token: str, step: int) -> Optional[FocusState]:
        mark = f"{token}-{step}"
        raw = await self._read(
            "active_element",
            self.driver.active_element(menu_ref, VISIT_MARKER_ATTRIBUTE, mark),
        )
        if not raw:
            return None
        return FocusState(
            tag=str(raw.get("tag") or "").lower(),
            is_link=bool(raw.get("is_link")),
            inside_scope=bool(raw.get("inside_scope")),
            path=str(raw.get("path") or ""),
            previous_mark=raw.get("previous_mark"),
            mark=mark,
        )

    async def count_focusable_items(self, menu_ref: ElementRef) -> TraversalResult:
        """Count visible links reachable by Tab from the menu's first visible item.

        Stops when focus leaves the menu, revisits an element, or the step or
        time budget runs out. The step budget is proportional to the number of
        items in the menu.
        """
        result = TraversalResult()
        start = await self.first_visible_item(menu_ref)
        if start is None:
            result.stop_reason = "no_visible_items"
            return result

        items = await self._read(
            "count_items", self.driver.count(menu_ref.within(self.site_config.menu_item_selector)), 0
        )
        budget = min(self.settings.traversal_max_steps, 2 * items + 5)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settings.traversal_time_budget_s
        token = secrets.token_hex(6)
        seen: set[str] = set()

        try:
            if not await self._step("focus", start, self.driver.focus(start)):
                result.stop_reason = "focus_failed"
                return result

            while True:
                state = await self._inspect_focus(menu_ref, token, result.steps)
                if state is None:
                    result.stop_reason = "focus_lost"
                    break
                if not state.inside_scope:
                    result.stop_reason = "left_menu"
                    break
                if state.path in seen or (state.previous_mark or "").startswith(f"{token}-"):
                    result.stop_reason = "cycle"
                    break
                seen.add(state.path)
                result.visited_paths.append(state.path)

                if state.is_link and await self.oracle.is_truly_visible(state.ref, consider_keyboard_focus=True):
                    result.focusable_count += 1

                if result.steps >= budget:
                    result.stop_reason = "step_budget"
                    break
                if loop.time() >= deadline:
                    result.stop_reason = "time_budget"
                    break
                if not await self._step("press Tab", None, self.driver.press("Tab")):
                    result.stop_reason = "step_failed"
                    break
                result.steps += 1
        finally:
            await self._read("clear_markers", self.driver.clear_attribute(VISIT_MARKER_ATTRIBUTE), 0)
            await self._read("blur", self.driver.blur())

        self.log.debug(
            "Traversal finished",
            menu=menu_ref.describe(),
            focusable=result.focusable_count,
            steps=result.steps,
            reason=result.stop_reason,
        )
        return result

    # ==========================================================================
    # Dropdowns
    # ==========================================================================

    def control_selector(self, menu_ref: ElementRef) -> str:
        """Expandable controls inside a menu, ARIA-declared or structural."""
        menu = menu_ref.selector
        containers = ", ".join(
            f"> {c}" for c in (*CHILD_DROPDOWN_CONTAINERS, *self.site_config.selectors.dropdown_containers)
        )
        parts = [
            f"{menu} {EXPANDABLE_ROLES}[aria-expanded]",
            f'{menu} {EXPANDABLE_ROLES}[aria-haspopup="true"]',
        ]
        if self.site_config.settings.use_aria_controls:
            parts.append(f"{menu} {EXPANDABLE_ROLES}[aria-controls]")
        parts.append(
            f"{menu} li:has({containers}):not(:has([aria-expanded], [aria-controls])) > :is(a, button)"
        )
        return ", ".join(parts)

    async def test_dropdowns(self, fingerprint: MenuFingerprint, profile: ViewportProfile) -> list[DropdownProbe]:
        menu_ref = ElementRef(fingerprint.selector)
        selector = self.control_selector(menu_ref)
        try:
            controls = await self.control_tagger.tag(selector, exclude_nested=False)
        except PageClosedError:
            raise
        except Exception as e:
            self.audit.step_failed("tag_controls", menu_ref.describe(), e)
            return []

        probes: list[DropdownProbe] = []
        for control in controls:
            restorations = self.guard.restorations
            probes.append(await self.test_dropdown(control, profile))
            if self.guard.restorations != restorations:
                # Page was reloaded: the remaining control ids are gone
                fingerprint.notes.append(
                    f"{profile.value}: dropdown probing stopped after navigation at {control.element_id}"
                )
                break
        return probes

    async def _resolve_dropdown(self, ref: ElementRef) -> Optional[str]:
        self._dropdown_counter += 1
        containers = ", ".join(
            (*CHILD_DROPDOWN_CONTAINERS, *self.site_config.selectors.dropdown_containers)
        )
        value = await self._read(
            "tag_related_dropdown",
            self.driver.tag_related_dropdown(
                ref,
                DROPDOWN_ID_ATTRIBUTE,
                f"dropdown-{self._dropdown_counter}",
                containers,
                self.site_config.settings.use_aria_controls,
            ),
        )
        return value or None

    def _dropdown_items(self, dropdown_id: str) -> str:
        return ElementRef.by_attribute(DROPDOWN_ID_ATTRIBUTE, dropdown_id).within(
            self.site_config.dropdown_item_selector
        )

    async def _dropdown_state(self, ref: ElementRef, dropdown_id: Optional[str]) -> DropdownState:
        expanded = await self._read("aria-expanded", self.driver.get_attribute(ref, "aria-expanded"))
        items = 0
        if dropdown_id:
            items = await self.oracle.count_visible(
                self._dropdown_items(dropdown_id), consider_keyboard_focus=True, limit=MAX_ITEMS_PER_COUNT
            )
        return DropdownState(expanded, items)

    @staticmethod
    def _opened(before: DropdownState, after: DropdownState) -> tuple[bool, bool]:
        """(opened, aria flipped)."""
        flipped = (before.aria_expanded or "").lower() != "true" and (after.aria_expanded or "").lower() == "true"
        return flipped or after.visible_items > before.visible_items, flipped

    @staticmethod
    def _closed(before: DropdownState, now: DropdownState, aria_exposed: bool) -> bool:
        if aria_exposed:
            return (now.aria_expanded or "").lower() != "true"
        return now.visible_items <= before.visible_items

    async def _guarded(self, action: Callable[[], Awaitable[bool]], probe_errors: list[str]) -> Optional[bool]:
        """Run an activation under the navigation guard. None means interrupted."""
        await self.guard.arm()
        try:
            done = await action()
            await self.guard.check()
        except NavigationInterruptedError as e:
            probe_errors.append(str(e))
            await self.guard.restore(e)
            return None
        return done

    async def test_dropdown(self, control: TaggedElement, profile: ViewportProfile) -> DropdownProbe:
        """Classify one expandable control: keyboard (with or without ARIA), mouse only, or neither."""
        ref = control.ref
        probe = DropdownProbe(control_id=control.element_id, selector=control.selector)

        if not await self.oracle.is_truly_visible(ref, consider_keyboard_focus=True):
            probe.accessibility = DropdownAccessibility.SKIPPED
            return probe

        dropdown_id = await self._resolve_dropdown(ref)
        if dropdown_id is None:
            probe.errors.append("no controlled dropdown element found")
            self.audit.warning(
                f"Dropdown control {control.element_id} has no controlled element", viewport=profile.value
            )

        before = await self._dropdown_state(ref, dropdown_id)
        probe.items_before = before.visible_items

        # Keyboard: Enter, then Space
        for key, field_name in (("Enter", "opens_on_enter"), ("Space", "opens_on_space")):
            done = await self._guarded(lambda: self._activate_with_key(ref, key), probe.errors)
            if done is None:
                setattr(probe.behavior, field_name, False)
                return probe
            after = await self._dropdown_state(ref, dropdown_id) if done else before
            opened, flipped = self._opened(before, after)
            setattr(probe.behavior, field_name, opened)
            if opened:
                probe.modality = Modality.KEYBOARD
                probe.aria_exposed = flipped
                probe.items_after = after.visible_items
                probe.accessibility = (
                    DropdownAccessibility.KEYBOARD_ARIA if flipped else DropdownAccessibility.KEYBOARD_FUNCTIONAL
                )
                probe.behavior.closes_on_escape = await self._close_with_escape(ref, key, dropdown_id, before, flipped)
                self.audit.outcome(control.element_id, probe.accessibility.value, key=key)
                return probe

        # Pointer: hover, then click
        hovered = await self._guarded(lambda: self._activate(ref, Modality.HOVER), probe.errors)
        if hovered:
            after = await self._dropdown_state(ref, dropdown_id)
            opened, flipped = self._opened(before, after)
            probe.behavior.opens_on_pointer = opened if profile == ViewportProfile.DESKTOP else None
            if opened:
                self._mark_mouse_only(probe, Modality.HOVER, after, flipped)
                await self._step("move_mouse_away", None, self.driver.move_mouse_away())
                await self._settle()
                return probe
        elif hovered is None:
            return probe

        clicked = await self._guarded(lambda: self._activate(ref, Modality.CLICK), probe.errors)
        if clicked:
            after = await self._dropdown_state(ref, dropdown_id)
            opened, flipped = self._opened(before, after)
            probe.behavior.opens_on_click = opened
            if profile == ViewportProfile.MOBILE:
                probe.behavior.opens_on_pointer = opened
            if opened:
                self._mark_mouse_only(probe, Modality.CLICK, after, flipped)
                probe.behavior.closes_on_outside = await self._close_with_outside_click(
                    ref, dropdown_id, before, flipped
                )
                return probe

        probe.accessibility = DropdownAccessibility.INACCESSIBLE
        self.audit.outcome(control.element_id, probe.accessibility.value)
        return probe

    def _mark_mouse_only(self, probe: DropdownProbe, modality: Modality, after: DropdownState, flipped: bool) -> None:
        probe.accessibility = DropdownAccessibility.MOUSE_ONLY
        probe.modality = modality
        probe.aria_exposed = flipped
        probe.items_after = after.visible_items
        self.audit.outcome(probe.control_id, probe.accessibility.value, modality=modality.value)

    async def _close_with_escape(
        self,
        ref: ElementRef,
        key: str,
        dropdown_id: Optional[str],
        before: DropdownState,
        aria_exposed: bool,
    ) -> bool:
        """Press Escape and report whether that closed the dropdown.

        When it did not, the dropdown is closed by repeating the opening key so
        later probes start from the original page state.
        """
        await self._step("press Escape", None, self.driver.press("Escape"))
        await self._settle()
        closed = self._closed(before, await self._dropdown_state(ref, dropdown_id), aria_exposed)
        if not closed:
            errors: list[str] = []
            await self._guarded(lambda: self._activate_with_key(ref, key), errors)
        return closed

    async def _close_with_outside_click(
        self,
        ref: ElementRef,
        dropdown_id: Optional[str],
        before: DropdownState,
        aria_exposed: bool,
    ) -> bool:
        await self._step("click_outside", None, self.driver.click_outside())
        await self._settle()
        closed = self._closed(before, await self._dropdown_state(ref, dropdown_id), aria_exposed)
        if not closed:
            errors: list[str] = []
            await self._guarded(lambda: self._activate(ref, Modality.CLICK), errors)
        return closed

    # ==========================================================================
    # Toggles
    # ==========================================================================

    async def _visible_menus(self, menus: list[MenuFingerprint]) -> set[str]:
        visible = set()
        for menu in menus:
            if await self.oracle.is_truly_visible(ElementRef(menu.selector), consider_keyboard_focus=True):
                visible.add(menu.menu_id)
        return visible

    async def test_toggle_activation(
        self,
        toggle: ToggleFingerprint,
        menus: list[MenuFingerprint],
        profile: ViewportProfile,
        on_open: Optional[Callable[[list[MenuFingerprint]], Awaitable[None]]] = None,
    ) -> ToggleActivation:
        """Try Enter, then hover, then click on a toggle; report the first modality that reveals a menu.

        While the menus are open ``on_open`` runs (to probe them), then the
        toggle is closed again.
        """
        activation = ToggleActivation(toggle_id=toggle.toggle_id, profile=profile)
        ref = ElementRef(toggle.selector)

        already_visible = await self._visible_menus(menus)
        hidden = [m for m in menus if m.menu_id not in already_visible]
        if not hidden:
            activation.errors.append("no hidden menu to reveal")
            return activation

        expanded_before = await self._read("aria-expanded", self.driver.get_attribute(ref, "aria-expanded"))

        for modality in Modality:
            done = await self._guarded(lambda: self._activate(ref, modality), activation.errors)
            if not done:
                self._record_toggle_response(toggle, modality, False)
                continue
            revealed_ids = await self._visible_menus(hidden)
            self._record_toggle_response(toggle, modality, bool(revealed_ids))
            if not revealed_ids:
                continue

            revealed = [m for m in hidden if m.menu_id in revealed_ids]
            activation.success = True
            activation.modality = modality
            activation.revealed_menus = [m.menu_id for m in revealed]
            expanded_after = await self._read("aria-expanded", self.driver.get_attribute(ref, "aria-expanded"))
            toggle.interaction.expanded_changed = expanded_before != expanded_after
            toggle.interaction.modality = modality
            toggle.interaction.revealed_menus = list(activation.revealed_menus)
            self.audit.outcome(toggle.toggle_id, "revealed", modality=modality.value, menus=activation.revealed_menus)

            if on_open is not None:
                try:
                    await on_open(revealed)
                except PageClosedError:
                    raise
                except Exception as e:
                    activation.errors.append(f"probing revealed menus failed: {e}")
                    self.audit.step_failed("probe_revealed_menus", ref.describe(), e)

            activation.closed_again = await self._close_toggle(toggle, ref, modality, revealed)
            break

        for menu in hidden:
            if menu.menu_id in activation.revealed_menus:
                self.bind_toggle(menu, toggle, activation)
        return activation

    @staticmethod
    def _record_toggle_response(toggle: ToggleFingerprint, modality: Modality, responded: bool) -> None:
        interaction = toggle.interaction
        if modality == Modality.KEYBOARD:
            interaction.responds_to_enter = responded
        elif modality == Modality.HOVER:
            interaction.responds_to_hover = responded
        else:
            interaction.responds_to_click = responded

    async def _close_toggle(
        self,
        toggle: ToggleFingerprint,
        ref: ElementRef,
        modality: Modality,
        revealed: list[MenuFingerprint],
    ) -> bool:
        """Close what the toggle opened. Falls back to activating the toggle again."""
        errors: list[str] = []
        if modality == Modality.KEYBOARD:
            await self._step("press Escape", None, self.driver.press("Escape"))
            await self._settle()
            still_open = await self._visible_menus(revealed)
            toggle.interaction.closes_on_escape = not still_open
            if still_open:
                # Escape had no effect: activate the toggle again to close
                await self._guarded(lambda: self._activate(ref, Modality.KEYBOARD), errors)
        elif modality == Modality.HOVER:
            await self._step("move_mouse_away", None, self.driver.move_mouse_away())
            await self._settle()
            if await self._visible_menus(revealed):
                await self._guarded(lambda: self._activate(ref, Modality.CLICK), errors)
        else:
            await self._guarded(lambda: self._activate(ref, Modality.CLICK), errors)
            if await self._visible_menus(revealed):
                await self._step("press Escape", None, self.driver.press("Escape"))
                await self._settle()

        closed = not await self._visible_menus(revealed)
        if not closed:
            self.audit.warning(f"Toggle {toggle.toggle_id} left its menu open")
        return closed

    def bind_toggle(self, menu: MenuFingerprint, toggle: ToggleFingerprint, activation: ToggleActivation) -> None:
        """Record the toggle that revealed ``menu``; activation overrides a declared binding."""
        profile = activation.profile or ViewportProfile.DESKTOP
        declared = bool(
            toggle.controlled_menu
            and toggle.controlled_menu.resolved_by == "aria-controls"
            and toggle.controlled_menu.menu_id == menu.menu_id
        )
        menu.toggle_binding = ToggleBinding(
            toggle_id=toggle.toggle_id,
            selector=toggle.selector,
            modality=activation.modality,
            declared=declared,
            profile=profile,
        )
        if toggle.controlled_menu is None or toggle.controlled_menu.menu_id != menu.menu_id:
            toggle.controlled_menu = ControlledMenu(menu_id=menu.menu_id, resolved_by="activation")
        for view_profile, view in menu.views.items():
            toggle.controlled_menu.menu_types[view_profile] = view.menu_type
            toggle.controlled_menu.visibility[view_profile] = view.visibility

        view = menu.view(profile)
        if not view.declared_type and not view.menu_type.is_toggle_based:
            view.menu_type = view.menu_type.as_toggle_based()
            toggle.controlled_menu.menu_types[profile] = view.menu_type

        behavior = menu.interaction(profile)
        behavior.merge(
            InteractionBehavior(
                opens_on_enter=activation.modality == Modality.KEYBOARD,
                opens_on_pointer=activation.modality in (Modality.HOVER, Modality.CLICK)
                if profile == ViewportProfile.MOBILE
                else activation.modality == Modality.HOVER,
                opens_on_click=activation.modality == Modality.CLICK,
                closes_on_escape=toggle.interaction.closes_on_escape,
            )
        )
        menu.notes.append(
            f"{profile.value}: revealed by {toggle.toggle_id} via {activation.modality.value}"
        )
