"""
Data models for the navigation menu audit.

This module defines the records threaded through the audit pipeline:
discovery -> viewport profiling -> toggle discovery -> interaction probing ->
aggregation. Each field has exactly one writing stage, noted per class.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

# =============================================================================
# Enums
# =============================================================================

class MenuType(str, Enum):
    """
    Behavioral menu classification.

    Attributes:
        SIMPLE: Flat list of links, visible by default
        DROPDOWN: Visible by default, contains nested dropdown lists
        TOGGLE_SIMPLE: Revealed by a separate toggle, flat
        TOGGLE_DROPDOWN: Revealed by a separate toggle, with dropdowns
    """
    SIMPLE = "SimpleMenu"
    DROPDOWN = "DropdownMenu"
    TOGGLE_SIMPLE = "ToggleBasedSimpleMenu"
    TOGGLE_DROPDOWN = "ToggleBasedDropdownMenu"

    @property
    def is_toggle_based(self) -> bool:
        return self in (MenuType.TOGGLE_SIMPLE, MenuType.TOGGLE_DROPDOWN)

    @property
    def has_dropdowns(self) -> bool:
        return self in (MenuType.DROPDOWN, MenuType.TOGGLE_DROPDOWN)

    def as_toggle_based(self) -> "MenuType":
        return MenuType.TOGGLE_DROPDOWN if self.has_dropdowns else MenuType.TOGGLE_SIMPLE

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["MenuType"]:
        """Parse a declarative hint such as ``data-mobile-menu-type``."""
        if not value:
            return None
        normalized = value.strip().lower().replace("-", "").replace("_", "")
        for member in cls:
            if normalized in (member.value.lower(), member.name.lower().replace("_", "")):
                return member
        return None


class ViewportProfile(str, Enum):
    """The two viewport states every menu is measured in."""
    DESKTOP = "desktop"
    MOBILE = "mobile"


class IconType(str, Enum):
    """Visual affordance of a toggle, inferred from class names."""
    HAMBURGER = "hamburger"
    ARROW = "arrow"
    PLUS_MINUS = "plus-minus"
    UNKNOWN = "unknown"


class DropdownAccessibility(str, Enum):
    """
    Outcome of probing one expandable control.

    Attributes:
        KEYBOARD_ARIA: Opens via keyboard and exposes state via aria-expanded
        KEYBOARD_FUNCTIONAL: Opens via keyboard but state is not exposed via ARIA
        MOUSE_ONLY: Only hover or click opens it (keyboard failure)
        INACCESSIBLE: Nothing tried opened it
        SKIPPED: Control was not visible in this viewport
    """
    KEYBOARD_ARIA = "keyboard_aria"
    KEYBOARD_FUNCTIONAL = "keyboard_functional"
    MOUSE_ONLY = "mouse_only"
    INACCESSIBLE = "inaccessible"
    SKIPPED = "skipped"

    @property
    def keyboard_operable(self) -> bool:
        return self in (DropdownAccessibility.KEYBOARD_ARIA, DropdownAccessibility.KEYBOARD_FUNCTIONAL)


class Modality(str, Enum):
    """Input modality, ordered from least to most demanding for the user."""
    KEYBOARD = "keyboard"
    HOVER = "hover"
    CLICK = "click"


class ToggleVisibility(str, Enum):
    """
    Per-viewport state of a toggle candidate.

    Attributes:
        VISIBLE: Rendered and on screen
        RESPONSIVE_HIDDEN: Hidden on desktop while carrying a mobile-only toggle class (expected)
        HIDDEN: Hidden by CSS
        ZERO_SIZE: Rendered with an empty bounding box
        ABSENT: Not present in the DOM for this pass
    """
    VISIBLE = "visible"
    RESPONSIVE_HIDDEN = "responsive_hidden"
    HIDDEN = "hidden"
    ZERO_SIZE = "zero_size"
    ABSENT = "absent"


# =============================================================================
# Accessibility attribute snapshots
# =============================================================================

@dataclass
class AriaSnapshot:
    """Presence and values of the ARIA attributes the audit reads. Written by discovery."""
    expanded: Optional[str] = None
    controls: Optional[str] = None
    label: Optional[str] = None
    labelledby: Optional[str] = None
    role: Optional[str] = None
    haspopup: Optional[str] = None
    hidden: Optional[str] = None
    pressed: Optional[str] = None

    @classmethod
    def from_attributes(cls, attributes: dict[str, Any]) -> "AriaSnapshot":
        def read(name: str) -> Optional[str]:
            value = attributes.get(name)
            return None if value is None else str(value)

        return cls(
            expanded=read("aria-expanded"),
            controls=read("aria-controls"),
            label=read("aria-label"),
            labelledby=read("aria-labelledby"),
            role=read("role"),
            haspopup=read("aria-haspopup"),
            hidden=read("aria-hidden"),
            pressed=read("aria-pressed"),
        )

    @property
    def has_accessible_name(self) -> bool:
        """aria-label, aria-labelledby or role=navigation present."""
        return bool(
            (self.label and self.label.strip())
            or (self.labelledby and self.labelledby.strip())
            or (self.role or "").strip().lower() == "navigation"
        )

    def to_dict(self) -> dict:
        return {
            "hasAriaExpanded": self.expanded is not None,
            "ariaExpanded": self.expanded,
            "hasAriaControls": self.controls is not None,
            "ariaControls": self.controls,
            "hasAriaLabel": self.label is not None,
            "ariaLabel": self.label,
            "hasAriaLabelledby": self.labelledby is not None,
            "hasRole": self.role is not None,
            "role": self.role,
            "hasAriaHaspopup": self.haspopup is not None,
            "ariaHidden": self.hidden,
            "ariaPressed": self.pressed,
        }


# =============================================================================
# Menu fingerprints
# =============================================================================

@dataclass
class InteractionBehavior:
    """How a menu reacted to input in one viewport. Written by the prober."""
    opens_on_enter: Optional[bool] = None
    opens_on_space: Optional[bool] = None
    opens_on_pointer: Optional[bool] = None  # hover on desktop, tap on mobile
    opens_on_click: Optional[bool] = None
    closes_on_escape: Optional[bool] = None
    closes_on_outside: Optional[bool] = None

    def merge(self, other: "InteractionBehavior") -> None:
        """Fold another observation in; a single positive observation wins."""
        for name in self.__dataclass_fields__:
            theirs = getattr(other, name)
            if theirs is None:
                continue
            mine = getattr(self, name)
            setattr(self, name, bool(mine) or theirs)

    def to_dict(self, profile: "ViewportProfile" = ViewportProfile.DESKTOP) -> dict:
        pointer_key = "opensOnHover" if profile == ViewportProfile.DESKTOP else "opensOnTap"
        return {
            "opensOnEnter": self.opens_on_enter,
            "opensOnSpace": self.opens_on_space,
            pointer_key: self.opens_on_pointer,
            "opensOnClick": self.opens_on_click,
            "closesOnEscape": self.closes_on_escape,
            "closesOnOutsideClick": self.closes_on_outside,
        }


@dataclass
class MenuView:
    """
    One viewport's measurement of a menu.

    ``menu_type``, ``visibility`` and item counts are written by the viewport
    profiler; focusable count and dropdown flags by the prober.
    """
    menu_type: MenuType = MenuType.SIMPLE
    visibility: Optional[bool] = None  # None means unknown
    total_items: int = 0
    visible_items: int = 0
    focusable_items: Optional[int] = None
    has_keyboard_dropdowns: bool = False
    has_mouse_only_dropdowns: bool = False
    declared_type: bool = False
    revealed_items: Optional[int] = None  # visible items while opened by a toggle
    display: Optional[str] = None
    position: Optional[str] = None

    @property
    def measured_items(self) -> int:
        """Visible items in the state the prober saw: as loaded, or held open by a toggle."""
        if self.visibility or self.revealed_items is None:
            return self.visible_items
        return self.revealed_items

    def to_dict(self) -> dict:
        return {
            "menuType": self.menu_type.value,
            "visibility": self.visibility,
            "totalItems": self.total_items,
            "visibleItems": self.visible_items,
            "focusableItems": self.focusable_items,
            "hasKeyboardDropdowns": self.has_keyboard_dropdowns,
            "hasMouseOnlyDropdowns": self.has_mouse_only_dropdowns,
            "declaredType": self.declared_type,
            "revealedItems": self.revealed_items,
            "display": self.display,
            "position": self.position,
        }


@dataclass
class ToggleBinding:
    """The toggle found to reveal a menu, and how."""
    toggle_id: str
    selector: str
    modality: Optional[Modality] = None
    declared: bool = False  # resolved through aria-controls rather than activation
    profile: Optional[ViewportProfile] = None

    def to_dict(self) -> dict:
        return {
            "toggleId": self.toggle_id,
            "selector": self.selector,
            "modality": self.modality.value if self.modality else None,
            "declared": self.declared,
            "viewport": self.profile.value if self.profile else None,
        }


@dataclass(frozen=True)
class StructuralSignature:
    """
    Grouping key of a menu candidate.

    Two candidates belong together iff link texts, child tags, class set and id
    are all equal. Since this is plain equality on a tuple, the relation is an
    equivalence and grouping can be done by hashing.
    """
    tag: str
    element_id: Optional[str]
    classes: frozenset
    child_tags: tuple
    link_texts: tuple

    @property
    def key(self) -> tuple:
        return (self.link_texts, self.child_tags, self.classes, self.element_id or None)

    def matches(self, other: "StructuralSignature") -> bool:
        return self.key == other.key

    def to_dict(self) -> dict:
        return {
            "tag": self.tag,
            "id": self.element_id,
            "classes": sorted(self.classes),
            "childTags": list(self.child_tags),
            "linkTexts": list(self.link_texts),
        }


@dataclass
class MenuFingerprint:
    """
    Derived description of one discovered navigation candidate.

    Identity, signature and ARIA snapshot are written by discovery; ``views``
    by the viewport profiler (menu type may later be upgraded by the prober);
    ``interactions``, ``dropdowns`` and ``toggle_binding`` by the prober.
    """
    menu_id: str
    index: int
    name: str
    selector: str
    signature: StructuralSignature
    link_count: int = 0
    children_count: int = 0
    parent_id: Optional[str] = None
    parent_class: Optional[str] = None
    has_dropdowns: bool = False
    in_footer: bool = False
    aria: AriaSnapshot = field(default_factory=AriaSnapshot)
    declared_types: dict[ViewportProfile, Optional[MenuType]] = field(default_factory=dict)
    views: dict[ViewportProfile, MenuView] = field(default_factory=dict)
    interactions: dict[ViewportProfile, InteractionBehavior] = field(default_factory=dict)
    dropdowns: dict[ViewportProfile, list["DropdownProbe"]] = field(default_factory=dict)
    toggle_binding: Optional[ToggleBinding] = None
    notes: list[str] = field(default_factory=list)

    def view(self, profile: ViewportProfile) -> MenuView:
        if profile not in self.views:
            self.views[profile] = MenuView()
        return self.views[profile]

    def interaction(self, profile: ViewportProfile) -> InteractionBehavior:
        if profile not in self.interactions:
            self.interactions[profile] = InteractionBehavior()
        return self.interactions[profile]

    @property
    def is_visible(self) -> bool:
        """Visible in at least one viewport."""
        return any(v.visibility for v in self.views.values())

    @property
    def hidden_in_all_viewports(self) -> bool:
        """Measured hidden in every measured viewport (unknown never counts as hidden)."""
        measured = [v.visibility for v in self.views.values() if v.visibility is not None]
        return bool(measured) and not any(measured)

    @property
    def tag(self) -> str:
        return self.signature.tag

    def to_dict(self) -> dict:
        return {
            "menuId": self.menu_id,
            "index": self.index,
            "name": self.name,
            "selector": self.selector,
            "tagName": self.signature.tag,
            "id": self.signature.element_id,
            "classes": sorted(self.signature.classes),
            "linkCount": self.link_count,
            "linkTexts": list(self.signature.link_texts),
            "childrenCount": self.children_count,
            "childrenTypes": list(self.signature.child_tags),
            "parentId": self.parent_id,
            "parentClass": self.parent_class,
            "hasDropdowns": self.has_dropdowns,
            "aria": self.aria.to_dict(),
            "combinedVisibility": self.is_visible,
            "view": {profile.value: view.to_dict() for profile, view in self.views.items()},
            "interactions": {
                profile.value: behavior.to_dict(profile)
                for profile, behavior in self.interactions.items()
            },
            "dropdowns": {
                profile.value: [probe.to_dict() for probe in probes]
                for profile, probes in self.dropdowns.items()
            },
            "toggleBinding": self.toggle_binding.to_dict() if self.toggle_binding else None,
            "notes": list(self.notes),
        }


@dataclass
class MenuGroup:
    """Structurally identical fingerprints (responsive duplicates of one menu)."""
    menu_id: str
    representative: MenuFingerprint
    members: list[MenuFingerprint] = field(default_factory=list)

    @property
    def member_indices(self) -> list[int]:
        return [m.index for m in self.members]

    @property
    def member_selectors(self) -> list[str]:
        return [m.selector for m in self.members]

    @property
    def count(self) -> int:
        return len(self.members)

    def visible_in(self, profile: ViewportProfile) -> Optional[bool]:
        """True when any member is visible in the viewport, None if none was measured."""
        values = [m.views[profile].visibility for m in self.members if profile in m.views]
        known = [v for v in values if v is not None]
        if not known:
            return None
        return any(known)

    def to_dict(self) -> dict:
        return {
            "menuId": self.menu_id,
            "count": self.count,
            "indices": self.member_indices,
            "selectors": self.member_selectors,
            "signature": self.representative.signature.to_dict(),
            "representative": self.representative.to_dict(),
        }


@dataclass
class NavInfo:
    """Result of menu discovery."""
    total: int = 0
    fingerprints: list[MenuFingerprint] = field(default_factory=list)
    groups: list[MenuGroup] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)

    @property
    def menu_ids(self) -> set[str]:
        return {fp.menu_id for fp in self.fingerprints}

    @property
    def unique_indices(self) -> list[int]:
        return [g.representative.index for g in self.groups]

    def get(self, menu_id: str) -> Optional[MenuFingerprint]:
        for fp in self.fingerprints:
            if fp.menu_id == menu_id:
                return fp
        return None

    def group_for(self, menu_id: str) -> Optional[MenuGroup]:
        for group in self.groups:
            if any(m.menu_id == menu_id for m in group.members):
                return group
        return None

    def hidden_menus(self, profile: ViewportProfile) -> list[str]:
        return [
            fp.menu_id for fp in self.fingerprints
            if profile in fp.views and fp.views[profile].visibility is False
        ]

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "uniqueMenus": len(self.groups),
            "uniqueIndices": self.unique_indices,
            "groups": [g.to_dict() for g in self.groups],
            "dropped": list(self.dropped),
        }


# =============================================================================
# Toggles
# =============================================================================

@dataclass
class ControlledMenu:
    """Back-reference from a toggle to the menu it reveals."""
    menu_id: str
    menu_types: dict[ViewportProfile, MenuType] = field(default_factory=dict)
    visibility: dict[ViewportProfile, Optional[bool]] = field(default_factory=dict)
    resolved_by: str = "aria-controls"  # or "activation"

    def to_dict(self) -> dict:
        return {
            "menuId": self.menu_id,
            "menuType": {p.value: t.value for p, t in self.menu_types.items()},
            "visibility": {p.value: v for p, v in self.visibility.items()},
            "resolvedBy": self.resolved_by,
        }


@dataclass
class ToggleInteraction:
    """How a toggle responded when activated. Written by the prober."""
    responds_to_enter: Optional[bool] = None
    responds_to_hover: Optional[bool] = None
    responds_to_click: Optional[bool] = None
    expanded_changed: Optional[bool] = None
    closes_on_escape: Optional[bool] = None
    modality: Optional[Modality] = None
    revealed_menus: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "respondsToEnter": self.responds_to_enter,
            "respondsToHover": self.responds_to_hover,
            "respondsToClick": self.responds_to_click,
            "ariaExpandedChanged": self.expanded_changed,
            "closesOnEscape": self.closes_on_escape,
            "modality": self.modality.value if self.modality else None,
            "revealedMenus": list(self.revealed_menus),
        }


@dataclass
class ToggleFingerprint:
    """
    One discovered toggle candidate.

    Identity and ARIA are written by toggle discovery; ``visibility`` per
    viewport pass; ``interaction`` and activation-based ``controlled_menu``
    by the prober.
    """
    toggle_id: str
    name: str
    selector: str
    tag: str
    element_id: Optional[str] = None
    classes: list[str] = field(default_factory=list)
    text: str = ""
    icon_type: IconType = IconType.UNKNOWN
    parent_id: Optional[str] = None
    parent_class: Optional[str] = None
    mobile_only: bool = False
    aria: AriaSnapshot = field(default_factory=AriaSnapshot)
    visibility: dict[ViewportProfile, ToggleVisibility] = field(default_factory=dict)
    display: dict[ViewportProfile, Optional[str]] = field(default_factory=dict)
    interaction: ToggleInteraction = field(default_factory=ToggleInteraction)
    controlled_menu: Optional[ControlledMenu] = None
    notes: list[str] = field(default_factory=list)

    def visible_in(self, profile: ViewportProfile) -> bool:
        return self.visibility.get(profile) == ToggleVisibility.VISIBLE

    @property
    def visible_profiles(self) -> list[ViewportProfile]:
        return [p for p in ViewportProfile if self.visible_in(p)]

    @property
    def signature(self) -> tuple:
        """Composite identity used for deduplication."""
        return (
            self.aria.controls,
            self.element_id,
            self.tag,
            self.parent_id,
            self.parent_class,
            tuple((p.value, self.visibility.get(p, ToggleVisibility.ABSENT).value) for p in ViewportProfile),
        )

    def to_dict(self) -> dict:
        return {
            "toggleId": self.toggle_id,
            "name": self.name,
            "selector": self.selector,
            "tagName": self.tag,
            "id": self.element_id,
            "classes": list(self.classes),
            "text": self.text,
            "iconType": self.icon_type.value,
            "parentId": self.parent_id,
            "parentClass": self.parent_class,
            "mobileOnly": self.mobile_only,
            "aria": self.aria.to_dict(),
            "visibility": {p.value: v.value for p, v in self.visibility.items()},
            "display": {p.value: d for p, d in self.display.items()},
            "interaction": self.interaction.to_dict(),
            "controlledMenu": self.controlled_menu.to_dict() if self.controlled_menu else None,
            "notes": list(self.notes),
        }


@dataclass
class ExcludedToggle:
    """A toggle candidate that did not survive filtering, and why."""
    toggle_id: str
    reason: str

    def to_dict(self) -> dict:
        return {"toggleId": self.toggle_id, "reason": self.reason}


@dataclass
class ToggleInfo:
    """Result of toggle discovery."""
    total: int = 0
    toggle_details: list[ToggleFingerprint] = field(default_factory=list)
    excluded: list[ExcludedToggle] = field(default_factory=list)
    duplicates: int = 0

    @property
    def toggle_ids(self) -> list[str]:
        return [t.toggle_id for t in self.toggle_details]

    def get(self, toggle_id: str) -> Optional[ToggleFingerprint]:
        for toggle in self.toggle_details:
            if toggle.toggle_id == toggle_id:
                return toggle
        return None

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "retained": len(self.toggle_details),
            "duplicates": self.duplicates,
            "toggleDetails": [t.to_dict() for t in self.toggle_details],
            "excluded": [e.to_dict() for e in self.excluded],
        }


# =============================================================================
# Probe results
# =============================================================================

@dataclass
class DropdownProbe:
    """Outcome of probing one expandable control inside a menu."""
    control_id: str
    selector: str
    accessibility: DropdownAccessibility = DropdownAccessibility.INACCESSIBLE
    aria_exposed: bool = False
    items_before: int = 0
    items_after: int = 0
    behavior: InteractionBehavior = field(default_factory=InteractionBehavior)
    modality: Optional[Modality] = None
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "controlId": self.control_id,
            "selector": self.selector,
            "accessibility": self.accessibility.value,
            "ariaExposed": self.aria_exposed,
            "itemsBefore": self.items_before,
            "itemsAfter": self.items_after,
            "behavior": self.behavior.to_dict(),
            "modality": self.modality.value if self.modality else None,
            "errors": list(self.errors),
        }


@dataclass
class TraversalResult:
    """Outcome of a keyboard Tab traversal through one menu."""
    focusable_count: int = 0
    steps: int = 0
    stop_reason: str = "not_started"
    visited_paths: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "focusableCount": self.focusable_count,
            "steps": self.steps,
            "stopReason": self.stop_reason,
        }


@dataclass
class ToggleActivation:
    """Outcome of trying to reveal hidden menus through one toggle."""
    toggle_id: str
    success: bool = False
    modality: Optional[Modality] = None
    profile: Optional[ViewportProfile] = None
    revealed_menus: list[str] = field(default_factory=list)
    closed_again: Optional[bool] = None
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "toggleId": self.toggle_id,
            "success": self.success,
            "modality": self.modality.value if self.modality else None,
            "viewport": self.profile.value if self.profile else None,
            "revealedMenus": list(self.revealed_menus),
            "closedAgain": self.closed_again,
            "errors": list(self.errors),
        }


@dataclass
class ProbeResult:
    """Per menu, per viewport probe outcome."""
    menu_id: str
    profile: ViewportProfile
    focusable_count: Optional[int] = None
    traversal: Optional[TraversalResult] = None
    dropdowns: list[DropdownProbe] = field(default_factory=list)
    toggle: Optional[ToggleActivation] = None
    interrupted: bool = False

    @property
    def keyboard_dropdowns(self) -> int:
        return sum(1 for d in self.dropdowns if d.accessibility.keyboard_operable)

    @property
    def aria_dropdowns(self) -> int:
        return sum(1 for d in self.dropdowns if d.accessibility == DropdownAccessibility.KEYBOARD_ARIA)

    @property
    def functional_only_dropdowns(self) -> int:
        return sum(1 for d in self.dropdowns if d.accessibility == DropdownAccessibility.KEYBOARD_FUNCTIONAL)

    @property
    def mouse_only_dropdowns(self) -> int:
        return sum(1 for d in self.dropdowns if d.accessibility == DropdownAccessibility.MOUSE_ONLY)

    @property
    def inaccessible_dropdowns(self) -> int:
        return sum(1 for d in self.dropdowns if d.accessibility == DropdownAccessibility.INACCESSIBLE)

    def to_dict(self) -> dict:
        return {
            "menuId": self.menu_id,
            "viewport": self.profile.value,
            "focusableCount": self.focusable_count,
            "traversal": self.traversal.to_dict() if self.traversal else None,
            "dropdownAccessibility": {
                "keyboardAria": self.aria_dropdowns,
                "keyboardFunctional": self.functional_only_dropdowns,
                "mouseOnly": self.mouse_only_dropdowns,
                "inaccessible": self.inaccessible_dropdowns,
                "details": [d.to_dict() for d in self.dropdowns],
            },
            "toggleAccessibility": self.toggle.to_dict() if self.toggle else None,
            "interrupted": self.interrupted,
        }
