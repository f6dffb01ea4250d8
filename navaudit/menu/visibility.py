"""Visibility oracle: is an element truly visible to a user?

Combines the browser's native rendering check, the computed style of every
node on the ancestor chain, geometry against the viewport, ARIA-hidden state
and a few semantic carve-outs for navigation markup. The raw signals are
collected in-page in one evaluation (see ``VISIBILITY_PROBE_JS``); the
decision itself is a pure function over that payload.

Hiding signals are split in two:

- hard: ``display:none``, ``visibility:hidden``, zero-scale transforms.
  Nothing overrides these.
- soft: near-zero opacity, off-screen transforms, clipping, collapsed
  overflow, ``aria-hidden="true"``. Carve-outs may override these.

Main-navigation leniency: a ``nav``/``role=navigation`` container labelled or
classed as the main/primary navigation (or sitting in the page banner) is
visible when at least one plausible menu item inside it is itself rendered
on screen. Container-level tricks (``display:contents``, zero-height wrappers
with overflowing children) then no longer hide a menu whose links work. The
leniency needs a rendered item, so a navigation moved off screen or hidden
as a whole is still reported hidden.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional

import structlog

from navaudit.browser.driver import ElementRef, PageClosedError, PageDriver, bounded
from navaudit.menu.rules import Rule, RuleList, Verdict

logger = structlog.get_logger()

# Items that make a navigation container "structurally plausible"
PLAUSIBLE_ITEM_SELECTOR = 'li, a, button, [role="menuitem"], [class*="menu-item"]'

OPACITY_EPSILON = 0.01

_MATRIX_RE = re.compile(r"matrix(3d)?\(([^)]*)\)")


# =============================================================================
# Signals
# =============================================================================

@dataclass
class NodeStyle:
    """Computed style of one node on the ancestor chain."""
    tag: str = ""
    display: str = ""
    visibility: str = ""
    opacity: float = 1.0
    transform: str = "none"
    clip: str = "auto"
    clip_path: str = "none"
    overflow: str = "visible"
    max_height: Optional[float] = None
    height: Optional[float] = None
    focused: bool = False
    aria_hidden: bool = False
    rect: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NodeStyle":
        return cls(
            tag=str(data.get("tag") or "").lower(),
            display=str(data.get("display") or ""),
            visibility=str(data.get("visibility") or ""),
            opacity=_to_float(data.get("opacity"), 1.0),
            transform=str(data.get("transform") or "none"),
            clip=str(data.get("clip") or "auto"),
            clip_path=str(data.get("clip_path") or "none"),
            overflow=str(data.get("overflow") or "visible"),
            max_height=_to_optional_float(data.get("max_height")),
            height=_to_optional_float(data.get("height")),
            focused=bool(data.get("focused")),
            aria_hidden=str(data.get("aria_hidden") or "").lower() == "true",
            rect=dict(data.get("rect") or {}),
        )

    # -------------------------------------------------------------------------
    # Hard signals
    # -------------------------------------------------------------------------

    @property
    def display_none(self) -> bool:
        return self.display == "none"

    @property
    def visibility_hidden(self) -> bool:
        return self.visibility in ("hidden", "collapse")

    @property
    def zero_scale(self) -> bool:
        scale = transform_scale(self.transform)
        return scale is not None and (scale[0] == 0 or scale[1] == 0)

    # -------------------------------------------------------------------------
    # Soft signals
    # -------------------------------------------------------------------------

    @property
    def transparent(self) -> bool:
        return self.opacity < OPACITY_EPSILON

    @property
    def clipped(self) -> bool:
        clip = self.clip.strip().lower()
        clip_path = self.clip_path.strip().lower()
        return clip not in ("", "auto") or clip_path not in ("", "none")

    @property
    def collapsed_overflow(self) -> bool:
        if "hidden" not in self.overflow and "clip" not in self.overflow:
            return False
        return self.max_height == 0 or self.height == 0

    def off_screen_transform(self, viewport: dict) -> bool:
        if self.transform in ("", "none"):
            return False
        return rect_outside_viewport(self.rect, viewport)

    def hard_reason(self) -> Optional[str]:
        if self.display_none:
            return "display:none"
        if self.visibility_hidden:
            return "visibility:hidden"
        if self.zero_scale:
            return "zero-scale transform"
        return None

    def soft_reason(self, viewport: dict) -> Optional[str]:
        if self.transparent:
            return "opacity:0"
        if self.off_screen_transform(viewport):
            return "transformed off screen"
        if self.clipped:
            return "clipped"
        if self.collapsed_overflow:
            return "collapsed overflow"
        if self.aria_hidden:
            return "aria-hidden"
        return None


@dataclass
class VisibilitySignals:
    """Everything the oracle needs to decide, parsed from the in-page probe."""
    exists: bool = False
    native_visible: Optional[bool] = None
    rect: dict = field(default_factory=dict)
    viewport: dict = field(default_factory=dict)
    chain: list[NodeStyle] = field(default_factory=list)
    aria_expanded: Optional[str] = None
    aria_controls: Optional[str] = None
    controller_active: bool = False
    is_main_navigation: bool = False
    rendered_items: int = 0
    consider_keyboard_focus: bool = False

    @classmethod
    def from_probe(cls, probe: Optional[dict], consider_keyboard_focus: bool = False) -> "VisibilitySignals":
        if not probe or not probe.get("exists"):
            return cls(exists=False, consider_keyboard_focus=consider_keyboard_focus)
        native = probe.get("check_visibility")
        return cls(
            exists=True,
            native_visible=None if native is None else bool(native),
            rect=dict(probe.get("rect") or {}),
            viewport=dict(probe.get("viewport") or {}),
            chain=[NodeStyle.from_dict(node) for node in probe.get("chain") or []],
            aria_expanded=probe.get("aria_expanded"),
            aria_controls=probe.get("aria_controls"),
            controller_active=bool(probe.get("controller_active")),
            is_main_navigation=bool(probe.get("is_main_navigation")),
            rendered_items=int(probe.get("rendered_items") or 0),
            consider_keyboard_focus=consider_keyboard_focus,
        )

    def _exempt(self, node: NodeStyle) -> bool:
        # Focus-visible exception covers the focused node itself only
        return self.consider_keyboard_focus and node.focused

    @property
    def hard_hidden_reason(self) -> Optional[str]:
        for node in self.chain:
            if self._exempt(node):
                continue
            reason = node.hard_reason()
            if reason:
                return f"{reason} on <{node.tag}>"
        return None

    @property
    def soft_hidden_reason(self) -> Optional[str]:
        for node in self.chain:
            if self._exempt(node):
                continue
            reason = node.soft_reason(self.viewport)
            if reason:
                return f"{reason} on <{node.tag}>"
        return None

    @property
    def has_box(self) -> bool:
        return _to_float(self.rect.get("width"), 0) > 0 and _to_float(self.rect.get("height"), 0) > 0

    @property
    def off_screen(self) -> bool:
        return rect_outside_viewport(self.rect, self.viewport)

    @property
    def collapsed_controller(self) -> bool:
        return (self.aria_expanded or "").lower() == "false" and bool((self.aria_controls or "").strip())


# =============================================================================
# Geometry helpers
# =============================================================================

def _to_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = value.strip().removesuffix("px")
        if not value or value == "none":
            return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def transform_scale(transform: str) -> Optional[tuple[float, float]]:
    """(scaleX, scaleY) of a computed ``matrix()``/``matrix3d()`` transform."""
    if not transform or transform == "none":
        return None
    match = _MATRIX_RE.search(transform)
    if not match:
        return None
    try:
        values = [float(v) for v in match.group(2).split(",")]
    except ValueError:
        return None
    if match.group(1):
        if len(values) != 16:
            return None
        a, b, c, d = values[0], values[1], values[4], values[5]
    else:
        if len(values) != 6:
            return None
        a, b, c, d = values[:4]
    return (a * a + b * b) ** 0.5, (c * c + d * d) ** 0.5


def rect_outside_viewport(rect: dict, viewport: dict) -> bool:
    """True when the rect lies entirely outside the viewport."""
    if not rect or not viewport:
        return False
    x = _to_float(rect.get("x"), 0)
    y = _to_float(rect.get("y"), 0)
    width = _to_float(rect.get("width"), 0)
    height = _to_float(rect.get("height"), 0)
    vw = _to_float(viewport.get("width"), 0)
    vh = _to_float(viewport.get("height"), 0)
    if vw <= 0 or vh <= 0:
        return False
    return x + width <= 0 or y + height <= 0 or x >= vw or y >= vh


# =============================================================================
# Rules
# =============================================================================

VISIBILITY_RULES: RuleList[VisibilitySignals, bool] = RuleList(
    "visibility",
    [
        Rule("absent", lambda s: not s.exists, False),
        Rule("native_hidden", lambda s: s.native_visible is False, False),
        Rule("hard_css_hidden", lambda s: s.hard_hidden_reason is not None, False),
        Rule(
            "collapsed_submenu_controller",
            lambda s: s.collapsed_controller and s.has_box and s.soft_hidden_reason is not None,
            True,
        ),
        Rule(
            "submenu_of_active_controller",
            lambda s: s.controller_active and s.has_box and s.soft_hidden_reason is not None,
            True,
        ),
        Rule(
            "main_navigation_with_rendered_items",
            lambda s: s.is_main_navigation and s.rendered_items > 0,
            True,
        ),
        Rule("soft_css_hidden", lambda s: s.soft_hidden_reason is not None, False),
        Rule("zero_size", lambda s: not s.has_box, False),
        Rule("off_screen", lambda s: s.off_screen and not s.consider_keyboard_focus, False),
    ],
    default=True,
)


# =============================================================================
# Oracle
# =============================================================================

class VisibilityOracle:
    """
    Decides whether elements are truly visible.

    ``is_truly_visible`` never raises for transient failures: a probe that
    fails or times out means "not visible". Only ``PageClosedError`` escapes.
    """

    def __init__(
        self,
        driver: PageDriver,
        timeout_ms: int = 1000,
        item_selector: str = PLAUSIBLE_ITEM_SELECTOR,
        rules: Optional[RuleList[VisibilitySignals, bool]] = None,
    ):
        self.driver = driver
        self.timeout_ms = timeout_ms
        self.item_selector = item_selector
        self.rules = rules or VISIBILITY_RULES
        self.log = logger.bind(component="visibility_oracle")

    async def probe(self, ref: ElementRef, consider_keyboard_focus: bool = False) -> VisibilitySignals:
        """Collect signals; failures yield an "absent" signal set."""
        try:
            raw = await bounded(
                self.driver.visibility_probe(ref, self.item_selector),
                self.timeout_ms,
                step="visibility_probe",
            )
        except PageClosedError:
            raise
        except Exception as e:
            self.log.debug("Visibility probe failed", target=ref.describe(), error=str(e))
            raw = None
        return VisibilitySignals.from_probe(raw, consider_keyboard_focus)

    async def explain(self, ref: ElementRef, consider_keyboard_focus: bool = False) -> Verdict[bool]:
        signals = await self.probe(ref, consider_keyboard_focus)
        return self.evaluate(signals)

    async def is_truly_visible(self, ref: ElementRef, consider_keyboard_focus: bool = False) -> bool:
        verdict = await self.explain(ref, consider_keyboard_focus)
        return verdict.result

    def evaluate(self, signals: VisibilitySignals) -> Verdict[bool]:
        try:
            return self.rules.evaluate(signals)
        except Exception as e:
            self.log.warning("Visibility rule evaluation failed", error=str(e))
            return Verdict(False, "evaluation_error")

    async def count_visible(
        self,
        selector: str,
        consider_keyboard_focus: bool = True,
        limit: Optional[int] = None,
    ) -> int:
        """Number of matches of ``selector`` that are truly visible."""
        try:
            total = await bounded(self.driver.count(selector), self.timeout_ms, step="count")
        except PageClosedError:
            raise
        except Exception as e:
            self.log.debug("Count failed", selector=selector, error=str(e))
            return 0
        if limit is not None:
            total = min(total, limit)
        visible = 0
        for index in range(total):
            if await self.is_truly_visible(ElementRef(selector, index), consider_keyboard_focus):
                visible += 1
        return visible
