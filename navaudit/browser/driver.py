"""Browser capability surface consumed by the menu audit engine.

The engine never talks to a browser library directly. Every component receives
a ``PageDriver`` and calls the small set of semantic operations below; each
call is a suspension point and the only place where page state can change.

Architecture:
                      ┌─────────────────────────────┐
                      │         PageDriver          │
                      │     (Abstract Interface)    │
                      └─────────────┬───────────────┘
                                    │
                  ┌─────────────────┴─────────────────┐
                  ▼                                   ▼
        ┌───────────────────┐               ┌───────────────────┐
        │ PlaywrightPage-   │               │  In-memory DOM    │
        │ Driver (Chromium) │               │  driver (tests)   │
        └───────────────────┘               └───────────────────┘

Payloads returned by the snapshot/probe operations are plain dicts so they can
cross the page.evaluate() boundary unchanged.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Optional, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


# =============================================================================
# Errors
# =============================================================================

class NavAuditError(Exception):
    """Base class for audit errors."""


class PageClosedError(NavAuditError):
    """The page or browser session is gone. Always fatal for the page audit."""


class ProbeTimeoutError(NavAuditError):
    """A single evaluation or interaction step exceeded its time budget."""

    def __init__(self, step: str, timeout_ms: int):
        super().__init__(f"{step} timed out after {timeout_ms}ms")
        self.step = step
        self.timeout_ms = timeout_ms


class NavigationInterruptedError(NavAuditError):
    """A probe navigated the page away or opened a new page."""

    def __init__(self, expected_url: str, actual_url: str, extra_pages: int = 0):
        super().__init__(
            f"probe left {expected_url} (now at {actual_url}, {extra_pages} extra page(s))"
        )
        self.expected_url = expected_url
        self.actual_url = actual_url
        self.extra_pages = extra_pages


# =============================================================================
# Value types
# =============================================================================

@dataclass(frozen=True)
class Viewport:
    """Viewport size in CSS pixels."""
    width: int
    height: int

    def to_dict(self) -> dict:
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True)
class ElementRef:
    """Addresses the ``index``-th match of ``selector`` in document order.

    Refs are re-resolved on every call, so they survive viewport switches as
    long as the selector is built from a synthetic id attribute.
    """
    selector: str
    index: int = 0

    @classmethod
    def by_attribute(cls, attribute: str, value: str) -> "ElementRef":
        return cls(f'[{attribute}="{value}"]')

    def within(self, descendant: str) -> str:
        """Selector for descendants of this element (only valid for index 0)."""
        return ", ".join(f"{self.selector} {part}" for part in split_selector_list(descendant))

    def describe(self) -> str:
        return self.selector if self.index == 0 else f"{self.selector} >> nth={self.index}"


def split_selector_list(selector: str) -> list[str]:
    """Split a CSS selector list on its top-level commas.

    Commas inside ``:is(a, button)``, attribute values or quoted strings stay
    with their compound selector.
    """
    parts = []
    current = []
    depth = 0
    quote = None
    for char in selector:
        if quote:
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char in "([":
            depth += 1
        elif char in ")]":
            depth = max(depth - 1, 0)
        elif char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    parts.append("".join(current).strip())
    return [part for part in parts if part]


async def bounded(awaitable: Awaitable[T], timeout_ms: int, step: str = "step") -> T:
    """Await a driver call with a per-step timeout.

    Raises:
        ProbeTimeoutError: When the call does not complete in time
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_ms / 1000)
    except asyncio.TimeoutError as e:
        raise ProbeTimeoutError(step, timeout_ms) from e


# =============================================================================
# Capability surface
# =============================================================================

class PageDriver(ABC):
    """Abstract page-control surface.

    Implement this interface to run the audit engine against a new browser
    backend. Implementations must raise ``PageClosedError`` once the page is
    gone; every other failure may surface as any exception and is handled by
    the caller as a transient probe failure.
    """

    # -------------------------------------------------------------------------
    # Navigation and pages
    # -------------------------------------------------------------------------

    @abstractmethod
    async def goto(self, url: str) -> str:
        """Navigate to ``url`` and return the final URL."""

    @abstractmethod
    async def current_url(self) -> str:
        """URL of the page under audit."""

    @abstractmethod
    async def page_count(self) -> int:
        """Number of open pages in the session, including the audited one."""

    @abstractmethod
    async def close_extra_pages(self) -> int:
        """Close every page other than the audited one. Returns how many were closed."""

    # -------------------------------------------------------------------------
    # Viewport and timing
    # -------------------------------------------------------------------------

    @abstractmethod
    async def viewport_size(self) -> Optional[Viewport]:
        """Current viewport size, or None when the backend cannot tell."""

    @abstractmethod
    async def set_viewport_size(self, viewport: Viewport) -> None:
        """Resize the viewport."""

    @abstractmethod
    async def wait(self, ms: int) -> None:
        """Wait for a fixed duration."""

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @abstractmethod
    async def count(self, selector: str) -> int:
        """Number of elements matching ``selector``."""

    @abstractmethod
    async def get_attribute(self, ref: ElementRef, name: str) -> Optional[str]:
        """Attribute value, or None when absent (or the element is gone)."""

    @abstractmethod
    async def collect_candidates(
        self,
        selector: str,
        attribute: str,
        container_attribute: Optional[str] = None,
    ) -> list[dict]:
        """Describe every match of ``selector`` in document order.

        Each entry holds ``index``, ``existing_id`` (value of ``attribute``),
        ``inside_container`` (a proper ancestor carries ``container_attribute``)
        and ``nested_in_candidate`` (a proper ancestor also matches ``selector``).
        """

    @abstractmethod
    async def assign_attribute(
        self,
        selector: str,
        assignments: list[tuple[int, str]],
        attribute: str,
    ) -> int:
        """Set ``attribute`` on the given match indices unless already present."""

    @abstractmethod
    async def clear_attribute(self, attribute: str) -> int:
        """Remove ``attribute`` from every element on the page."""

    @abstractmethod
    async def snapshot_menu(self, ref: ElementRef, dropdown_selector: str) -> Optional[dict]:
        """Structural and ARIA snapshot of a menu container."""

    @abstractmethod
    async def snapshot_toggle(self, ref: ElementRef, menu_attribute: str) -> Optional[dict]:
        """Structural and ARIA snapshot of a toggle candidate."""

    @abstractmethod
    async def visibility_probe(self, ref: ElementRef, item_selector: str) -> dict:
        """Raw signals for the visibility oracle (geometry, ancestor styles, ARIA)."""

    @abstractmethod
    async def active_element(
        self,
        scope: Optional[ElementRef],
        marker: str,
        value: str,
    ) -> Optional[dict]:
        """Describe the focused element and stamp it with ``marker=value``.

        Returns ``tag``, ``is_link``, ``inside_scope``, ``path`` and
        ``previous_mark`` (the marker value before stamping), or None when
        nothing but the document body has focus.
        """

    @abstractmethod
    async def tag_related_dropdown(
        self,
        ref: ElementRef,
        attribute: str,
        value: str,
        container_selector: str,
        use_aria_controls: bool = True,
    ) -> Optional[str]:
        """Mark the dropdown container controlled by ``ref`` with ``attribute=value``.

        The container is the aria-controls target (when allowed), else the
        next sibling matching ``container_selector``, else the first such
        container inside the closest list item. A container that already
        carries ``attribute`` keeps its value. Returns the value in effect,
        or None when no container is found.
        """

    # -------------------------------------------------------------------------
    # Input
    # -------------------------------------------------------------------------

    @abstractmethod
    async def focus(self, ref: ElementRef) -> None:
        """Move keyboard focus to the element."""

    @abstractmethod
    async def blur(self) -> None:
        """Drop keyboard focus back to the document."""

    @abstractmethod
    async def press(self, key: str) -> None:
        """Dispatch a key press to the focused element."""

    @abstractmethod
    async def hover(self, ref: ElementRef) -> None:
        """Move the mouse over the element."""

    @abstractmethod
    async def move_mouse_away(self) -> None:
        """Move the mouse to a neutral position."""

    @abstractmethod
    async def click(self, ref: ElementRef, prevent_navigation: bool = True) -> None:
        """Click the element, optionally cancelling its default action."""

    @abstractmethod
    async def guard_navigation(self, ref: ElementRef) -> None:
        """Cancel the default action of the element's next activation."""

    @abstractmethod
    async def click_outside(self) -> None:
        """Deliver a click to the document outside any control."""

    @abstractmethod
    async def screenshot_element(self, ref: ElementRef) -> bytes:
        """PNG screenshot of the element."""

    # -------------------------------------------------------------------------
    # Convenience
    # -------------------------------------------------------------------------

    async def element_exists(self, ref: ElementRef) -> bool:
        return await self.count(ref.selector) > ref.index

    async def info(self) -> dict[str, Any]:
        return {
            "url": await self.current_url(),
            "viewport": (vp.to_dict() if (vp := await self.viewport_size()) else None),
            "pages": await self.page_count(),
        }
