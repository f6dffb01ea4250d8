"""Element tagger: stable synthetic ids for menus, toggles and controls.

Ids are written as data attributes so elements can be re-located with a
plain attribute selector across evaluations, viewport switches and DOM
mutation from probing. An id is assigned on first sight only and never
overwritten; numbering continues after the highest id already on the page,
so repeated discovery on an unchanged page is a no-op.

After any page navigation the attributes are gone: callers must re-run
tagging before trusting a ``[data-menu-id]`` selector again.
"""

import re
from dataclasses import dataclass
from typing import Optional

import structlog

from navaudit.browser.driver import ElementRef, PageDriver

logger = structlog.get_logger()

MENU_ID_ATTRIBUTE = "data-menu-id"
TOGGLE_ID_ATTRIBUTE = "data-toggle-id"
CONTROL_ID_ATTRIBUTE = "data-navaudit-control"
DROPDOWN_ID_ATTRIBUTE = "data-navaudit-dropdown"
VISIT_MARKER_ATTRIBUTE = "data-navaudit-visit"


@dataclass
class TaggedElement:
    """An element carrying a synthetic id."""
    element_id: str
    index: int
    newly_tagged: bool
    attribute: str

    @property
    def ref(self) -> ElementRef:
        return ElementRef.by_attribute(self.attribute, self.element_id)

    @property
    def selector(self) -> str:
        return self.ref.selector


class ElementTagger:
    """Assigns ``<prefix>-<n>`` ids under one attribute."""

    def __init__(self, driver: PageDriver, attribute: str, prefix: str):
        self.driver = driver
        self.attribute = attribute
        self.prefix = prefix
        self._pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")
        self._seen: dict[str, int] = {}
        self.log = logger.bind(component="element_tagger", attribute=attribute)

    @classmethod
    def for_menus(cls, driver: PageDriver) -> "ElementTagger":
        return cls(driver, MENU_ID_ATTRIBUTE, "menu")

    @classmethod
    def for_toggles(cls, driver: PageDriver) -> "ElementTagger":
        return cls(driver, TOGGLE_ID_ATTRIBUTE, "toggle")

    @classmethod
    def for_controls(cls, driver: PageDriver) -> "ElementTagger":
        return cls(driver, CONTROL_ID_ATTRIBUTE, "control")

    def _number(self, element_id: Optional[str]) -> int:
        if not element_id:
            return 0
        match = self._pattern.match(element_id)
        return int(match.group(1)) if match else 0

    async def tag(
        self,
        selector: str,
        exclude_within: Optional[str] = None,
        exclude_nested: bool = True,
    ) -> list[TaggedElement]:
        """Tag every eligible match of ``selector``; return them in document order.

        Args:
            selector: Candidate selector
            exclude_within: Skip candidates inside an element carrying this attribute
            exclude_nested: Skip candidates nested inside another candidate
        """
        container = exclude_within or (self.attribute if exclude_nested else None)
        candidates = await self.driver.collect_candidates(selector, self.attribute, container)

        eligible = []
        for candidate in candidates:
            if candidate.get("existing_id"):
                # Already tagged elements keep their id even if now nested
                eligible.append(candidate)
                continue
            if container and candidate.get("inside_container"):
                continue
            if exclude_nested and candidate.get("nested_in_candidate"):
                continue
            eligible.append(candidate)

        next_number = max(
            [self._number(c.get("existing_id")) for c in candidates] + list(self._seen.values()) + [0]
        ) + 1

        assignments: list[tuple[int, str]] = []
        tagged: list[TaggedElement] = []
        for candidate in eligible:
            existing = candidate.get("existing_id")
            if existing:
                tagged.append(TaggedElement(existing, candidate["index"], False, self.attribute))
                continue
            element_id = f"{self.prefix}-{next_number}"
            next_number += 1
            assignments.append((candidate["index"], element_id))
            tagged.append(TaggedElement(element_id, candidate["index"], True, self.attribute))

        if assignments:
            await self.driver.assign_attribute(selector, assignments, self.attribute)
            self.log.debug("Tagged elements", count=len(assignments), selector=selector)

        for element in tagged:
            self._seen[element.element_id] = self._number(element.element_id)
        return tagged

    def forget(self) -> None:
        """Drop the side table, e.g. after the page navigated and attributes vanished."""
        self._seen.clear()
