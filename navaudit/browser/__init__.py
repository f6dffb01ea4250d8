"""
Browser layer for the menu auditor.

The engine only depends on the ``PageDriver`` capability surface; the
Playwright implementation lives in ``navaudit.browser.playwright_driver``.

Usage:
    from navaudit.browser.playwright_driver import open_audit_page

    async with open_audit_page() as driver:
        print(await driver.info())
"""

from .driver import (
    ElementRef,
    NavAuditError,
    NavigationInterruptedError,
    PageClosedError,
    PageDriver,
    ProbeTimeoutError,
    Viewport,
    bounded,
)

__all__ = [
    # Driver surface
    "PageDriver",
    "ElementRef",
    "Viewport",
    "bounded",
    # Errors
    "NavAuditError",
    "PageClosedError",
    "ProbeTimeoutError",
    "NavigationInterruptedError",
]
