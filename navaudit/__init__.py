"""Keyboard accessibility auditor for website navigation menus.

Discovers navigation menus and their toggles on a page, measures them at
desktop and mobile viewports, probes keyboard/hover/click behavior and folds
the results into WCAG-style criteria.
"""

__version__ = "0.1.0"
