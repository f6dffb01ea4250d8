"""Menu audit engine: discovery, visibility, toggles, probing and reporting."""

from .auditor import MenuAuditor, PageAuditResult
from .discovery import MenuDiscoverer
from .models import (
    DropdownAccessibility,
    IconType,
    MenuFingerprint,
    MenuGroup,
    MenuType,
    NavInfo,
    ToggleFingerprint,
    ToggleInfo,
    ViewportProfile,
)
from .prober import InteractionProber
from .report import AuditSummary, MenuReporter
from .tagger import ElementTagger
from .toggles import ToggleDiscoverer
from .viewport import ViewportProfiler
from .visibility import VisibilityOracle

__all__ = [
    "MenuAuditor",
    "PageAuditResult",
    "MenuDiscoverer",
    "ElementTagger",
    "VisibilityOracle",
    "ViewportProfiler",
    "ToggleDiscoverer",
    "InteractionProber",
    "MenuReporter",
    "AuditSummary",
    # Models
    "MenuType",
    "ViewportProfile",
    "IconType",
    "DropdownAccessibility",
    "MenuFingerprint",
    "MenuGroup",
    "NavInfo",
    "ToggleFingerprint",
    "ToggleInfo",
]
