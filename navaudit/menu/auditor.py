"""Menu audit pipeline for one page.

Discovery -> viewport profiling -> toggle discovery (only when some menu is
hidden in every viewport) -> interaction probing -> aggregation. Everything
runs sequentially against the single page the driver controls.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import structlog

from navaudit.browser.driver import ElementRef, PageClosedError, PageDriver, Viewport, bounded
from navaudit.config import Settings, SiteConfig, get_settings, get_site_config_by_url
from navaudit.menu.discovery import MenuDiscoverer
from navaudit.menu.models import (
    MenuFingerprint,
    MenuGroup,
    NavInfo,
    ProbeResult,
    ToggleActivation,
    ToggleFingerprint,
    ToggleInfo,
    ViewportProfile,
)
from navaudit.menu.prober import InteractionProber, NavigationGuard
from navaudit.menu.report import AuditSummary, MenuReporter, member_for
from navaudit.menu.toggles import ToggleDiscoverer
from navaudit.menu.viewport import ViewportProfiler
from navaudit.menu.visibility import VisibilityOracle
from navaudit.utils.logging import AuditLogger, LogContext, log_operation

logger = structlog.get_logger()


@dataclass
class PageAuditResult:
    """Structured result of one page visit."""
    url: str
    final_url: Optional[str] = None
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    duration_ms: int = 0
    viewports: dict[ViewportProfile, Viewport] = field(default_factory=dict)
    nav_info: NavInfo = field(default_factory=NavInfo)
    hidden_menus: dict[ViewportProfile, list[str]] = field(default_factory=dict)
    hidden_in_all_viewports: list[str] = field(default_factory=list)
    toggle_info: Optional[ToggleInfo] = None
    toggle_activations: list[ToggleActivation] = field(default_factory=list)
    probes: list[ProbeResult] = field(default_factory=list)
    summary: AuditSummary = field(default_factory=AuditSummary)
    warnings: list[str] = field(default_factory=list)

    @property
    def groups(self) -> list[MenuGroup]:
        return self.nav_info.groups

    def toggle_bindings(self) -> list[dict]:
        return [
            {"menuId": fp.menu_id, **fp.toggle_binding.to_dict()}
            for fp in self.nav_info.fingerprints
            if fp.toggle_binding is not None
        ]

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "finalUrl": self.final_url,
            "startedAt": self.started_at,
            "durationMs": self.duration_ms,
            "viewports": {p.value: v.to_dict() for p, v in self.viewports.items()},
            "navInfo": self.nav_info.to_dict(),
            "menus": [fp.to_dict() for fp in self.nav_info.fingerprints],
            "hiddenMenus": {p.value: ids for p, ids in self.hidden_menus.items()},
            "hiddenInAllViewports": list(self.hidden_in_all_viewports),
            "toggleInfo": self.toggle_info.to_dict() if self.toggle_info else None,
            "toggleActivations": [a.to_dict() for a in self.toggle_activations],
            "toggleBindings": self.toggle_bindings(),
            "probes": [p.to_dict() for p in self.probes],
            "summary": self.summary.to_dict(),
            "warnings": list(self.warnings),
        }


class MenuAuditor:
    """
    Runs the full menu audit on the driver's page.

    Usage:
        auditor = MenuAuditor(driver)
        result = await auditor.audit("https://example.com")
        print(result.summary.passed)
    """

    def __init__(
        self,
        driver: PageDriver,
        settings: Optional[Settings] = None,
        site_config: Optional[SiteConfig] = None,
    ):
        self.driver = driver
        self.settings = settings or get_settings()
        self.site_config = site_config
        self.log = logger.bind(component="menu_auditor")

    def _build(self, site_config: SiteConfig, audit_log: AuditLogger) -> None:
        timeout = self.settings.step_timeout_ms
        self.oracle = VisibilityOracle(self.driver, timeout_ms=timeout)
        self.discoverer = MenuDiscoverer(self.driver, site_config, timeout_ms=timeout)
        self.profiler = ViewportProfiler(self.driver, self.oracle, self.settings, site_config)
        self.toggles = ToggleDiscoverer(self.driver, self.oracle, self.profiler, site_config, timeout_ms=timeout)
        self.guard = NavigationGuard(self.driver, on_restore=self._retag)
        self.prober = InteractionProber(
            self.driver, self.oracle, self.settings, site_config, audit_log=audit_log, guard=self.guard
        )
        self.reporter = MenuReporter(self.profiler.profiles)
        self._nav_info: Optional[NavInfo] = None
        self._toggle_info: Optional[ToggleInfo] = None

    async def _retag(self) -> None:
        """Re-apply synthetic ids after the page was re-navigated."""
        if self._nav_info is not None:
            if not await self.discoverer.retag(self._nav_info):
                self.audit_log.warning("Menu ids changed after re-navigation; later probes may be incomplete")
        if self._toggle_info is not None:
            self.toggles.tagger.forget()
            await self.toggles.tagger.tag(
                self.toggles.candidate_selector,
                exclude_within=self.discoverer.tagger.attribute,
                exclude_nested=False,
            )

    async def audit(self, url: Optional[str] = None) -> PageAuditResult:
        """Audit the menus of ``url`` (or of the page already loaded).

        Raises:
            PageClosedError: When the page or browser goes away mid-audit
        """
        started = time.monotonic()
        if url:
            await self.driver.goto(url)
        current = await self.driver.current_url()
        site_config = self.site_config or get_site_config_by_url(current)
        self.audit_log = AuditLogger(current)
        self._build(site_config, self.audit_log)

        result = PageAuditResult(url=url or current)
        with LogContext(url=current, site_id=site_config.site_id):
            await self._run(result)
        result.final_url = await self.driver.current_url()
        result.duration_ms = int((time.monotonic() - started) * 1000)
        result.warnings = list(dict.fromkeys(self.audit_log.warnings))
        self.log.info(
            "Menu audit complete",
            url=result.url,
            menus=result.summary.total_menus,
            passed=result.summary.passed,
            duration_ms=result.duration_ms,
            warnings=len(result.warnings),
        )
        return result

    async def _run(self, result: PageAuditResult) -> None:
        with log_operation("discover_menus", self.log) as op:
            nav_info = await self.discoverer.discover()
            op["menus"] = nav_info.total
        self._nav_info = nav_info
        result.nav_info = nav_info
        for note in nav_info.dropped:
            self.audit_log.warning(note)
        for fingerprint in nav_info.fingerprints:
            self.audit_log.menu_discovered(fingerprint.menu_id, fingerprint.name, links=fingerprint.link_count)

        with log_operation("profile_viewports", self.log):
            await self.profiler.profile(nav_info)
        result.viewports = dict(self.profiler.viewports)
        for profile in self.profiler.profiles:
            result.hidden_menus[profile] = nav_info.hidden_menus(profile)

        hidden_groups = [
            g for g in nav_info.groups if all(m.hidden_in_all_viewports for m in g.members)
        ]
        hidden_ids = {g.menu_id for g in hidden_groups}
        result.hidden_in_all_viewports = [g.menu_id for g in hidden_groups]

        if hidden_groups:
            with log_operation("discover_toggles", self.log) as op:
                toggle_info = await self.toggles.discover_toggles(nav_info.menu_ids, nav_info)
                op["toggles"] = len(toggle_info.toggle_details)
            self._toggle_info = toggle_info
            result.toggle_info = toggle_info
            for toggle in toggle_info.toggle_details:
                self.audit_log.toggle_discovered(toggle.toggle_id, name=toggle.name, icon=toggle.icon_type.value)
            if not toggle_info.toggle_details:
                self.audit_log.warning(
                    f"No toggle found for menus hidden in every viewport: {', '.join(result.hidden_in_all_viewports)}"
                )

        with log_operation("probe_menus", self.log) as op:
            for profile in self.profiler.profiles:
                async with self.profiler.at(profile):
                    for group in nav_info.groups:
                        if group.menu_id in hidden_ids:
                            continue
                        member = member_for(group, profile)
                        if not member.views.get(profile) or not member.views[profile].visibility:
                            continue
                        with LogContext(menu_id=member.menu_id, viewport=profile.value):
                            result.probes.append(await self.prober.probe(member, profile))
                    if hidden_groups and result.toggle_info:
                        await self._probe_toggles(
                            [g.representative for g in hidden_groups], result.toggle_info, profile, result
                        )
            op["probes"] = len(result.probes)

        for group in hidden_groups:
            if group.representative.toggle_binding is None:
                self.audit_log.warning(f"Could not find a toggle that reveals {group.menu_id}")

        result.summary = self.reporter.summarize(nav_info, result.probes)
        for criterion in result.summary.criteria:
            self.audit_log.criterion(criterion.criterion, criterion.passed, details=criterion.details)

    def toggle_candidates(
        self,
        menu: MenuFingerprint,
        toggle_info: ToggleInfo,
        profile: ViewportProfile,
    ) -> list[ToggleFingerprint]:
        """Toggles worth trying for ``menu``: declared for it first, then undeclared ones."""
        visible = [t for t in toggle_info.toggle_details if t.visible_in(profile)]
        declared = [
            t for t in visible
            if t.controlled_menu and t.controlled_menu.resolved_by == "aria-controls"
            and t.controlled_menu.menu_id == menu.menu_id
        ]
        undeclared = [t for t in visible if not (t.aria.controls or "").strip()]
        return declared + [t for t in undeclared if t not in declared]

    async def _probe_toggles(
        self,
        hidden: list[MenuFingerprint],
        toggle_info: ToggleInfo,
        profile: ViewportProfile,
        result: PageAuditResult,
    ) -> None:
        """Find, for each menu hidden by default, a toggle that reveals it in this viewport."""

        async def probe_revealed(menus: list[MenuFingerprint]) -> None:
            for menu in menus:
                with LogContext(menu_id=menu.menu_id, viewport=profile.value):
                    result.probes.append(await self.prober.probe(menu, profile))

        for menu in hidden:
            binding = menu.toggle_binding
            if binding is not None and binding.profile == profile:
                continue
            remaining = [
                m for m in hidden
                if m.toggle_binding is None or m.toggle_binding.profile != profile
            ]
            for toggle in self.toggle_candidates(menu, toggle_info, profile):
                activation = await self.prober.test_toggle_activation(
                    toggle, remaining, profile, on_open=probe_revealed
                )
                result.toggle_activations.append(activation)
                if menu.menu_id in activation.revealed_menus:
                    break

    async def screenshot_menus(self, nav_info: NavInfo) -> dict[str, bytes]:
        """PNG screenshots of every visible group representative."""
        shots: dict[str, bytes] = {}
        for group in nav_info.groups:
            member = member_for(group, ViewportProfile.DESKTOP)
            try:
                shots[member.menu_id] = await bounded(
                    self.driver.screenshot_element(ElementRef(member.selector)),
                    self.settings.pointer_timeout_ms,
                    step="screenshot",
                )
            except PageClosedError:
                raise
            except Exception as e:
                self.log.debug("Menu screenshot failed", menu_id=member.menu_id, error=str(e))
        return shots
