"""Main entry point for the navigation menu auditor."""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import structlog

from .browser.driver import PageClosedError
from .browser.playwright_driver import open_audit_page
from .config import ConfigError, Settings, get_settings, get_site_config, load_site_config
from .menu.auditor import MenuAuditor, PageAuditResult
from .utils.logging import configure_logging

logger = structlog.get_logger()


def results_path(output_dir: str, url: str) -> Path:
    """``<output_dir>/<hostname>/results.json``"""
    hostname = urlparse(url).hostname or "page"
    return Path(output_dir) / hostname / "results.json"


async def run_audit(
    url: str,
    settings: Settings,
    site_id: Optional[str] = None,
    site_config_path: Optional[str] = None,
) -> PageAuditResult:
    """Audit one page and save its results."""
    site_config = None
    if site_config_path:
        site_config = load_site_config(site_config_path)
    elif site_id:
        site_config = get_site_config(site_id)

    async with open_audit_page(settings) as driver:
        auditor = MenuAuditor(driver, settings=settings, site_config=site_config)
        result = await auditor.audit(url)
        shots = await auditor.screenshot_menus(result.nav_info) if settings.capture_screenshots else {}

    results_file = results_path(settings.output_dir, url)
    results_file.parent.mkdir(parents=True, exist_ok=True)
    with open(results_file, "w") as f:
        json.dump(result.to_dict(), f, indent=2, default=str)
    for menu_id, png in shots.items():
        (results_file.parent / f"{menu_id}.png").write_bytes(png)

    logger.info("Results saved", path=str(results_file), screenshots=len(shots))
    print_summary(result)
    return result


def print_summary(result: PageAuditResult) -> None:
    summary = result.summary
    print("\n" + "=" * 50)
    print("MENU AUDIT SUMMARY")
    print("=" * 50)
    print(f"URL: {result.final_url or result.url}")
    print(f"Menus: {summary.total_menus} ({summary.total_candidates} candidates)")
    print(f"Menus with accessible name: {summary.menus_with_accessible_name}")
    print(f"Toggle-based menus: {summary.toggle_based_menus}")
    print(f"Hidden in every viewport: {summary.hidden_menus}")
    print(f"Keyboard-accessible dropdowns: {summary.keyboard_accessible_dropdowns}")
    print(f"Mouse-only dropdowns: {summary.mouse_only_dropdowns}")
    for criterion in summary.criteria:
        status = "PASS" if criterion.passed else "FAIL"
        print(f"  {criterion.criterion} {criterion.name}: {status} - {criterion.details}")
    if result.warnings:
        print(f"Warnings: {len(result.warnings)}")
        for warning in result.warnings:
            print(f"  - {warning}")
    print("=" * 50 + "\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Audit the keyboard accessibility of a page's navigation menus"
    )
    parser.add_argument("url", help="URL of the page to audit")
    parser.add_argument("--site-id", help="Registered site configuration to use")
    parser.add_argument("--site-config", help="Path to a JSON site configuration")
    parser.add_argument(
        "--output-dir", "-o",
        help="Output directory for results (default: ./navaudit-results)"
    )
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--json-logs", action="store_true", help="Render logs as JSON")
    parser.add_argument("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)")
    parser.add_argument("--screenshots", action="store_true", help="Save a screenshot of each menu")
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    overrides = {}
    if args.output_dir:
        overrides["output_dir"] = args.output_dir
    if args.headed:
        overrides["headless"] = False
    if args.json_logs:
        overrides["json_logs"] = True
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    if args.screenshots:
        overrides["capture_screenshots"] = True
    return get_settings().model_copy(update=overrides)


def main(argv: Optional[list[str]] = None) -> int:
    """Command-line interface. Returns the process exit code."""
    args = build_parser().parse_args(argv)
    settings = settings_from_args(args)
    configure_logging(level=settings.log_level, json_format=settings.json_logs)

    try:
        result = asyncio.run(run_audit(
            args.url,
            settings,
            site_id=args.site_id,
            site_config_path=args.site_config,
        ))
    except ConfigError as e:
        logger.error("Invalid configuration", error=str(e))
        return 2
    except PageClosedError as e:
        logger.error("Page closed during audit", url=args.url, error=str(e))
        return 3

    return 0 if result.summary.passed else 1


if __name__ == "__main__":
    sys.exit(main())
