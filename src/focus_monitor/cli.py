"""CLI entry point for focus monitor."""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import typer

from focus_monitor.adapters.extraction import HtmlExtractor
from focus_monitor.adapters.fetch import HttpFetcher
from focus_monitor.adapters.llm import ClassifierClient
from focus_monitor.adapters.storage import YamlSiteStore
from focus_monitor.config import Settings, get_settings
from focus_monitor.core import Category, MonitoringFrequency, TrackedSite
from focus_monitor.core.errors import MonitorError
from focus_monitor.scheduler import MonitoringScheduler
from focus_monitor.use_cases import CheckReport, MonitoringService, TickReport

app = typer.Typer(help="Monitor tracked web pages for new content and summarize it.")

_STATE_EMOJI = {"updated": "🆕", "unchanged": "✓", "failed": "❌"}


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )
    # Suppress noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _load_settings(config: Path, verbose: bool) -> Settings:
    configure_logging(verbose)
    try:
        return get_settings(config)
    except ValueError as e:
        print(f"❌ Invalid configuration: {e}")
        raise typer.Exit(code=2)


@asynccontextmanager
async def open_service(settings: Settings) -> AsyncIterator[MonitoringService]:
    """Build the service and close its HTTP clients on exit."""
    store = YamlSiteStore(settings.storage_dir, settings.frequency_intervals)
    async with HttpFetcher(settings.fetcher) as fetcher, ClassifierClient(settings) as classifier:
        yield MonitoringService(
            store=store,
            fetcher=fetcher,
            classifier=classifier,
            extractor=HtmlExtractor(settings.extraction),
            concurrency=settings.scheduler.concurrency,
            frequency_intervals=settings.frequency_intervals,
        )


def _print_report(report: CheckReport) -> None:
    emoji = _STATE_EMOJI.get(report.state.value, "•")
    line = f"  {emoji} {report.site_id} {report.url} - {report.state.value}"
    if report.summary_id:
        line += f" (summary {report.summary_id})"
    if report.error:
        line += f": {report.error}"
    print(line)


def _print_tick(report: TickReport) -> None:
    for result in report.results:
        _print_report(result)
    for site_id, error in report.errors.items():
        print(f"  ⚠️  {site_id}: {error}")
    print(
        f"\n✓ Updated: {report.updated}  Unchanged: {report.unchanged}  "
        f"Failed: {report.failed}  Errors: {len(report.errors)}  "
        f"Skipped: {len(report.skipped)}  Timed out: {len(report.timed_out)}"
    )


@app.command()
def run(
    config: Path = typer.Option(Path("config.yaml"), help="Path to YAML config"),
    verbose: bool = typer.Option(False, "-v", "--verbose"),
) -> None:
    """Run the scheduler loop until interrupted."""
    settings = _load_settings(config, verbose)
    if not settings.classifier_api_key:
        print("⚠️  AIML_API_KEY not set - summaries will use the fallback classification")

    async def _run() -> None:
        async with open_service(settings) as service:
            scheduler = MonitoringScheduler(
                service,
                tick_interval=settings.scheduler.tick_interval,
                tick_timeout=settings.scheduler.tick_timeout,
            )
            await scheduler.run_forever()

    print("📡 Focus monitor started. Press Ctrl+C to stop.")
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        print("\n👋 Stopped")


@app.command()
def tick(
    config: Path = typer.Option(Path("config.yaml"), help="Path to YAML config"),
    verbose: bool = typer.Option(False, "-v", "--verbose"),
) -> None:
    """Check every due site once."""
    settings = _load_settings(config, verbose)

    async def _tick() -> Optional[TickReport]:
        async with open_service(settings) as service:
            scheduler = MonitoringScheduler(service, tick_timeout=settings.scheduler.tick_timeout)
            return await scheduler.run_once()

    report = asyncio.run(_tick())
    if report is None:
        print("❌ Store unavailable, nothing checked")
        raise typer.Exit(code=1)
    _print_tick(report)


@app.command()
def check(
    site_id: str,
    config: Path = typer.Option(Path("config.yaml"), help="Path to YAML config"),
    verbose: bool = typer.Option(False, "-v", "--verbose"),
) -> None:
    """Check one site now, regardless of its schedule."""
    settings = _load_settings(config, verbose)

    async def _check() -> CheckReport:
        async with open_service(settings) as service:
            return await service.check_site(site_id)

    try:
        report = asyncio.run(_check())
    except MonitorError as e:
        print(f"❌ {e}")
        raise typer.Exit(code=1)
    _print_report(report)


@app.command("add-site")
def add_site(
    url: str,
    user: str = typer.Option(..., "--user", help="Owning user id"),
    category: Category = typer.Option(Category.OTHER, case_sensitive=False),
    frequency: MonitoringFrequency = typer.Option(MonitoringFrequency.DAILY, case_sensitive=False),
    title: Optional[str] = typer.Option(None, help="Title (fetched from the page when omitted)"),
    config: Path = typer.Option(Path("config.yaml"), help="Path to YAML config"),
    verbose: bool = typer.Option(False, "-v", "--verbose"),
) -> None:
    """Start tracking a URL."""
    settings = _load_settings(config, verbose)

    async def _add() -> TrackedSite:
        async with open_service(settings) as service:
            return await service.register_site(user, url, category, frequency, title)

    try:
        site = asyncio.run(_add())
    except (MonitorError, ValueError) as e:
        print(f"❌ {e}")
        raise typer.Exit(code=1)
    print(f"✓ Tracking {site.url} as {site.id} ({site.title})")


@app.command()
def sites(
    user: Optional[str] = typer.Option(None, "--user", help="Only this user's sites"),
    config: Path = typer.Option(Path("config.yaml"), help="Path to YAML config"),
) -> None:
    """List tracked sites."""
    settings = _load_settings(config, False)
    store = YamlSiteStore(settings.storage_dir, settings.frequency_intervals)
    tracked = asyncio.run(store.list_sites(user))
    if not tracked:
        print("No tracked sites.")
        return
    for site in tracked:
        state = "active" if site.is_active else "paused"
        last = site.last_checked.isoformat() if site.last_checked else "never"
        print(f"  • {site.id} {site.url} [{site.category.value}, {site.monitoring_frequency.value}, {state}]")
        print(f"    └─ last checked: {last}, success rate: {site.statistics.success_rate:.0f}%")


@app.command()
def status(
    site_id: str,
    config: Path = typer.Option(Path("config.yaml"), help="Path to YAML config"),
) -> None:
    """Show a site's monitoring status."""
    settings = _load_settings(config, False)

    async def _status():
        async with open_service(settings) as service:
            return await service.site_status(site_id)

    try:
        site_status = asyncio.run(_status())
    except MonitorError as e:
        print(f"❌ {e}")
        raise typer.Exit(code=1)

    stats = site_status.statistics
    print(f"Site {site_status.site_id} ({site_status.state.value})")
    print(f"  • Active: {site_status.is_active}")
    print(f"  • Last checked: {site_status.last_checked or 'never'}")
    print(f"  • Due now: {site_status.needs_monitoring}")
    print(f"  • Checks: {stats.total_checks} ({stats.successful_checks} ok, {stats.failed_checks} failed)")
    print(f"  • Success rate: {site_status.success_rate:.0f}%")
    if stats.last_error:
        print(f"  • Last error: {stats.last_error.message} at {stats.last_error.timestamp.isoformat()}")


@app.command()
def probe(
    url: str,
    config: Path = typer.Option(Path("config.yaml"), help="Path to YAML config"),
) -> None:
    """Fetch a URL once and show what would be extracted."""
    settings = _load_settings(config, False)

    async def _probe():
        async with open_service(settings) as service:
            return await service.probe_site(url)

    result = asyncio.run(_probe())
    if not result.success:
        print(f"❌ {url}: {result.error} (status {result.status_code})")
        raise typer.Exit(code=1)
    print(f"✓ {url} - HTTP {result.status_code}")
    print(f"  • Title: {result.title}")
    print(f"  • Main content container: {'yes' if result.has_content else 'no'}")
    print(f"  • Length: {result.content_length} chars, {result.word_count} words")
    if result.content_type:
        print(f"  • Content-Type: {result.content_type}")
    if result.last_modified:
        print(f"  • Last-Modified: {result.last_modified}")


@app.command()
def summaries(
    site: Optional[str] = typer.Option(None, "--site", help="Only this site's summaries"),
    limit: int = typer.Option(20, help="Maximum number to show"),
    config: Path = typer.Option(Path("config.yaml"), help="Path to YAML config"),
) -> None:
    """List stored summaries, newest first."""
    settings = _load_settings(config, False)
    store = YamlSiteStore(settings.storage_dir, settings.frequency_intervals)
    try:
        items = asyncio.run(store.list_summaries(site))
    except MonitorError as e:
        print(f"❌ {e}")
        raise typer.Exit(code=1)
    if not items:
        print("No summaries yet.")
        return
    for summary in items[:limit]:
        tier = summary.classification.tier.value
        marker = "🔥" if tier == "tier1" else "📄"
        print(f"{marker} [{tier}] {summary.title}")
        print(f"  └─ {summary.original_url} - {summary.published_at.isoformat()}")
        print(f"     {summary.content.summary}")
        tags = ", ".join(summary.classification.tags)
        if tags:
            print(f"     tags: {tags}")


if __name__ == "__main__":
    app()
