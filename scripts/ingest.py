#!/usr/bin/env python3
"""
CLI tool for job ingestion.

Usage:
    # Scrape all enabled sources once
    python -m scripts.ingest scrape

    # Scrape one source, optionally one Remotive category
    python -m scripts.ingest scrape --source remotive --category software-dev

    # Fetch from sources without saving anything
    python -m scripts.ingest test --source remoteok

    # List registered sources
    python -m scripts.ingest sources --output json

    # Show effective configuration
    python -m scripts.ingest config

    # Run one cycle and print metrics as JSON
    python -m scripts.ingest metrics --output json

    # Run scheduler (continuous)
    python -m scripts.ingest serve
"""

import argparse
import asyncio
import json
import sys
import time

# Add parent directory to path for imports
sys.path.insert(0, str(__file__).rsplit("/", 2)[0])

from harvester.config import get_settings
from harvester.exceptions import HarvesterError
from harvester.logging_config import configure_logging
from harvester.main import harvester_context, serve
from harvester.models.domain import CycleReport, CycleResult
from harvester.services.ingestion import IngestionOrchestrator, MetricsSnapshot, SourceRegistry
from harvester.sources import JobSourceAdapter, RemotiveAdapter, create_sources


def select_sources(
    registry: SourceRegistry,
    name: str = None,
    category: str = None,
    timeout: float = 30.0,
):
    """
    Pick the sources for a run; None means all enabled sources.

    A category gets a fresh Remotive adapter for this run, so the
    registered adapter keeps its configured categories.
    """
    if not name:
        return None

    matches = {
        key: source
        for key, source in registry.sources().items()
        if key.lower() == name.lower()
    }
    if not matches:
        raise ValueError(f"Unknown source: {name}")

    if category:
        for key, source in list(matches.items()):
            if isinstance(source, RemotiveAdapter):
                matches[key] = RemotiveAdapter(timeout=timeout, categories=[category])

    return matches


async def close_unregistered(registry: SourceRegistry, sources):
    """Close adapters built for a single run."""
    registered = registry.sources()
    for key, source in (sources or {}).items():
        if registered.get(key) is not source:
            await source.aclose()


async def run_with_deadline(orchestrator: IngestionOrchestrator, timeout: float, sources=None) -> CycleReport:
    """Run one cycle, firing the cancel event once the deadline passes."""
    cancel_event = asyncio.Event()
    handle = asyncio.get_running_loop().call_later(timeout, cancel_event.set)
    try:
        return await orchestrator.run_cycle(cancel_event=cancel_event, sources=sources)
    finally:
        handle.cancel()


async def fetch_source_once(source: JobSourceAdapter) -> CycleResult:
    """Fetch once from a source without rate limiting, retries or saving."""
    start_time = time.monotonic()
    try:
        jobs = await source.fetch_jobs()
    except Exception as e:
        return CycleResult(source=source.name, error=e, duration=time.monotonic() - start_time)
    return CycleResult(source=source.name, jobs=jobs, duration=time.monotonic() - start_time)


def describe_sources(registry: SourceRegistry) -> list[dict]:
    """Registered sources with their enablement and limits."""
    enabled = registry.enabled_sources()
    described = []

    for name, source in sorted(registry.sources().items()):
        config = registry.config_of(name)
        described.append({
            "name": name,
            "enabled": name in enabled,
            "url": source.base_url,
            "rate_limit": config.rate_limit if config else source.rate_limit_per_minute,
            "supports_search": source.supports_search,
            "search_terms": list(config.search_terms) if config else [],
        })

    return described


def print_report(report: CycleReport):
    print("\n" + "=" * 60)
    print("INGESTION RESULTS")
    print("=" * 60)

    for result in report.results:
        print(result)

    print("-" * 60)
    print(f"Scraped:     {report.jobs_scraped}")
    print(f"Unique:      {report.unique_jobs}")
    print(f"Duplicates:  {report.duplicates}")
    print(f"Saved:       {report.jobs_saved}")
    print(f"Errors:      {report.errors}")
    print(f"Duration:    {report.duration:.1f}s")

    if report.near_duplicates:
        print(f"Near-duplicates: {len(report.near_duplicates)}")


def print_metrics(metrics: MetricsSnapshot):
    print("\n" + "=" * 60)
    print("SCRAPER METRICS")
    print("=" * 60)
    print(f"Total Jobs Scraped: {metrics.jobs_scraped}")
    print(f"Total Jobs Saved:   {metrics.jobs_saved}")
    print(f"Total Duplicates:   {metrics.duplicates}")
    print(f"Total Errors:       {metrics.errors}")
    print(f"Last Duration:      {metrics.scraping_duration:.1f}s")

    if metrics.sources:
        print("\nSource Performance:")
        for name, perf in sorted(metrics.sources.items()):
            last = perf.last_scraped.strftime("%Y-%m-%d %H:%M:%S") if perf.last_scraped else "never"
            print(
                f"  {name}: scraped={perf.jobs_scraped}, saved={perf.jobs_saved}, "
                f"duplicates={perf.duplicates}, errors={perf.errors}, "
                f"response_time={perf.response_time:.2f}s, last_scraped={last}"
            )


def build_registry(settings) -> SourceRegistry:
    """Registry of the built-in sources, without a store or orchestrator."""
    registry = SourceRegistry()
    for source, config in create_sources(settings):
        registry.register(source, config)
    return registry


async def cmd_scrape(args):
    """Run one ingestion cycle."""
    settings = get_settings()
    async with harvester_context(settings) as orchestrator:
        try:
            sources = select_sources(
                orchestrator.registry, args.source, args.category, settings.request_timeout
            )
        except ValueError as e:
            print(e)
            print(f"Valid sources: {sorted(orchestrator.registry.sources())}")
            return 1

        print("Starting job scraping...")
        try:
            report = await run_with_deadline(orchestrator, args.timeout, sources)
        except HarvesterError as e:
            print(f"Scraping failed: {e}")
            return 1
        finally:
            await close_unregistered(orchestrator.registry, sources)

        if args.output == "json":
            print(json.dumps({
                "results": [
                    {
                        "source": r.source,
                        "jobs": len(r.jobs),
                        "error": str(r.error) if r.error else None,
                        "duration": round(r.duration, 3),
                    }
                    for r in report.results
                ],
                "metrics": orchestrator.get_metrics().to_dict(),
            }, indent=2))
        else:
            print_report(report)

    return 0


async def cmd_test(args):
    """Fetch from sources without saving anything."""
    settings = get_settings()
    registry = build_registry(settings)

    try:
        sources = select_sources(registry, args.source, args.category, settings.request_timeout)
    except ValueError as e:
        print(e)
        print(f"Valid sources: {sorted(registry.sources())}")
        return 1

    if sources is None:
        sources = registry.enabled_sources()

    if args.output == "console":
        print("Testing job sources...")
    try:
        results = await asyncio.gather(*(fetch_source_once(s) for s in sources.values()))
    finally:
        await close_unregistered(registry, sources)
        for source in registry.sources().values():
            await source.aclose()

    if args.output == "json":
        print(json.dumps([
            {
                "source": r.source,
                "passed": r.success,
                "jobs": len(r.jobs),
                "error": str(r.error) if r.error else None,
                "duration": round(r.duration, 3),
            }
            for r in results
        ], indent=2))
    else:
        for result in results:
            print(result)

    return 0 if all(r.success for r in results) else 1


async def cmd_sources(args):
    """List registered sources."""
    registry = build_registry(get_settings())
    described = describe_sources(registry)

    if args.output == "json":
        print(json.dumps(described, indent=2))
        return 0

    print("\n" + "=" * 50)
    print("SOURCE CONFIGURATION")
    print("=" * 50)

    for source in described:
        print(f"  {source['name']}")
        print(f"    Enabled: {source['enabled']}")
        print(f"    URL: {source['url']}")
        print(f"    Rate limit: {source['rate_limit']}/min")
        print(f"    Search: {source['supports_search']}")
        if source["search_terms"]:
            print(f"    Search terms: {', '.join(source['search_terms'])}")
        print()

    return 0


async def cmd_config(args):
    """Show effective settings."""
    settings = get_settings()
    print(json.dumps(settings.redacted(), indent=2, default=str))
    return 0


async def cmd_metrics(args):
    """Run one cycle and print the resulting metrics."""
    async with harvester_context() as orchestrator:
        try:
            await run_with_deadline(orchestrator, args.timeout)
        except HarvesterError as e:
            print(f"Scraping failed: {e}")

        metrics = orchestrator.get_metrics()
        if args.output == "json":
            print(json.dumps(metrics.to_dict(), indent=2))
        else:
            print_metrics(metrics)

    return 0


async def cmd_serve(args):
    """Run continuous scheduler."""
    settings = get_settings()
    print(f"Starting scheduler (every {settings.scraping_interval_minutes} minutes)")
    print("Press Ctrl+C to stop")
    await serve(settings)
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Job Harvester - Ingestion CLI"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Scrape command
    scrape_parser = subparsers.add_parser("scrape", help="Run one ingestion cycle")
    scrape_parser.add_argument(
        "--source", "-s",
        help="Specific source to scrape (e.g., remoteok, remotive)"
    )
    scrape_parser.add_argument(
        "--category", "-c",
        help="Remotive category filter (e.g., software-dev, devops, data)"
    )
    scrape_parser.add_argument(
        "--output", "-o",
        choices=["console", "json"],
        default="console",
        help="Output format (default: console)"
    )
    scrape_parser.add_argument(
        "--timeout", "-t",
        type=float,
        default=300.0,
        help="Cancel the cycle after this many seconds (default: 300)"
    )

    # Test command
    test_parser = subparsers.add_parser("test", help="Fetch from sources without saving")
    test_parser.add_argument(
        "--source", "-s",
        help="Specific source to test (default: all enabled sources)"
    )
    test_parser.add_argument("--category", "-c", help="Remotive category filter")
    test_parser.add_argument(
        "--output", "-o",
        choices=["console", "json"],
        default="console",
    )

    # Sources command
    sources_parser = subparsers.add_parser("sources", help="List registered sources")
    sources_parser.add_argument(
        "--output", "-o",
        choices=["console", "json"],
        default="console",
    )

    # Config command
    subparsers.add_parser("config", help="Show effective configuration")

    # Metrics command
    metrics_parser = subparsers.add_parser("metrics", help="Run one cycle and show metrics")
    metrics_parser.add_argument(
        "--output", "-o",
        choices=["console", "json"],
        default="console",
    )
    metrics_parser.add_argument("--timeout", "-t", type=float, default=300.0)

    # Serve command
    subparsers.add_parser("serve", help="Run continuous scheduler")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    settings = get_settings()
    configure_logging("DEBUG" if args.verbose else settings.log_level, settings.log_json)

    commands = {
        "scrape": cmd_scrape,
        "test": cmd_test,
        "sources": cmd_sources,
        "config": cmd_config,
        "metrics": cmd_metrics,
        "serve": cmd_serve,
    }

    return asyncio.run(commands[args.command](args))


if __name__ == "__main__":
    sys.exit(main())
