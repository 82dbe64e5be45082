"""Command-line interface for running the pipeline without a worker.

Usage:
    pulse crawl https://example.com --limit 100
    pulse classify --site <site_id> [--reclassify]
    pulse classify --site <site_id> --status
    pulse schemas --site <site_id> [--retry] [--include-medium] [--path /botox]
    pulse schemas --site <site_id> --status
"""

import argparse
import logging
import sys

from pulse.config import get_settings
from pulse.database import SyncSessionLocal
from pulse.models import Site
from pulse.page_types import CrawlStatus
from pulse.services.classification_runner import build_classification_runner
from pulse.services.schema_generator import SchemaBatchRunner, build_schema_generator
from pulse.services.site_pipeline import crawl_and_store
from pulse.services.url_validator import normalize_site_url


def print_progress(current: int, total: int, url: str | None = None) -> None:
    print(f"  [{current}/{total}] {url or ''}".rstrip())


def print_counts(title: str, counts: dict) -> None:
    print(title)
    for key, value in counts.items():
        print(f"  {key:<20} {value}")


def get_site(session, site_id: str) -> Site | None:
    site = session.query(Site).filter(Site.id == site_id).first()
    if not site:
        print(f"Site not found: {site_id}")
    return site


def cmd_crawl(args, session, settings) -> int:
    """Crawl a site (creating it if new), then classify its pages."""
    try:
        url, domain = normalize_site_url(args.url)
    except ValueError as e:
        print(f"Invalid URL: {e}")
        return 1

    site = session.query(Site).filter(Site.domain == domain).first()
    if site is None:
        site = Site(url=url, domain=domain, page_limit=settings.default_page_limit)
        session.add(site)
    if args.limit:
        site.page_limit = args.limit
    if args.exclude:
        site.exclude_paths = args.exclude
    if args.account:
        site.account_id = args.account

    site.start_crawl()
    session.commit()
    print(f"Crawling {site.url} (site {site.id}, limit {site.page_limit})")

    try:
        result = crawl_and_store(session, site, settings, on_progress=print_progress)
        print(f"Crawled {result.pages_crawled} pages, skipped {result.pages_skipped}, failed {len(result.failed_urls)}")

        if not args.no_classify:
            site.crawl_status = CrawlStatus.CLASSIFYING
            site.current_url = None
            session.commit()
            summary = build_classification_runner(session, settings, on_progress=print_progress).run(site.id)
            print_counts(f"Classified {summary.processed} pages:", summary.type_counts)
    except Exception as e:
        session.rollback()
        site.fail_crawl(str(e))
        session.commit()
        raise

    site.complete_crawl()
    session.commit()
    return 0


def cmd_classify(args, session, settings) -> int:
    site = get_site(session, args.site)
    if not site:
        return 1

    runner = build_classification_runner(session, settings, on_progress=print_progress)
    if args.status:
        status = runner.status(site.id)
        print(f"{site.domain}: {status['total']} pages, {status['unclassified']} unclassified")
        print_counts("By type:", status["by_type"])
        return 0

    summary = runner.run(site.id, reclassify=args.reclassify)
    print_counts(f"Classified {summary.processed} pages ({summary.errors} errors):", summary.type_counts)
    return 0


def cmd_schemas(args, session, settings) -> int:
    site = get_site(session, args.site)
    if not site:
        return 1

    generator = build_schema_generator(session, settings, include_medium=args.include_medium)
    runner = SchemaBatchRunner(session, generator, batch_size=settings.schema_batch_size, on_progress=print_progress)
    if args.status:
        print_counts(f"Schema status for {site.domain}:", runner.status(site.id))
        return 0

    summary = runner.run(site.id, retry=args.retry, path=args.path)
    print_counts(f"Processed {summary.processed} pages:", summary.counts)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pulse",
        description="Crawl, classify and generate schema for practice websites",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    crawl_parser = subparsers.add_parser("crawl", help="Crawl a site and classify its pages")
    crawl_parser.add_argument("url", help="Site URL or domain")
    crawl_parser.add_argument("--limit", type=int, help="Maximum pages to crawl")
    crawl_parser.add_argument("--exclude", nargs="*", help="Path glob patterns to skip (e.g. /blog/*)")
    crawl_parser.add_argument("--account", help="Account id to attach the site to")
    crawl_parser.add_argument("--no-classify", action="store_true", help="Skip classification")

    classify_parser = subparsers.add_parser("classify", help="Classify a site's pages")
    classify_parser.add_argument("--site", required=True, help="Site id")
    classify_parser.add_argument("--reclassify", action="store_true", help="Classify every page again")
    classify_parser.add_argument("--status", action="store_true", help="Show counts and exit")

    schemas_parser = subparsers.add_parser("schemas", help="Generate schema for a site's pages")
    schemas_parser.add_argument("--site", required=True, help="Site id")
    schemas_parser.add_argument("--retry", action="store_true", help="Retry needs_review pages")
    schemas_parser.add_argument("--include-medium", action="store_true", help="Include MEDIUM tier page types")
    schemas_parser.add_argument("--path", help="Only the page with this path")
    schemas_parser.add_argument("--status", action="store_true", help="Show counts and exit")

    return parser


COMMANDS = {
    "crawl": cmd_crawl,
    "classify": cmd_classify,
    "schemas": cmd_schemas,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = get_settings()
    session = SyncSessionLocal()
    try:
        return COMMANDS[args.command](args, session, settings)
    except KeyboardInterrupt:
        session.rollback()
        print("\nInterrupted")
        return 130
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
