"""Command-line interface for the claims scraper."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from claims_scraper.config import Settings
from claims_scraper.crawler import scrape_claims
from claims_scraper.models import OutputFormat
from claims_scraper.report import read_report, render, write_report


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="claims-scraper",
        description="Scrape a paginated claims register into a claim tree.",
    )
    parser.add_argument("url", nargs="?", default=None, help="Listing page to scrape")
    parser.add_argument(
        "-r", "--recursive",
        type=int,
        default=None,
        help="Follow this many listing pages (default: 1; capped by MAX_LINKS in the config)",
    )
    parser.add_argument(
        "-f", "--format",
        choices=[f.value for f in OutputFormat],
        default=OutputFormat.TXT.value,
        help="Report format (default: txt)",
    )
    parser.add_argument(
        "--file",
        default=None,
        help="Load a previously saved JSON report instead of scraping",
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Config file (default: $CLAIMS_SCRAPER_CONFIG or claims_scraper.conf)",
    )
    parser.add_argument(
        "-o", "--output",
        default=None,
        help="Output file path (default: stdout)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.url and not args.file:
        parser.error("You must either pass in a URL to scan or a pre-compiled JSON file.")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.file:
        result = read_report(Path(args.file))
    else:
        settings = Settings.from_env(args.config)
        depth = args.recursive if args.recursive is not None else 1
        result = scrape_claims(args.url, recursion_depth=depth, settings=settings)

    fmt = OutputFormat(args.format)

    if args.output and fmt is OutputFormat.JSON:
        # JSON output is a report other runs may reload with --file.
        write_report(result, Path(args.output))
        print(f"Output written to {args.output}", file=sys.stderr)
    elif args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(render(result, fmt))
        print(f"Output written to {args.output}", file=sys.stderr)
    else:
        print(render(result, fmt))

    return 0


if __name__ == "__main__":
    sys.exit(main())
