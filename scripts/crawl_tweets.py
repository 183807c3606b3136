#!/usr/bin/env python3
"""
Crawl tweets for one or more queries and write the exports to disk.

Uses the Twitter API v2 when TWITTER_BEARER_TOKEN is set (via .env or the
environment); otherwise the built-in mock corpus is searched.

Usage (run from repo root with venv activated):

    python scripts/crawl_tweets.py "ai tools" "clean code" \
        --format csv --format analytics-json \
        --output data/exports
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import time
from pathlib import Path

from blaster.config import get_settings
from blaster.export import EXPORT_FORMATS, export_filename, render_export
from blaster.twitter import MAX_CONCURRENT_CRAWLS, get_crawler

REPO_ROOT = Path(__file__).resolve().parents[1]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Crawl tweets and export them as CSV/JSON.")
    parser.add_argument("queries", nargs="+", help=f"Search queries (at most {MAX_CONCURRENT_CRAWLS} are crawled)")
    parser.add_argument(
        "--format",
        dest="formats",
        action="append",
        choices=sorted(EXPORT_FORMATS),
        help="Export format; repeat for several (default: csv)",
    )
    parser.add_argument(
        "--output",
        default=REPO_ROOT / "data/exports",
        type=Path,
        help="Directory to write export files into",
    )
    return parser.parse_args(argv)


def run(queries: list[str], formats: list[str], output_dir: Path) -> list[Path]:
    crawler = get_crawler(get_settings())
    responses = asyncio.run(crawler.crawl_multiple_queries(queries))
    for response in responses:
        logging.info("%s", response.summary)

    output_dir.mkdir(parents=True, exist_ok=True)
    stamp = int(time.time() * 1000)
    written = []
    for export_format in formats:
        path = output_dir / export_filename(export_format, queries[0], stamp)
        path.write_text(render_export(export_format, responses), encoding="utf-8")
        logging.info("Wrote %s export to %s", export_format, path)
        written.append(path)
    return written


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    args = parse_args(argv)
    run(args.queries, args.formats or ["csv"], args.output)


if __name__ == "__main__":
    main()
