#!/usr/bin/env python3
"""
Run a category search from the command line and print the JSON payload.

Usage (run from repo root with venv activated):

    python scripts/search_categories.py "northern lights" --category images
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging

from blaster.config import get_settings
from blaster.models import to_payload
from blaster.search import CATEGORIES, CategorySearch


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Search web, images, videos and news.")
    parser.add_argument("query", help="Search terms")
    parser.add_argument(
        "--category",
        action="append",
        choices=CATEGORIES,
        help="Category to search; repeat for several (default: all)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    args = parse_args(argv)
    searcher = CategorySearch(get_settings())
    results = asyncio.run(searcher.search_all(args.query, args.category or CATEGORIES))
    print(json.dumps({"query": args.query, **{name: to_payload(items) for name, items in results.items()}}, indent=2))


if __name__ == "__main__":
    main()
