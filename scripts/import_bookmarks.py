"""
Import bookmarks from a JSON / JSONL export into the database.

Usage:
  python -m scripts.import_bookmarks --input data/bookmarks.json          # dry run
  python -m scripts.import_bookmarks --input data/bookmarks.json --apply
"""

from __future__ import annotations

import argparse
import json
import logging
from collections import Counter
from pathlib import Path
from typing import List

from bookmark_rag.db.session import SessionLocal, engine, init_db
from bookmark_rag.db.store import SqlItemStore
from bookmark_rag.rag.index import Item, load_items


def summarize_items(items: List[Item]) -> None:
    total = len(items)
    print(f"Loaded {total} bookmarks")
    if total == 0:
        return

    by_author: Counter = Counter(it.author_handle for it in items)
    oldest = min(it.posted_at for it in items)
    newest = max(it.posted_at for it in items)
    print(f"Date range: {oldest:%Y-%m-%d} .. {newest:%Y-%m-%d}")

    print("\nTop authors:")
    for handle, count in by_author.most_common(10):
        pct = (count / total) * 100
        print(f"  @{handle:20s}: {count:5d} ({pct:5.1f}%)")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Summarize or import a bookmark export (JSON array, {'bookmarks': [...]} or JSONL).",
    )
    parser.add_argument(
        "--input",
        type=Path,
        default=Path("data/bookmarks.json"),
        help="Path to the exported bookmarks file",
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Write bookmarks to the database. Without this flag, runs in dry-run mode.",
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if not args.input.exists():
        print(f"Error: input file not found: {args.input}")
        return

    print(f"Loading bookmarks from {args.input}...")
    try:
        items = load_items(args.input)
    except (json.JSONDecodeError, KeyError, ValueError) as e:
        print(f"Error: could not parse {args.input}: {e}")
        return
    summarize_items(items)

    if not args.apply:
        print("\nDry run complete. No database changes were made.")
        return

    init_db(engine)
    store = SqlItemStore(SessionLocal)
    result = store.upsert_items(items)
    print(f"\nImported: {result.new_count} new, {result.updated_count} updated")
    print(f"Bookmarks in database: {store.item_count()}")


if __name__ == "__main__":
    main()
