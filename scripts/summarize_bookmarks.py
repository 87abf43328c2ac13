"""
Write a short summary for every bookmark that does not have one yet.

Usage:
  python -m scripts.summarize_bookmarks --dry-run
  python -m scripts.summarize_bookmarks --limit 200
"""

from __future__ import annotations

import argparse
import logging

from bookmark_rag.db.session import SessionLocal, engine, init_db
from bookmark_rag.db.store import SqlItemStore
from bookmark_rag.generation import Summarizer
from bookmark_rag.llm import create_client


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate missing bookmark summaries.")
    parser.add_argument("--limit", type=int, default=None, help="Summarise at most this many bookmarks")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report how many bookmarks are missing summaries.",
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    init_db(engine)
    store = SqlItemStore(SessionLocal)
    missing = len(store.items_without_summary(args.limit))
    print(f"Bookmarks: {store.item_count()}, summarised: {store.summary_count()}, to do: {missing}")
    if args.dry_run or missing == 0:
        return

    client = create_client()
    if not client.has_credentials:
        print("Error: LLM_API_KEY is not set")
        return

    def progress(done: int, total: int) -> None:
        print(f"  {done}/{total}", end="\r", flush=True)

    report = Summarizer(client).summarize_missing(store, limit=args.limit, on_progress=progress)
    print(f"\nSummarised {report.summarized} of {report.total} ({report.failed} failed)")


if __name__ == "__main__":
    main()
