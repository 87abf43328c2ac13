"""
Embed every bookmark that has no vector for the configured embedding model.

Usage:
  python -m scripts.build_embeddings
  python -m scripts.build_embeddings --model sentence-transformers/all-MiniLM-L6-v2 --batch-size 32
"""

from __future__ import annotations

import argparse
import logging

from bookmark_rag.db.session import SessionLocal, engine, init_db
from bookmark_rag.db.store import SqlItemStore
from bookmark_rag.rag import EmbeddingIndexer, SentenceEmbedder


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate missing bookmark embeddings.")
    parser.add_argument("--model", default=None, help="sentence-transformers model (default: EMBEDDING_MODEL)")
    parser.add_argument("--batch-size", type=int, default=64)
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report how many bookmarks are missing embeddings.",
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    init_db(engine)
    store = SqlItemStore(SessionLocal)
    embedder = SentenceEmbedder(args.model, batch_size=args.batch_size)
    indexer = EmbeddingIndexer(store, embedder, batch_size=args.batch_size)

    missing = indexer.missing_count()
    print(f"Model: {embedder.model_tag}")
    print(f"Bookmarks: {store.item_count()}, embedded: {store.embedding_count(embedder.model_tag)}, missing: {missing}")
    if args.dry_run or missing == 0:
        return

    if not embedder.is_available:
        print(f"Error: embedding model {embedder.model_tag} could not be loaded")
        return

    def progress(done: int, total: int) -> None:
        print(f"  {done}/{total}", end="\r", flush=True)

    report = indexer.build_missing(on_progress=progress)
    print(f"\nEmbedded {report.embedded} of {report.total} ({report.skipped} skipped)")


if __name__ == "__main__":
    main()
