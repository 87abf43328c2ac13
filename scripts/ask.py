"""
Ask a question about your bookmarks from the terminal, streaming the answer.

Usage:
  python -m scripts.ask "What did people say about AI last week?"
  python -m scripts.ask            # interactive, Ctrl-D to quit
"""

from __future__ import annotations

import argparse
import logging
import sys

from bookmark_rag.api.deps import build_services
from bookmark_rag.generation import SUGGESTED_QUESTIONS, cited_item_ids
from bookmark_rag.orchestrator import AnswerStreamer, StreamState

_STATE_LABELS = {
    StreamState.PARSING: "Understanding question...",
    StreamState.SEARCHING: "Searching bookmarks...",
}


def ask_once(streamer: AnswerStreamer, question: str, show_sources: bool) -> int:
    streamed = False
    for event in streamer.stream(question):
        if event.kind == "state" and event.state in _STATE_LABELS:
            print(_STATE_LABELS[event.state], file=sys.stderr)
        elif event.kind == "text":
            streamed = True
            sys.stdout.write(event.text)
            sys.stdout.flush()
        elif event.kind == "error":
            if streamed:
                print()
            print(f"Error: {event.message}", file=sys.stderr)
            return 1
        elif event.kind == "done" and event.result is not None:
            result = event.result
            print("\n")
            if show_sources and result.items:
                cited = len(cited_item_ids(result.citations))
                print(f"({len(result.items)} bookmarks used, {cited} cited)")
                for i, item in enumerate(result.items[:10], 1):
                    print(f"  [{i}] @{item.author_handle} {item.posted_at:%Y-%m-%d} {item.url}")
            if result.followups:
                print("Follow-ups:")
                for q in result.followups:
                    print(f"  - {q}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Ask questions about your bookmarks.")
    parser.add_argument("question", nargs="?", help="Question to ask; omit for interactive mode")
    parser.add_argument("--sources", action="store_true", help="List the bookmarks used for the answer")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    services = build_services()
    streamer = services.streamer_for(None)

    if args.question:
        sys.exit(ask_once(streamer, args.question, args.sources))

    print("Try asking:")
    for q in SUGGESTED_QUESTIONS:
        print(f"  - {q}")
    while True:
        try:
            question = input("\n> ").strip()
        except EOFError:
            print()
            return
        if question:
            ask_once(streamer, question, args.sources)


if __name__ == "__main__":
    main()
