#!/usr/bin/env python3
import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path

from localrag_pro.app import LocalRAG, load_config
from localrag_pro.ingest.pipeline import FolderNotFoundError
from localrag_pro.logging_utils import setup_logging
from localrag_pro.utils.output import export_chat, load_chat

logger = logging.getLogger(__name__)


def _print_summary(summary) -> None:
    print(f"Indexed: {summary.indexed}  Skipped: {summary.skipped}  Failed: {summary.failed}")
    for it in summary.items:
        if it.status == "failed":
            print(f"  [failed] {it.path}: {it.reason}")
    if summary.watching:
        print(f"Watching: {summary.folder}")


def _wait_forever(rag: LocalRAG) -> None:
    print("Watching for changes (Ctrl+C to exit) ...")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        rag.close()


def main():
    parser = argparse.ArgumentParser(
        prog="localrag-pro",
        description="Index a folder of documents and chat with it through a local model.",
    )
    parser.add_argument("--config", type=str, default="config.yaml")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable DEBUG logs (to stderr)."
    )
    parser.add_argument("--quiet", "-q", action="store_true", help="Reduce logs to WARN and above.")
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON lines (stderr).")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_idx = sub.add_parser("index", help="Index a folder of documents")
    p_idx.add_argument("folder", type=str, help="Path to folder with documents")
    p_idx.add_argument(
        "--watch", action="store_true", help="Stay running and report changes under the folder"
    )

    p_ask = sub.add_parser("ask", help="Ask a question about the indexed documents")
    p_ask.add_argument("question", type=str, help="Your question string")
    p_ask.add_argument(
        "--history", type=str, default=None, help="JSON file with prior chat messages"
    )
    p_ask.add_argument(
        "--show-sources", action="store_true", help="Print the retrieved source chunks"
    )

    p_exp = sub.add_parser("export", help="Export a saved chat as Markdown + JSON")
    p_exp.add_argument("history", type=str, help="JSON file with chat messages")

    args = parser.parse_args()

    if args.verbose and args.quiet:
        print("Cannot use --verbose and --quiet together.", file=sys.stderr)
        sys.exit(2)
    level = "DEBUG" if args.verbose else "WARNING" if args.quiet else None
    setup_logging(level=level, json_logs=args.log_json)

    cfg = load_config(args.config)
    if args.cmd != "index" or not args.watch:
        cfg["ingest"]["watch"] = False
    logger.debug("CLI args parsed: %s", vars(args))

    if args.cmd == "index":
        rag = LocalRAG(cfg)
        try:
            summary = asyncio.run(rag.index_folder(args.folder))
        except FolderNotFoundError as e:
            print(str(e), file=sys.stderr)
            sys.exit(2)
        _print_summary(summary)
        if args.watch and summary.watching:
            _wait_forever(rag)

    elif args.cmd == "ask":
        history = load_chat(args.history) if args.history else []
        rag = LocalRAG(cfg)
        try:
            result = asyncio.run(rag.chat_query(args.question, history))
        except ValueError as e:
            print(str(e), file=sys.stderr)
            sys.exit(2)

        print("\n=== ANSWER ===")
        print(result.answer.strip())
        print("\n=== SOURCES ===")
        for i, s in enumerate(result.sources, start=1):
            print(f"[{i}] {s.path} | score {s.score:.3f}")
            if args.show_sources:
                print(s.text)
                print("---")

    elif args.cmd == "export":
        messages = load_chat(args.history)
        out = export_chat(messages, cfg["app"]["data_dir"])
        print(json.dumps(out, indent=2))
        print(f"[saved] {Path(out['path'])}")

    else:
        parser.print_help()


if __name__ == "__main__":
    main()
