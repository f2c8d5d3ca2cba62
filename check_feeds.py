import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from constants import CONCURRENCY, DEFAULT_TIMEOUT, MAX_BODY_BYTES, REPORT_FILE, URLS_FILE
from ranking import rank_results
from report import format_progress_line, write_markdown_report
from scanner import read_urls, scan_feeds


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Check that a list of RSS/Atom feeds is reachable and see when each last published."
    )
    p.add_argument("--input", "-i", default=str(URLS_FILE), help=f"Text file with one feed URL per line (default: {URLS_FILE}).")
    p.add_argument("--output", "-o", default=str(REPORT_FILE), help=f"Markdown report to write (default: {REPORT_FILE}).")
    p.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT, help=f"Per-feed deadline in seconds (default: {DEFAULT_TIMEOUT}).")
    p.add_argument("--concurrency", type=int, default=CONCURRENCY, help=f"Feeds fetched at the same time (default: {CONCURRENCY}).")
    p.add_argument("--max-bytes", type=int, default=MAX_BODY_BYTES, help=f"Bytes read from each response (default: {MAX_BODY_BYTES}).")
    p.add_argument("--verbose", "-v", action="store_true", help="Log why each broken feed failed.")
    return p.parse_args(argv)


def _print_progress(event) -> None:
    print(format_progress_line(event), flush=True)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    if args.concurrency < 1:
        raise SystemExit("--concurrency must be at least 1")

    input_path = Path(args.input)
    try:
        urls = read_urls(input_path)
    except OSError as exc:
        raise SystemExit(f"failed to open {input_path}: {exc}")

    output_path = Path(args.output)
    try:
        output_path.open("w", encoding="utf-8").close()
    except OSError as exc:
        raise SystemExit(f"failed to create {output_path}: {exc}")

    results = scan_feeds(
        urls,
        concurrency=args.concurrency,
        timeout=args.timeout,
        max_bytes=args.max_bytes,
        on_progress=_print_progress,
    )
    try:
        markdown = write_markdown_report(output_path, rank_results(results))
    except OSError as exc:
        raise SystemExit(f"failed to write {output_path}: {exc}")
    print(markdown, end="")

    print(f"Wrote markdown results to {output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
