"""Markdown report rendering and progress line formatting."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from jinja2 import Environment, FileSystemLoader

from constants import BROKEN, TEMPLATES_DIR
from dates import format_timestamp
from models import FeedResult, ProgressEvent

__all__ = [
    "REPORT_HEADER",
    "build_report_env",
    "to_report_rows",
    "render_markdown_report",
    "write_markdown_report",
    "format_progress_line",
    "result_to_dict",
]

REPORT_HEADER = ("id", "domain", "rss_feed_url", "last_item_date", "health")
REPORT_TEMPLATE = "report.md.j2"

ReportRow = Tuple[str, str, str, str, str]


def build_report_env(templates_dir: Path = TEMPLATES_DIR) -> Environment:
    """Jinja environment for plain-text templates (no HTML escaping)."""
    return Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def _last_item_text(result: FeedResult) -> Optional[str]:
    last_item = result.get("last_item")
    return format_timestamp(last_item) if last_item is not None else None


def to_report_rows(ranked: Iterable[FeedResult]) -> List[ReportRow]:
    """One row per result, with display ids renumbered from 1 in ranked order."""
    rows: List[ReportRow] = []
    for position, result in enumerate(ranked, start=1):
        rows.append((
            str(position),
            result["domain"] or "-",
            result["feed_url"].replace("|", "%7C"),
            _last_item_text(result) or "-",
            result["health"] or BROKEN,
        ))
    return rows


def render_markdown_report(
    ranked: Sequence[FeedResult],
    *,
    env: Optional[Environment] = None,
) -> str:
    template = (env or build_report_env()).get_template(REPORT_TEMPLATE)
    return template.render(header=REPORT_HEADER, rows=to_report_rows(ranked))


def write_markdown_report(output_path: Path, ranked: Sequence[FeedResult]) -> str:
    markdown = render_markdown_report(ranked)
    output_path.write_text(markdown, encoding="utf-8")
    return markdown


def format_progress_line(event: ProgressEvent) -> str:
    """``<timestamp>  <completed>/<total>  <url>  ->  <health>``"""
    stamp = event["emitted_at"].isoformat(timespec="seconds")
    return f"{stamp}  {event['completed']}/{event['total']}  {event['url']}  ->  {event['health']}"


def result_to_dict(result: FeedResult) -> Dict[str, Any]:
    """JSON-friendly view of a result."""
    return {
        "sequence_id": result["sequence_id"],
        "feed_url": result["feed_url"],
        "domain": result["domain"],
        "last_item": _last_item_text(result),
        "health": result["health"] or BROKEN,
    }
