"""Decide whether a response prefix is a feed and how fresh it is."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Optional

from constants import BROKEN, HEALTHY, NOT_A_FEED
from dates import parse_date_guess
from errors import DateUnparseable
from models import Classification

__all__ = ["inspect_feed_body", "HTML_MARKERS", "FEED_MARKERS"]

logger = logging.getLogger(__name__)

HTML_MARKERS = (b"<html", b"<!doctype html")
FEED_MARKERS = (b"<rss", b"<feed", b"<rdf:rdf", b"<item", b"<entry")

DATE_TAG_REGEX = re.compile(
    rb"<(?:pubDate|published|updated|dc:date)>(.*?)</(?:pubDate|published|updated|dc:date)>",
    flags=re.IGNORECASE | re.DOTALL,
)


def _latest_item_date(body: bytes) -> Optional[datetime]:
    latest: Optional[datetime] = None
    for raw in DATE_TAG_REGEX.findall(body):
        text = raw.decode("utf-8", errors="replace").strip()
        try:
            parsed = parse_date_guess(text)
        except DateUnparseable:
            logger.debug("Skipping unparseable item date %r", text)
            continue
        if latest is None or parsed > latest:
            latest = parsed
    return latest


def inspect_feed_body(body: bytes, content_type: str) -> Classification:
    """Classify a body prefix as healthy, not-a-feed or broken.

    HTML is checked first: error pages, auth walls and CDN interstitials
    often mention "rss" in their links and must not count as feeds. A body
    carrying feed markup is healthy even when none of its dates parse.
    """
    lowered = bytes(body).lower()
    if "html" in (content_type or "").lower() or any(m in lowered for m in HTML_MARKERS):
        return {"is_feed": False, "last_item": None, "health": NOT_A_FEED}

    if not any(m in lowered for m in FEED_MARKERS):
        return {"is_feed": False, "last_item": None, "health": BROKEN}

    return {"is_feed": True, "last_item": _latest_item_date(body), "health": HEALTHY}
