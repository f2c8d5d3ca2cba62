"""Shared configuration constants for the feed health checker."""

from __future__ import annotations

import os
from pathlib import Path
from typing import List

from models import FeedResult

DEFAULT_TIMEOUT = int(os.getenv("RSS_HEALTH_TIMEOUT", "20"))
MAX_BODY_BYTES = int(os.getenv("RSS_HEALTH_MAX_BYTES", str(256 * 1024)))
CONCURRENCY = int(os.getenv("RSS_HEALTH_CONCURRENCY", "5"))

URLS_FILE = Path(os.getenv("RSS_HEALTH_URLS_FILE", "rss_feeds.txt"))
REPORT_FILE = Path("rss_health.md")
TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

USER_AGENT = "rss-health-checker/1.0"
ACCEPT_HEADER = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"

HEALTHY = "healthy"
NOT_A_FEED = "not-a-feed"
BROKEN = "broken"
HEALTH_VALUES = (HEALTHY, NOT_A_FEED, BROKEN)

LAST_RESULTS: List[FeedResult] = []

_EXPORTED_NAMES = (
    "DEFAULT_TIMEOUT",
    "MAX_BODY_BYTES",
    "CONCURRENCY",
    "URLS_FILE",
    "REPORT_FILE",
    "TEMPLATES_DIR",
    "USER_AGENT",
    "ACCEPT_HEADER",
    "HEALTHY",
    "NOT_A_FEED",
    "BROKEN",
    "HEALTH_VALUES",
    "LAST_RESULTS",
)

__all__ = [name for name in _EXPORTED_NAMES if name in globals()]
