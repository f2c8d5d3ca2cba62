"""Data structures used across the application."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, TypedDict


class FeedResult(TypedDict):
    """Outcome of checking a single feed URL."""

    sequence_id: int
    feed_url: str
    domain: str
    last_item: Optional[datetime]
    health: str


class FetchedBody(TypedDict):
    """Prefix of a response body plus the headers the classifier needs."""

    body: bytearray
    content_type: str
    status_code: int


class Classification(TypedDict):
    is_feed: bool
    last_item: Optional[datetime]
    health: str


class ProgressEvent(TypedDict):
    """One notification per finished worker."""

    completed: int
    total: int
    url: str
    health: str
    emitted_at: datetime


__all__ = ["FeedResult", "FetchedBody", "Classification", "ProgressEvent"]
