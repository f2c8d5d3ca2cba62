"""Exceptions raised while fetching and inspecting feeds."""

from __future__ import annotations

__all__ = [
    "FeedCheckError",
    "InvalidURL",
    "FetchTimeout",
    "TransportError",
    "HTTPStatusError",
    "ReadError",
    "DateUnparseable",
]


class FeedCheckError(Exception):
    """Base class for failures that mark a feed as broken."""


class InvalidURL(FeedCheckError):
    pass


class FetchTimeout(FeedCheckError):
    pass


class TransportError(FeedCheckError):
    """DNS, connection, TLS or reset failures."""


class HTTPStatusError(FeedCheckError):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class ReadError(FeedCheckError):
    pass


class DateUnparseable(ValueError):
    """No known layout matched a date string."""
