"""Unit tests for the partial-body fetcher."""

from __future__ import annotations

import itertools
import time
from typing import Iterator

import pytest
import requests
import urllib3

import fetcher
from constants import ACCEPT_HEADER, USER_AGENT
from errors import FetchTimeout, HTTPStatusError, InvalidURL, ReadError, TransportError
from fetcher import (
    CHUNK_SIZE,
    build_session,
    extract_domain,
    fetch_prefix,
    parse_feed_url,
    release_buffer,
)
from fakes import DummyResponse, DummySession, slow_drip_server

FEED_URL = "https://feeds.example.com/rss.xml"
LONG_LABEL_URL = "http://" + "a" * 64 + ".example/rss"


def _fake_clock(*values: float) -> Iterator[float]:
    return itertools.chain(values, itertools.repeat(values[-1]))


def test_build_session_sets_identifying_headers() -> None:
    session = build_session(3)
    try:
        assert session.headers["User-Agent"] == USER_AGENT
        assert session.headers["Accept"] == ACCEPT_HEADER
        assert session.headers["Accept"].startswith("application/rss+xml")
        adapter = session.get_adapter("https://feeds.example.com")
        assert adapter.max_retries.total == 0
    finally:
        session.close()


@pytest.mark.parametrize(
    "url",
    ["not a url \x00", "ftp://feeds.example.com/rss", "http://", "feeds.example.com/rss", "http://[::1"],
)
def test_parse_feed_url_rejects_unusable_urls(url: str) -> None:
    with pytest.raises(InvalidURL):
        parse_feed_url(url)


def test_parse_feed_url_accepts_http_urls() -> None:
    parts = parse_feed_url("HTTP://Feeds.Example.com:8080/rss?x=1")
    assert parts.hostname == "feeds.example.com"
    assert parts.port == 8080


@pytest.mark.parametrize(
    "url, domain",
    [
        ("https://user:pw@feeds.example.com:8443/rss", "feeds.example.com:8443"),
        ("http://a.example/feed.xml", "a.example"),
        ("not a url \x00", ""),
        ("feeds.example.com/rss", ""),
        ("http://[::1", ""),
    ],
)
def test_extract_domain(url: str, domain: str) -> None:
    assert extract_domain(url) == domain


def test_fetch_prefix_requests_a_byte_range() -> None:
    response = DummyResponse(body=b"<rss></rss>", content_type="Application/RSS+XML")
    session = DummySession({FEED_URL: response})

    fetched = fetch_prefix(session, FEED_URL, timeout=5, max_bytes=1024)

    assert fetched["body"] == bytearray(b"<rss></rss>")
    assert fetched["content_type"] == "application/rss+xml"
    assert fetched["status_code"] == 200
    url, kwargs = session.get_calls[0]
    assert url == FEED_URL
    assert kwargs["headers"]["Range"] == "bytes=0-1023"
    assert kwargs["headers"]["User-Agent"] == USER_AGENT
    assert kwargs["headers"]["Accept"] == ACCEPT_HEADER
    assert kwargs["stream"] is True
    connect_timeout, read_timeout = kwargs["timeout"]
    assert 4 < connect_timeout <= 5
    assert 4 < read_timeout <= 5
    assert response.closed is True


def test_fetch_prefix_caps_bodies_from_servers_ignoring_range() -> None:
    """Bytes past the cap are cut off and later chunks are never pulled."""
    max_bytes = CHUNK_SIZE + 10
    response = DummyResponse(status_code=200, body=b"x" * (CHUNK_SIZE * 4))
    session = DummySession({FEED_URL: response})

    fetched = fetch_prefix(session, FEED_URL, timeout=5, max_bytes=max_bytes)

    assert len(fetched["body"]) == max_bytes
    assert response.chunks_served == 2
    assert response.closed is True


def test_fetch_prefix_missing_content_type_is_empty() -> None:
    session = DummySession({FEED_URL: DummyResponse(body=b"<feed>", content_type=None)})
    assert fetch_prefix(session, FEED_URL, timeout=5)["content_type"] == ""


@pytest.mark.parametrize("status", [400, 403, 404, 500, 503])
def test_fetch_prefix_http_errors(status: int) -> None:
    response = DummyResponse(status_code=status, body=b"<rss></rss>")
    session = DummySession({FEED_URL: response})

    with pytest.raises(HTTPStatusError) as excinfo:
        fetch_prefix(session, FEED_URL, timeout=5)

    assert excinfo.value.status_code == status
    assert response.chunks_served == 0
    assert response.closed is True


def test_partial_content_status_is_accepted() -> None:
    session = DummySession({FEED_URL: DummyResponse(status_code=206, body=b"<rss>")})
    assert fetch_prefix(session, FEED_URL, timeout=5)["status_code"] == 206


@pytest.mark.parametrize(
    "exc, expected",
    [
        (requests.exceptions.ConnectTimeout("connect timed out"), FetchTimeout),
        (requests.exceptions.ReadTimeout("read timed out"), FetchTimeout),
        (requests.exceptions.ConnectionError("connection refused"), TransportError),
        (requests.exceptions.SSLError("bad certificate"), TransportError),
        (requests.exceptions.TooManyRedirects("loop"), TransportError),
        (requests.exceptions.InvalidURL("bad host"), InvalidURL),
    ],
)
def test_fetch_prefix_maps_transport_failures(exc: Exception, expected: type) -> None:
    session = DummySession({FEED_URL: exc})
    with pytest.raises(expected):
        fetch_prefix(session, FEED_URL, timeout=5)


def test_fetch_prefix_rejects_invalid_url_without_network() -> None:
    session = DummySession()
    with pytest.raises(InvalidURL):
        fetch_prefix(session, "not a url \x00", timeout=5)
    assert session.get_calls == []


def test_fetch_prefix_body_read_failure() -> None:
    response = DummyResponse(
        body=b"<rss>" * 10,
        read_exc=requests.exceptions.ChunkedEncodingError("connection reset"),
    )
    session = DummySession({FEED_URL: response})

    with pytest.raises(ReadError):
        fetch_prefix(session, FEED_URL, timeout=5)
    assert response.closed is True


def test_fetch_prefix_deadline_spent_while_connecting(monkeypatch: pytest.MonkeyPatch) -> None:
    clock = _fake_clock(0.0, 30.0)
    monkeypatch.setattr(fetcher.time, "monotonic", lambda: next(clock))
    response = DummyResponse(body=b"<rss>")
    session = DummySession({FEED_URL: response})

    with pytest.raises(FetchTimeout):
        fetch_prefix(session, FEED_URL, timeout=20)
    assert response.chunks_served == 0


def test_fetch_prefix_abandons_body_trickling_past_deadline() -> None:
    """A server that keeps sending a byte at a time is cut off at the deadline."""
    session = build_session(1)
    session.trust_env = False
    try:
        with slow_drip_server() as url:
            started = time.monotonic()
            with pytest.raises(FetchTimeout):
                fetch_prefix(session, url, timeout=1)
            elapsed = time.monotonic() - started
    finally:
        session.close()
    assert elapsed < 3


def test_fetch_prefix_overlong_host_label_is_invalid_url() -> None:
    session = build_session(1)
    session.trust_env = False
    try:
        with pytest.raises(InvalidURL):
            fetch_prefix(session, LONG_LABEL_URL, timeout=2)
    finally:
        session.close()


@pytest.mark.parametrize(
    "exc, expected",
    [
        (urllib3.exceptions.LocationParseError("label empty or too long"), InvalidURL),
        (urllib3.exceptions.ProtocolError("connection aborted"), TransportError),
        (ValueError("bad port"), InvalidURL),
        (OSError("network unreachable"), TransportError),
    ],
)
def test_fetch_prefix_maps_errors_raised_below_requests(exc: Exception, expected: type) -> None:
    session = DummySession({FEED_URL: exc})
    with pytest.raises(expected):
        fetch_prefix(session, FEED_URL, timeout=5)


def test_release_buffer_empties_in_place() -> None:
    buf = bytearray(b"secret feed body")
    release_buffer(buf)
    assert buf == bytearray()
