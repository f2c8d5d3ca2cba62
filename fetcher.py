"""Bounded, deadline-limited partial GET of a feed URL."""

from __future__ import annotations

import logging
import re
import socket
import threading
import time
from typing import Optional
from urllib.parse import SplitResult, urlsplit

import requests
import urllib3
from requests.adapters import HTTPAdapter

from constants import ACCEPT_HEADER, CONCURRENCY, DEFAULT_TIMEOUT, MAX_BODY_BYTES, USER_AGENT
from errors import FetchTimeout, HTTPStatusError, InvalidURL, ReadError, TransportError
from models import FetchedBody

__all__ = [
    "build_session",
    "parse_feed_url",
    "extract_domain",
    "fetch_prefix",
    "release_buffer",
]

logger = logging.getLogger(__name__)

CHUNK_SIZE = 16 * 1024
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_INVALID_URL_ERRORS = (
    requests.exceptions.InvalidURL,
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    urllib3.exceptions.LocationValueError,
)
_READ_ERRORS = (
    requests.exceptions.RequestException,
    urllib3.exceptions.HTTPError,
    OSError,
    ValueError,
)


def build_session(concurrency: int = CONCURRENCY) -> requests.Session:
    """Create a `requests.Session` sized for the worker pool, without retries."""
    session = requests.Session()
    adapter = HTTPAdapter(
        pool_connections=concurrency,
        pool_maxsize=concurrency,
        max_retries=0,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({
        "User-Agent": USER_AGENT,
        "Accept": ACCEPT_HEADER,
    })
    return session


def parse_feed_url(url: str) -> SplitResult:
    """Split ``url`` and require an http(s) scheme and a host."""
    if _CONTROL_CHARS.search(url):
        raise InvalidURL(f"control character in URL: {url!r}")
    try:
        parts = urlsplit(url)
        parts.port  # validates the port component
    except ValueError as exc:
        raise InvalidURL(f"cannot parse URL {url!r}: {exc}") from exc
    if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
        raise InvalidURL(f"not an http(s) URL: {url!r}")
    return parts


def extract_domain(url: str) -> str:
    """Authority of ``url`` without userinfo, or an empty string."""
    if _CONTROL_CHARS.search(url):
        return ""
    try:
        netloc = urlsplit(url).netloc
    except ValueError:
        return ""
    return netloc.rpartition("@")[2]


def release_buffer(buf: bytearray) -> None:
    """Zero a body buffer in place and drop its contents."""
    buf[:] = bytes(len(buf))
    buf.clear()


def _interrupt_read(resp: requests.Response, expired: threading.Event) -> None:
    """Shut down the socket under ``resp`` so a blocked body read returns."""
    expired.set()
    connection = getattr(getattr(resp, "raw", None), "connection", None)
    sock = getattr(connection, "sock", None)
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as exc:
        logger.debug("Socket shutdown after deadline failed: %s", exc)


def _read_capped(
    resp: requests.Response,
    max_bytes: int,
    deadline: float,
    expired: threading.Event,
) -> bytearray:
    buf = bytearray()
    try:
        for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
            if expired.is_set() or time.monotonic() > deadline:
                raise FetchTimeout("deadline exceeded while reading body")
            if not chunk:
                continue
            buf += chunk[: max_bytes - len(buf)]
            if len(buf) >= max_bytes:
                break
    except FetchTimeout:
        release_buffer(buf)
        raise
    except requests.exceptions.Timeout as exc:
        release_buffer(buf)
        raise FetchTimeout(str(exc)) from exc
    except _READ_ERRORS as exc:
        release_buffer(buf)
        if expired.is_set():
            raise FetchTimeout("deadline exceeded while reading body") from exc
        raise ReadError(str(exc)) from exc
    # a shut down socket reads as end of body
    if expired.is_set():
        release_buffer(buf)
        raise FetchTimeout("deadline exceeded while reading body")
    return buf


def fetch_prefix(
    session: requests.Session,
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    max_bytes: int = MAX_BODY_BYTES,
) -> FetchedBody:
    """Fetch at most ``max_bytes`` from the start of ``url``.

    A ``Range`` header asks the server for the prefix only; servers that
    ignore it are cut off at ``max_bytes`` anyway and the rest of the body
    is never buffered. ``timeout`` is a single deadline covering connection
    and body read: once it passes, a watchdog shuts down the socket so a
    body that trickles in is abandoned.
    """
    parse_feed_url(url)
    deadline = time.monotonic() + timeout
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": ACCEPT_HEADER,
        "Range": f"bytes=0-{max_bytes - 1}",
    }

    remaining = max(deadline - time.monotonic(), 0.001)
    try:
        resp = session.get(
            url,
            headers=headers,
            timeout=(remaining, remaining),
            stream=True,
            allow_redirects=True,
        )
    except requests.exceptions.Timeout as exc:
        raise FetchTimeout(str(exc)) from exc
    except _INVALID_URL_ERRORS as exc:
        raise InvalidURL(str(exc)) from exc
    except (requests.exceptions.RequestException, urllib3.exceptions.HTTPError, OSError) as exc:
        raise TransportError(str(exc)) from exc
    except ValueError as exc:
        raise InvalidURL(str(exc)) from exc

    expired = threading.Event()
    watchdog: Optional[threading.Timer] = None
    try:
        if resp.status_code >= 400:
            raise HTTPStatusError(resp.status_code)
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise FetchTimeout("deadline exceeded before body read")
        watchdog = threading.Timer(remaining, _interrupt_read, args=(resp, expired))
        watchdog.daemon = True
        watchdog.start()
        body = _read_capped(resp, max_bytes, deadline, expired)
        content_type: Optional[str] = resp.headers.get("Content-Type")
    finally:
        if watchdog is not None:
            watchdog.cancel()
        resp.close()

    logger.debug("Fetched %d bytes from %s (HTTP %s)", len(body), url, resp.status_code)
    return {
        "body": body,
        "content_type": (content_type or "").lower(),
        "status_code": resp.status_code,
    }
