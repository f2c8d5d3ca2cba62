"""Concurrent fetch-and-classify pipeline over a list of feed URLs."""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union, cast

import requests

from constants import (
    BROKEN,
    CONCURRENCY,
    DEFAULT_TIMEOUT,
    LAST_RESULTS,
    MAX_BODY_BYTES,
    URLS_FILE,
)
from errors import FeedCheckError
from feed_inspector import inspect_feed_body
from fetcher import build_session, extract_domain, fetch_prefix, release_buffer
from models import FeedResult, FetchedBody, ProgressEvent
from ranking import rank_results

__all__ = [
    "read_urls",
    "ProgressChannel",
    "check_feed",
    "scan_feeds",
    "run_batch_scan",
]

logger = logging.getLogger(__name__)

FetchFunc = Callable[..., FetchedBody]
ProgressRenderer = Callable[[ProgressEvent], None]

_CLOSED = object()


def read_urls(input_path: Path) -> List[str]:
    """Load feed URLs, skipping blank lines and code fences.

    Raises ``OSError`` if the file cannot be read.
    """
    urls: List[str] = []
    for raw_line in input_path.read_text(encoding="utf-8", errors="replace").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("```"):
            continue
        urls.append(line)
    return urls


class ProgressChannel:
    """Completion events from the workers, rendered by one consumer thread.

    The completion counter and the enqueue happen under one lock, so the
    consumer sees ``completed`` values in increasing order. ``close`` returns
    only after every emitted event has been rendered.
    """

    def __init__(self, total: int, renderer: Optional[ProgressRenderer] = None) -> None:
        self.total = total
        self._renderer = renderer
        self._queue: "queue.Queue[Union[ProgressEvent, object]]" = queue.Queue(maxsize=total + 1)
        self._lock = threading.Lock()
        self._completed = 0
        self._consumer = threading.Thread(
            target=self._drain, name="progress-consumer", daemon=True
        )
        self._consumer.start()

    @property
    def completed(self) -> int:
        return self._completed

    def emit(self, url: str, health: str) -> ProgressEvent:
        with self._lock:
            self._completed += 1
            event: ProgressEvent = {
                "completed": self._completed,
                "total": self.total,
                "url": url,
                "health": health,
                "emitted_at": datetime.now().astimezone(),
            }
            self._queue.put(event)
        return event

    def close(self) -> None:
        self._queue.put(_CLOSED)
        self._consumer.join()

    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                return
            if self._renderer is None:
                continue
            event = cast(ProgressEvent, item)
            try:
                self._renderer(event)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Progress renderer failed for %s", event["url"])


def check_feed(
    session: requests.Session,
    index: int,
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    max_bytes: int = MAX_BODY_BYTES,
    fetch: FetchFunc = fetch_prefix,
) -> FeedResult:
    """Fetch and classify one URL; every failure yields ``broken``."""
    result: FeedResult = {
        "sequence_id": index + 1,
        "feed_url": url,
        "domain": extract_domain(url),
        "last_item": None,
        "health": BROKEN,
    }

    try:
        fetched = fetch(session, url, timeout=timeout, max_bytes=max_bytes)
    except FeedCheckError as exc:
        logger.debug("%s -> broken (%s: %s)", url, type(exc).__name__, exc)
        return result
    except Exception:  # pylint: disable=broad-except
        logger.exception("Unexpected failure fetching %s", url)
        return result

    body = fetched["body"]
    try:
        verdict = inspect_feed_body(body, fetched["content_type"])
    except Exception:  # pylint: disable=broad-except
        logger.exception("Unexpected failure classifying %s", url)
        return result
    finally:
        release_buffer(body)

    result["health"] = verdict["health"]
    if verdict["is_feed"]:
        result["last_item"] = verdict["last_item"]
    return result


def scan_feeds(
    urls: Sequence[str],
    *,
    concurrency: int = CONCURRENCY,
    timeout: float = DEFAULT_TIMEOUT,
    max_bytes: int = MAX_BODY_BYTES,
    session: Optional[requests.Session] = None,
    fetch: FetchFunc = fetch_prefix,
    on_progress: Optional[ProgressRenderer] = None,
) -> List[FeedResult]:
    """Check every URL with at most ``concurrency`` fetches in flight.

    Each worker owns one slot of a preallocated list, addressed by its input
    position, so the returned list is in input order regardless of which
    worker finished first. One progress event is emitted per URL.
    """
    if not urls:
        return []
    if concurrency < 1:
        raise ValueError(f"concurrency must be at least 1, got {concurrency}")

    owns_session = session is None
    http = session if session is not None else build_session(concurrency)
    total = len(urls)
    slots: List[Optional[FeedResult]] = [None] * total
    progress = ProgressChannel(total, on_progress)

    def work(index: int, url: str) -> None:
        result = check_feed(
            http, index, url, timeout=timeout, max_bytes=max_bytes, fetch=fetch
        )
        slots[index] = result
        progress.emit(url, result["health"])

    logger.info("Checking %d feeds with %d workers", total, concurrency)
    try:
        with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="feed-worker") as executor:
            futures = [executor.submit(work, index, url) for index, url in enumerate(urls)]
            for future in futures:
                future.result()
    finally:
        progress.close()
        if owns_session:
            http.close()

    missing = [index for index, slot in enumerate(slots) if slot is None]
    if missing:
        raise RuntimeError(f"no result recorded for inputs {missing}")
    logger.info("Finished checking %d feeds", total)
    return cast(List[FeedResult], slots)


def run_batch_scan(
    input_path: Path = URLS_FILE,
    *,
    concurrency: int = CONCURRENCY,
    timeout: float = DEFAULT_TIMEOUT,
    on_progress: Optional[ProgressRenderer] = None,
) -> List[FeedResult]:
    """Read URLs from disk, scan and rank them, and cache the ranked results."""
    urls = read_urls(input_path)
    ranked = rank_results(
        scan_feeds(urls, concurrency=concurrency, timeout=timeout, on_progress=on_progress)
    )
    LAST_RESULTS[:] = ranked
    return ranked
