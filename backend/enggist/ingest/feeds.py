import asyncio
import html
import logging
import re
import time
from dataclasses import dataclass
from typing import List, Optional

import feedparser
import httpx

from ..errors import FeedFetchError

logger = logging.getLogger(__name__)

UA = "Enggist/1.0 (RSS Reader)"
FETCH_TIMEOUT_SECONDS = 10.0
MAX_FEED_ITEMS = 50


@dataclass
class FeedItem:
    """One candidate post as delivered by a feed."""

    title: Optional[str] = None
    link: Optional[str] = None
    pub_date: Optional[str] = None
    published_parsed: Optional[time.struct_time] = None
    author: Optional[str] = None
    # content:encoded (full HTML) when the feed provides it
    content_encoded: Optional[str] = None
    # description / summary as published
    content: Optional[str] = None
    # description with markup stripped
    content_snippet: Optional[str] = None


def create_feed_client(timeout: float = FETCH_TIMEOUT_SECONDS, user_agent: str = UA) -> httpx.AsyncClient:
    """HTTP client shared by all feed fetches in one ingest run.

    Certificate validation is off: some engineering blogs serve their feeds
    from hosts with broken certificate chains.
    """
    return httpx.AsyncClient(
        headers={"User-Agent": user_agent},
        timeout=timeout,
        follow_redirects=True,
        verify=False,
    )


def strip_html(text: Optional[str]) -> str:
    text = re.sub(r"<[^>]+>", " ", text or "")
    text = html.unescape(text)
    return re.sub(r"\s+", " ", text).strip()


def _entry_to_item(entry) -> FeedItem:
    content_encoded = None
    # feedparser maps content:encoded onto entry.content
    for block in entry.get("content") or []:
        value = block.get("value")
        if value:
            content_encoded = value
            break

    content = entry.get("summary") or None
    snippet = strip_html(content or content_encoded) or None

    return FeedItem(
        title=entry.get("title"),
        link=entry.get("link"),
        pub_date=entry.get("published") or entry.get("updated"),
        published_parsed=entry.get("published_parsed") or entry.get("updated_parsed"),
        author=entry.get("author"),
        content_encoded=content_encoded,
        content=content,
        content_snippet=snippet,
    )


def parse_feed(body: bytes, feed_url: str, max_items: int = MAX_FEED_ITEMS) -> List[FeedItem]:
    parsed = feedparser.parse(body)
    if getattr(parsed, "bozo", 0):
        if not parsed.entries and not parsed.feed:
            raise FeedFetchError(feed_url, f"malformed feed: {getattr(parsed, 'bozo_exception', '')}")
        logger.warning("feedparser bozo for %s: %s", feed_url, getattr(parsed, "bozo_exception", ""))
    return [_entry_to_item(entry) for entry in parsed.entries[:max_items]]


async def fetch_feed(
    feed_url: str,
    *,
    client: httpx.AsyncClient,
    etag: Optional[str] = None,
    last_modified: Optional[str] = None,
    max_items: int = MAX_FEED_ITEMS,
    timeout: float = FETCH_TIMEOUT_SECONDS,
) -> List[FeedItem]:
    """Download and parse one feed, returning at most ``max_items`` entries in feed order.

    ``timeout`` bounds the whole download, from connect to the last body byte.
    ``etag`` and ``last_modified`` are accepted so callers can pass a source's
    stored hints, but they are not sent yet.
    Any failure is raised as a single :class:`FeedFetchError` for this feed.
    """
    try:
        r = await asyncio.wait_for(client.get(feed_url), timeout)
        r.raise_for_status()
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        raise FeedFetchError(feed_url, f"timed out fetching {feed_url}") from e
    except httpx.HTTPError as e:
        raise FeedFetchError(feed_url, str(e) or type(e).__name__) from e
    return parse_feed(r.content, feed_url, max_items=max_items)
