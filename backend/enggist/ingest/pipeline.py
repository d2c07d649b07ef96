import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlmodel import Session, select

from ..db import SessionFactory
from ..errors import FeedFetchError
from ..models import Source
from .feeds import FeedItem
from .posts import InsertOutcome, insert_post

logger = logging.getLogger(__name__)

# fetch(feed_url, etag=..., last_modified=...) -> items
FeedFetch = Callable[..., Awaitable[List[FeedItem]]]


@dataclass
class SourceResult:
    name: str
    new: int = 0
    skipped: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "new": self.new, "skipped": self.skipped}
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class IngestReport:
    sources: List[SourceResult] = field(default_factory=list)
    total_new: int = 0


def list_enabled_sources(session: Session) -> List[Source]:
    return list(session.exec(select(Source).where(Source.enabled == True).order_by(Source.name)).all())  # noqa: E712


def _store_items(session: Session, source: Source, items: List[FeedItem], result: SourceResult) -> None:
    for item in items:
        outcome = insert_post(session, source, item)
        if outcome is InsertOutcome.INSERTED:
            result.new += 1
        else:
            result.skipped += 1


async def ingest_source(session: Session, source: Source, fetch: FeedFetch) -> SourceResult:
    """Fetch one source and insert its items. Never raises; failures land in ``error``."""
    name, feed_url = source.name, source.feed_url
    result = SourceResult(name=name)
    try:
        logger.info("Fetching %s: %s", name, feed_url)
        items = await fetch(feed_url, etag=source.last_etag, last_modified=source.last_modified)
        # database writes run off the event loop
        await asyncio.to_thread(_store_items, session, source, items, result)
    except FeedFetchError as e:
        logger.error("Error fetching %s: %s", name, e)
        result.error = str(e)
        return result
    except Exception as e:
        logger.exception("Unexpected error ingesting %s", name)
        session.rollback()
        result.error = str(e) or type(e).__name__
        return result

    logger.info("%s: %d new, %d skipped", name, result.new, result.skipped)
    return result


async def run_ingest(session_factory: SessionFactory, fetch: FeedFetch) -> IngestReport:
    """One ingestion pass over every enabled source, in name order.

    A failing source only ends its own processing; the rest still run and
    ``total_new`` counts inserts from the sources that worked.
    """
    report = IngestReport()
    with session_factory() as session:
        sources = await asyncio.to_thread(list_enabled_sources, session)
        logger.info("Found %d enabled sources", len(sources))
        for source in sources:
            result = await ingest_source(session, source, fetch)
            report.sources.append(result)
            report.total_new += result.new
    logger.info("Ingest complete: %d total new posts", report.total_new)
    return report
