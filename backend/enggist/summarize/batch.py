from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Sequence, TypeVar

from sqlmodel import Session, select

from ..db import SessionFactory
from ..models import Post, Summary
from .llm import (
    MAX_CONTENT_CHARS,
    RETRY_DELAY_SECONDS,
    LLMClient,
    PendingPost,
    PostOutcome,
    summarize_post,
)

logger = logging.getLogger(__name__)

SUMMARIZE_LIMIT = 15
BATCH_SIZE = 3

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class SummarizeReport:
    selected: int = 0
    outcomes: List[PostOutcome] = field(default_factory=list)

    @property
    def summarized(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> List[PostOutcome]:
        return [o for o in self.outcomes if not o.success]


def select_unsummarized(session: Session, limit: int = SUMMARIZE_LIMIT) -> List[PendingPost]:
    """Newest posts that have no summary yet. Summarized posts are never re-selected."""
    rows = session.exec(
        select(Post.id, Post.title, Post.excerpt, Post.content, Post.url)
        .outerjoin(Summary, Summary.post_id == Post.id)
        .where(Summary.id == None)  # noqa: E711
        .order_by(Post.created_at.desc())
        .limit(limit)
    ).all()
    return [PendingPost(id=r[0], title=r[1], excerpt=r[2], content=r[3], url=r[4]) for r in rows]


async def process_in_batches(
    items: Sequence[T],
    batch_size: int,
    worker: Callable[[T], Awaitable[R]],
) -> List[R]:
    """Run ``worker`` over ``items`` in groups of ``batch_size``.

    Items within a group run concurrently; the next group starts only after
    the whole previous group finished. Results keep input order.
    """
    results: List[R] = []
    batch_size = max(1, batch_size)
    for start in range(0, len(items), batch_size):
        batch = items[start : start + batch_size]
        logger.info("Processing batch %d (%d posts)", start // batch_size + 1, len(batch))
        results.extend(await asyncio.gather(*(worker(item) for item in batch)))
    return results


async def run_summarize(
    session_factory: SessionFactory,
    client: LLMClient,
    *,
    limit: int = SUMMARIZE_LIMIT,
    batch_size: int = BATCH_SIZE,
    retry_delay: float = RETRY_DELAY_SECONDS,
    max_content_chars: int = MAX_CONTENT_CHARS,
) -> SummarizeReport:
    def _load_pending() -> List[PendingPost]:
        with session_factory() as session:
            return select_unsummarized(session, limit=limit)

    pending = await asyncio.to_thread(_load_pending)
    logger.info("Found %d posts to summarize", len(pending))

    report = SummarizeReport(selected=len(pending))
    if not pending:
        return report

    async def _job(post: PendingPost) -> PostOutcome:
        return await summarize_post(
            post,
            client=client,
            session_factory=session_factory,
            max_content_chars=max_content_chars,
            retry_delay=retry_delay,
        )

    report.outcomes = await process_in_batches(pending, batch_size, _job)

    failed = report.failed
    logger.info("Complete: %d posts summarized, %d failed", report.summarized, len(failed))
    if failed:
        logger.error("Failed posts: %s", [o.title for o in failed])
    return report
