import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from ..hashing import generate_content_hash
from ..models import Post, Source
from .feeds import FeedItem

logger = logging.getLogger(__name__)

EXCERPT_MAX_CHARS = 500


class InsertOutcome(str, Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    INVALID = "invalid"
    FAILED = "failed"

    @property
    def skipped(self) -> bool:
        return self is not InsertOutcome.INSERTED


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_published(item: FeedItem) -> Optional[datetime]:
    """Best-effort publish date.
    Order: feedparser struct_time → RFC822 string → ISO8601 string.
    Anything unparseable is treated as no date.
    """
    if item.published_parsed:
        try:
            return datetime(*item.published_parsed[:6], tzinfo=timezone.utc)
        except (TypeError, ValueError):
            pass
    s = (item.pub_date or "").strip()
    if not s:
        return None
    try:
        return _as_utc(parsedate_to_datetime(s))
    except (TypeError, ValueError, IndexError):
        pass
    try:
        return _as_utc(datetime.fromisoformat(s.replace("Z", "+00:00")))
    except ValueError:
        return None


def make_excerpt(item: FeedItem) -> str:
    excerpt = item.content_snippet or item.content or ""
    if len(excerpt) > EXCERPT_MAX_CHARS:
        excerpt = excerpt[: EXCERPT_MAX_CHARS - 3] + "..."
    return excerpt


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    if getattr(orig, "pgcode", None) == "23505" or getattr(orig, "sqlstate", None) == "23505":
        return True
    return "unique" in str(orig).lower()


def insert_post(session: Session, source: Source, item: FeedItem) -> InsertOutcome:
    """Insert one feed item as a new Post.

    The unique constraint on ``content_hash`` decides whether the item is new;
    a violation means the post is already known. Other database errors are
    logged and reported as FAILED so one bad row never stops the feed.
    """
    if not item.title or not item.link:
        return InsertOutcome.INVALID

    published_at = parse_published(item)
    content_hash = generate_content_hash(item.link, item.title, published_at)

    post = Post(
        source_id=source.id,
        title=item.title,
        url=item.link,
        canonical_url=item.link,
        published_at=published_at,
        author=item.author or None,
        excerpt=make_excerpt(item),
        content=item.content_encoded or item.content or item.content_snippet or "",
        content_hash=content_hash,
    )
    session.add(post)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        if _is_unique_violation(e):
            return InsertOutcome.DUPLICATE
        logger.error("Error inserting post %s: %s", item.link, e.orig)
        return InsertOutcome.FAILED
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Error inserting post %s: %s", item.link, e)
        return InsertOutcome.FAILED
    return InsertOutcome.INSERTED
