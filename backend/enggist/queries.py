import uuid
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import String, case, cast, func
from sqlmodel import Session, select

from .models import Post, Source, Summary, utcnow
from .schemas import PostWithSummary, SourceHealth, SourceRef, SummaryOut

POST_SORT_OPTIONS = ("newest", "oldest", "title_asc", "source_asc")
DEFAULT_POST_SORT = "newest"


def parse_post_sort(raw: Optional[str]) -> str:
    if raw in POST_SORT_OPTIONS:
        return raw
    return DEFAULT_POST_SORT


def _order_by(sort: str):
    published_or_created = func.coalesce(Post.published_at, Post.created_at)
    if sort == "oldest":
        return [published_or_created.asc(), Post.created_at.asc()]
    if sort == "title_asc":
        return [func.lower(Post.title).asc(), published_or_created.desc()]
    if sort == "source_asc":
        return [func.lower(Source.name).asc(), published_or_created.desc()]
    return [published_or_created.desc(), Post.created_at.desc()]


def post_query():
    return (
        select(Post, Source, Summary)
        .join(Source, Source.id == Post.source_id)
        .outerjoin(Summary, Summary.post_id == Post.id)
    )


def _has_tag(tag: str):
    # tags are stored as a JSON list; values come from a closed vocabulary so a
    # quoted substring match on the serialized list is exact.
    return cast(Summary.tags, String).like(f'%"{tag}"%')


def to_post_with_summary(post: Post, source: Source, summary: Optional[Summary], include_content: bool = True) -> PostWithSummary:
    return PostWithSummary(
        id=post.id,
        title=post.title,
        url=post.url,
        published_at=post.published_at,
        excerpt=post.excerpt,
        content=post.content if include_content else None,
        source=SourceRef(id=source.id, name=source.name, site=source.site),
        summary=(
            SummaryOut(
                bullets=summary.bullets or [],
                why_it_matters=summary.why_it_matters,
                tags=summary.tags or [],
                keywords=summary.keywords or [],
            )
            if summary is not None
            else None
        ),
    )


def _paginate(session: Session, stmt, count_stmt, page: int, limit: int, sort: str) -> Tuple[List[PostWithSummary], int]:
    page = max(page, 1)
    limit = max(limit, 1)
    rows = session.exec(stmt.order_by(*_order_by(sort)).limit(limit).offset((page - 1) * limit)).all()
    total = session.exec(count_stmt).one()
    return [to_post_with_summary(p, s, su) for p, s, su in rows], int(total or 0)


def get_paginated_posts(
    session: Session, page: int = 1, limit: int = 30, sort: str = DEFAULT_POST_SORT
) -> Tuple[List[PostWithSummary], int]:
    return _paginate(session, post_query(), select(func.count(Post.id)), page, limit, sort)


def get_paginated_posts_by_source(
    session: Session, source_id: uuid.UUID, page: int = 1, limit: int = 10, sort: str = DEFAULT_POST_SORT
) -> Tuple[List[PostWithSummary], int]:
    stmt = post_query().where(Post.source_id == source_id)
    count_stmt = select(func.count(Post.id)).where(Post.source_id == source_id)
    return _paginate(session, stmt, count_stmt, page, limit, sort)


def get_paginated_posts_by_tag(
    session: Session, tag: str, page: int = 1, limit: int = 10, sort: str = DEFAULT_POST_SORT
) -> Tuple[List[PostWithSummary], int]:
    stmt = post_query().where(_has_tag(tag))
    count_stmt = select(func.count(Post.id)).join(Summary, Summary.post_id == Post.id).where(_has_tag(tag))
    return _paginate(session, stmt, count_stmt, page, limit, sort)


def get_post(session: Session, post_id: uuid.UUID) -> Optional[PostWithSummary]:
    row = session.exec(post_query().where(Post.id == post_id)).first()
    if row is None:
        return None
    return to_post_with_summary(*row)


def list_sources(session: Session) -> List[Source]:
    return list(session.exec(select(Source).order_by(func.lower(Source.name))).all())


def get_source_health(session: Session, now: Optional[datetime] = None) -> List[SourceHealth]:
    """Per-source post counts for the last 24 hours, last 7 days and overall."""
    now = now or utcnow()
    day_ago = now - timedelta(days=1)
    week_ago = now - timedelta(days=7)

    rows = session.exec(
        select(
            Source.id,
            Source.name,
            Source.enabled,
            func.coalesce(func.sum(case((Post.created_at >= day_ago, 1), else_=0)), 0),
            func.coalesce(func.sum(case((Post.created_at >= week_ago, 1), else_=0)), 0),
            func.count(Post.id),
            func.max(Post.published_at),
        )
        .outerjoin(Post, Post.source_id == Source.id)
        .group_by(Source.id, Source.name, Source.enabled)
        .order_by(Source.name)
    ).all()

    return [
        SourceHealth(
            id=r[0],
            name=r[1],
            enabled=r[2],
            posts_last_24h=int(r[3]),
            posts_last_7d=int(r[4]),
            total_posts=int(r[5]),
            latest_post_date=r[6],
        )
        for r in rows
    ]
