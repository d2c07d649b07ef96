from typing import List, Optional

from sqlalchemy import case, or_, text
from sqlmodel import Session

from .models import Post
from .queries import post_query, to_post_with_summary
from .schemas import PostWithSummary, SourceRef, SummaryOut

MIN_QUERY_LENGTH = 2
MAX_RESULTS = 50

# Hybrid ranking: full-text rank plus a boost for fuzzy title similarity.
# Requires the search_tsv column and pg_trgm (see db.POSTGRES_SEARCH_DDL).
POSTGRES_SEARCH_SQL = text(
    """
    WITH search_query AS (
        SELECT websearch_to_tsquery('english', :q) AS query
    )
    SELECT
        p.id, p.title, p.url, p.published_at, p.excerpt,
        s.id AS source_id, s.name AS source_name, s.site AS source_site,
        su.bullets, su.why_it_matters, su.tags, su.keywords,
        (ts_rank_cd(p.search_tsv, sq.query) + similarity(p.title, :q) * 0.5) AS rank
    FROM posts p
    JOIN sources s ON s.id = p.source_id
    LEFT JOIN summaries su ON su.post_id = p.id
    CROSS JOIN search_query sq
    WHERE p.search_tsv @@ sq.query OR p.title % :q
    ORDER BY rank DESC, p.published_at DESC NULLS LAST
    LIMIT :limit
    """
)


def _search_postgres(session: Session, q: str, limit: int) -> List[PostWithSummary]:
    rows = session.execute(POSTGRES_SEARCH_SQL, {"q": q, "limit": limit}).mappings().all()
    return [
        PostWithSummary(
            id=r["id"],
            title=r["title"],
            url=r["url"],
            published_at=r["published_at"],
            excerpt=r["excerpt"],
            source=SourceRef(id=r["source_id"], name=r["source_name"], site=r["source_site"]),
            summary=(
                SummaryOut(
                    bullets=r["bullets"],
                    why_it_matters=r["why_it_matters"],
                    tags=r["tags"] or [],
                    keywords=r["keywords"] or [],
                )
                if r["bullets"] is not None
                else None
            ),
        )
        for r in rows
    ]


def _escape_like(q: str) -> str:
    # LIKE wildcards in user text match literally
    return q.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _search_fallback(session: Session, q: str, limit: int) -> List[PostWithSummary]:
    """Substring search for databases without FTS/trigram support (development SQLite)."""
    like = f"%{_escape_like(q)}%"
    title_hit = Post.title.ilike(like, escape="\\")
    stmt = (
        post_query()
        .where(or_(title_hit, Post.excerpt.ilike(like, escape="\\"), Post.content.ilike(like, escape="\\")))
        .order_by(case((title_hit, 0), else_=1), Post.published_at.desc())
        .limit(limit)
    )
    return [to_post_with_summary(p, s, su, include_content=False) for p, s, su in session.exec(stmt).all()]


def normalize_query(query: Optional[str]) -> str:
    return (query or "").strip()


def search_posts(session: Session, query: Optional[str], limit: int = MAX_RESULTS) -> List[PostWithSummary]:
    """Rank posts against ``query``. Queries shorter than two characters never hit the database."""
    q = normalize_query(query)
    if len(q) < MIN_QUERY_LENGTH:
        return []
    if session.get_bind().dialect.name == "postgresql":
        return _search_postgres(session, q, limit)
    return _search_fallback(session, q, limit)
