import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from ..db import get_session
from ..models import TAGS, Source
from ..queries import (
    get_paginated_posts,
    get_paginated_posts_by_source,
    get_paginated_posts_by_tag,
    get_post,
    list_sources,
    parse_post_sort,
)
from ..schemas import PostPage, PostWithSummary, SearchResponse, SourceOut
from ..search import search_posts

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/posts", response_model=PostPage)
def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(30, ge=1, le=100),
    sort: Optional[str] = Query(None, description="newest, oldest, title_asc or source_asc"),
    session=Depends(get_session),
):
    posts, total = get_paginated_posts(session, page=page, limit=limit, sort=parse_post_sort(sort))
    return PostPage(posts=posts, total_count=total, page=page, limit=limit)


@router.get("/posts/{post_id}", response_model=PostWithSummary)
def read_post(post_id: uuid.UUID, session=Depends(get_session)):
    post = get_post(session, post_id)
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


@router.get("/sources", response_model=List[SourceOut])
def read_sources(session=Depends(get_session)):
    return [SourceOut.model_validate(s) for s in list_sources(session)]


@router.get("/sources/{source_id}/posts", response_model=PostPage)
def list_source_posts(
    source_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort: Optional[str] = Query(None),
    session=Depends(get_session),
):
    if session.get(Source, source_id) is None:
        raise HTTPException(status_code=404, detail="Source not found")
    posts, total = get_paginated_posts_by_source(session, source_id, page=page, limit=limit, sort=parse_post_sort(sort))
    return PostPage(posts=posts, total_count=total, page=page, limit=limit)


@router.get("/tags", response_model=List[str])
def read_tags():
    return list(TAGS)


@router.get("/tags/{tag}/posts", response_model=PostPage)
def list_tag_posts(
    tag: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort: Optional[str] = Query(None),
    session=Depends(get_session),
):
    if tag not in TAGS:
        raise HTTPException(status_code=404, detail=f"Unknown tag: {tag}")
    posts, total = get_paginated_posts_by_tag(session, tag, page=page, limit=limit, sort=parse_post_sort(sort))
    return PostPage(posts=posts, total_count=total, page=page, limit=limit)


@router.get("/search", response_model=SearchResponse)
def search(q: Optional[str] = Query(None), session=Depends(get_session)):
    try:
        results = search_posts(session, q)
    except SQLAlchemyError as e:
        logger.exception("Search failed for %r", q)
        return JSONResponse(status_code=500, content={"error": "Search failed", "message": str(e)})
    return SearchResponse(results=results, count=len(results))
