import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    # camelCase on the wire, snake_case in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class SourceRef(ApiModel):
    id: uuid.UUID
    name: str
    site: str


class SourceOut(ApiModel):
    id: uuid.UUID
    name: str
    site: str
    feed_url: str
    category: Optional[str]
    enabled: bool
    created_at: datetime


class SummaryOut(ApiModel):
    bullets: List[str]
    why_it_matters: Optional[str]
    tags: List[str]
    keywords: List[str]


class PostWithSummary(ApiModel):
    id: uuid.UUID
    title: str
    url: str
    published_at: Optional[datetime]
    excerpt: Optional[str]
    content: Optional[str] = None
    source: SourceRef
    # None until the summarization job has processed the post
    summary: Optional[SummaryOut] = None


class PostPage(ApiModel):
    posts: List[PostWithSummary]
    total_count: int
    page: int
    limit: int


class SearchResponse(ApiModel):
    results: List[PostWithSummary]
    count: int


class SourceHealth(ApiModel):
    id: uuid.UUID
    name: str
    enabled: bool
    posts_last_24h: int
    posts_last_7d: int
    total_posts: int
    latest_post_date: Optional[datetime]
