import uuid
from datetime import datetime, timezone
from typing import List, Literal, Optional, get_args

from sqlalchemy import JSON, DateTime
from sqlmodel import Field, SQLModel

Tag = Literal["sre", "dist", "data", "mlp", "finops", "security", "frontend", "mobile", "culture"]

# Controlled vocabulary for Summary.tags and Source.category
TAGS = get_args(Tag)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Source(SQLModel, table=True):
    __tablename__ = "sources"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    name: str
    site: str
    feed_url: str = Field(index=True, unique=True)
    category: str = Field(default="culture")
    enabled: bool = Field(default=True, index=True)

    # Conditional-fetch hints, stored but not yet sent with requests
    last_seen_item_hash: Optional[str] = None
    last_etag: Optional[str] = None
    last_modified: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class Post(SQLModel, table=True):
    __tablename__ = "posts"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    source_id: uuid.UUID = Field(foreign_key="sources.id", index=True, ondelete="CASCADE")

    title: str
    url: str
    canonical_url: Optional[str] = None
    published_at: Optional[datetime] = Field(default=None, index=True, sa_type=DateTime(timezone=True))
    author: Optional[str] = None
    excerpt: Optional[str] = None
    content: Optional[str] = None

    # Deduplication key, see hashing.generate_content_hash
    content_hash: str = Field(index=True, unique=True)

    created_at: datetime = Field(default_factory=utcnow, index=True, sa_type=DateTime(timezone=True))


class Summary(SQLModel, table=True):
    __tablename__ = "summaries"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    # At most one summary per post
    post_id: uuid.UUID = Field(foreign_key="posts.id", unique=True, ondelete="CASCADE")

    bullets: List[str] = Field(default_factory=list, sa_type=JSON)
    why_it_matters: Optional[str] = None
    tags: List[str] = Field(default_factory=list, sa_type=JSON)
    keywords: List[str] = Field(default_factory=list, sa_type=JSON)
    model: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
