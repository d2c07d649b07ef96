import logging
from contextlib import contextmanager
from typing import Any, Callable, ContextManager, Iterator

from fastapi import Request
from sqlalchemy import text
from sqlmodel import Session, SQLModel, create_engine

from . import models  # noqa: F401  (registers tables on SQLModel.metadata)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], ContextManager[Session]]

# Full-text and trigram search support, PostgreSQL only
POSTGRES_SEARCH_DDL = (
    "CREATE EXTENSION IF NOT EXISTS pg_trgm",
    """
    ALTER TABLE posts ADD COLUMN IF NOT EXISTS search_tsv tsvector
    GENERATED ALWAYS AS (
        setweight(to_tsvector('english', coalesce(title, '')), 'A') ||
        setweight(to_tsvector('english', coalesce(excerpt, '')), 'B') ||
        setweight(to_tsvector('english', coalesce(content, '')), 'C')
    ) STORED
    """,
    "CREATE INDEX IF NOT EXISTS posts_search_tsv_idx ON posts USING GIN (search_tsv)",
    "CREATE INDEX IF NOT EXISTS posts_title_trgm_idx ON posts USING GIN (title gin_trgm_ops)",
)


class Database:
    """Owns the engine; hands out one scoped session per unit of work."""

    def __init__(self, url: str, **engine_kwargs: Any):
        connect_args = {}
        if url.startswith("sqlite"):
            connect_args = {"check_same_thread": False}
        self.engine = create_engine(url, connect_args=connect_args, **engine_kwargs)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def create_all(self) -> None:
        SQLModel.metadata.create_all(self.engine)
        if self.dialect == "postgresql":
            with self.engine.begin() as conn:
                for stmt in POSTGRES_SEARCH_DDL:
                    conn.execute(text(stmt))
            logger.info("Search columns and indexes ensured")

    @contextmanager
    def session(self) -> Iterator[Session]:
        with Session(self.engine) as session:
            yield session

    def dispose(self) -> None:
        self.engine.dispose()


def get_database(request: Request) -> Database:
    return request.app.state.db


def get_session(request: Request) -> Iterator[Session]:
    with get_database(request).session() as session:
        yield session
