"""Import feed sources from an OPML file.

Usage: python -m enggist.opml engineering-blogs.opml
"""
import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional
from xml.etree import ElementTree as ET

from sqlmodel import Session, select

from .config import get_settings
from .db import Database
from .logging_setup import configure_logging
from .models import Source

logger = logging.getLogger(__name__)


@dataclass
class OpmlFeed:
    name: str
    site: str
    feed_url: str


def parse_opml(xml_text: str) -> List[OpmlFeed]:
    """Every ``outline`` carrying a feed URL, at any nesting depth."""
    root = ET.fromstring(xml_text)
    feeds: List[OpmlFeed] = []
    for outline in root.iter("outline"):
        name = outline.get("title") or outline.get("text")
        feed_url = outline.get("xmlUrl") or outline.get("url")
        site = outline.get("htmlUrl") or outline.get("url")
        if not name or not feed_url or not site:
            continue
        feeds.append(OpmlFeed(name=name, site=site, feed_url=feed_url))
    return feeds


def import_sources(session: Session, feeds: Iterable[OpmlFeed]) -> int:
    """Add feeds as enabled sources; feeds whose URL is already known are left alone."""
    imported = 0
    for feed in feeds:
        existing = session.exec(select(Source.id).where(Source.feed_url == feed.feed_url)).first()
        if existing:
            continue
        session.add(Source(name=feed.name, site=feed.site, feed_url=feed.feed_url, enabled=True))
        session.commit()
        imported += 1
    return imported


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Import engineering blog feeds from an OPML file")
    parser.add_argument("path", nargs="?", default="engineering-blogs.opml", help="OPML file to import")
    parser.add_argument("--database-url", default=None, help="Overrides DATABASE_URL")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level)

    path = Path(args.path)
    if not path.exists():
        parser.error(f"OPML file not found at {path.resolve()}")

    db = Database(args.database_url or settings.database_url)
    try:
        db.create_all()
        feeds = parse_opml(path.read_text(encoding="utf-8"))
        with db.session() as session:
            imported = import_sources(session, feeds)
    finally:
        db.dispose()

    logger.info("Imported %d of %d sources from %s", imported, len(feeds), path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
