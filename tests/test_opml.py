from sqlmodel import select

from enggist.db import Database
from enggist.models import Source
from enggist.opml import OpmlFeed, import_sources, main, parse_opml

OPML = """<?xml version="1.0" encoding="UTF-8"?>
<opml version="2.0">
  <head><title>Engineering Blogs</title></head>
  <body>
    <outline text="Engineering Blogs" title="Engineering Blogs">
      <outline type="rss" text="Netflix TechBlog" title="Netflix TechBlog"
               xmlUrl="https://netflixtechblog.com/feed" htmlUrl="https://netflixtechblog.com"/>
      <outline text="Databases">
        <outline type="rss" text="Crunchy Data" xmlUrl="https://www.crunchydata.com/blog/rss.xml"
                 htmlUrl="https://www.crunchydata.com/blog"/>
      </outline>
      <outline type="rss" text="No feed here" htmlUrl="https://example.com"/>
    </outline>
  </body>
</opml>
"""


def test_parse_opml_finds_nested_feeds() -> None:
    assert parse_opml(OPML) == [
        OpmlFeed(name="Netflix TechBlog", site="https://netflixtechblog.com", feed_url="https://netflixtechblog.com/feed"),
        OpmlFeed(name="Crunchy Data", site="https://www.crunchydata.com/blog", feed_url="https://www.crunchydata.com/blog/rss.xml"),
    ]


def test_import_is_idempotent(session) -> None:
    feeds = parse_opml(OPML)

    assert import_sources(session, feeds) == 2
    assert import_sources(session, feeds) == 0

    sources = session.exec(select(Source).order_by(Source.name)).all()
    assert [s.name for s in sources] == ["Crunchy Data", "Netflix TechBlog"]
    assert all(s.enabled for s in sources)


def test_main_imports_into_the_given_database(tmp_path) -> None:
    opml_path = tmp_path / "blogs.opml"
    opml_path.write_text(OPML, encoding="utf-8")
    db_url = f"sqlite:///{tmp_path / 'enggist.db'}"

    assert main([str(opml_path), "--database-url", db_url]) == 0
    assert main([str(opml_path), "--database-url", db_url]) == 0

    db = Database(db_url)
    with db.session() as session:
        assert len(session.exec(select(Source)).all()) == 2
    db.dispose()
