import uuid
from datetime import datetime, timezone

from enggist.queries import (
    get_paginated_posts,
    get_paginated_posts_by_source,
    get_paginated_posts_by_tag,
    get_post,
    get_source_health,
    list_sources,
    parse_post_sort,
)

from factories import hours_ago, make_post, make_source, make_summary


def test_parse_post_sort_defaults_to_newest() -> None:
    assert parse_post_sort("oldest") == "oldest"
    assert parse_post_sort("title_asc") == "title_asc"
    assert parse_post_sort("popular") == "newest"
    assert parse_post_sort(None) == "newest"


def test_paginated_posts_newest_first_with_total(session) -> None:
    source = make_source(session)
    for i in range(5):
        make_post(session, source, f"Post {i}", created_at=hours_ago(i))

    first, total = get_paginated_posts(session, page=1, limit=2)
    third, _ = get_paginated_posts(session, page=3, limit=2)

    assert total == 5
    assert [p.title for p in first] == ["Post 0", "Post 1"]
    assert [p.title for p in third] == ["Post 4"]


def test_sort_options(session) -> None:
    alpha = make_source(session, name="alpha", feed_url="https://alpha/feed")
    beta = make_source(session, name="Beta", feed_url="https://beta/feed")
    make_post(session, beta, "banana", created_at=hours_ago(3))
    make_post(session, alpha, "Cherry", created_at=hours_ago(2))
    make_post(session, beta, "apple", created_at=hours_ago(1))

    def titles(sort):
        return [p.title for p in get_paginated_posts(session, sort=sort)[0]]

    assert titles("newest") == ["apple", "Cherry", "banana"]
    assert titles("oldest") == ["banana", "Cherry", "apple"]
    assert titles("title_asc") == ["apple", "banana", "Cherry"]
    assert titles("source_asc") == ["Cherry", "apple", "banana"]


def test_published_date_takes_precedence_over_ingest_time(session) -> None:
    source = make_source(session)
    make_post(session, source, "Old news", created_at=hours_ago(0), published_at=datetime(2020, 1, 1, tzinfo=timezone.utc))
    make_post(session, source, "Fresh", created_at=hours_ago(1))

    posts, _ = get_paginated_posts(session)
    assert [p.title for p in posts] == ["Fresh", "Old news"]


def test_posts_by_source(session) -> None:
    mine = make_source(session, name="Mine", feed_url="https://mine/feed")
    other = make_source(session, name="Other", feed_url="https://other/feed")
    make_post(session, mine, "One")
    make_post(session, mine, "Two")
    make_post(session, other, "Three")

    posts, total = get_paginated_posts_by_source(session, mine.id)

    assert total == 2
    assert {p.title for p in posts} == {"One", "Two"}
    assert all(p.source.name == "Mine" for p in posts)


def test_posts_by_tag_only_match_whole_tags(session) -> None:
    source = make_source(session)
    make_summary(session, make_post(session, source, "Tracing"), tags=("sre", "dist"))
    make_summary(session, make_post(session, source, "Warehouse"), tags=("data",))
    make_post(session, source, "Unsummarized")

    posts, total = get_paginated_posts_by_tag(session, "dist")

    assert total == 1
    assert [p.title for p in posts] == ["Tracing"]
    assert posts[0].summary.tags == ["sre", "dist"]
    assert get_paginated_posts_by_tag(session, "mlp") == ([], 0)


def test_get_post_includes_content_and_summary(session) -> None:
    source = make_source(session)
    post = make_post(session, source, "Deep dive", content="<p>Body</p>")
    make_summary(session, post)

    found = get_post(session, post.id)

    assert found.content == "<p>Body</p>"
    assert found.summary.why_it_matters == "It matters."
    assert get_post(session, uuid.uuid4()) is None


def test_list_sources_is_case_insensitive_by_name(session) -> None:
    make_source(session, name="beta", feed_url="https://b/feed")
    make_source(session, name="Alpha", feed_url="https://a/feed")
    assert [s.name for s in list_sources(session)] == ["Alpha", "beta"]


def test_source_health_counts_windows(session) -> None:
    busy = make_source(session, name="Busy", feed_url="https://busy/feed")
    make_source(session, name="Quiet", feed_url="https://quiet/feed", enabled=False)
    make_post(session, busy, "Today", created_at=hours_ago(2), published_at=datetime(2024, 3, 1, tzinfo=timezone.utc))
    make_post(session, busy, "This week", created_at=hours_ago(72))
    make_post(session, busy, "Last month", created_at=hours_ago(24 * 30))

    health = {h.name: h for h in get_source_health(session)}

    assert health["Busy"].posts_last_24h == 1
    assert health["Busy"].posts_last_7d == 2
    assert health["Busy"].total_posts == 3
    assert health["Busy"].latest_post_date.replace(tzinfo=None) == datetime(2024, 3, 1)
    assert health["Quiet"].total_posts == 0
    assert health["Quiet"].enabled is False
    assert health["Quiet"].latest_post_date is None
