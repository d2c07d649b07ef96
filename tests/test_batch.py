import asyncio

from sqlmodel import select

from enggist.errors import SummaryGenerationError
from enggist.models import Summary
from enggist.summarize.batch import process_in_batches, run_summarize, select_unsummarized
from enggist.summarize.llm import SummaryOutput

from factories import hours_ago, make_post, make_source, make_summary


def _output() -> SummaryOutput:
    return SummaryOutput.model_validate(
        {
            "bullets": ["one", "two", "three"],
            "whyItMatters": "Useful.",
            "tags": ["dist"],
            "keywords": ["raft", "consensus"],
        }
    )


class TitleClient:
    """Succeeds for every prompt except those mentioning a title in ``failing``."""

    model = "fake-model"

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.prompts = []

    async def generate(self, prompt):
        self.prompts.append(prompt)
        if any(f"Title: {title}\n" in prompt for title in self.failing):
            raise SummaryGenerationError("model refused")
        return _output()


def test_batches_run_sequentially_with_bounded_concurrency() -> None:
    events = []
    in_flight = 0
    peak = 0

    async def worker(i):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        events.append(("start", i))
        await asyncio.sleep(0)
        events.append(("end", i))
        in_flight -= 1
        return i * 10

    results = asyncio.run(process_in_batches(list(range(7)), 3, worker))

    assert results == [0, 10, 20, 30, 40, 50, 60]
    assert peak == 3
    # A group starts only after every item of the previous group ended
    assert events.index(("start", 3)) > max(events.index(("end", i)) for i in range(3))
    assert events.index(("start", 6)) > max(events.index(("end", i)) for i in range(3, 6))
    assert events[-2:] == [("start", 6), ("end", 6)]


def test_empty_input_runs_nothing() -> None:
    async def worker(item):
        raise AssertionError("should not be called")

    assert asyncio.run(process_in_batches([], 3, worker)) == []


def test_select_unsummarized_is_newest_first_and_capped(session) -> None:
    source = make_source(session)
    posts = [make_post(session, source, f"Post {i}", created_at=hours_ago(i)) for i in range(20)]
    make_summary(session, posts[0])

    pending = select_unsummarized(session, limit=15)

    assert [p.title for p in pending] == [f"Post {i}" for i in range(1, 16)]


def test_run_summarize_is_idempotent(db, session) -> None:
    source = make_source(session)
    for i in range(4):
        make_post(session, source, f"Post {i}", created_at=hours_ago(i))
    client = TitleClient()

    first = asyncio.run(run_summarize(db.session, client, retry_delay=0))
    second = asyncio.run(run_summarize(db.session, client, retry_delay=0))

    assert first.selected == 4
    assert first.summarized == 4
    assert first.failed == []
    assert second.selected == 0
    assert second.outcomes == []
    assert len(client.prompts) == 4
    assert len(session.exec(select(Summary)).all()) == 4


def test_failed_posts_stay_eligible_for_the_next_run(db, session) -> None:
    source = make_source(session)
    make_post(session, source, "Good one", created_at=hours_ago(1))
    make_post(session, source, "Bad one", created_at=hours_ago(2))

    report = asyncio.run(run_summarize(db.session, TitleClient(failing={"Bad one"}), retry_delay=0))

    assert report.summarized == 1
    assert [o.title for o in report.failed] == ["Bad one"]
    assert report.failed[0].to_error()["error"] == "model refused"
    assert [p.title for p in select_unsummarized(session)] == ["Bad one"]


def test_run_summarize_respects_limit(db, session) -> None:
    source = make_source(session)
    for i in range(5):
        make_post(session, source, f"Post {i}", created_at=hours_ago(i))

    report = asyncio.run(run_summarize(db.session, TitleClient(), limit=2, batch_size=1, retry_delay=0))

    assert report.selected == 2
    assert len(select_unsummarized(session)) == 3
