from enggist.auth import is_authorized
from enggist.config import Settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)
    assert settings.feed_timeout_seconds == 10.0
    assert settings.feed_max_items == 50
    assert settings.summarize_limit == 15
    assert settings.summarize_batch_size == 3
    assert settings.summarize_trigger_timeout_seconds == 600.0
    assert settings.scheduler_enabled is False


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("INGEST_SECRET", "from-env")
    monkeypatch.setenv("SUMMARIZE_LIMIT", "5")
    monkeypatch.setenv("SUMMARIZATION_DISABLED", "true")

    settings = Settings(_env_file=None)

    assert settings.ingest_secret == "from-env"
    assert settings.summarize_limit == 5
    assert settings.summarization_disabled is True


def test_is_authorized() -> None:
    assert is_authorized("Bearer abc", "abc")
    assert is_authorized("BEARER abc", "abc")
    assert is_authorized("abc", "abc")
    assert not is_authorized("Bearer abd", "abc")
    assert not is_authorized(None, "abc")
    assert not is_authorized("Bearer ", "")
