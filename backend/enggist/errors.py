class FeedFetchError(Exception):
    """A single feed could not be downloaded or parsed."""

    def __init__(self, feed_url: str, message: str):
        super().__init__(message)
        self.feed_url = feed_url


class SummaryGenerationError(Exception):
    """The LLM call failed or returned output that does not fit the summary schema."""


class ConfigurationError(Exception):
    """Required configuration (e.g. the LLM API key) is missing."""
