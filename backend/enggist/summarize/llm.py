from __future__ import annotations

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass
from typing import List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError

from ..config import Settings
from ..db import SessionFactory
from ..errors import ConfigurationError, SummaryGenerationError
from ..models import TAGS, Summary, Tag

logger = logging.getLogger(__name__)

WHY_IT_MATTERS_MAX_CHARS = 300
MAX_KEYWORDS = 7
MAX_CONTENT_CHARS = 8000
TEMPERATURE = 0.3
MAX_ATTEMPTS = 2
RETRY_DELAY_SECONDS = 1.0

SUMMARY_PROMPT = """Title: {title}

Content:
{content}

Analyze this engineering blog post and provide a structured summary.

IMPORTANT CONSTRAINTS:
- whyItMatters: MUST be 300 characters or less (strict limit)
- keywords: MUST be between 2-7 items only
- bullets: MUST be between 3-7 items
- tags: MUST be between 1-3 items from: {tags}

Provide:
1. Between 3-7 concise bullet points summarizing key technical takeaways
2. A brief explanation (MAX 300 characters) of why this matters to engineers
3. Between 1-3 relevant category tags from the list above
4. Between 2-7 key technical keywords or concepts

Respond with a single JSON object of the form:
{{"bullets": ["..."], "whyItMatters": "...", "tags": ["..."], "keywords": ["..."]}}"""

_SENTENCE_END = re.compile(r"[.!?](?=\s|$)")

SYSTEM_PROMPT = "You summarize engineering blog posts for engineers. Output JSON only, no prose around it."


class SummaryOutput(BaseModel):
    """Structured summary as returned by the model.

    Length limits on ``why_it_matters`` and ``keywords`` are enforced by
    :func:`repair_summary` instead of rejecting the response.
    """

    model_config = ConfigDict(populate_by_name=True)

    bullets: List[str] = Field(min_length=3, max_length=7)
    why_it_matters: str = Field(alias="whyItMatters")
    tags: List[Tag] = Field(min_length=1, max_length=3)
    keywords: List[str] = Field(min_length=2)


@dataclass
class PendingPost:
    id: uuid.UUID
    title: str
    excerpt: Optional[str] = None
    content: Optional[str] = None
    url: Optional[str] = None


@dataclass
class PostOutcome:
    post_id: uuid.UUID
    title: str
    success: bool
    error: Optional[str] = None

    def to_error(self) -> dict:
        return {"postId": str(self.post_id), "title": self.title, "error": self.error}


def build_prompt(title: str, body: Optional[str], max_chars: int = MAX_CONTENT_CHARS) -> str:
    content = body or "No content available."
    if len(content) > max_chars:
        content = content[:max_chars] + "..."
    return SUMMARY_PROMPT.format(title=title, content=content, tags=", ".join(TAGS))


def truncate_to_length(text: str, max_length: int = WHY_IT_MATTERS_MAX_CHARS) -> str:
    """Shorten ``text`` to at most ``max_length`` characters without cutting a word.

    Prefers ending on a sentence boundary when one falls in the last 30% of
    the allowed length; otherwise cuts at the last space and appends "...".
    """
    if len(text) <= max_length:
        return text

    truncated = text[:max_length]
    # look one char past the cut so "Node.js" is not read as a sentence end
    ends = [m.start() for m in _SENTENCE_END.finditer(text[: max_length + 1]) if m.start() < max_length]
    last_sentence = ends[-1] if ends else -1
    if last_sentence > max_length * 0.7:
        return truncated[: last_sentence + 1].strip()

    cut = truncated[: max_length - 3]
    last_space = cut.rfind(" ")
    return cut[: last_space if last_space > 0 else max_length - 3].strip() + "..."


def repair_summary(output: SummaryOutput) -> SummaryOutput:
    why = output.why_it_matters
    keywords = output.keywords
    if len(why) > WHY_IT_MATTERS_MAX_CHARS:
        logger.warning("whyItMatters exceeded %d chars (%d), truncating", WHY_IT_MATTERS_MAX_CHARS, len(why))
        why = truncate_to_length(why, WHY_IT_MATTERS_MAX_CHARS)
    if len(keywords) > MAX_KEYWORDS:
        logger.warning("keywords exceeded %d items (%d), trimming", MAX_KEYWORDS, len(keywords))
        keywords = keywords[:MAX_KEYWORDS]
    return output.model_copy(update={"why_it_matters": why, "keywords": keywords})


def _extract_json(text: str) -> str:
    # Some models wrap JSON in a markdown fence even in JSON mode
    m = re.search(r"```(?:json)?\s*(.*?)```", text, re.DOTALL)
    return m.group(1) if m else text


class LLMClient:
    """Thin async client for an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        *,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = model
        self._url = f"{base_url.rstrip('/')}/chat/completions"
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "LLMClient":
        if not settings.llm_api_key:
            raise ConfigurationError("LLM API key not configured")
        return cls(
            settings.llm_base_url,
            settings.llm_api_key,
            settings.llm_model,
            timeout=settings.llm_timeout_seconds,
            **kwargs,
        )

    async def __aenter__(self) -> "LLMClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def generate(self, prompt: str) -> SummaryOutput:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": TEMPERATURE,
            "response_format": {"type": "json_object"},
        }
        try:
            r = await self._client.post(self._url, json=payload)
            r.raise_for_status()
            data = r.json()
            text = data["choices"][0]["message"]["content"] or ""
            return SummaryOutput.model_validate_json(_extract_json(text).strip())
        except httpx.HTTPError as e:
            raise SummaryGenerationError(f"LLM request failed: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            # ValueError covers JSON decoding and pydantic validation errors
            raise SummaryGenerationError(f"LLM returned an unusable response: {e}") from e


def save_summary(session_factory: SessionFactory, post_id: uuid.UUID, output: SummaryOutput, model: str) -> Summary:
    with session_factory() as session:
        summary = Summary(
            post_id=post_id,
            bullets=list(output.bullets),
            why_it_matters=output.why_it_matters,
            tags=list(output.tags),
            keywords=list(output.keywords),
            model=model,
        )
        session.add(summary)
        try:
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        session.refresh(summary)
        return summary


async def summarize_post(
    post: PendingPost,
    *,
    client: LLMClient,
    session_factory: SessionFactory,
    max_content_chars: int = MAX_CONTENT_CHARS,
    retry_delay: float = RETRY_DELAY_SECONDS,
    max_attempts: int = MAX_ATTEMPTS,
) -> PostOutcome:
    """Generate and store the summary for one post.

    The LLM call is retried once after a fixed delay. A post that still fails
    is reported in the returned outcome rather than raised.
    """
    prompt = build_prompt(post.title, post.content or post.excerpt, max_chars=max_content_chars)
    error: Optional[str] = None

    for attempt in range(1, max_attempts + 1):
        if attempt > 1:
            logger.info("Retrying post %s (attempt %d/%d)", post.id, attempt, max_attempts)
            await asyncio.sleep(retry_delay)
        logger.info("Processing: %s", post.title)
        try:
            output = await client.generate(prompt)
        except SummaryGenerationError as e:
            error = str(e)
            logger.error("Error processing post %s: %s", post.id, error)
            continue

        output = repair_summary(output)
        try:
            await asyncio.to_thread(save_summary, session_factory, post.id, output, client.model)
        except SQLAlchemyError as e:
            # A concurrent run may already have stored a summary for this post
            logger.error("Could not store summary for post %s: %s", post.id, e)
            return PostOutcome(post.id, post.title, success=False, error=f"storage error: {e}")
        logger.info("Summarized %s", post.title)
        return PostOutcome(post.id, post.title, success=True)

    return PostOutcome(post.id, post.title, success=False, error=error)
