"""Daily cron triggers for ingestion and summarization.

Each job POSTs to this app's own trigger endpoint with the shared secret, the
same way an external cron service would. A failed run is logged and left for
the next scheduled trigger; nothing is retried immediately.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

INGEST_PATH = "/api/ingest/run"
SUMMARIZE_PATH = "/api/summarize/run"
INGEST_TIMEOUT_SECONDS = 300.0


async def _trigger(
    name: str,
    path: str,
    settings: Settings,
    timeout: float,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[Dict[str, Any]]:
    if not settings.app_url or not settings.ingest_secret:
        logger.error("%s trigger skipped: APP_URL and INGEST_SECRET must both be set", name)
        return None

    url = f"{settings.app_url.rstrip('/')}{path}"
    headers = {"Authorization": f"Bearer {settings.ingest_secret}", "Content-Type": "application/json"}
    logger.info("Triggering %s...", name)
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            r = await client.post(url, headers=headers)
    except httpx.TimeoutException:
        logger.error("%s request timed out after %.0f seconds", name, timeout)
        return None
    except httpx.HTTPError as e:
        logger.error("%s error: %s", name, e)
        return None

    if r.is_error:
        logger.error("%s failed: %s %s %s", name, r.status_code, r.reason_phrase, r.text)
        return None

    try:
        data = r.json()
    except ValueError as e:
        logger.error("%s returned a non-JSON body: %s", name, e)
        return None
    logger.info("%s completed: %s", name, data)
    return data


async def trigger_ingest(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[Dict[str, Any]]:
    settings = settings or get_settings()
    return await _trigger("Ingest", INGEST_PATH, settings, INGEST_TIMEOUT_SECONDS, transport)


async def trigger_summarize(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[Dict[str, Any]]:
    settings = settings or get_settings()
    if settings.summarization_disabled:
        logger.info("Summarization disabled via SUMMARIZATION_DISABLED")
        return None

    data = await _trigger(
        "Summarization", SUMMARIZE_PATH, settings, settings.summarize_trigger_timeout_seconds, transport
    )
    if data and data.get("summarized", 0) > settings.summarize_limit:
        logger.warning(
            "Summarized %s posts (expected max %s). Check API limits!", data["summarized"], settings.summarize_limit
        )
    return data


def create_scheduler(settings: Optional[Settings] = None) -> AsyncIOScheduler:
    settings = settings or get_settings()
    scheduler = AsyncIOScheduler(timezone="UTC")

    scheduler.add_job(
        trigger_ingest,
        "cron",
        hour=settings.ingest_cron_hour,
        minute=0,
        id="ingest",
        kwargs={"settings": settings},
    )
    scheduler.add_job(
        trigger_summarize,
        "cron",
        hour=settings.summarize_cron_hour,
        minute=0,
        id="summarize",
        kwargs={"settings": settings},
    )

    return scheduler
