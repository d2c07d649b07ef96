import logging
from functools import partial

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..auth import require_ingest_secret
from ..config import Settings, get_settings
from ..db import Database, get_database
from ..errors import ConfigurationError
from ..ingest.feeds import create_feed_client, fetch_feed
from ..ingest.pipeline import run_ingest
from ..summarize.batch import run_summarize
from ..summarize.llm import LLMClient

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_ingest_secret)])


def _internal_error(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": "Internal server error", "message": str(exc)})


@router.post("/ingest/run")
async def ingest_run(
    db: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
):
    logger.info("Starting ingest...")
    try:
        async with create_feed_client(settings.feed_timeout_seconds, settings.feed_user_agent) as client:
            fetch = partial(
                fetch_feed,
                client=client,
                max_items=settings.feed_max_items,
                timeout=settings.feed_timeout_seconds,
            )
            report = await run_ingest(db.session, fetch)
    except Exception as e:
        logger.exception("Fatal error during ingest")
        return _internal_error(e)

    return {
        "success": True,
        "sources": [r.to_dict() for r in report.sources],
        "totalNew": report.total_new,
    }


@router.post("/summarize/run")
async def summarize_run(
    db: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
):
    logger.info("Starting summarization...")
    try:
        client = LLMClient.from_settings(settings)
    except ConfigurationError as e:
        logger.error("%s", e)
        return JSONResponse(status_code=500, content={"error": "API key not configured"})

    try:
        async with client:
            report = await run_summarize(
                db.session,
                client,
                limit=settings.summarize_limit,
                batch_size=settings.summarize_batch_size,
                retry_delay=settings.summarize_retry_delay_seconds,
                max_content_chars=settings.summarize_max_content_chars,
            )
    except Exception as e:
        logger.exception("Fatal error during summarization")
        return _internal_error(e)

    if report.selected == 0:
        return {"success": True, "summarized": 0, "message": "No posts need summarization"}

    failed = report.failed
    body = {"success": True, "summarized": report.summarized, "failed": len(failed)}
    if failed:
        body["errors"] = [o.to_error() for o in failed]
    return body
