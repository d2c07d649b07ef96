import hmac
import logging
import re
from typing import Optional

from fastapi import Depends, Header, HTTPException

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

_BEARER = re.compile(r"^Bearer\s+", re.IGNORECASE)


def is_authorized(authorization: Optional[str], secret: str) -> bool:
    """Check an ``Authorization: Bearer <secret>`` header. An unset secret authorizes nothing."""
    if not secret or not authorization:
        return False
    token = _BEARER.sub("", authorization)
    return hmac.compare_digest(token.encode("utf-8"), secret.encode("utf-8"))


def require_ingest_secret(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    if not settings.ingest_secret:
        logger.error("INGEST_SECRET not configured")
    if not is_authorized(authorization, settings.ingest_secret):
        raise HTTPException(status_code=401, detail="Unauthorized")
