from typing import List

from fastapi import APIRouter, Depends

from ..auth import require_ingest_secret
from ..db import get_session
from ..queries import get_source_health
from ..schemas import SourceHealth

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/admin/health", response_model=List[SourceHealth], dependencies=[Depends(require_ingest_secret)])
def source_health(session=Depends(get_session)):
    return get_source_health(session)
