from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from clean_madurai.errors import EngineError
from clean_madurai.http_errors import to_http_exception
from clean_madurai.services.blob_store import LocalBlobStore, get_blob_store

router = APIRouter(prefix="/api/blobs", tags=["blobs"])


@router.get("/{ref:path}")
def download_blob(ref: str, blobs: Annotated[LocalBlobStore, Depends(get_blob_store)]):
    try:
        path = blobs.open(ref)
    except EngineError as ex:
        raise to_http_exception(ex, fallback="File not available.") from ex
    return FileResponse(path)
