from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

from clean_madurai.config import settings
from clean_madurai.errors import CollaboratorError

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


class BlobStore(Protocol):
    def upload(self, path: str, data: bytes) -> str: ...

    def url_of(self, ref: str) -> str: ...


def safe_filename(name: str | None, default: str = "file") -> str:
    cleaned = _UNSAFE.sub("_", Path(name or "").name).strip("._")
    return cleaned or default


class LocalBlobStore:
    """Blobs written under a directory on disk and served back by the /api/blobs route."""

    def __init__(self, root: str | Path, base_url: str, max_bytes: int | None = None) -> None:
        self.root = Path(root).resolve()
        self.base_url = base_url.rstrip("/")
        self.max_bytes = max_bytes

    def _resolve(self, ref: str) -> Path:
        target = (self.root / ref).resolve()
        if target != self.root and self.root not in target.parents:
            raise CollaboratorError("storage/unauthorized", f"Blob path escapes store root: {ref}")
        return target

    def upload(self, path: str, data: bytes) -> str:
        ref = "/".join(safe_filename(part) for part in path.strip("/").split("/") if part)
        if not ref:
            raise CollaboratorError("storage/invalid-argument", "Empty blob path")
        if self.max_bytes is not None and len(data) > self.max_bytes:
            raise CollaboratorError("storage/quota-exceeded", f"Blob of {len(data)} bytes exceeds {self.max_bytes}")
        target = self._resolve(ref)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except PermissionError as ex:
            raise CollaboratorError("storage/unauthorized", str(ex)) from ex
        except OSError as ex:
            logger.warning("Blob upload failed for %s: %s", ref, ex)
            raise CollaboratorError("storage/retry-limit-exceeded", str(ex)) from ex
        logger.info("Stored blob %s (%d bytes)", ref, len(data))
        return ref

    def url_of(self, ref: str) -> str:
        return f"{self.base_url}/{quote(ref)}"

    def open(self, ref: str) -> Path:
        target = self._resolve(ref)
        if not target.is_file():
            raise CollaboratorError("storage/object-not-found", f"No blob at {ref}")
        return target


def get_blob_store() -> LocalBlobStore:
    return LocalBlobStore(settings.blob_dir, settings.blob_base_url, settings.blob_max_bytes)
