from __future__ import annotations

import mimetypes
import os
import re
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from flask import current_app

from .errors import BlobFailure, ValidationError


INVALID_NAME_PATTERN = re.compile(r"[\\/\x00]")


def validate_node_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Name cannot be empty.", code="INVALID_NAME")
    if len(cleaned) > 255:
        raise ValidationError("Name must be <= 255 characters.", code="INVALID_NAME")
    if INVALID_NAME_PATTERN.search(cleaned):
        raise ValidationError("Name contains invalid characters.", code="INVALID_NAME")
    if cleaned in {".", ".."}:
        raise ValidationError("Reserved name.", code="INVALID_NAME")
    return cleaned


class BlobStore(Protocol):
    def put(self, data: bytes, content_type: str | None = None) -> str: ...

    def get(self, key: str) -> bytes: ...

    def delete(self, key: str) -> None: ...


class LocalBlobStore:
    """Blob store backed by a directory tree, keys are ``<bucket>/<uuid><ext>``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _safe_resolve(self, key: str) -> Path:
        candidate = (self.root / key).resolve()
        if os.path.commonpath([str(self.root), str(candidate)]) != str(self.root):
            raise BlobFailure("Invalid storage key.", code="INVALID_STORAGE_KEY", details={"key": key})
        return candidate

    def put(self, data: bytes, content_type: str | None = None) -> str:
        ext = mimetypes.guess_extension(content_type or "") or ""
        key = f"{uuid4().hex[:2]}/{uuid4().hex}{ext}"
        target = self._safe_resolve(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("wb") as output:
                output.write(data)
        except OSError as error:
            raise BlobFailure("Could not store blob.", details={"key": key}) from error
        return key

    def get(self, key: str) -> bytes:
        target = self._safe_resolve(key)
        try:
            return target.read_bytes()
        except FileNotFoundError as error:
            raise BlobFailure("Blob data not found.", code="BLOB_MISSING", details={"key": key}) from error
        except OSError as error:
            raise BlobFailure("Could not read blob.", details={"key": key}) from error

    def delete(self, key: str) -> None:
        target = self._safe_resolve(key)
        try:
            target.unlink(missing_ok=True)
        except OSError as error:
            raise BlobFailure("Could not delete blob.", details={"key": key}) from error

    def exists(self, key: str) -> bool:
        return self._safe_resolve(key).exists()


def get_blob_store() -> BlobStore:
    return current_app.extensions["blob_store"]
