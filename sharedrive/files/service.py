from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from flask import current_app
from sqlalchemy.orm import Session

from ..access.gate import get_public_file, require_file_permission, require_folder_permission
from ..common.errors import BlobFailure, NotFound, StorageFailure
from ..common.storage import get_blob_store, validate_node_name
from ..common.transaction import active_session, after_commit, after_rollback, transaction
from ..models import AccessLevel, File, OrphanedBlob, User


DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass
class DeleteResult:
    deleted_folders: int = 0
    deleted_files: int = 0
    storage_keys: list[str] = field(default_factory=list)
    orphaned_keys: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, int | list[str]]:
        return {
            "deleted_folders": self.deleted_folders,
            "deleted_files": self.deleted_files,
            "orphaned_keys": list(self.orphaned_keys),
        }


def purge_file_row(session: Session, file: File, result: DeleteResult) -> None:
    """Delete a file row and remember its blob key for removal after commit."""
    result.storage_keys.append(file.storage_key)
    session.delete(file)
    session.flush()
    result.deleted_files += 1


def _record_orphans(failures: list[tuple[str, str]]) -> None:
    try:
        with transaction() as tx:
            tx.add_all([OrphanedBlob(storage_key=key, reason=reason[:512]) for key, reason in failures])
    except StorageFailure:
        current_app.logger.exception("Could not record orphaned blobs: %s", [key for key, _ in failures])


def discard_blobs(keys: list[str]) -> list[str]:
    """Best-effort blob removal once the metadata delete has committed.

    Failures are logged and written to the orphan ledger; they never undo or
    fail the metadata delete. Returns the keys that could not be removed.
    """
    store = get_blob_store()
    failures: list[tuple[str, str]] = []
    for key in keys:
        try:
            store.delete(key)
        except BlobFailure as error:
            current_app.logger.warning("Blob delete failed for %s, keeping it as orphan", key, exc_info=True)
            failures.append((key, error.message))

    if failures:
        _record_orphans(failures)
    return [key for key, _ in failures]


def release_blobs(result: DeleteResult) -> None:
    result.orphaned_keys = discard_blobs(result.storage_keys)


def create_file(
    owner_id: int,
    name: str,
    data: bytes,
    mime_type: str | None = None,
    folder_id: int | None = None,
    session: Session | None = None,
) -> File:
    """Store the blob, then the metadata row.

    No row is written if the blob store fails, and the fresh blob is discarded
    again if the metadata write is rolled back.
    """
    file_name = validate_node_name(Path(name or "").name)
    mime_type = (mime_type or "").strip() or DEFAULT_MIME_TYPE
    store = get_blob_store()

    with transaction(session) as tx:
        if tx.get(User, owner_id) is None:
            raise NotFound("User not found.", code="USER_NOT_FOUND")
        if folder_id is not None:
            require_folder_permission(folder_id, owner_id, AccessLevel.EDIT, session=tx)

        stored_key = store.put(data, mime_type)
        after_rollback(tx, lambda: discard_blobs([stored_key]))
        file = File(
            name=file_name,
            mime_type=mime_type,
            size=len(data),
            storage_key=stored_key,
            owner_id=owner_id,
            folder_id=folder_id,
        )
        tx.add(file)
        tx.flush()

    current_app.logger.info("File %s uploaded by user %s (%d bytes)", file.id, owner_id, file.size)
    return file


def move_file(
    file_id: int,
    caller_id: int,
    target_folder_id: int | None,
    session: Session | None = None,
) -> File:
    """Re-file a file under another folder, or unfile it with ``None``. Ownership never changes."""
    with transaction(session) as tx:
        access = require_file_permission(file_id, caller_id, AccessLevel.EDIT, session=tx)
        if target_folder_id is not None:
            require_folder_permission(target_folder_id, caller_id, AccessLevel.EDIT, session=tx)
        file = access.file
        file.folder_id = target_folder_id
        tx.flush()
    return file


def delete_file(file_id: int, caller_id: int, session: Session | None = None) -> DeleteResult:
    result = DeleteResult()
    with transaction(session) as tx:
        access = require_file_permission(file_id, caller_id, AccessLevel.EDIT, session=tx)
        purge_file_row(tx, access.file, result)
        after_commit(tx, lambda: release_blobs(result))

    current_app.logger.info("File %s deleted by user %s", file_id, caller_id)
    return result


def read_file(file_id: int, user_id: int, session: Session | None = None) -> tuple[File, bytes]:
    access = require_file_permission(file_id, user_id, AccessLevel.READ, session=session)
    return access.file, get_blob_store().get(access.file.storage_key)


def read_public_file(token: str, file_id: int, session: Session | None = None) -> tuple[File, bytes]:
    access = get_public_file(token, file_id, session=session)
    return access.file, get_blob_store().get(access.file.storage_key)


def list_orphaned_blobs(session: Session | None = None) -> list[OrphanedBlob]:
    session = active_session(session)
    return session.query(OrphanedBlob).order_by(OrphanedBlob.created_at.asc(), OrphanedBlob.id.asc()).all()


def reconcile_orphaned_blobs(session: Session | None = None) -> int:
    """Retry deletion of orphaned blobs and drop the ledger rows that succeed."""
    store = get_blob_store()
    cleared = 0
    with transaction(session) as tx:
        for orphan in tx.query(OrphanedBlob).order_by(OrphanedBlob.id.asc()).all():
            try:
                store.delete(orphan.storage_key)
            except BlobFailure:
                current_app.logger.warning("Orphaned blob %s still cannot be removed", orphan.storage_key, exc_info=True)
                continue
            tx.delete(orphan)
            cleared += 1
    return cleared
