"""Folder lifecycle: create, rename/reparent and cascading delete.

A cascade runs as one transaction. The session opened for the top-level
call is handed down through every recursive step; nothing below the top
level commits. Blob keys collected on the way are only deleted after the
commit succeeded.
"""

from __future__ import annotations

from typing import Any

from flask import current_app
from sqlalchemy.orm import Session

from ..access.gate import require_folder_permission
from ..access.resolver import is_descendant, resolve_permission
from ..common.errors import NotFound, Unauthorized, ValidationError
from ..common.storage import validate_node_name
from ..common.transaction import after_commit, transaction
from ..common.tree import (
    ancestor_ids,
    build_path,
    delete_empty_folder,
    get_folder,
    list_children,
    list_files_in,
    lock_folder,
    rewrite_subtree_paths,
)
from ..files.service import DeleteResult, purge_file_row, release_blobs
from ..models import AccessLevel, Folder, PublicFolderShare, SharedFolder, User


UNSET: Any = object()


def create_folder(name: str, owner_id: int, parent_id: int | None = None, session: Session | None = None) -> Folder:
    """Create a folder owned by ``owner_id``.

    Under a parent the creator needs EDIT there, but the parent may belong to
    someone else: nested folders keep their creator as owner.
    """
    folder_name = validate_node_name(name)

    with transaction(session) as tx:
        if tx.get(User, owner_id) is None:
            raise NotFound("User not found.", code="USER_NOT_FOUND")

        if parent_id is not None:
            require_folder_permission(parent_id, owner_id, AccessLevel.EDIT, session=tx)

        folder = Folder(name=folder_name, owner_id=owner_id, parent_id=parent_id)
        tx.add(folder)
        tx.flush()

        # The insert holds the write lock now; build the path from a fresh parent row.
        parent: Folder | None = None
        if parent_id is not None:
            parent = lock_folder(tx, parent_id)
            if parent is None:
                raise NotFound("Folder not found.", code="FOLDER_NOT_FOUND")
        folder.path = build_path(parent, folder.id)
        tx.flush()

    return folder


def update_folder(
    folder_id: int,
    caller_id: int,
    *,
    name: str = UNSET,
    parent_id: int | None = UNSET,
    session: Session | None = None,
) -> Folder:
    """Rename and/or reparent a folder. Only its recorded owner may do this."""
    with transaction(session) as tx:
        folder = get_folder(tx, folder_id)
        if folder is None or resolve_permission(folder_id, caller_id, session=tx) is None:
            raise NotFound("Folder not found.", code="FOLDER_NOT_FOUND")
        if folder.owner_id != caller_id:
            raise Unauthorized("Only the owner can rename or move this folder.", code="OWNER_REQUIRED")

        if name is not UNSET:
            folder.name = validate_node_name(name)

        if parent_id is not UNSET and parent_id != folder.parent_id:
            new_parent: Folder | None = None
            if parent_id is not None:
                if is_descendant(parent_id, folder.id, session=tx):
                    raise ValidationError("Cannot move a folder into itself or its descendants.", code="INVALID_MOVE")
                require_folder_permission(parent_id, caller_id, AccessLevel.EDIT, session=tx)

            folder.parent_id = parent_id
            tx.flush()

            # Re-read both ends under the write lock before touching any path.
            folder = lock_folder(tx, folder_id)
            if parent_id is not None:
                new_parent = lock_folder(tx, parent_id)
                if new_parent is None:
                    raise NotFound("Folder not found.", code="FOLDER_NOT_FOUND")
                if folder.id in ancestor_ids(new_parent):
                    raise ValidationError("Cannot move a folder into itself or its descendants.", code="INVALID_MOVE")
            moved = rewrite_subtree_paths(tx, folder, new_parent)
            current_app.logger.info("Folder %s moved under %s (%d paths rewritten)", folder_id, parent_id, moved)

        tx.flush()

    return folder


def _drop_folder_shares(session: Session, folder: Folder) -> None:
    session.query(SharedFolder).filter(SharedFolder.folder_id == folder.id).delete(synchronize_session="fetch")
    session.query(PublicFolderShare).filter(PublicFolderShare.folder_id == folder.id).delete(synchronize_session="fetch")
    session.flush()


def _delete_folder_tree(session: Session, folder: Folder, result: DeleteResult) -> None:
    # Files first, then subfolders, then the folder itself.
    for file in list_files_in(session, folder.id):
        purge_file_row(session, file, result)

    for child in list_children(session, folder.id):
        _delete_folder_tree(session, child, result)

    _drop_folder_shares(session, folder)
    delete_empty_folder(session, folder)
    result.deleted_folders += 1


def delete_folder_and_contents(folder_id: int, caller_id: int, session: Session | None = None) -> DeleteResult:
    """Delete a folder with every descendant folder and file, all or nothing.

    OWNER may always delete. EDIT may delete anything below a root, but a root
    folder can only be removed by its owner.
    """
    result = DeleteResult()

    with transaction(session) as tx:
        folder, permission = require_folder_permission(folder_id, caller_id, AccessLevel.EDIT, session=tx)
        if folder.is_root and permission is not AccessLevel.OWNER:
            raise Unauthorized("Only the owner can delete a root folder.", code="ROOT_DELETE_FORBIDDEN")
        _delete_folder_tree(tx, folder, result)
        after_commit(tx, lambda: release_blobs(result))

    current_app.logger.info(
        "Folder %s deleted by user %s (%d folders, %d files, %d orphaned blobs)",
        folder_id,
        caller_id,
        result.deleted_folders,
        result.deleted_files,
        len(result.orphaned_keys),
    )
    return result
