"""Authorization chokepoint for folders and files.

Every read or mutation of a folder or file goes through one of these
helpers. Missing resources and resources the caller cannot see both raise
``NotFound``, so existence is never leaked.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from ..common.errors import NotFound, Unauthorized
from ..common.transaction import active_session
from ..common.tree import get_file, get_folder, list_children, list_files_in
from ..models import AccessLevel, File, Folder
from ..shares.service import resolve_public_share
from .resolver import is_descendant, resolve_permission


@dataclass(frozen=True)
class FolderAccess:
    folder: Folder
    permission: AccessLevel
    children: list[Folder] = field(default_factory=list)
    files: list[File] = field(default_factory=list)


@dataclass(frozen=True)
class FileAccess:
    file: File
    permission: AccessLevel


def get_accessible_folder(folder_id: int, user_id: int, session: Session | None = None) -> FolderAccess:
    session = active_session(session)
    folder = get_folder(session, folder_id)
    permission = resolve_permission(folder_id, user_id, session=session) if folder is not None else None
    if folder is None or permission is None:
        raise NotFound("Folder not found.", code="FOLDER_NOT_FOUND")
    return FolderAccess(
        folder=folder,
        permission=permission,
        children=list_children(session, folder.id),
        files=list_files_in(session, folder.id),
    )


def get_accessible_file(file_id: int, user_id: int, session: Session | None = None) -> FileAccess:
    session = active_session(session)
    file = get_file(session, file_id)
    if file is None:
        raise NotFound("File not found.", code="FILE_NOT_FOUND")

    # The uploader keeps owner rights no matter where the file lives.
    if file.owner_id == user_id:
        return FileAccess(file=file, permission=AccessLevel.OWNER)

    if file.folder_id is None:
        raise NotFound("File not found.", code="FILE_NOT_FOUND")

    permission = resolve_permission(file.folder_id, user_id, session=session)
    if permission is None:
        raise NotFound("File not found.", code="FILE_NOT_FOUND")
    return FileAccess(file=file, permission=permission)


def require_folder_permission(
    folder_id: int,
    user_id: int,
    required: AccessLevel,
    session: Session | None = None,
) -> tuple[Folder, AccessLevel]:
    session = active_session(session)
    folder = get_folder(session, folder_id)
    permission = resolve_permission(folder_id, user_id, session=session) if folder is not None else None
    if folder is None or permission is None:
        raise NotFound("Folder not found.", code="FOLDER_NOT_FOUND")
    if not permission.satisfies(required):
        raise Unauthorized(
            f"{required.name} permission is required on this folder.",
            details={"folder_id": folder_id, "permission": permission.name},
        )
    return folder, permission


def require_file_permission(
    file_id: int,
    user_id: int,
    required: AccessLevel,
    session: Session | None = None,
) -> FileAccess:
    access = get_accessible_file(file_id, user_id, session=session)
    if not access.permission.satisfies(required):
        raise Unauthorized(
            f"{required.name} permission is required on this file.",
            details={"file_id": file_id, "permission": access.permission.name},
        )
    return access


def get_public_folder(token: str, folder_id: int | None = None, session: Session | None = None) -> FolderAccess:
    session = active_session(session)
    root = resolve_public_share(token, session=session)
    if root is None:
        raise NotFound("Share link not found.", code="SHARE_NOT_FOUND")

    target = root
    if folder_id is not None and folder_id != root.id:
        target = get_folder(session, folder_id)
        if target is None:
            raise NotFound("Folder not found.", code="FOLDER_NOT_FOUND")
        if not is_descendant(target.id, root.id, session=session):
            raise Unauthorized("Requested folder is outside this share.")

    return FolderAccess(
        folder=target,
        permission=AccessLevel.READ,
        children=list_children(session, target.id),
        files=list_files_in(session, target.id),
    )


def get_public_file(token: str, file_id: int, session: Session | None = None) -> FileAccess:
    session = active_session(session)
    root = resolve_public_share(token, session=session)
    if root is None:
        raise NotFound("Share link not found.", code="SHARE_NOT_FOUND")

    file = get_file(session, file_id)
    if file is None:
        raise NotFound("File not found.", code="FILE_NOT_FOUND")
    if file.folder_id is None or not is_descendant(file.folder_id, root.id, session=session):
        raise Unauthorized("Requested file is outside this share.")
    return FileAccess(file=file, permission=AccessLevel.READ)
