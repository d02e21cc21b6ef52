"""Row-level primitives over the folder tree.

Nothing in here checks permissions. Every function takes the session it
should run against so callers can keep several steps inside one transaction.
"""

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import File, Folder
from .errors import Conflict


def build_path(parent: Folder | None, folder_id: int) -> str:
    prefix = parent.path if parent is not None else "/"
    return f"{prefix}{folder_id}/"


def ancestor_ids(folder: Folder) -> list[int]:
    """Ids on the chain from ``folder`` up to its root, nearest first."""
    return [int(part) for part in reversed(folder.path.strip("/").split("/")) if part]


def get_folder(session: Session, folder_id: int) -> Folder | None:
    return session.get(Folder, folder_id)


def lock_folder(session: Session, folder_id: int) -> Folder | None:
    """Re-read a folder row under a row lock, replacing any state loaded earlier."""
    return (
        session.query(Folder)
        .filter(Folder.id == folder_id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )


def get_file(session: Session, file_id: int) -> File | None:
    return session.get(File, file_id)


def get_parent(session: Session, folder_id: int) -> Folder | None:
    folder = get_folder(session, folder_id)
    if folder is None or folder.parent_id is None:
        return None
    return get_folder(session, folder.parent_id)


def list_children(session: Session, folder_id: int) -> list[Folder]:
    return session.query(Folder).filter(Folder.parent_id == folder_id).order_by(Folder.name.asc(), Folder.id.asc()).all()


def list_files_in(session: Session, folder_id: int) -> list[File]:
    return session.query(File).filter(File.folder_id == folder_id).order_by(File.name.asc(), File.id.asc()).all()


def list_root_folders(session: Session, owner_id: int) -> list[Folder]:
    return (
        session.query(Folder)
        .filter(Folder.owner_id == owner_id, Folder.parent_id.is_(None))
        .order_by(Folder.created_at.desc(), Folder.id.desc())
        .all()
    )


def list_folders_for_owner(session: Session, owner_id: int) -> list[Folder]:
    return session.query(Folder).filter(Folder.owner_id == owner_id).order_by(Folder.created_at.desc(), Folder.id.desc()).all()


def list_files_for_owner(session: Session, owner_id: int) -> list[File]:
    return session.query(File).filter(File.owner_id == owner_id).order_by(File.created_at.desc(), File.id.desc()).all()


def get_breadcrumb(session: Session, folder_id: int) -> list[Folder]:
    """Folders from the root down to ``folder_id``."""
    folder = get_folder(session, folder_id)
    if folder is None:
        return []
    chain = list(reversed(ancestor_ids(folder)))
    indexed = {item.id: item for item in session.query(Folder).filter(Folder.id.in_(chain)).all()}
    return [indexed[item_id] for item_id in chain if item_id in indexed]


def rewrite_subtree_paths(session: Session, folder: Folder, new_parent: Folder | None) -> int:
    """Re-root the materialized path of ``folder`` and all of its descendants."""
    old_prefix = folder.path
    new_prefix = build_path(new_parent, folder.id)
    if old_prefix == new_prefix:
        return 0

    descendants = (
        session.query(Folder)
        .filter(Folder.path.startswith(old_prefix, autoescape=True))
        .with_for_update()
        .populate_existing()
        .all()
    )
    for item in descendants:
        item.path = new_prefix + item.path[len(old_prefix) :]
    session.flush()
    return len(descendants)


def delete_empty_folder(session: Session, folder: Folder) -> None:
    remaining_children = session.query(func.count(Folder.id)).filter(Folder.parent_id == folder.id).scalar()
    remaining_files = session.query(func.count(File.id)).filter(File.folder_id == folder.id).scalar()
    if remaining_children or remaining_files:
        raise Conflict(
            "Folder still has contents.",
            code="FOLDER_NOT_EMPTY",
            details={"folder_id": folder.id, "children": remaining_children, "files": remaining_files},
        )
    session.delete(folder)
    session.flush()
