"""Effective permission resolution over the folder tree.

Ownership is checked at every level before the grant at that same level, and
the first level that yields an answer wins. Grants are never combined: a READ
grant close to the folder shadows an EDIT grant further up.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from ..common.transaction import active_session
from ..common.tree import ancestor_ids, get_folder
from ..models import AccessLevel, Folder, SharedFolder


def resolve_permission(folder_id: int, user_id: int, session: Session | None = None) -> AccessLevel | None:
    session = active_session(session)
    folder = get_folder(session, folder_id)
    if folder is None:
        return None

    chain = ancestor_ids(folder)
    owners = dict(session.query(Folder.id, Folder.owner_id).filter(Folder.id.in_(chain)).all())
    grants = dict(
        session.query(SharedFolder.folder_id, SharedFolder.permission)
        .filter(SharedFolder.user_id == user_id, SharedFolder.folder_id.in_(chain))
        .all()
    )

    for level_id in chain:
        if owners.get(level_id) == user_id:
            return AccessLevel.OWNER
        grant = grants.get(level_id)
        if grant is not None:
            return grant.access_level
    return None


def has_any_access(folder_id: int, user_id: int, session: Session | None = None) -> bool:
    return resolve_permission(folder_id, user_id, session=session) is not None


def is_descendant(candidate_folder_id: int, ancestor_folder_id: int, session: Session | None = None) -> bool:
    """True when ``ancestor_folder_id`` is on the candidate's chain, the candidate included."""
    candidate = get_folder(active_session(session), candidate_folder_id)
    if candidate is None:
        return False
    return ancestor_folder_id in ancestor_ids(candidate)
