from __future__ import annotations

import secrets
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..common.errors import Conflict, NotFound, ValidationError
from ..common.transaction import active_session, transaction
from ..common.tree import get_folder
from ..models import Folder, PublicFolderShare, SharedFolder, SharePermission, User, as_utc, utc_now


TOKEN_ATTEMPTS = 5


def parse_share_permission(value: str | SharePermission | None) -> SharePermission:
    if isinstance(value, SharePermission):
        return value
    normalized = (value or "").strip().upper()
    try:
        return SharePermission(normalized)
    except ValueError as error:
        raise ValidationError("Permission must be 'READ' or 'EDIT'.", code="INVALID_PERMISSION") from error


def _require_folder(session: Session, folder_id: int) -> Folder:
    folder = get_folder(session, folder_id)
    if folder is None:
        raise NotFound("Folder not found.", code="FOLDER_NOT_FOUND")
    return folder


def share_with_user(
    folder_id: int,
    user_email: str,
    permission: str | SharePermission,
    session: Session | None = None,
) -> SharedFolder:
    """Grant READ or EDIT on a folder to the user registered under ``user_email``.

    The caller is expected to have verified that the acting user owns the folder.
    """
    level = parse_share_permission(permission)
    email = (user_email or "").strip().lower()

    with transaction(session) as tx:
        folder = _require_folder(tx, folder_id)
        target = tx.query(User).filter(func.lower(User.email) == email).one_or_none()
        if target is None:
            raise NotFound("User not found.", code="USER_NOT_FOUND")
        if target.id == folder.owner_id:
            raise ValidationError("Owner already has full access.", code="INVALID_SHARE")

        existing = tx.query(SharedFolder).filter_by(folder_id=folder.id, user_id=target.id).one_or_none()
        if existing is not None:
            raise Conflict("Folder already shared with this user.", code="ALREADY_SHARED")

        grant = SharedFolder(folder_id=folder.id, user_id=target.id, permission=level)
        tx.add(grant)
        tx.flush()

    current_app.logger.info("Folder %s shared with user %s (%s)", folder_id, grant.user_id, level.value)
    return grant


def update_permission(
    folder_id: int,
    target_user_id: int,
    new_permission: str | SharePermission,
    *,
    actor_id: int,
    session: Session | None = None,
) -> int:
    """Change an existing grant. Returns the number of grant rows updated (0 or 1)."""
    level = parse_share_permission(new_permission)
    if target_user_id == actor_id:
        raise ValidationError("You cannot change your own permission.", code="INVALID_SHARE")

    with transaction(session) as tx:
        updated = (
            tx.query(SharedFolder)
            .filter(SharedFolder.folder_id == folder_id, SharedFolder.user_id == target_user_id)
            .update({SharedFolder.permission: level}, synchronize_session="fetch")
        )
    return updated


def remove_share(folder_id: int, target_user_id: int, session: Session | None = None) -> bool:
    with transaction(session) as tx:
        removed = (
            tx.query(SharedFolder)
            .filter(SharedFolder.folder_id == folder_id, SharedFolder.user_id == target_user_id)
            .delete(synchronize_session="fetch")
        )
    return removed > 0


def list_shared_users(folder_id: int, session: Session | None = None) -> list[SharedFolder]:
    session = active_session(session)
    return session.query(SharedFolder).filter(SharedFolder.folder_id == folder_id).order_by(SharedFolder.created_at.asc()).all()


def list_folders_shared_with(user_id: int, session: Session | None = None) -> list[SharedFolder]:
    session = active_session(session)
    return (
        session.query(SharedFolder)
        .filter(SharedFolder.user_id == user_id)
        .order_by(SharedFolder.created_at.desc(), SharedFolder.id.desc())
        .all()
    )


def _new_token(session: Session) -> str:
    token_bytes = current_app.config.get("PUBLIC_SHARE_TOKEN_BYTES", 20)
    for _ in range(TOKEN_ATTEMPTS):
        token = secrets.token_hex(token_bytes)
        if session.query(PublicFolderShare.id).filter_by(token=token).first() is None:
            return token
    raise Conflict("Could not allocate a unique share token.", code="TOKEN_COLLISION")


def expiry_from_days(days: int | str | None) -> datetime | None:
    if days in (None, ""):
        return None
    try:
        value = int(days)
    except (TypeError, ValueError) as error:
        raise ValidationError("expires_in_days must be an integer.") from error
    max_days = current_app.config.get("PUBLIC_SHARE_MAX_DAYS", 3650)
    if value <= 0 or value > max_days:
        raise ValidationError(f"expires_in_days must be between 1 and {max_days}.")
    return utc_now() + timedelta(days=value)


def create_public_share(
    folder_id: int,
    *,
    expires_at: datetime | None = None,
    session: Session | None = None,
) -> str:
    """Create or replace the public link of a folder and return its token."""
    expires_at = as_utc(expires_at)
    if expires_at is not None and expires_at <= utc_now():
        raise ValidationError("Expiry must be in the future.", code="INVALID_EXPIRY")

    with transaction(session) as tx:
        folder = _require_folder(tx, folder_id)
        token = _new_token(tx)
        share = tx.query(PublicFolderShare).filter_by(folder_id=folder.id).one_or_none()
        if share is None:
            share = PublicFolderShare(folder_id=folder.id, token=token, expires_at=expires_at)
            tx.add(share)
        else:
            share.token = token
            share.expires_at = expires_at
            share.created_at = utc_now()
        tx.flush()

    current_app.logger.info("Public link created for folder %s", folder_id)
    return token


def revoke_public_share(folder_id: int, session: Session | None = None) -> int:
    with transaction(session) as tx:
        removed = (
            tx.query(PublicFolderShare)
            .filter(PublicFolderShare.folder_id == folder_id)
            .delete(synchronize_session="fetch")
        )
    if removed:
        current_app.logger.info("Public link revoked for folder %s", folder_id)
    return removed


def get_public_share(folder_id: int, session: Session | None = None) -> PublicFolderShare | None:
    session = active_session(session)
    return session.query(PublicFolderShare).filter_by(folder_id=folder_id).one_or_none()


def resolve_public_share(token: str, session: Session | None = None) -> Folder | None:
    """Root folder behind ``token``; unknown and expired tokens both yield ``None``."""
    if not token:
        return None
    session = active_session(session)
    share = session.query(PublicFolderShare).filter_by(token=token).one_or_none()
    if share is None or share.is_expired():
        return None
    return share.folder
