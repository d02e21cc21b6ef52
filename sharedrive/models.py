from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any

from argon2 import PasswordHasher

from .extensions import db


pwd_hasher = PasswordHasher()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SharePermission(str, enum.Enum):
    READ = "READ"
    EDIT = "EDIT"

    @property
    def access_level(self) -> "AccessLevel":
        return AccessLevel[self.value]


class AccessLevel(enum.IntEnum):
    """Effective permission on a resource, ordered OWNER > EDIT > READ."""

    READ = 1
    EDIT = 2
    OWNER = 3

    def satisfies(self, required: "AccessLevel") -> bool:
        return self >= required


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    def set_password(self, password: str) -> None:
        self.password_hash = pwd_hasher.hash(password)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class Folder(db.Model):
    __tablename__ = "folders"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("folders.id"), nullable=True, index=True)
    # Materialized ancestry, "/<root id>/.../<own id>/".
    path = db.Column(db.Text, nullable=False, default="/", index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    owner = db.relationship("User")
    parent = db.relationship("Folder", remote_side=[id], back_populates="children")
    children = db.relationship("Folder", back_populates="parent", passive_deletes="all")
    files = db.relationship("File", back_populates="folder", passive_deletes="all")
    grants = db.relationship("SharedFolder", back_populates="folder", passive_deletes="all")
    public_share = db.relationship("PublicFolderShare", back_populates="folder", uselist=False, passive_deletes="all")

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "owner_id": self.owner_id,
            "parent_id": self.parent_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class File(db.Model):
    __tablename__ = "files"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    mime_type = db.Column(db.String(255), nullable=False, default="application/octet-stream")
    size = db.Column(db.BigInteger, nullable=False, default=0)
    storage_key = db.Column(db.String(512), nullable=False)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    folder_id = db.Column(db.Integer, db.ForeignKey("folders.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    owner = db.relationship("User")
    folder = db.relationship("Folder", back_populates="files")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "mime_type": self.mime_type,
            "size": self.size,
            "owner_id": self.owner_id,
            "folder_id": self.folder_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class SharedFolder(db.Model):
    __tablename__ = "shared_folders"

    id = db.Column(db.Integer, primary_key=True)
    folder_id = db.Column(db.Integer, db.ForeignKey("folders.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    permission = db.Column(db.Enum(SharePermission), nullable=False, default=SharePermission.READ)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    folder = db.relationship("Folder", back_populates="grants")
    user = db.relationship("User")

    __table_args__ = (db.UniqueConstraint("folder_id", "user_id", name="uq_shared_folder_folder_user"),)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "folder_id": self.folder_id,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "user_email": self.user.email if self.user else None,
            "permission": self.permission.value,
            "created_at": self.created_at.isoformat(),
        }


class PublicFolderShare(db.Model):
    __tablename__ = "public_folder_shares"

    id = db.Column(db.Integer, primary_key=True)
    folder_id = db.Column(db.Integer, db.ForeignKey("folders.id"), unique=True, nullable=False)
    token = db.Column(db.String(128), unique=True, nullable=False, index=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    folder = db.relationship("Folder", back_populates="public_share")

    def is_expired(self, now: datetime | None = None) -> bool:
        expires_at = as_utc(self.expires_at)
        return expires_at is not None and expires_at <= (now or utc_now())

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "folder_id": self.folder_id,
            "token": self.token,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "created_at": self.created_at.isoformat(),
        }


class OrphanedBlob(db.Model):
    __tablename__ = "orphaned_blobs"

    id = db.Column(db.Integer, primary_key=True)
    storage_key = db.Column(db.String(512), nullable=False, index=True)
    reason = db.Column(db.String(512), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "storage_key": self.storage_key,
            "reason": self.reason,
            "created_at": self.created_at.isoformat(),
        }
